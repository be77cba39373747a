# Overview: Domain error taxonomy shared by services and routes.

"""
posledger error taxonomy.

Every failure a service can raise derives from LedgerError. Business checks
run before the first write of a unit of work, so a LedgerError never leaves
partial rows behind. StorageError wraps database failures after the unit of
work has rolled back.

status_code is the HTTP status the integration layer answers with.
"""
from __future__ import annotations


class LedgerError(Exception):
    """Base class for all domain errors."""
    status_code = 500

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict:
        return {"error": self.message, **self.details}


class ValidationError(LedgerError, ValueError):
    """400-level input problem, rejected before any write."""
    status_code = 400


class CreditLimitExceeded(LedgerError):
    """A credit sale would push the client's balance over the limit."""
    status_code = 409


class InsufficientStock(LedgerError):
    """A sale would oversell while the oversell policy is 'reject'."""
    status_code = 409


class InvalidState(LedgerError):
    """Operation not allowed in the entity's current state."""
    status_code = 409


class AlreadyReconciled(InvalidState):
    """Count session has already applied its variances."""


class DuplicateItem(LedgerError):
    """Product is already part of the count session."""
    status_code = 409


class NotFound(LedgerError):
    status_code = 404


class ProductNotFound(NotFound):
    pass


class ClientNotFound(NotFound):
    pass


class SupplierNotFound(NotFound):
    pass


class UserNotFound(NotFound):
    pass


class SessionNotFound(NotFound):
    pass


class OrderNotFound(NotFound):
    pass


class TransactionNotFound(NotFound):
    pass


class CreditRecordNotFound(NotFound):
    pass


class StorageError(LedgerError):
    """Underlying database failure; the whole unit of work was rolled back."""
    status_code = 500
