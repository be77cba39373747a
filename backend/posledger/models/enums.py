"""
Closed vocabularies for status and type columns.

Columns store the plain string value; the str mixin lets
`row.status == PurchaseOrderStatus.PENDING` compare directly.
"""
from __future__ import annotations

from enum import Enum


class UserRole(str, Enum):
    ADMIN = "admin"
    MANAGER = "manager"
    CASHIER = "cashier"


class MovementType(str, Enum):
    SALE = "sale"
    PURCHASE = "purchase"
    ADJUSTMENT = "adjustment"


class TransactionType(str, Enum):
    SALE = "sale"
    PURCHASE = "purchase"
    CREDIT_PAYMENT = "credit_payment"


class TransactionStatus(str, Enum):
    COMPLETED = "completed"
    PENDING = "pending"
    CANCELLED = "cancelled"


class PaymentMethod(str, Enum):
    CASH = "cash"
    CREDIT = "credit"
    CARD = "card"


class CreditPaymentMethod(str, Enum):
    CASH = "cash"
    CARD = "card"


class CreditStatus(str, Enum):
    PAID = "paid"
    PARTIAL = "partial"
    OVERDUE = "overdue"
    PENDING = "pending"


class AdjustmentType(str, Enum):
    STOCK_COUNT = "stock_count"
    DAMAGE = "damage"
    LOSS = "loss"
    RETURN = "return"
    TRANSFER = "transfer"
    CORRECTION = "correction"
    OPENING_STOCK = "opening_stock"


class PurchaseOrderStatus(str, Enum):
    PENDING = "pending"
    RECEIVED = "received"
    CANCELLED = "cancelled"


class SessionStatus(str, Enum):
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    RECONCILED = "reconciled"


def values(enum_cls) -> list[str]:
    return [member.value for member in enum_cls]
