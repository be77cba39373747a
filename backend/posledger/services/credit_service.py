"""
Credit ledger - payments against credit sales

WHY: A credit sale raises Client.credit_balance and opens a CreditRecord
(services/transaction_service.py). Payments bring both back down. Balance,
record and the credit_payment transaction header move together.

STATUS DERIVATION (stored for filtering, always recomputable):
- paid:     paid_amount >= amount
- overdue:  not fully paid and due_date has passed
- partial:  something paid, not yet due
- pending:  nothing paid, not yet due
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from flask import current_app

from ..errors import ClientNotFound, CreditRecordNotFound, InvalidState, ValidationError
from ..extensions import db
from ..models import Client, CreditPayment, CreditRecord, Transaction
from ..models.enums import (
    CreditPaymentMethod,
    CreditStatus,
    TransactionStatus,
    TransactionType,
    values,
)
from ..time_utils import utcnow
from ..validation import coerce_choice, coerce_int, coerce_money
from .stock_service import ensure_user
from .unit_of_work import lock_for_update, unit_of_work


OPEN_STATUSES = [
    CreditStatus.PENDING.value,
    CreditStatus.PARTIAL.value,
    CreditStatus.OVERDUE.value,
]


def derive_credit_status(amount, paid_amount, due_date: datetime, now: datetime | None = None) -> str:
    now = now or utcnow()
    if Decimal(paid_amount) >= Decimal(amount):
        return CreditStatus.PAID.value
    if due_date is not None and due_date < now:
        return CreditStatus.OVERDUE.value
    if Decimal(paid_amount) > 0:
        return CreditStatus.PARTIAL.value
    return CreditStatus.PENDING.value


def record_credit_payment(credit_record_id: int, amount, method: str, user_id: int) -> CreditPayment:
    """
    Pay down a credit record.

    Raises:
        ValidationError: amount not positive, or larger than outstanding
        CreditRecordNotFound: record does not exist
        InvalidState: record already paid
    """
    if user_id is None:
        raise ValidationError("user_id is required")
    user_id = coerce_int(user_id, "user_id", minimum=1)
    method = coerce_choice(method, "method", values(CreditPaymentMethod))
    amount = coerce_money(amount, "amount", minimum=Decimal("0.01"))

    with unit_of_work():
        ensure_user(user_id)

        record = lock_for_update(db.session.query(CreditRecord).filter_by(id=credit_record_id)).first()
        if record is None:
            raise CreditRecordNotFound(
                f"Credit record {credit_record_id} not found",
                details={"credit_record_id": credit_record_id},
            )
        if record.status == CreditStatus.PAID:
            raise InvalidState(
                f"Credit record {credit_record_id} is already paid",
                details={"credit_record_id": credit_record_id},
            )

        outstanding = record.outstanding
        if amount > outstanding:
            raise ValidationError(
                f"Payment exceeds outstanding amount {outstanding:.2f}",
                details={"outstanding": f"{outstanding:.2f}", "requested": f"{amount:.2f}"},
            )

        client = lock_for_update(db.session.query(Client).filter_by(id=record.client_id)).first()

        now = utcnow()
        transaction = Transaction(
            type=TransactionType.CREDIT_PAYMENT.value,
            total=amount,
            status=TransactionStatus.COMPLETED.value,
            payment_method=method,
            client_id=client.id,
            user_id=user_id,
            occurred_at=now,
        )
        db.session.add(transaction)
        db.session.flush()

        payment = CreditPayment(
            credit_record_id=record.id,
            amount=amount,
            paid_at=now,
            method=method,
            transaction_id=transaction.id,
        )
        db.session.add(payment)

        new_paid = Decimal(record.paid_amount) + amount
        record.paid_amount = new_paid
        record.status = derive_credit_status(record.amount, new_paid, record.due_date, now)
        client.credit_balance = Client.credit_balance - amount

    current_app.logger.info(
        "Credit payment %s on record %s: %s (%s)",
        payment.id, credit_record_id, f"{amount:.2f}", method,
    )
    return payment


def refresh_overdue(now: datetime | None = None) -> int:
    """Re-derive stored status for open records. Returns how many changed."""
    now = now or utcnow()
    changed = 0
    with unit_of_work():
        records = db.session.query(CreditRecord).filter(CreditRecord.status.in_(OPEN_STATUSES)).all()
        for record in records:
            status = derive_credit_status(record.amount, record.paid_amount, record.due_date, now)
            if status != record.status:
                record.status = status
                changed += 1
    if changed:
        current_app.logger.info("Refreshed %d credit record statuses", changed)
    return changed


def get_credit_record(credit_record_id: int) -> CreditRecord:
    record = db.session.get(CreditRecord, credit_record_id)
    if record is None:
        raise CreditRecordNotFound(
            f"Credit record {credit_record_id} not found",
            details={"credit_record_id": credit_record_id},
        )
    return record


def get_client_credit_summary(client_id: int) -> dict:
    client = db.session.get(Client, client_id)
    if client is None:
        raise ClientNotFound(f"Client {client_id} not found", details={"client_id": client_id})

    open_records = (
        db.session.query(CreditRecord)
        .filter(CreditRecord.client_id == client_id, CreditRecord.status.in_(OPEN_STATUSES))
        .order_by(CreditRecord.due_date, CreditRecord.id)
        .all()
    )
    return {
        "client": client.to_dict(),
        "open_records": [record.to_dict() for record in open_records],
        "open_total": f"{sum((r.outstanding for r in open_records), Decimal('0')):.2f}",
    }
