from __future__ import annotations

from decimal import Decimal

from ..extensions import db
from ..time_utils import to_utc_z, money_str
from .enums import TransactionStatus, CreditStatus


class Client(db.Model):
    """
    Customer with a store credit line.

    INVARIANT: after any credit-sale posting credit_balance <= credit_limit.
    Enforced by services/transaction_service.py before the first write.
    """
    __tablename__ = "clients"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    email = db.Column(db.String(255), nullable=True)
    phone = db.Column(db.String(64), nullable=True)
    address = db.Column(db.Text, nullable=True)

    credit_balance = db.Column(db.Numeric(12, 2), nullable=False, default=Decimal("0"))
    credit_limit = db.Column(db.Numeric(12, 2), nullable=False, default=Decimal("0"))

    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    @property
    def available_credit(self) -> Decimal:
        return Decimal(self.credit_limit) - Decimal(self.credit_balance)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "phone": self.phone,
            "address": self.address,
            "credit_balance": money_str(self.credit_balance),
            "credit_limit": money_str(self.credit_limit),
            "available_credit": money_str(self.available_credit),
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
        }


class Transaction(db.Model):
    """
    A completed economic event: sale, purchase or credit payment.

    Immutable once created. Items carry a product_name snapshot.
    """
    __tablename__ = "transactions"
    __table_args__ = (
        db.Index("ix_transactions_type_occurred", "type", "occurred_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    type = db.Column(db.String(16), nullable=False, index=True)
    occurred_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    total = db.Column(db.Numeric(12, 2), nullable=False)
    status = db.Column(db.String(16), nullable=False, default=TransactionStatus.COMPLETED.value)
    payment_method = db.Column(db.String(16), nullable=False)
    client_id = db.Column(db.Integer, db.ForeignKey("clients.id"), nullable=True, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)

    client = db.relationship("Client", backref=db.backref("transactions", lazy=True))
    user = db.relationship("User")
    items = db.relationship(
        "TransactionItem",
        back_populates="transaction",
        order_by="TransactionItem.id",
    )

    def to_dict(self, include_items: bool = True) -> dict:
        data = {
            "id": self.id,
            "type": self.type,
            "occurred_at": to_utc_z(self.occurred_at),
            "total": money_str(self.total),
            "status": self.status,
            "payment_method": self.payment_method,
            "client_id": self.client_id,
            "user_id": self.user_id,
        }
        if include_items:
            data["items"] = [item.to_dict() for item in self.items]
        return data


class TransactionItem(db.Model):
    __tablename__ = "transaction_items"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    transaction_id = db.Column(db.Integer, db.ForeignKey("transactions.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    product_name = db.Column(db.String(255), nullable=False)
    quantity = db.Column(db.Integer, nullable=False)
    price = db.Column(db.Numeric(12, 2), nullable=False)
    discount = db.Column(db.Numeric(12, 2), nullable=False, default=Decimal("0"))

    transaction = db.relationship("Transaction", back_populates="items")
    product = db.relationship("Product")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "transaction_id": self.transaction_id,
            "product_id": self.product_id,
            "product_name": self.product_name,
            "quantity": self.quantity,
            "price": money_str(self.price),
            "discount": money_str(self.discount),
        }


class CreditRecord(db.Model):
    """
    Amount owed for one credit sale, paid down by CreditPayment rows.

    status is derived from paid_amount vs amount vs due_date
    (services/credit_service.py:derive_credit_status) and stored for filtering.
    """
    __tablename__ = "credit_records"
    __table_args__ = (
        db.UniqueConstraint("transaction_id", name="uq_credit_records_transaction"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    client_id = db.Column(db.Integer, db.ForeignKey("clients.id"), nullable=False, index=True)
    transaction_id = db.Column(db.Integer, db.ForeignKey("transactions.id"), nullable=False)
    amount = db.Column(db.Numeric(12, 2), nullable=False)
    paid_amount = db.Column(db.Numeric(12, 2), nullable=False, default=Decimal("0"))
    due_date = db.Column(db.DateTime(timezone=True), nullable=False)
    status = db.Column(db.String(16), nullable=False, default=CreditStatus.PENDING.value, index=True)

    client = db.relationship("Client", backref=db.backref("credit_records", lazy=True))
    transaction = db.relationship("Transaction", backref=db.backref("credit_record", uselist=False))
    payments = db.relationship("CreditPayment", back_populates="credit_record", order_by="CreditPayment.id")

    @property
    def outstanding(self) -> Decimal:
        return Decimal(self.amount) - Decimal(self.paid_amount)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "client_id": self.client_id,
            "transaction_id": self.transaction_id,
            "amount": money_str(self.amount),
            "paid_amount": money_str(self.paid_amount),
            "outstanding": money_str(self.outstanding),
            "due_date": to_utc_z(self.due_date),
            "status": self.status,
            "payments": [p.to_dict() for p in self.payments],
        }


class CreditPayment(db.Model):
    __tablename__ = "credit_payments"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    credit_record_id = db.Column(db.Integer, db.ForeignKey("credit_records.id"), nullable=False, index=True)
    amount = db.Column(db.Numeric(12, 2), nullable=False)
    paid_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    method = db.Column(db.String(16), nullable=False)

    # credit_payment transaction written alongside the payment
    transaction_id = db.Column(db.Integer, db.ForeignKey("transactions.id"), nullable=True)

    credit_record = db.relationship("CreditRecord", back_populates="payments")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "credit_record_id": self.credit_record_id,
            "amount": money_str(self.amount),
            "paid_at": to_utc_z(self.paid_at),
            "method": self.method,
            "transaction_id": self.transaction_id,
        }
