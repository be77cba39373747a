"""
Transaction Poster - sales and purchases as one atomic unit

WHY: A sale touches four tables at once (transaction header, line items,
stock + movements, client balance). Either all of it is visible or none.

ORDER OF WORK (inside one unit_of_work):
1. Validate payload (ValidationError)
2. Business checks: client exists, credit limit, oversell policy
   (CreditLimitExceeded / InsufficientStock) - still nothing written
3. Insert header, items, one stock movement per line
4. Credit sales: raise client balance, open a CreditRecord
"""

from __future__ import annotations

from datetime import timedelta
from decimal import Decimal

from flask import current_app

from ..errors import (
    ClientNotFound,
    CreditLimitExceeded,
    InsufficientStock,
    TransactionNotFound,
    ValidationError,
)
from ..extensions import db
from ..models import Client, CreditRecord, Transaction, TransactionItem
from ..models.enums import (
    CreditStatus,
    MovementType,
    PaymentMethod,
    TransactionStatus,
    TransactionType,
    values,
)
from ..time_utils import utcnow
from ..validation import (
    coerce_choice,
    coerce_int,
    coerce_items,
    coerce_money,
    require_present,
)
from .stock_service import apply_stock_delta, ensure_user, get_product, get_quantity_on_hand
from .unit_of_work import lock_for_update, unit_of_work


OVERSELL_ALLOW = "allow"
OVERSELL_REJECT = "reject"

# Stock direction per transaction type
STOCK_SIGN = {
    TransactionType.SALE.value: -1,
    TransactionType.PURCHASE.value: 1,
}

MOVEMENT_TYPE = {
    TransactionType.SALE.value: MovementType.SALE.value,
    TransactionType.PURCHASE.value: MovementType.PURCHASE.value,
}


def _normalize_items(items) -> list[dict]:
    lines = []
    for i, item in enumerate(coerce_items(items)):
        missing = [f for f in ("product_id", "quantity", "price") if item.get(f) is None]
        if missing:
            raise ValidationError(
                f"items[{i}] missing required fields: {', '.join(missing)}",
                details={"item_index": i, "missing": missing},
            )
        lines.append({
            "product_id": coerce_int(item["product_id"], f"items[{i}].product_id", minimum=1),
            "quantity": coerce_int(item["quantity"], f"items[{i}].quantity", minimum=1),
            "price": coerce_money(item["price"], f"items[{i}].price"),
            "discount": coerce_money(item.get("discount", 0), f"items[{i}].discount"),
        })
    return lines


def _check_credit_limit(client: Client, total: Decimal) -> None:
    current_balance = Decimal(client.credit_balance)
    limit = Decimal(client.credit_limit)
    new_balance = current_balance + total
    if new_balance > limit:
        available = limit - current_balance
        raise CreditLimitExceeded(
            f"Credit limit exceeded. Available: {available:.2f}",
            details={
                "client_id": client.id,
                "credit_balance": f"{current_balance:.2f}",
                "credit_limit": f"{limit:.2f}",
                "available": f"{available:.2f}",
                "requested": f"{total:.2f}",
            },
        )


def _check_oversell(lines: list[dict]) -> None:
    requested: dict[int, int] = {}
    for line in lines:
        requested[line["product_id"]] = requested.get(line["product_id"], 0) + line["quantity"]

    insufficient = []
    for product_id, qty in requested.items():
        on_hand = get_quantity_on_hand(product_id)
        if on_hand < qty:
            insufficient.append({
                "product_id": product_id,
                "requested_quantity": qty,
                "on_hand": on_hand,
            })

    if insufficient:
        raise InsufficientStock(
            "Insufficient stock to post sale",
            details={"items": insufficient},
        )


def post_transaction(
    *,
    type: str,
    items,
    payment_method: str,
    user_id: int,
    total,
    client_id: int | None = None,
    status: str = TransactionStatus.COMPLETED.value,
) -> Transaction:
    """
    Post a sale or purchase.

    Credit sales (payment_method=credit) need a client; the sale is rejected
    with CreditLimitExceeded when credit_balance + total > credit_limit.
    Nothing is written unless every check passes.

    Does not guard against overselling unless STOCK_OVERSELL_POLICY=reject.
    """
    require_present({"type": type, "payment_method": payment_method, "user_id": user_id, "total": total},
                    ["type", "payment_method", "user_id", "total"])
    tx_type = coerce_choice(type, "type", STOCK_SIGN.keys())
    method = coerce_choice(payment_method, "payment_method", values(PaymentMethod))
    tx_status = coerce_choice(status or TransactionStatus.COMPLETED.value, "status", values(TransactionStatus))
    user_id = coerce_int(user_id, "user_id", minimum=1)
    amount = coerce_money(total, "total", minimum=Decimal("0.01"))
    lines = _normalize_items(items)
    if client_id is not None:
        client_id = coerce_int(client_id, "client_id", minimum=1)

    is_credit = method == PaymentMethod.CREDIT.value
    if is_credit and client_id is None:
        raise ValidationError("client_id is required for credit transactions")

    policy = current_app.config.get("STOCK_OVERSELL_POLICY", OVERSELL_ALLOW)
    term_days = int(current_app.config.get("CREDIT_TERM_DAYS", 30))

    with unit_of_work():
        ensure_user(user_id)

        client = None
        if client_id is not None:
            client = lock_for_update(db.session.query(Client).filter_by(id=client_id)).first()
            if client is None:
                raise ClientNotFound(f"Client {client_id} not found", details={"client_id": client_id})

        if is_credit:
            _check_credit_limit(client, amount)

        products = {line["product_id"]: get_product(line["product_id"]) for line in lines}

        if tx_type == TransactionType.SALE.value and policy == OVERSELL_REJECT:
            _check_oversell(lines)

        # --- first write below this line ---
        transaction = Transaction(
            type=tx_type,
            total=amount,
            status=tx_status,
            payment_method=method,
            client_id=client_id,
            user_id=user_id,
            occurred_at=utcnow(),
        )
        db.session.add(transaction)
        db.session.flush()

        sign = STOCK_SIGN[tx_type]
        for line in lines:
            db.session.add(TransactionItem(
                transaction_id=transaction.id,
                product_id=line["product_id"],
                product_name=products[line["product_id"]].name,
                quantity=line["quantity"],
                price=line["price"],
                discount=line["discount"],
            ))
            apply_stock_delta(
                line["product_id"],
                sign * line["quantity"],
                MOVEMENT_TYPE[tx_type],
                user_id,
                notes=f"Transaction {transaction.id}",
            )

        if is_credit:
            client.credit_balance = Client.credit_balance + amount
            db.session.add(CreditRecord(
                client_id=client.id,
                transaction_id=transaction.id,
                amount=amount,
                paid_amount=Decimal("0"),
                due_date=transaction.occurred_at + timedelta(days=term_days),
                status=CreditStatus.PENDING.value,
            ))

    current_app.logger.info(
        "Posted %s transaction %s (%d lines, total %s, %s)",
        tx_type, transaction.id, len(lines), f"{amount:.2f}", method,
    )
    return transaction


def get_transaction(transaction_id: int) -> Transaction:
    transaction = db.session.get(Transaction, transaction_id)
    if transaction is None:
        raise TransactionNotFound(
            f"Transaction {transaction_id} not found",
            details={"transaction_id": transaction_id},
        )
    return transaction


def list_transactions(*, type: str | None = None, limit: int = 100) -> list[Transaction]:
    q = db.session.query(Transaction)
    if type:
        q = q.filter_by(type=type)
    return q.order_by(Transaction.occurred_at.desc(), Transaction.id.desc()).limit(limit).all()
