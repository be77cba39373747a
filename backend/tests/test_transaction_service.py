"""
Transaction poster tests.

Verifies:
- Sales decrement and purchases increment stock, one movement per line
- Credit sales respect the client's credit limit with zero partial effect
- Credit sales open a CreditRecord due after the configured term
- Oversell policy 'reject' fails before any write
"""

from datetime import timedelta
from decimal import Decimal

import pytest

from posledger.errors import (
    ClientNotFound,
    CreditLimitExceeded,
    InsufficientStock,
    ProductNotFound,
    StorageError,
    TransactionNotFound,
    ValidationError,
)
from posledger.models import (
    Client,
    CreditRecord,
    Product,
    StockMovement,
    Transaction,
    TransactionItem,
)
from posledger.services import stock_service, transaction_service


def _sale(user, product, quantity=2, price="24.90", **overrides):
    payload = dict(
        type="sale",
        items=[{"product_id": product.id, "quantity": quantity, "price": price}],
        payment_method="cash",
        user_id=user.id,
        total=str(Decimal(price) * quantity),
    )
    payload.update(overrides)
    return transaction_service.post_transaction(**payload)


# =============================================================================
# POSTING
# =============================================================================


class TestPostTransaction:

    def test_sale_decrements_stock(self, db_session, cashier, product):
        tx = _sale(cashier, product, quantity=3)

        assert tx.id is not None
        assert tx.type == "sale"
        assert tx.total == Decimal("74.70")
        assert stock_service.get_quantity_on_hand(product.id) == 47
        assert db_session.get(Product, product.id).stock == 47

        movement = (
            db_session.query(StockMovement)
            .filter_by(product_id=product.id, type="sale")
            .one()
        )
        assert movement.quantity == -3
        assert movement.user_id == cashier.id
        assert movement.notes == f"Transaction {tx.id}"

    def test_purchase_increments_stock(self, db_session, cashier, product):
        transaction_service.post_transaction(
            type="purchase",
            items=[{"product_id": product.id, "quantity": 10, "price": "14.00"}],
            payment_method="cash",
            user_id=cashier.id,
            total="140.00",
        )
        assert stock_service.get_quantity_on_hand(product.id) == 60
        assert stock_service.verify_movement_parity(product.id) == []

    def test_multi_line_items_snapshot_names(self, db_session, cashier, make_product, manager):
        a = make_product(name="Beans", stock=5, user=manager)
        b = make_product(name="Cups", stock=5, user=manager)

        tx = transaction_service.post_transaction(
            type="sale",
            items=[
                {"product_id": a.id, "quantity": 1, "price": "10.00"},
                {"product_id": b.id, "quantity": 2, "price": "1.50", "discount": "0.50"},
            ],
            payment_method="card",
            user_id=cashier.id,
            total="12.50",
        )

        items = db_session.query(TransactionItem).filter_by(transaction_id=tx.id).order_by(TransactionItem.id).all()
        assert [i.product_name for i in items] == ["Beans", "Cups"]
        assert items[1].discount == Decimal("0.50")
        assert db_session.query(StockMovement).filter_by(type="sale").count() == 2

    def test_oversell_allowed_by_default(self, db_session, cashier, product):
        _sale(cashier, product, quantity=60)
        assert stock_service.get_quantity_on_hand(product.id) == -10

    def test_oversell_rejected_when_policy_is_reject(self, app, db_session, cashier, product):
        app.config["STOCK_OVERSELL_POLICY"] = "reject"

        with pytest.raises(InsufficientStock) as exc:
            _sale(cashier, product, quantity=51)

        assert exc.value.details["items"][0]["on_hand"] == 50
        assert db_session.query(Transaction).count() == 0
        assert stock_service.get_quantity_on_hand(product.id) == 50

    def test_oversell_check_aggregates_lines(self, app, db_session, cashier, product):
        app.config["STOCK_OVERSELL_POLICY"] = "reject"

        with pytest.raises(InsufficientStock):
            transaction_service.post_transaction(
                type="sale",
                items=[
                    {"product_id": product.id, "quantity": 30, "price": "1.00"},
                    {"product_id": product.id, "quantity": 30, "price": "1.00"},
                ],
                payment_method="cash",
                user_id=cashier.id,
                total="60.00",
            )
        assert stock_service.get_quantity_on_hand(product.id) == 50


# =============================================================================
# VALIDATION
# =============================================================================


class TestValidation:

    @pytest.mark.parametrize(
        "items",
        [
            [],
            None,
            [{"quantity": 1, "price": "1.00"}],
            [{"product_id": 1, "price": "1.00"}],
            [{"product_id": 1, "quantity": 1}],
            [{"product_id": 1, "quantity": 0, "price": "1.00"}],
            [{"product_id": 1, "quantity": 1.5, "price": "1.00"}],
        ],
    )
    def test_rejects_bad_items(self, db_session, cashier, items):
        with pytest.raises(ValidationError):
            transaction_service.post_transaction(
                type="sale", items=items, payment_method="cash", user_id=cashier.id, total="1.00"
            )
        assert db_session.query(Transaction).count() == 0

    def test_requires_user(self, db_session, product):
        with pytest.raises(ValidationError):
            transaction_service.post_transaction(
                type="sale",
                items=[{"product_id": product.id, "quantity": 1, "price": "1.00"}],
                payment_method="cash",
                user_id=None,
                total="1.00",
            )

    def test_rejects_credit_payment_type(self, db_session, cashier, product):
        with pytest.raises(ValidationError):
            _sale(cashier, product, type="credit_payment")

    @pytest.mark.parametrize("total", ["0", "0.00", "-1.00"])
    def test_rejects_non_positive_total(self, db_session, cashier, product, total):
        with pytest.raises(ValidationError):
            _sale(cashier, product, total=total)
        assert db_session.query(Transaction).count() == 0
        assert stock_service.get_quantity_on_hand(product.id) == 50

    def test_credit_sale_requires_client(self, db_session, cashier, product):
        with pytest.raises(ValidationError):
            _sale(cashier, product, payment_method="credit")
        assert stock_service.get_quantity_on_hand(product.id) == 50

    def test_unknown_product_writes_nothing(self, db_session, cashier, product):
        with pytest.raises(ProductNotFound):
            transaction_service.post_transaction(
                type="sale",
                items=[
                    {"product_id": product.id, "quantity": 1, "price": "1.00"},
                    {"product_id": 9999, "quantity": 1, "price": "1.00"},
                ],
                payment_method="cash",
                user_id=cashier.id,
                total="2.00",
            )
        assert db_session.query(Transaction).count() == 0
        assert stock_service.get_quantity_on_hand(product.id) == 50


# =============================================================================
# CREDIT SALES
# =============================================================================


class TestCreditSales:

    def test_sale_exceeding_credit_has_no_effect(self, db_session, cashier, product, credit_client):
        movements_before = db_session.query(StockMovement).count()

        with pytest.raises(CreditLimitExceeded) as exc:
            _sale(cashier, product, quantity=1, price="60.00", payment_method="credit", client_id=credit_client.id)

        assert exc.value.details["available"] == "50.00"
        db_session.expire_all()
        assert db_session.get(Client, credit_client.id).credit_balance == Decimal("100.00")
        assert db_session.query(Transaction).count() == 0
        assert db_session.query(TransactionItem).count() == 0
        assert db_session.query(CreditRecord).count() == 0
        assert db_session.query(StockMovement).count() == movements_before
        assert stock_service.get_quantity_on_hand(product.id) == 50

    def test_sale_within_limit_commits_everything(self, db_session, cashier, product, credit_client):
        tx = _sale(cashier, product, quantity=2, price="25.00", payment_method="credit", client_id=credit_client.id)

        db_session.expire_all()
        client = db_session.get(Client, credit_client.id)
        assert client.credit_balance == Decimal("150.00")
        assert client.credit_balance <= client.credit_limit
        assert stock_service.get_quantity_on_hand(product.id) == 48

        record = db_session.query(CreditRecord).filter_by(transaction_id=tx.id).one()
        assert record.amount == Decimal("50.00")
        assert record.paid_amount == Decimal("0.00")
        assert record.status == "pending"
        assert record.due_date - tx.occurred_at == timedelta(days=30)

    def test_cash_sale_with_client_leaves_balance(self, db_session, cashier, product, credit_client):
        _sale(cashier, product, quantity=1, price="500.00", client_id=credit_client.id)

        db_session.expire_all()
        assert db_session.get(Client, credit_client.id).credit_balance == Decimal("100.00")
        assert db_session.query(CreditRecord).count() == 0

    def test_storage_failure_mid_posting_leaves_store_untouched(
        self, db_session, monkeypatch, fail_on_call, cashier, manager, make_product, credit_client
    ):
        beans = make_product(name="Beans", stock=10, user=manager)
        cups = make_product(name="Cups", stock=10, user=manager)
        movements_before = db_session.query(StockMovement).count()
        monkeypatch.setattr(
            transaction_service, "apply_stock_delta", fail_on_call(stock_service.apply_stock_delta)
        )

        with pytest.raises(StorageError):
            transaction_service.post_transaction(
                type="sale",
                items=[
                    {"product_id": beans.id, "quantity": 2, "price": "5.00"},
                    {"product_id": cups.id, "quantity": 4, "price": "2.50"},
                ],
                payment_method="credit",
                user_id=cashier.id,
                client_id=credit_client.id,
                total="20.00",
            )

        db_session.expire_all()
        assert db_session.query(Transaction).count() == 0
        assert db_session.query(TransactionItem).count() == 0
        assert db_session.query(CreditRecord).count() == 0
        assert db_session.query(StockMovement).count() == movements_before
        assert stock_service.get_quantity_on_hand(beans.id) == 10
        assert stock_service.get_quantity_on_hand(cups.id) == 10
        assert db_session.get(Client, credit_client.id).credit_balance == Decimal("100.00")

    def test_unknown_client(self, db_session, cashier, product):
        with pytest.raises(ClientNotFound):
            _sale(cashier, product, payment_method="credit", client_id=424242)


# =============================================================================
# READS
# =============================================================================


class TestReads:

    def test_get_and_list(self, db_session, cashier, product):
        first = _sale(cashier, product, quantity=1)
        second = _sale(cashier, product, quantity=1)

        assert transaction_service.get_transaction(first.id).id == first.id
        assert [t.id for t in transaction_service.list_transactions(type="sale")] == [second.id, first.id]

    def test_get_missing(self, db_session):
        with pytest.raises(TransactionNotFound):
            transaction_service.get_transaction(12345)
