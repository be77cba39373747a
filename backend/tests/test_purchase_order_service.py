"""
Purchase order lifecycle tests.
"""

from decimal import Decimal

import pytest

from sqlalchemy import update

from posledger.errors import InvalidState, OrderNotFound, StorageError, SupplierNotFound, ValidationError
from posledger.extensions import db
from posledger.models import Product, PurchaseOrder, PurchaseOrderItem, StockMovement
from posledger.services import purchase_order_service, stock_service


def _order(supplier, *lines, **kwargs):
    return purchase_order_service.create_purchase_order(
        supplier_id=supplier.id,
        items=[{"product_id": p.id, "quantity": q, "cost": c} for p, q, c in lines],
        **kwargs,
    )


# =============================================================================
# CREATE / UPDATE
# =============================================================================


class TestCreate:

    def test_pending_order_does_not_touch_stock(self, db_session, supplier, product):
        order = _order(supplier, (product, 10, "13.50"))

        assert order.status == "pending"
        assert order.total == Decimal("135.00")
        assert order.items[0].product_name == "Espresso Beans"
        assert stock_service.get_quantity_on_hand(product.id) == 50

    def test_explicit_total_kept(self, db_session, supplier, product):
        order = _order(supplier, (product, 10, "13.50"), total="120.00")
        assert order.total == Decimal("120.00")

    def test_direct_receive(self, db_session, supplier, product, manager):
        order = _order(supplier, (product, 5, "12.00"), status="received", user_id=manager.id)

        assert order.status == "received"
        assert order.received_by == manager.id
        assert stock_service.get_quantity_on_hand(product.id) == 55
        assert db_session.get(Product, product.id).cost == Decimal("12.00")

    def test_direct_receive_requires_user(self, db_session, supplier, product):
        with pytest.raises(ValidationError):
            _order(supplier, (product, 5, "12.00"), status="received")

    @pytest.mark.parametrize(
        "line",
        [
            {"quantity": 1, "cost": "1.00"},
            {"product_id": 1, "quantity": 0, "cost": "1.00"},
            {"product_id": 1, "quantity": 1, "cost": "-1.00"},
        ],
    )
    def test_rejects_bad_lines(self, db_session, supplier, line):
        with pytest.raises(ValidationError):
            purchase_order_service.create_purchase_order(supplier_id=supplier.id, items=[line])

    def test_rejects_cancelled_on_create(self, db_session, supplier, product):
        with pytest.raises(ValidationError):
            _order(supplier, (product, 1, "1.00"), status="cancelled")

    def test_unknown_supplier(self, db_session, product):
        with pytest.raises(SupplierNotFound):
            purchase_order_service.create_purchase_order(
                supplier_id=999, items=[{"product_id": product.id, "quantity": 1, "cost": "1.00"}]
            )


class TestUpdate:

    def test_replaces_items_while_pending(self, db_session, supplier, product, make_product, manager):
        other = make_product(name="Cups", stock=0)
        order = _order(supplier, (product, 10, "13.50"))

        updated = purchase_order_service.update_purchase_order(
            order.id,
            items=[{"product_id": other.id, "quantity": 4, "cost": "2.00"}],
        )

        assert [(i.product_id, i.quantity) for i in updated.items] == [(other.id, 4)]
        assert updated.total == Decimal("8.00")
        assert db_session.query(PurchaseOrderItem).count() == 1

    def test_rejected_after_receive(self, db_session, supplier, product, manager):
        order = _order(supplier, (product, 10, "13.50"))
        purchase_order_service.receive_purchase_order(order.id, manager.id)

        with pytest.raises(InvalidState):
            purchase_order_service.update_purchase_order(order.id, total="1.00")


# =============================================================================
# RECEIVE / CANCEL
# =============================================================================


class TestReceive:

    def test_receive_is_one_way(self, db_session, supplier, product, make_product, manager):
        cups = make_product(name="Cups", stock=10, user=manager)
        order = _order(supplier, (product, 10, "13.50"), (cups, 30, "0.20"))

        received = purchase_order_service.receive_purchase_order(order.id, manager.id)
        assert received.status == "received"
        assert received.received_at is not None
        assert stock_service.get_quantity_on_hand(product.id) == 60
        assert stock_service.get_quantity_on_hand(cups.id) == 40
        assert db_session.get(Product, product.id).cost == Decimal("13.50")

        movements = db_session.query(StockMovement).filter_by(type="purchase").all()
        assert len(movements) == 2
        assert all(m.notes == f"Received from PO {order.id}" for m in movements)

        with pytest.raises(InvalidState):
            purchase_order_service.receive_purchase_order(order.id, manager.id)
        assert stock_service.get_quantity_on_hand(product.id) == 60
        assert db_session.query(StockMovement).filter_by(type="purchase").count() == 2

    def test_latest_cost_wins(self, db_session, supplier, product, manager):
        order = _order(supplier, (product, 1, "11.00"), (product, 1, "12.50"))
        purchase_order_service.receive_purchase_order(order.id, manager.id)
        assert db_session.get(Product, product.id).cost == Decimal("12.50")

    def test_lost_status_flip_adds_no_stock(self, db_session, monkeypatch, supplier, product, manager):
        order = _order(supplier, (product, 10, "13.50"))
        monkeypatch.setattr(purchase_order_service, "guarded_status_flip", lambda *args, **kwargs: False)

        with pytest.raises(InvalidState):
            purchase_order_service.receive_purchase_order(order.id, manager.id)

        db_session.expire_all()
        assert db_session.get(PurchaseOrder, order.id).status == "pending"
        assert stock_service.get_quantity_on_hand(product.id) == 50
        assert db_session.query(StockMovement).filter_by(type="purchase").count() == 0

    def test_losing_to_cancel_reports_current_status(self, db_session, monkeypatch, supplier, product, manager):
        order = _order(supplier, (product, 10, "13.50"))

        def cancelled_first(model, entity_id, **kwargs):
            db.session.execute(update(model).where(model.id == entity_id).values(status="cancelled"))
            return False

        monkeypatch.setattr(purchase_order_service, "guarded_status_flip", cancelled_first)

        with pytest.raises(InvalidState) as exc:
            purchase_order_service.receive_purchase_order(order.id, manager.id)

        assert exc.value.details["status"] == "cancelled"
        assert "cancelled" in exc.value.message
        assert "received to received" not in exc.value.message
        assert stock_service.get_quantity_on_hand(product.id) == 50

    def test_storage_failure_mid_receipt_rolls_back(
        self, db_session, monkeypatch, fail_on_call, supplier, product, make_product, manager
    ):
        cups = make_product(name="Cups", cost="0.10", stock=10, user=manager)
        order = _order(supplier, (product, 10, "13.50"), (cups, 30, "0.20"))
        monkeypatch.setattr(
            purchase_order_service, "apply_stock_delta", fail_on_call(stock_service.apply_stock_delta)
        )

        with pytest.raises(StorageError):
            purchase_order_service.receive_purchase_order(order.id, manager.id)

        db_session.expire_all()
        reloaded = db_session.get(PurchaseOrder, order.id)
        assert reloaded.status == "pending"
        assert reloaded.received_at is None
        assert stock_service.get_quantity_on_hand(product.id) == 50
        assert stock_service.get_quantity_on_hand(cups.id) == 10
        assert db_session.get(Product, product.id).cost == Decimal("14.00")
        assert db_session.query(StockMovement).filter_by(type="purchase").count() == 0

    def test_missing_order(self, db_session, manager):
        with pytest.raises(OrderNotFound):
            purchase_order_service.receive_purchase_order(999, manager.id)


class TestCancel:

    def test_cancel_pending(self, db_session, supplier, product, manager):
        order = _order(supplier, (product, 10, "13.50"))

        cancelled = purchase_order_service.cancel_purchase_order(order.id)
        assert cancelled.status == "cancelled"
        assert cancelled.cancelled_at is not None
        assert stock_service.get_quantity_on_hand(product.id) == 50

        with pytest.raises(InvalidState):
            purchase_order_service.cancel_purchase_order(order.id)
        with pytest.raises(InvalidState):
            purchase_order_service.receive_purchase_order(order.id, manager.id)

    def test_lost_status_flip_on_cancel(self, db_session, monkeypatch, supplier, product):
        order = _order(supplier, (product, 1, "1.00"))
        monkeypatch.setattr(purchase_order_service, "guarded_status_flip", lambda *args, **kwargs: False)

        with pytest.raises(InvalidState):
            purchase_order_service.cancel_purchase_order(order.id)

        db_session.expire_all()
        assert db_session.get(PurchaseOrder, order.id).cancelled_at is None

    def test_cannot_cancel_received(self, db_session, supplier, product, manager):
        order = _order(supplier, (product, 10, "13.50"), status="received", user_id=manager.id)
        with pytest.raises(InvalidState):
            purchase_order_service.cancel_purchase_order(order.id)

    def test_list_by_status(self, db_session, supplier, product):
        keep = _order(supplier, (product, 1, "1.00"))
        drop = _order(supplier, (product, 1, "1.00"))
        purchase_order_service.cancel_purchase_order(drop.id)

        pending = purchase_order_service.list_purchase_orders(status="pending")
        assert [o.id for o in pending] == [keep.id]
