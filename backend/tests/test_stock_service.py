"""
Stock mutator tests.

Verifies:
- Product.stock always equals Stock.quantity_on_hand
- Every delta appends exactly one movement (sum of movements == on-hand)
- First mutation creates the stock row
- Parity audit reports drift
"""

import pytest

from posledger.errors import ProductNotFound, ValidationError
from posledger.extensions import db
from posledger.models import Product, Stock, StockMovement
from posledger.models.enums import MovementType
from posledger.services import stock_service
from posledger.services.unit_of_work import unit_of_work


def _movement_sum(product_id: int) -> int:
    return sum(m.quantity for m in db.session.query(StockMovement).filter_by(product_id=product_id))


# =============================================================================
# APPLY STOCK DELTA
# =============================================================================


class TestApplyStockDelta:

    def test_first_delta_creates_stock_row(self, db_session, make_product, cashier):
        product = make_product()
        assert db_session.query(Stock).filter_by(product_id=product.id).first() is None
        assert product.stock == 0

        with unit_of_work():
            stock_service.apply_stock_delta(product.id, 7, MovementType.PURCHASE.value, cashier.id)

        row = db_session.query(Stock).filter_by(product_id=product.id).one()
        assert row.quantity_on_hand == 7
        assert db_session.get(Product, product.id).stock == 7

    def test_parity_holds_after_every_step(self, db_session, make_product, cashier):
        product = make_product()
        deltas = [
            (10, MovementType.PURCHASE.value),
            (-3, MovementType.SALE.value),
            (-9, MovementType.SALE.value),
            (4, MovementType.ADJUSTMENT.value),
        ]
        expected = 0
        for delta, movement_type in deltas:
            with unit_of_work():
                stock_service.apply_stock_delta(product.id, delta, movement_type, cashier.id)
            expected += delta

            db_session.expire_all()
            row = db_session.query(Stock).filter_by(product_id=product.id).one()
            assert row.quantity_on_hand == expected
            assert db_session.get(Product, product.id).stock == row.quantity_on_hand
            assert _movement_sum(product.id) == row.quantity_on_hand

        assert db_session.query(StockMovement).filter_by(product_id=product.id).count() == len(deltas)
        assert stock_service.verify_movement_parity(product.id) == []

    def test_movement_snapshots_product_name(self, db_session, make_product, cashier):
        product = make_product(name="Old Name")
        with unit_of_work():
            movement = stock_service.apply_stock_delta(
                product.id, 2, MovementType.PURCHASE.value, cashier.id, notes="first"
            )

        product = db_session.get(Product, product.id)
        product.name = "New Name"
        db_session.commit()

        movement = db_session.get(StockMovement, movement.id)
        assert movement.product_name == "Old Name"
        assert movement.user_id == cashier.id
        assert movement.notes == "first"

    def test_allows_negative_on_hand(self, db_session, make_product, cashier):
        product = make_product()
        with unit_of_work():
            stock_service.apply_stock_delta(product.id, -5, MovementType.SALE.value, cashier.id)
        assert stock_service.get_quantity_on_hand(product.id) == -5

    def test_rejects_unknown_movement_type(self, db_session, make_product, cashier):
        product = make_product()
        with pytest.raises(ValidationError):
            with unit_of_work():
                stock_service.apply_stock_delta(product.id, 1, "transfer", cashier.id)
        assert db_session.query(StockMovement).count() == 0

    def test_unknown_product(self, db_session, cashier):
        with pytest.raises(ProductNotFound):
            with unit_of_work():
                stock_service.apply_stock_delta(999, 1, MovementType.PURCHASE.value, cashier.id)

    def test_rollback_discards_row_and_movement(self, db_session, make_product, cashier):
        product = make_product()

        with pytest.raises(RuntimeError):
            with unit_of_work():
                stock_service.apply_stock_delta(product.id, 5, MovementType.PURCHASE.value, cashier.id)
                raise RuntimeError("boom")

        assert db_session.query(Stock).filter_by(product_id=product.id).first() is None
        assert db_session.query(StockMovement).count() == 0


# =============================================================================
# AUDIT READS
# =============================================================================


class TestStockAudit:

    def test_parity_reports_drift(self, db_session, product):
        row = db_session.query(Stock).filter_by(product_id=product.id).one()
        row.quantity_on_hand = 47
        db_session.commit()

        report = stock_service.verify_movement_parity()
        assert len(report) == 1
        assert report[0]["product_id"] == product.id
        assert report[0]["quantity_on_hand"] == 47
        assert report[0]["movement_total"] == 50
        assert report[0]["difference"] == -3

    def test_reorder_candidates(self, db_session, make_product, manager):
        low = make_product(name="Oat Milk", min_stock=12, stock=8, user=manager)
        make_product(name="Cups", min_stock=10, stock=120, user=manager)
        never_stocked = make_product(name="Lids", min_stock=1)

        rows = stock_service.list_reorder_candidates()
        ids = {r["product_id"] for r in rows}
        assert ids == {low.id, never_stocked.id}

        oat = next(r for r in rows if r["product_id"] == low.id)
        assert oat["quantity_on_hand"] == 8
        assert oat["shortfall"] == 4

    def test_list_movements_newest_first(self, db_session, make_product, cashier):
        product = make_product()
        for delta in (1, 2, 3):
            with unit_of_work():
                stock_service.apply_stock_delta(product.id, delta, MovementType.PURCHASE.value, cashier.id)

        rows = stock_service.list_movements(product.id)
        assert [m.quantity for m in rows] == [3, 2, 1]
