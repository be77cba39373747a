from __future__ import annotations

from sqlalchemy import func, select
from sqlalchemy.orm import column_property

from ..extensions import db
from ..time_utils import to_utc_z, money_str


class Category(db.Model):
    __tablename__ = "categories"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), nullable=False)
    description = db.Column(db.Text, nullable=True)

    def to_dict(self) -> dict:
        return {"id": self.id, "name": self.name, "description": self.description}


class Product(db.Model):
    """
    Product master data.

    STOCK DESIGN DECISION:
    Stock.quantity_on_hand is the only stored quantity. Product.stock is a
    derived read (correlated subquery, see bottom of module) so the two can
    never diverge. A product without a stock row reads as 0.

    COST:
    cost is overwritten by each received purchase order line (latest-cost policy).
    """
    __tablename__ = "products"
    __table_args__ = (
        db.Index("ix_products_name", "name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    sku = db.Column(db.String(64), nullable=False, unique=True)
    name = db.Column(db.String(255), nullable=False)
    category_id = db.Column(db.Integer, db.ForeignKey("categories.id"), nullable=True, index=True)

    # Fixed-point currency, never float
    price = db.Column(db.Numeric(12, 2), nullable=False)
    cost = db.Column(db.Numeric(12, 2), nullable=True)

    # Reorder threshold
    min_stock = db.Column(db.Integer, nullable=False, default=0)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    category = db.relationship("Category", backref=db.backref("products", lazy=True))
    stock_row = db.relationship("Stock", uselist=False, back_populates="product")

    def __repr__(self) -> str:
        return f"<Product id={self.id} sku={self.sku!r} name={self.name!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sku": self.sku,
            "name": self.name,
            "category_id": self.category_id,
            "price": money_str(self.price),
            "cost": money_str(self.cost),
            "stock": self.stock,
            "min_stock": self.min_stock,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class Stock(db.Model):
    """
    One row per product holding the authoritative on-hand quantity.

    Only the stock mutator (services/stock_service.py) writes quantity_on_hand.
    last_counted_date only advances through count-session reconciliation.
    """
    __tablename__ = "stocks"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, unique=True)

    quantity_on_hand = db.Column(db.Integer, nullable=False, default=0)
    quantity_reserved = db.Column(db.Integer, nullable=False, default=0)
    reorder_level = db.Column(db.Integer, nullable=False, default=10)
    reorder_quantity = db.Column(db.Integer, nullable=False, default=20)
    last_counted_date = db.Column(db.DateTime(timezone=True), nullable=True)

    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    product = db.relationship("Product", back_populates="stock_row")

    def __repr__(self) -> str:
        return f"<Stock product_id={self.product_id} on_hand={self.quantity_on_hand}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "quantity_on_hand": self.quantity_on_hand,
            "quantity_reserved": self.quantity_reserved,
            "reorder_level": self.reorder_level,
            "reorder_quantity": self.reorder_quantity,
            "last_counted_date": to_utc_z(self.last_counted_date),
            "updated_at": to_utc_z(self.updated_at),
        }


class StockMovement(db.Model):
    """
    Append-only audit log: one row per stock-quantity change.

    product_name is a snapshot taken at write time, not a live join, so
    renaming a product never rewrites history.
    """
    __tablename__ = "stock_movements"
    __table_args__ = (
        db.Index("ix_stock_movements_product_occurred", "product_id", "occurred_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    product_name = db.Column(db.String(255), nullable=False)

    # sale, purchase, adjustment
    type = db.Column(db.String(16), nullable=False, index=True)

    # Signed delta
    quantity = db.Column(db.Integer, nullable=False)

    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    occurred_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    notes = db.Column(db.Text, nullable=True)

    product = db.relationship("Product")
    user = db.relationship("User")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "product_name": self.product_name,
            "type": self.type,
            "quantity": self.quantity,
            "user_id": self.user_id,
            "occurred_at": to_utc_z(self.occurred_at),
            "notes": self.notes,
        }


class StockAdjustment(db.Model):
    """
    Immutable record of a manual stock correction.

    Each adjustment owns exactly one StockMovement (stock_movement_id).
    """
    __tablename__ = "stock_adjustments"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    quantity_change = db.Column(db.Integer, nullable=False)
    adjustment_type = db.Column(db.String(32), nullable=False, index=True)
    reason = db.Column(db.Text, nullable=False)
    reference_number = db.Column(db.String(128), nullable=True)
    created_by = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    notes = db.Column(db.Text, nullable=True)

    stock_movement_id = db.Column(db.Integer, db.ForeignKey("stock_movements.id"), nullable=True)

    product = db.relationship("Product")
    stock_movement = db.relationship("StockMovement")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "quantity_change": self.quantity_change,
            "adjustment_type": self.adjustment_type,
            "reason": self.reason,
            "reference_number": self.reference_number,
            "created_by": self.created_by,
            "created_at": to_utc_z(self.created_at),
            "notes": self.notes,
            "stock_movement_id": self.stock_movement_id,
        }


# Derived read path for Product.stock (single source of truth is Stock).
Product.stock = column_property(
    func.coalesce(
        select(Stock.quantity_on_hand)
        .where(Stock.product_id == Product.id)
        .correlate_except(Stock)
        .scalar_subquery(),
        0,
    )
)
