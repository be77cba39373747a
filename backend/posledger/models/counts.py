from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z
from .enums import SessionStatus


class InventorySession(db.Model):
    """
    Physical inventory count session.

    LIFECYCLE:
    1. in_progress: items snapshotted, physical counts being entered
    2. completed: counting closed, awaiting reconciliation (optional step)
    3. reconciled: variances applied to stock (terminal, one-shot)

    The snapshot on each item (quantity_in_stock) is the expected quantity
    for the whole session, even if live stock moves afterwards.
    """
    __tablename__ = "inventory_sessions"
    __table_args__ = (
        db.Index("ix_inventory_sessions_status_created", "status", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    count_date = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    counted_by = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    status = db.Column(db.String(16), nullable=False, default=SessionStatus.IN_PROGRESS.value, index=True)
    notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )
    completed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    reconciled_at = db.Column(db.DateTime(timezone=True), nullable=True)

    counter = db.relationship("User")
    items = db.relationship(
        "InventoryItem",
        back_populates="session",
        order_by="InventoryItem.id",
        cascade="all, delete-orphan",
    )

    def __repr__(self) -> str:
        return f"<InventorySession id={self.id} status={self.status}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "count_date": to_utc_z(self.count_date),
            "counted_by": self.counted_by,
            "status": self.status,
            "notes": self.notes,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
            "completed_at": to_utc_z(self.completed_at),
            "reconciled_at": to_utc_z(self.reconciled_at),
        }


class InventoryItem(db.Model):
    """
    One counted product within a session.

    variance = physical_quantity - quantity_in_stock, recomputed on every
    physical-quantity update from the snapshot, never from live stock.
    """
    __tablename__ = "inventory_items"
    __table_args__ = (
        db.UniqueConstraint("session_id", "product_id", name="uq_inventory_items_session_product"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    session_id = db.Column(db.Integer, db.ForeignKey("inventory_sessions.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    quantity_in_stock = db.Column(db.Integer, nullable=False, default=0)
    physical_quantity = db.Column(db.Integer, nullable=False, default=0)
    variance = db.Column(db.Integer, nullable=False, default=0)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    session = db.relationship("InventorySession", back_populates="items")
    product = db.relationship("Product")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "session_id": self.session_id,
            "product_id": self.product_id,
            "product_name": self.product.name if self.product else None,
            "quantity_in_stock": self.quantity_in_stock,
            "physical_quantity": self.physical_quantity,
            "variance": self.variance,
            "created_at": to_utc_z(self.created_at),
        }
