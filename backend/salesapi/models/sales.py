from __future__ import annotations

from ..extensions import db
from salesapi.money import money_str, quantity_str
from salesapi.time_utils import to_utc_z

class Order(db.Model):
    """
    Sale order (parent aggregate of posted lines).

    INVARIANT: once any line exists, total >= sum of posted line subtotals.
    Posting only raises the total (see sales_service reconciliation); it
    never lowers it, because an existing larger total is assumed to already
    include out-of-band charges.

    CONCURRENCY: posting takes SELECT ... FOR UPDATE on this row, which
    serializes concurrent posters on the same order. version_id adds an
    optimistic check for writers that skip the lock.
    """
    __tablename__ = "orders"
    __table_args__ = (
        db.CheckConstraint("total >= 0", name="total_non_negative"),
        db.Index("ix_orders_status_created", "status", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    total = db.Column(db.Numeric(12, 2), nullable=False, default=0)

    # Lifecycle status
    status = db.Column(db.String(16), nullable=False, default="OPEN", index=True)

    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )
    version_id = db.Column(db.Integer, nullable=False, default=1)

    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "total": money_str(self.total),
            "status": self.status,
            "created_by_user_id": self.created_by_user_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
            "version_id": self.version_id,
        }

class OrderLine(db.Model):
    """
    Posted line item on a sale order.

    Append-only: created together with its InventoryMovement inside one
    unit of work.
    """
    __tablename__ = "order_lines"
    __table_args__ = (
        db.CheckConstraint("quantity > 0", name="quantity_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    quantity = db.Column(db.Numeric(12, 3), nullable=False)
    unit_price = db.Column(db.Numeric(12, 2), nullable=False)
    subtotal = db.Column(db.Numeric(12, 2), nullable=False)

    # Outbound movement recorded when the line was posted
    movement_id = db.Column(db.Integer, db.ForeignKey("inventory_movements.id"), nullable=False, unique=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    order = db.relationship("Order", backref=db.backref("lines", lazy=True, order_by="OrderLine.id"))
    product = db.relationship("Product")
    movement = db.relationship("InventoryMovement")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "order_id": self.order_id,
            "product_id": self.product_id,
            "quantity": quantity_str(self.quantity),
            "unit_price": money_str(self.unit_price),
            "subtotal": money_str(self.subtotal),
            "movement_id": self.movement_id,
            "created_at": to_utc_z(self.created_at),
        }
