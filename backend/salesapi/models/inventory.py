from __future__ import annotations

from ..extensions import db
from salesapi.money import money_str, quantity_str
from salesapi.time_utils import to_utc_z


class Warehouse(db.Model):
    """Physical stock location referenced by inventory movements."""
    __tablename__ = "warehouses"
    __table_args__ = (
        db.UniqueConstraint("code", name="uq_warehouses_code"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    code = db.Column(db.String(32), nullable=False)
    name = db.Column(db.String(255), nullable=False)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "code": self.code,
            "name": self.name,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
        }


class Product(db.Model):
    """
    Product master data.

    Read-mostly during posting: the sale-posting engine reads list_price
    to default a line's unit price and never writes to this table.
    Stock counters are maintained elsewhere; movements are the audit trail.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.UniqueConstraint("sku", name="uq_products_sku"),
        db.CheckConstraint("list_price >= 0", name="list_price_non_negative"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    sku = db.Column(db.String(64), nullable=False)
    name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)

    list_price = db.Column(db.Numeric(12, 2), nullable=False, default=0)

    stock_quantity = db.Column(db.Numeric(12, 3), nullable=False, default=0)
    min_stock = db.Column(db.Numeric(12, 3), nullable=False, default=0)

    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    def __repr__(self) -> str:
        return f"<Product id={self.id} sku={self.sku!r} name={self.name!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sku": self.sku,
            "name": self.name,
            "description": self.description,
            "list_price": money_str(self.list_price),
            "stock_quantity": quantity_str(self.stock_quantity),
            "min_stock": quantity_str(self.min_stock),
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class InventoryMovement(db.Model):
    """
    Immutable audit record of a stock change.

    DIRECTIONS:
    - IN: stock received into a warehouse
    - OUT: stock leaving a warehouse (sales)

    IMMUTABLE: Created once (one per posted order line) and never updated.
    """
    __tablename__ = "inventory_movements"
    __table_args__ = (
        db.CheckConstraint("direction IN ('IN', 'OUT')", name="direction_valid"),
        db.CheckConstraint("quantity > 0", name="quantity_positive"),
        db.Index("ix_inventory_movements_product_created", "product_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    direction = db.Column(db.String(8), nullable=False, index=True)

    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    warehouse_id = db.Column(db.Integer, db.ForeignKey("warehouses.id"), nullable=False, index=True)

    quantity = db.Column(db.Numeric(12, 3), nullable=False)
    unit_price = db.Column(db.Numeric(12, 2), nullable=False)

    reason = db.Column(db.String(255), nullable=True)

    # Source document (sale order) when the movement came from posting
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id", ondelete="SET NULL"), nullable=True, index=True)

    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    product = db.relationship("Product")
    warehouse = db.relationship("Warehouse")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "direction": self.direction,
            "product_id": self.product_id,
            "warehouse_id": self.warehouse_id,
            "quantity": quantity_str(self.quantity),
            "unit_price": money_str(self.unit_price),
            "reason": self.reason,
            "order_id": self.order_id,
            "created_by_user_id": self.created_by_user_id,
            "created_at": to_utc_z(self.created_at),
        }
