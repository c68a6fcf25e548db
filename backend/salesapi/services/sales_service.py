"""
Sales Service - transactional sale posting

WHY: A posted sale is three kinds of rows (outbound inventory movements,
order lines, the order total) that must appear together or not at all.

POSTING RULES:
- Products are read in ONE query per batch, never one per line, and are
  never written here.
- Lines are processed in input order; that order numbers the movement
  reasons and decides which line an error is attributed to.
- The order row is locked FOR UPDATE before its total is touched, so two
  posters on the same order are serialized and no update is lost.
- Any failure rolls back everything and re-raises the original error.
- Posting is NOT idempotent: the same batch posted twice records two
  independent sets of movements and lines.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Sequence

from flask import current_app

from ..errors import InvalidLine, EmptyBatch, NotFound, UnknownOrder, UnknownProduct, UnknownWarehouse
from ..extensions import db
from ..models import Order, OrderLine, Product, Warehouse, InventoryMovement
from ..money import MAX_MONEY, MAX_QUANTITY, round_money, round_quantity, to_decimal
from ..validation import LineInput
from .concurrency import unit_of_work


ZERO = Decimal("0.00")


def reconcile_order_total(current_total: Decimal, total_subtotals: Decimal) -> Decimal:
    """
    New order total after posting a batch whose subtotals sum to total_subtotals.

    The total is overwritten only when it is still zero or smaller than the
    batch sum. A larger existing total is assumed to already include
    out-of-band charges and is left alone; decreases are never applied.
    """
    current = to_decimal(current_total or 0)
    if current == 0 or current < total_subtotals:
        return total_subtotals
    return current


def movement_reason(order_id: int, position: int) -> str:
    return f"Sale order {order_id} line {position}"


def _validated_quantity(line: LineInput, index: int) -> Decimal:
    # Quantized first: the stored value is what must be > 0
    try:
        quantity = round_quantity(line.quantity)
    except ValueError:
        raise InvalidLine("quantity must be a number within range", index)
    if quantity <= 0:
        raise InvalidLine("quantity must be greater than 0", index)
    if quantity > MAX_QUANTITY:
        raise InvalidLine(f"quantity must be <= {MAX_QUANTITY}", index)
    return quantity


def _checked_money(value, field: str, index: int) -> Decimal:
    try:
        amount = round_money(value)
    except ValueError:
        raise InvalidLine(f"{field} must be a number within range", index)
    if amount < 0:
        raise InvalidLine(f"{field} must be >= 0", index)
    if amount > MAX_MONEY:
        raise InvalidLine(f"{field} must be <= {MAX_MONEY}", index)
    return amount


def _resolve_unit_price(line: LineInput, product: Product, index: int) -> Decimal:
    if line.unit_price is None:
        return round_money(product.list_price)
    return _checked_money(line.unit_price, "unitPrice", index)


def _resolve_subtotal(line: LineInput, unit_price: Decimal, quantity: Decimal, index: int) -> Decimal:
    # A caller-supplied subtotal is trusted as-is (rounded), not recomputed
    if line.subtotal is None:
        return _checked_money(unit_price * quantity, "subTotal", index)
    return _checked_money(line.subtotal, "subTotal", index)


def post_sale_lines(
    order_id: int,
    lines: Sequence[LineInput],
    actor_user_id: int | None = None,
) -> list[OrderLine]:
    """
    Post a batch of sale lines against an order in one unit of work.

    Steps:
    1. Reject a missing or empty batch (EmptyBatch).
    2. Begin the unit of work.
    3. Batch-read referenced products, then warehouses, then the order;
       unknown references fail in that order, before any write.
    4. Per line, in input order: validate, resolve unit price and subtotal,
       accumulate the subtotal sum, record one OUT movement.
    5. Insert all order lines in one flush.
    6. Lock the order row FOR UPDATE.
    7. Reconcile the order total (see reconcile_order_total).
    8. Commit. Any failure rolls back and re-raises unchanged.

    Returns the created OrderLine rows with movement_id populated.
    """
    if not isinstance(lines, (list, tuple)) or not lines:
        raise EmptyBatch()

    with unit_of_work() as uow:
        products = uow.fetch_by_ids(Product, (line.product_id for line in lines))
        for line in lines:
            if line.product_id is not None and line.product_id not in products:
                raise UnknownProduct(line.product_id)

        warehouses = uow.fetch_by_ids(Warehouse, (line.warehouse_id for line in lines))
        for line in lines:
            if line.warehouse_id is not None and line.warehouse_id not in warehouses:
                raise UnknownWarehouse(line.warehouse_id)

        if uow.get(Order, order_id) is None:
            raise UnknownOrder(order_id)

        total_subtotals = ZERO
        priced: list[tuple[LineInput, Decimal, Decimal, Decimal, InventoryMovement]] = []

        for index, line in enumerate(lines):
            if line.product_id is None:
                raise InvalidLine("productId is required", index)
            if line.warehouse_id is None:
                raise InvalidLine("warehouseId is required", index)
            quantity = _validated_quantity(line, index)

            product = products[line.product_id]
            unit_price = _resolve_unit_price(line, product, index)
            subtotal = _resolve_subtotal(line, unit_price, quantity, index)

            total_subtotals = round_money(total_subtotals + subtotal)
            if total_subtotals > MAX_MONEY:
                raise InvalidLine(f"order total must be <= {MAX_MONEY}", index)

            movement = InventoryMovement(
                direction="OUT",
                product_id=line.product_id,
                warehouse_id=line.warehouse_id,
                quantity=quantity,
                unit_price=unit_price,
                reason=movement_reason(order_id, index + 1),
                order_id=order_id,
                created_by_user_id=actor_user_id,
            )
            uow.add(movement)
            priced.append((line, quantity, unit_price, subtotal, movement))

        # Assigns movement ids
        uow.flush()

        order_lines = [
            OrderLine(
                order_id=order_id,
                product_id=line.product_id,
                quantity=quantity,
                unit_price=unit_price,
                subtotal=subtotal,
                movement_id=movement.id,
            )
            for line, quantity, unit_price, subtotal, movement in priced
        ]
        uow.add_all(order_lines)
        uow.flush()

        try:
            order = uow.lock_for_update(Order, order_id)
        except NotFound:
            raise UnknownOrder(order_id)

        previous_total = order.total
        order.total = reconcile_order_total(order.total, total_subtotals)

    current_app.logger.info(
        "Posted %d lines on order %s: subtotals=%s total %s -> %s",
        len(order_lines), order_id, total_subtotals, previous_total, order.total,
    )
    return order_lines


def create_order(actor_user_id: int | None = None) -> Order:
    """Create an empty OPEN order with a zero total."""
    order = Order(total=ZERO, status="OPEN", created_by_user_id=actor_user_id)
    db.session.add(order)
    db.session.commit()
    return order


def get_order(order_id: int) -> Order:
    order = db.session.get(Order, order_id)
    if order is None:
        raise UnknownOrder(order_id)
    return order


def list_order_lines(order_id: int) -> list[OrderLine]:
    get_order(order_id)
    return (
        db.session.query(OrderLine)
        .filter_by(order_id=order_id)
        .order_by(OrderLine.id.asc())
        .all()
    )


def list_order_movements(order_id: int) -> list[InventoryMovement]:
    get_order(order_id)
    return (
        db.session.query(InventoryMovement)
        .filter_by(order_id=order_id)
        .order_by(InventoryMovement.id.asc())
        .all()
    )
