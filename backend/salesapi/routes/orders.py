# Overview: Flask API routes for sale orders; parses input and returns JSON responses.

# backend/salesapi/routes/orders.py
"""Sale order API routes with role enforcement"""

from flask import Blueprint, request, g

from ..responses import ok
from ..services import sales_service
from ..validation import parse_line_inputs
from ..decorators import require_auth, require_roles


orders_bp = Blueprint("orders", __name__, url_prefix="/api/orders")


@orders_bp.post("")
@require_auth
@require_roles("admin", "vendedor", operation="create order")
def create_order_route():
    """
    Create new empty order (total 0, status OPEN).

    Requires any of: admin, vendedor
    """
    order = sales_service.create_order(actor_user_id=g.subject.subject_id)
    return ok({"order": order.to_dict()}, message="Order created", status=201)


@orders_bp.get("/<int:order_id>")
@require_auth
@require_roles("admin", "vendedor", "almacen", operation="view order")
def get_order_route(order_id: int):
    """
    Get order with its posted lines.

    Requires any of: admin, vendedor, almacen
    """
    order = sales_service.get_order(order_id)
    lines = sales_service.list_order_lines(order_id)
    return ok({
        "order": order.to_dict(),
        "lines": [line.to_dict() for line in lines],
    })


@orders_bp.post("/<int:order_id>/lines")
@require_auth
@require_roles("admin", "vendedor", operation="post sale lines")
def post_lines_route(order_id: int):
    """
    Post a batch of sale lines.

    Body: [{productId, quantity, warehouseId, unitPrice?, subTotal?}, ...]
    (or {"lines": [...]})

    Requires any of: admin, vendedor

    Errors: 400 EMPTY_BATCH / INVALID_LINE / VALIDATION_ERROR,
            404 ORDER_NOT_FOUND / PRODUCT_NOT_FOUND / WAREHOUSE_NOT_FOUND,
            409 CONCURRENCY_CONFLICT, 503 LOCK_TIMEOUT
    """
    lines = parse_line_inputs(request.get_json(silent=True))

    created = sales_service.post_sale_lines(order_id, lines, actor_user_id=g.subject.subject_id)
    order = sales_service.get_order(order_id)

    return ok({
        "order": order.to_dict(),
        "lines": [line.to_dict() for line in created],
    }, message=f"{len(created)} lines posted", status=201)


@orders_bp.get("/<int:order_id>/movements")
@require_auth
@require_roles("admin", "almacen", operation="view inventory movements")
def list_movements_route(order_id: int):
    """
    Outbound inventory movements recorded for an order.

    Requires any of: admin, almacen
    """
    movements = sales_service.list_order_movements(order_id)
    return ok({"movements": [m.to_dict() for m in movements]})
