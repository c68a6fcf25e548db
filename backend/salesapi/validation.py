from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Any

from .errors import EmptyBatch, ValidationError
from .money import to_decimal


# Accepted JSON keys -> LineInput attribute. camelCase is the wire format;
# snake_case is accepted for CLI/scripts.
LINE_FIELDS = {
    "productId": "product_id",
    "product_id": "product_id",
    "quantity": "quantity",
    "warehouseId": "warehouse_id",
    "warehouse_id": "warehouse_id",
    "unitPrice": "unit_price",
    "unit_price": "unit_price",
    "subTotal": "subtotal",
    "subtotal": "subtotal",
}

REQUIRED_LINE_FIELDS = ("product_id", "quantity", "warehouse_id")

# Guard against pathological payloads; one order rarely exceeds a few dozen lines
MAX_LINES_PER_BATCH = 500


@dataclass(frozen=True)
class LineInput:
    """
    One sale line as submitted by a caller.

    unit_price and subtotal are optional overrides. When absent, posting
    defaults unit_price to the product's list price and computes the
    subtotal from price x quantity.
    """
    product_id: Any
    quantity: Any
    warehouse_id: Any
    unit_price: Any = None
    subtotal: Any = None

    @classmethod
    def from_payload(cls, payload: Any, index: int = 0) -> "LineInput":
        """
        Shape validation only: keys, JSON types, numeric coercion.
        Business rules (quantity > 0, product exists) belong to posting.
        """
        if not isinstance(payload, dict):
            raise ValidationError(f"Line {index} must be an object", details={"index": index})

        values: dict[str, Any] = {}
        for key, raw in payload.items():
            attr = LINE_FIELDS.get(key)
            if attr is None:
                raise ValidationError(f"Field not allowed: {key}", details={"index": index, "field": key})
            values[attr] = raw

        missing = [f for f in REQUIRED_LINE_FIELDS if values.get(f) is None]
        if missing:
            raise ValidationError(
                f"Missing required fields: {', '.join(missing)}",
                details={"index": index, "fields": missing},
            )

        return cls(
            product_id=_coerce_int(values["product_id"], "product_id", index),
            quantity=_coerce_number(values["quantity"], "quantity", index),
            warehouse_id=_coerce_int(values["warehouse_id"], "warehouse_id", index),
            unit_price=_coerce_optional_number(values.get("unit_price"), "unit_price", index),
            subtotal=_coerce_optional_number(values.get("subtotal"), "subtotal", index),
        )


def parse_line_inputs(payload: Any) -> list[LineInput]:
    """
    Validate a request body into LineInputs.

    Accepts either a bare JSON array or {"lines": [...]}.
    """
    if isinstance(payload, dict) and "lines" in payload:
        payload = payload["lines"]

    if not isinstance(payload, list) or not payload:
        raise EmptyBatch()

    if len(payload) > MAX_LINES_PER_BATCH:
        raise ValidationError(
            f"At most {MAX_LINES_PER_BATCH} lines can be posted at once",
            details={"count": len(payload)},
        )

    return [LineInput.from_payload(item, index) for index, item in enumerate(payload)]


def _coerce_int(value: Any, field: str, index: int) -> int:
    # Already an int (but not bool which is a subclass of int)
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    # String input - must be plain digits
    if isinstance(value, str) and value.strip().isdigit():
        return int(value.strip())
    raise ValidationError(f"{field} must be an integer", details={"index": index, "field": field})


def _coerce_number(value: Any, field: str, index: int) -> Decimal:
    try:
        return to_decimal(value)
    except ValueError:
        raise ValidationError(f"{field} must be numeric", details={"index": index, "field": field})


def _coerce_optional_number(value: Any, field: str, index: int) -> Decimal | None:
    if value is None:
        return None
    return _coerce_number(value, field, index)
