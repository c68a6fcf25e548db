# Overview: Error taxonomy shared by services and the HTTP layer.

"""
API error taxonomy

Every failure a caller can branch on is an ApiError subclass carrying a
stable machine-readable `code` and the HTTP status the outermost handler
maps it to. Services raise these; only the app-level error handlers in
salesapi/__init__.py turn them into responses.

Groups:
- Authentication: token absent / invalid / expired, no subject attached
- Authorization: subject lacks every required role
- Validation: malformed input or references to rows that do not exist
- Concurrency: lock wait exceeded, version conflict (retry whole operation)
"""

from __future__ import annotations

from typing import Any, Iterable


class ApiError(Exception):
    """Base for errors surfaced to API callers."""
    code = "API_ERROR"
    http_status = 400

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict:
        body = {
            "status": "error",
            "message": self.message,
            "code": self.code,
        }
        if self.details:
            body["details"] = self.details
        return body


# =============================================================================
# AUTHENTICATION
# =============================================================================

class TokenMissing(ApiError):
    code = "TOKEN_NOT_PROVIDED"
    http_status = 401

    def __init__(self, message: str = "Authentication token not provided"):
        super().__init__(message)


class TokenInvalid(ApiError):
    code = "TOKEN_INVALID"
    http_status = 403

    def __init__(self, message: str = "Authentication token is invalid"):
        super().__init__(message)


class TokenExpired(ApiError):
    code = "TOKEN_EXPIRED"
    http_status = 403

    def __init__(self, message: str = "Authentication token has expired"):
        super().__init__(message)


class AuthenticationRequired(ApiError):
    code = "AUTHENTICATION_REQUIRED"
    http_status = 401

    def __init__(self, message: str = "Authentication required"):
        super().__init__(message)


class InvalidCredentials(ApiError):
    code = "INVALID_CREDENTIALS"
    http_status = 401

    def __init__(self, message: str = "Invalid credentials"):
        super().__init__(message)


# =============================================================================
# AUTHORIZATION
# =============================================================================

class InsufficientPermissions(ApiError):
    """Subject holds none of the roles an operation requires."""
    code = "INSUFFICIENT_PERMISSIONS"
    http_status = 403

    def __init__(self, required_roles: Iterable[str], subject_name: str | None, operation: str):
        self.required_roles = sorted(required_roles)
        self.subject_name = subject_name
        self.operation = operation
        super().__init__(
            f"Requires any of: {', '.join(self.required_roles)}",
            details={
                "requiredRoles": self.required_roles,
                "subjectName": subject_name,
                "operation": operation,
            },
        )


# =============================================================================
# VALIDATION
# =============================================================================

class ValidationError(ApiError):
    """400-level input problem."""
    code = "VALIDATION_ERROR"
    http_status = 400


class EmptyBatch(ValidationError):
    code = "EMPTY_BATCH"

    def __init__(self, message: str = "At least one line item is required"):
        super().__init__(message)


class InvalidLine(ValidationError):
    code = "INVALID_LINE"

    def __init__(self, reason: str, index: int | None = None):
        self.reason = reason
        self.index = index
        details = {"reason": reason}
        if index is not None:
            details["index"] = index
        super().__init__(f"Invalid line: {reason}", details=details)


class NotFound(ApiError):
    code = "NOT_FOUND"
    http_status = 404


class UnknownProduct(NotFound):
    code = "PRODUCT_NOT_FOUND"

    def __init__(self, product_id: int):
        self.product_id = product_id
        super().__init__(f"Product {product_id} not found", details={"productId": product_id})


class UnknownWarehouse(NotFound):
    code = "WAREHOUSE_NOT_FOUND"

    def __init__(self, warehouse_id: int):
        self.warehouse_id = warehouse_id
        super().__init__(f"Warehouse {warehouse_id} not found", details={"warehouseId": warehouse_id})


class UnknownOrder(NotFound):
    code = "ORDER_NOT_FOUND"

    def __init__(self, order_id: int):
        self.order_id = order_id
        super().__init__(f"Order {order_id} not found", details={"orderId": order_id})


class ConflictError(ApiError):
    """409-level business rule conflict (e.g., duplicate username)."""
    code = "CONFLICT"
    http_status = 409


# =============================================================================
# CONCURRENCY
# =============================================================================

class ConcurrencyConflict(ApiError):
    """Deadlock, serialization failure or stale version. Retry the whole operation."""
    code = "CONCURRENCY_CONFLICT"
    http_status = 409

    def __init__(self, message: str = "Concurrent update detected, retry the operation"):
        super().__init__(message)


class LockTimeout(ApiError):
    """Row lock was not granted within the configured wait."""
    code = "LOCK_TIMEOUT"
    http_status = 503

    def __init__(self, message: str = "Timed out waiting for a row lock, retry the operation"):
        super().__init__(message)
