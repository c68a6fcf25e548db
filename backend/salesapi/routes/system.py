# backend/salesapi/routes/system.py
"""
System health endpoint.

Reports database reachability and whether the default roles exist.
"""

import time
from flask import Blueprint, current_app
from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..models import Role, Order, Product
from ..responses import ok, error
from ..services.role_service import DEFAULT_ROLES

system_bp = Blueprint("system", __name__)


def check_database_health() -> dict:
    """
    Check database connectivity and basic operations.

    Returns dict with status and details.
    """
    start_time = time.time()
    try:
        role_names = {name for (name,) in db.session.query(Role.name).all()}
        order_count = db.session.query(Order).count()
        product_count = db.session.query(Product).count()

        elapsed_ms = (time.time() - start_time) * 1000
        missing_roles = [name for name, _ in DEFAULT_ROLES if name not in role_names]

        result = {
            "status": "degraded" if missing_roles else "healthy",
            "latency_ms": round(elapsed_ms, 2),
            "details": {
                "orders": order_count,
                "products": product_count,
                "roles": sorted(role_names),
            }
        }
        if missing_roles:
            result["warning"] = f"Missing roles: {', '.join(missing_roles)}"
        return result
    except SQLAlchemyError:
        db.session.rollback()
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Database health check failed")
        return {
            "status": "unhealthy",
            "latency_ms": round(elapsed_ms, 2),
            "error": "Database error"
        }


@system_bp.get("/health")
def health():
    """
    Health check endpoint.

    Returns:
    - 200: healthy or degraded (missing default roles)
    - 503: database unreachable
    """
    database = check_database_health()
    if database["status"] == "unhealthy":
        return error("SERVICE_UNAVAILABLE", "Database unavailable", 503, details={"database": database})
    return ok({"database": database}, message=database["status"])
