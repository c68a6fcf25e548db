# Overview: Flask API routes for role administration.

# backend/salesapi/routes/admin.py
"""
Admin API routes

Role changes take effect on the affected user's next request: every
request resolves roles afresh through its own RoleCache.
"""

from flask import Blueprint, request, g

from ..errors import NotFound, ValidationError
from ..responses import ok
from ..services import role_service
from ..decorators import require_auth, require_roles


admin_bp = Blueprint("admin", __name__, url_prefix="/api/admin")


@admin_bp.get("/roles")
@require_auth
@require_roles("admin", operation="list roles")
def list_roles_route():
    """List all roles."""
    return ok({"roles": [role.to_dict() for role in role_service.list_roles()]})


@admin_bp.post("/users/<int:user_id>/roles")
@require_auth
@require_roles("admin", operation="assign role")
def assign_role_route(user_id: int):
    """
    Assign a role to a user.

    Body: {"role": "<role name>"}
    """
    data = request.get_json(silent=True) or {}
    role_name = data.get("role")
    if not role_name:
        raise ValidationError("role required")

    role_service.assign_role(user_id, role_name, actor_user_id=g.subject.subject_id)
    return ok(
        {"user_id": user_id, "roles": role_service.get_user_role_names(user_id)},
        message=f"Role {role_name} assigned",
    )


@admin_bp.delete("/users/<int:user_id>/roles/<role_name>")
@require_auth
@require_roles("admin", operation="revoke role")
def revoke_role_route(user_id: int, role_name: str):
    """Revoke a role from a user."""
    revoked = role_service.revoke_role(user_id, role_name, actor_user_id=g.subject.subject_id)
    if not revoked:
        raise NotFound(f"User {user_id} does not have role {role_name}")

    return ok(
        {"user_id": user_id, "roles": role_service.get_user_role_names(user_id)},
        message=f"Role {role_name} revoked",
    )
