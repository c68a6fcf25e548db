# Overview: Flask API routes for auth operations; parses input and returns JSON responses.

# backend/salesapi/routes/auth.py
"""
Authentication API routes

- POST /api/auth/login: username + password -> signed bearer token
- GET  /api/auth/me: token claims plus the roles currently assigned
"""

from flask import Blueprint, request, g

from ..errors import ValidationError
from ..responses import ok
from ..services import auth_service
from ..decorators import require_auth


auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


@auth_bp.post("/login")
def login_route():
    """
    Authenticate user and issue a bearer token.

    Token must be included as 'Authorization: Bearer <token>' on protected routes.
    """
    data = request.get_json(silent=True) or {}
    username = data.get("username")
    password = data.get("password")

    if not username or not password:
        raise ValidationError("username and password required")

    result = auth_service.login(
        username,
        password,
        ip_address=request.remote_addr,
        user_agent=request.headers.get("User-Agent"),
    )

    return ok({
        "token": result.token,
        "token_type": "Bearer",
        "expires_at": result.claims.expires_at,
        "user": result.user.to_dict(),
        "roles": result.roles,
    }, message="Login successful")


@auth_bp.get("/me")
@require_auth
def me_route():
    """
    Current subject.

    'roles' is the live assignment (what authorization uses); 'token'
    holds the snapshot taken when the token was issued.
    """
    subject = g.subject
    live_roles = sorted(g.role_cache.roles_for(subject.subject_id))
    return ok({
        "token": subject.to_dict(),
        "roles": live_roles,
    })
