# Overview: Service-layer operations for auth; encapsulates business logic and database work.

"""
Authentication Service

WHY: Every posted sale must be attributable. Users log in with a
username and password; a successful login issues a signed bearer token
(see token_service.py) carrying the user's id, name and role names.

SECURITY NOTES:
- Passwords hashed with bcrypt (cost from BCRYPT_ROUNDS, default 12)
- Inactive users cannot log in
- Failed logins are recorded as LOGIN_FAILED security events
"""

from __future__ import annotations

from dataclasses import dataclass

import bcrypt
from flask import current_app

from ..errors import ConflictError, InvalidCredentials, ValidationError
from ..extensions import db
from ..models import User
from salesapi.time_utils import utcnow
from . import role_service, token_service


MIN_PASSWORD_LENGTH = 8


@dataclass
class LoginResult:
    user: User
    roles: list[str]
    token: str
    claims: token_service.TokenClaims


def hash_password(password: str) -> str:
    """Hash password using bcrypt; returns the hash as a string for storage."""
    if len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters long")
    rounds = current_app.config.get("BCRYPT_ROUNDS", 12)
    hashed = bcrypt.hashpw(password.encode('utf-8'), bcrypt.gensalt(rounds=rounds))
    return hashed.decode('utf-8')


def verify_password(password: str, password_hash: str) -> bool:
    """
    Verify password against bcrypt hash.

    WHY timing-safe: bcrypt.checkpw() prevents timing attacks automatically.
    """
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        # Stored value is not a bcrypt hash
        return False


def create_user(username: str, password: str, roles: list[str] | None = None) -> User:
    """
    Create new user with bcrypt password hashing and optional roles.

    Raises:
        ConflictError: username already taken
        ValidationError: password too short
    """
    username = (username or "").strip()
    if not username:
        raise ValidationError("username is required")

    if db.session.query(User).filter_by(username=username).first():
        raise ConflictError("Username already exists")

    user = User(username=username, password_hash=hash_password(password), is_active=True)
    db.session.add(user)
    db.session.commit()

    for role_name in roles or []:
        role_service.assign_role(user.id, role_name)

    return user


def authenticate(
    username: str,
    password: str,
    ip_address: str | None = None,
    user_agent: str | None = None,
) -> User:
    """
    Check credentials and stamp last_login_at.

    Raises InvalidCredentials for unknown user, wrong password or an
    inactive account (same error for all three).
    """
    user = db.session.query(User).filter(
        User.username == username,
        User.is_active.is_(True),
    ).first()

    if not user or not verify_password(password, user.password_hash):
        role_service.log_security_event(
            user_id=user.id if user else None,
            event_type="LOGIN_FAILED",
            success=False,
            action="login",
            reason="Invalid credentials",
            ip_address=ip_address,
            user_agent=user_agent,
        )
        raise InvalidCredentials()

    user.last_login_at = utcnow()
    db.session.commit()
    return user


def login(
    username: str,
    password: str,
    ip_address: str | None = None,
    user_agent: str | None = None,
) -> LoginResult:
    """Authenticate and issue a bearer token with the user's current roles."""
    user = authenticate(username, password, ip_address=ip_address, user_agent=user_agent)
    roles = role_service.get_user_role_names(user.id)
    token = token_service.issue_token(user.id, user.username, roles)
    claims = token_service.verify_token(token)

    current_app.logger.info("User %s logged in with roles %s", user.username, roles)
    return LoginResult(user=user, roles=roles, token=token, claims=claims)
