# Overview: Role resolution, role checks and role administration.

"""
Role-Based Access Control and Security Event Logging

WHY: Enforce role-gated access to business operations and keep an audit
trail of denials and role administration.

DESIGN PRINCIPLES:
- Fail closed: a subject with no matching role is denied
- "Any of" matching: holding ONE required role is enough
- Per-request cache: a RoleCache lives for one request only (flask.g), so
  role edits apply on the subject's next request and nothing is shared
  between requests or threads
- Log denials only: granted checks are not logged
"""

from __future__ import annotations

from typing import Iterable

from ..errors import AuthenticationRequired, InsufficientPermissions, NotFound
from ..extensions import db
from ..models import User, Role, UserRole, SecurityEvent
from salesapi.time_utils import utcnow


DEFAULT_ROLES = [
    ("admin", "Full system access"),
    ("vendedor", "Creates orders and posts sale lines"),
    ("almacen", "Warehouse staff; reads orders and inventory movements"),
]


class RoleCache:
    """
    Memoized subject id -> role names for the duration of one request.

    The first lookup for a subject queries user_roles joined with roles;
    later lookups in the same request return the cached set.
    """

    def __init__(self, session=None):
        self._session = session
        self._roles: dict[int, frozenset[str]] = {}
        self.query_count = 0

    @property
    def session(self):
        return self._session if self._session is not None else db.session

    def roles_for(self, subject_id: int) -> frozenset[str]:
        cached = self._roles.get(subject_id)
        if cached is not None:
            return cached

        rows = (
            self.session.query(Role.name)
            .join(UserRole, UserRole.role_id == Role.id)
            .filter(UserRole.user_id == subject_id)
            .all()
        )
        self.query_count += 1

        roles = frozenset(name for (name,) in rows)
        self._roles[subject_id] = roles
        return roles

    def __contains__(self, subject_id: int) -> bool:
        return subject_id in self._roles


def check_roles(subject, required_roles: Iterable[str], role_cache: RoleCache, operation: str) -> frozenset[str]:
    """
    Allow the operation only if the subject holds any of required_roles.

    subject is the verified TokenClaims for the request (or None).
    Returns the matching roles.

    Raises:
        AuthenticationRequired: no subject attached
        InsufficientPermissions: no overlap with required_roles
    """
    required = frozenset(required_roles)
    if subject is None:
        raise AuthenticationRequired()

    matched = role_cache.roles_for(subject.subject_id) & required
    if not matched:
        raise InsufficientPermissions(required, subject.display_name, operation)
    return matched


def log_security_event(
    user_id: int | None,
    event_type: str,
    success: bool,
    resource: str | None = None,
    action: str | None = None,
    reason: str | None = None,
    ip_address: str | None = None,
    user_agent: str | None = None,
) -> SecurityEvent:
    """
    Log security event to audit trail.

    event_type examples:
    - ROLE_CHECK_DENIED
    - LOGIN_FAILED
    - ROLE_ASSIGNED
    - ROLE_REVOKED
    """
    event = SecurityEvent(
        user_id=user_id,
        event_type=event_type,
        resource=resource,
        action=action,
        success=success,
        reason=reason,
        ip_address=ip_address,
        user_agent=user_agent,
        occurred_at=utcnow()
    )

    db.session.add(event)
    db.session.commit()

    return event


def list_roles() -> list[Role]:
    return db.session.query(Role).order_by(Role.name.asc()).all()


def get_user_role_names(user_id: int) -> list[str]:
    """Role names for a user, in assignment order (first = primary role)."""
    rows = (
        db.session.query(Role.name)
        .join(UserRole, UserRole.role_id == Role.id)
        .filter(UserRole.user_id == user_id)
        .order_by(UserRole.id.asc())
        .all()
    )
    return [name for (name,) in rows]


def _get_user(user_id: int) -> User:
    user = db.session.get(User, user_id)
    if user is None:
        raise NotFound(f"User {user_id} not found")
    return user


def _get_role(role_name: str) -> Role:
    role = db.session.query(Role).filter_by(name=role_name).first()
    if role is None:
        raise NotFound(f"Role {role_name} not found")
    return role


def assign_role(user_id: int, role_name: str, actor_user_id: int | None = None) -> UserRole:
    """Assign role to user. Assigning an existing role returns the existing row."""
    user = _get_user(user_id)
    role = _get_role(role_name)

    existing = db.session.query(UserRole).filter_by(
        user_id=user.id,
        role_id=role.id
    ).first()

    if existing:
        return existing

    user_role = UserRole(user_id=user.id, role_id=role.id)
    db.session.add(user_role)
    db.session.commit()

    log_security_event(
        user_id=actor_user_id,
        event_type="ROLE_ASSIGNED",
        success=True,
        action=role.name,
        reason=f"Role {role.name} assigned to {user.username}",
    )
    return user_role


def revoke_role(user_id: int, role_name: str, actor_user_id: int | None = None) -> bool:
    """Revoke role from user. Returns False if it wasn't assigned."""
    user = _get_user(user_id)
    role = _get_role(role_name)

    user_role = db.session.query(UserRole).filter_by(
        user_id=user.id,
        role_id=role.id
    ).first()

    if not user_role:
        return False

    db.session.delete(user_role)
    db.session.commit()

    log_security_event(
        user_id=actor_user_id,
        event_type="ROLE_REVOKED",
        success=True,
        action=role.name,
        reason=f"Role {role.name} revoked from {user.username}",
    )
    return True


def create_default_roles() -> int:
    """Create the standard roles if they don't exist. Returns count created."""
    created = 0
    for name, desc in DEFAULT_ROLES:
        existing = db.session.query(Role).filter_by(name=name).first()
        if not existing:
            db.session.add(Role(name=name, description=desc))
            created += 1

    db.session.commit()
    return created
