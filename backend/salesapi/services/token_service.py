"""
Bearer Token Service

WHY: Requests carry a signed, time-bounded credential instead of a
server-side session, so verification needs no database round trip.

FORMAT: itsdangerous URL-safe serializer (HMAC signed JSON) with payload
    sub   - subject (user) id
    name  - display name
    role  - primary role (first of roles) for callers that read one role
    roles - full role-name list at issue time
    iat   - issued-at, epoch seconds
    exp   - expiry, epoch seconds

SECURITY NOTES:
- The signing key comes from TOKEN_SECRET_KEY in app config, never code.
- Signature is checked before expiry, so a tampered expired token is
  reported as invalid, not expired.
- Role names in the token are a snapshot. Authorization re-reads role
  assignments per request (see role_service.RoleCache).
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Iterable

from flask import current_app
from itsdangerous import BadData, URLSafeSerializer

from ..errors import TokenExpired, TokenInvalid, TokenMissing
from ..time_utils import epoch_seconds


TOKEN_SALT = "salesapi.bearer-token"


@dataclass(frozen=True)
class TokenClaims:
    """Decoded, verified token payload."""
    subject_id: int
    display_name: str
    primary_role: str | None
    roles: tuple[str, ...]
    issued_at: int
    expires_at: int

    def to_dict(self) -> dict:
        return {
            "subject_id": self.subject_id,
            "display_name": self.display_name,
            "role": self.primary_role,
            "roles": list(self.roles),
            "issued_at": self.issued_at,
            "expires_at": self.expires_at,
        }


def _serializer(secret_key: str | None = None) -> URLSafeSerializer:
    key = secret_key or current_app.config.get("TOKEN_SECRET_KEY")
    if not key:
        raise RuntimeError("TOKEN_SECRET_KEY is not configured")
    return URLSafeSerializer(key, salt=TOKEN_SALT)


def _ttl_seconds(ttl: int | timedelta | None) -> int:
    if ttl is None:
        ttl = current_app.config["TOKEN_TTL_SECONDS"]
    if isinstance(ttl, timedelta):
        ttl = int(ttl.total_seconds())
    if ttl <= 0:
        raise ValueError("ttl must be positive")
    return int(ttl)


def issue_token(
    subject_id: int,
    display_name: str,
    role_names: Iterable[str],
    ttl: int | timedelta | None = None,
    *,
    now: datetime | None = None,
    secret_key: str | None = None,
) -> str:
    """Sign a token for subject_id valid for ttl (seconds or timedelta)."""
    roles = list(role_names)
    issued_at = epoch_seconds(now)
    payload = {
        "sub": subject_id,
        "name": display_name,
        "role": roles[0] if roles else None,
        "roles": roles,
        "iat": issued_at,
        "exp": issued_at + _ttl_seconds(ttl),
    }
    return _serializer(secret_key).dumps(payload)


def _claims_from_payload(payload: Any) -> TokenClaims:
    if not isinstance(payload, dict):
        raise TokenInvalid()

    sub = payload.get("sub")
    name = payload.get("name")
    role = payload.get("role")
    roles = payload.get("roles")
    iat = payload.get("iat")
    exp = payload.get("exp")

    if not isinstance(sub, int) or isinstance(sub, bool):
        raise TokenInvalid()
    if not isinstance(name, str):
        raise TokenInvalid()
    if role is not None and not isinstance(role, str):
        raise TokenInvalid()
    if not isinstance(roles, list) or not all(isinstance(r, str) for r in roles):
        raise TokenInvalid()
    if not isinstance(iat, int) or not isinstance(exp, int):
        raise TokenInvalid()

    return TokenClaims(
        subject_id=sub,
        display_name=name,
        primary_role=role,
        roles=tuple(roles),
        issued_at=iat,
        expires_at=exp,
    )


def verify_token(
    token: str | None,
    *,
    now: datetime | None = None,
    secret_key: str | None = None,
) -> TokenClaims:
    """
    Verify signature, structure and expiry; return the claims unchanged.

    Raises:
        TokenMissing: token is None or blank
        TokenInvalid: bad signature or malformed payload
        TokenExpired: current time is past the encoded expiry
    """
    if token is None or not str(token).strip():
        raise TokenMissing()

    try:
        payload = _serializer(secret_key).loads(str(token).strip())
    except BadData:
        raise TokenInvalid()

    claims = _claims_from_payload(payload)

    if epoch_seconds(now) > claims.expires_at:
        raise TokenExpired()

    return claims


def extract_bearer(header_value: str | None) -> str | None:
    """Return the token from an 'Authorization: Bearer <token>' value, else None."""
    if not header_value:
        return None
    scheme, _, token = header_value.strip().partition(" ")
    if scheme.lower() != "bearer":
        return None
    token = token.strip()
    return token or None
