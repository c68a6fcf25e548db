# Overview: Authentication and role decorators for API routes.

from functools import wraps
from flask import request, g, current_app

from .errors import InsufficientPermissions
from .services import role_service, token_service
from .services.role_service import RoleCache


def require_auth(f):
    """
    Require a valid bearer token.

    Sets the following Flask g attributes:
    - g.subject: verified TokenClaims (subject id, display name, roles)
    - g.role_cache: a fresh RoleCache owned by this request only

    Raises (mapped to responses by the app error handlers):
    - TokenMissing (401) when no Bearer token is sent
    - TokenInvalid / TokenExpired (403) when verification fails
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        token = token_service.extract_bearer(request.headers.get("Authorization"))
        claims = token_service.verify_token(token)

        g.subject = claims
        g.role_cache = RoleCache()

        return f(*args, **kwargs)

    return decorated_function


def require_roles(*role_names: str, operation: str | None = None):
    """
    Require ANY of the given roles.

    Must be applied below @require_auth. operation is the human-readable
    description reported in the 403 details (defaults to the view name).
    """
    if not role_names:
        raise ValueError("require_roles needs at least one role")
    required = frozenset(role_names)

    def decorator(f):
        described = operation or f.__name__

        @wraps(f)
        def decorated_function(*args, **kwargs):
            subject = g.get("subject")
            role_cache = g.get("role_cache")
            if role_cache is None:
                role_cache = g.role_cache = RoleCache()

            try:
                role_service.check_roles(subject, required, role_cache, described)
            except InsufficientPermissions as e:
                current_app.logger.warning(
                    "Role check denied for %s on %s: %s",
                    subject.display_name, described, e.message,
                )
                role_service.log_security_event(
                    user_id=subject.subject_id,
                    event_type="ROLE_CHECK_DENIED",
                    success=False,
                    resource=request.path,
                    action=described,
                    reason=e.message,
                    ip_address=request.remote_addr,
                    user_agent=request.headers.get("User-Agent"),
                )
                raise

            return f(*args, **kwargs)

        return decorated_function
    return decorator
