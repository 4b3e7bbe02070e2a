# Overview: Request decorators for API routes; resolve the caller once per request.

from functools import wraps
from flask import request, g

from .services import session_service
from .services.access_service import resolve_access_context
from .routes.errors import error_response


def _bearer_token() -> str | None:
    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.startswith("Bearer "):
        return None
    return auth_header.split(" ", 1)[1].strip() or None


def require_auth(f):
    """
    Require a valid bearer session.

    Sets on Flask g:
    - g.current_user: the authenticated User
    - g.access: the AccessContext handed to every service call
    - g.session_token: the plaintext token (for logout)

    Returns 401 if the header is missing, or the token is invalid, expired
    or revoked, or the account is deactivated.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        token = _bearer_token()
        if token is None:
            return error_response("UNAUTHORIZED", "Authentication required", 401)

        user = session_service.validate_session(token)
        if user is None:
            return error_response("UNAUTHORIZED", "Invalid or expired token", 401)

        g.current_user = user
        g.access = resolve_access_context(user.id)
        g.session_token = token

        return f(*args, **kwargs)

    return decorated_function


def require_admin(f):
    """Require the authenticated caller to be an admin. Use after @require_auth."""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        access = getattr(g, "access", None)
        if access is None:
            return error_response("UNAUTHORIZED", "Authentication required", 401)
        if not access.is_admin:
            return error_response("UNAUTHORIZED", "Not authorized", 403)
        return f(*args, **kwargs)

    return decorated_function
