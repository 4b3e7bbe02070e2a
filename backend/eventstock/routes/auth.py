# Overview: Flask API routes for login, logout and the current caller.

from flask import Blueprint, request, g

from ..services import auth_service, session_service
from ..services.access_service import current_role
from ..decorators import require_auth
from .errors import error_response, service_error_response, success


auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


@auth_bp.post("/login")
def login_route():
    """
    Authenticate and create a session token.

    The token must be sent as `Authorization: Bearer <token>` afterwards.
    """
    try:
        data = request.get_json(silent=True) or {}
        email = data.get("email")
        password = data.get("password")

        if not isinstance(email, str) or not isinstance(password, str) or not email or not password:
            return error_response("VALIDATION_FAILED", "email and password required", 400)

        user = auth_service.authenticate(email, password)
        if not user:
            return error_response("UNAUTHORIZED", "Invalid credentials", 401)

        _, token = session_service.create_session(user.id)
        return success(token=token, user=user.to_dict())

    except Exception as e:
        return service_error_response(e, "log in")


@auth_bp.post("/logout")
@require_auth
def logout_route():
    session_service.revoke_session(g.session_token)
    return success(message="Logged out")


@auth_bp.get("/me")
@require_auth
def me_route():
    return success(user=g.current_user.to_dict(), role=current_role(g.access))
