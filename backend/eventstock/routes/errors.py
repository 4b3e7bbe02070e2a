# Overview: Maps service exceptions to the JSON error envelope shared by every route.

from flask import current_app, jsonify

from ..services.access_service import UnauthorizedError
from ..services.checkout_service import CheckoutFailedError
from ..services.concurrency import PersistenceError
from ..services.stock_service import StockError
from ..validation import NotFoundError, ValidationError


def error_response(code: str, message: str, status: int, details: dict | None = None):
    return jsonify({
        "success": False,
        "error": code,
        "message": message,
        "details": details or {},
    }), status


def service_error_response(exc: Exception, action: str):
    """
    Translate a service failure into (body, status).

    Unexpected exceptions are logged with their traceback and answered with a
    generic 500; nothing internal reaches the client.
    """
    if isinstance(exc, ValidationError):
        return error_response("VALIDATION_FAILED", str(exc), 400, {"field_errors": exc.field_errors})
    if isinstance(exc, StockError):
        return error_response(exc.code, str(exc), 409, exc.details)
    if isinstance(exc, CheckoutFailedError):
        return error_response(exc.code, str(exc), 409, {
            "failed_line": exc.failed_line,
            "reason": exc.reason,
            **exc.details,
        })
    if isinstance(exc, UnauthorizedError):
        return error_response("UNAUTHORIZED", str(exc), 403)
    if isinstance(exc, NotFoundError):
        return error_response("NOT_FOUND", str(exc), 404)
    if isinstance(exc, PersistenceError):
        current_app.logger.error("Failed to %s: %s", action, exc)
        return error_response("PERSISTENCE_ERROR", "Database error, please retry", 500)

    current_app.logger.exception("Failed to %s", action)
    return error_response("INTERNAL_ERROR", "Internal server error", 500)


def success(status: int = 200, **payload):
    return jsonify({"success": True, **payload}), status
