from flask import Blueprint, current_app, jsonify
from flask_wtf.csrf import CSRFError

from .errors import AppError, PersistenceError, ValidationError

error_handlers_bp = Blueprint("error_handlers", __name__)


def _error_body(message, error):
    return jsonify(
        {
            "success": False,
            "message": message,
            "data": None,
            "error": error,
            "degraded": False,
        }
    )


@error_handlers_bp.app_errorhandler(ValidationError)
def handle_validation_error(error):
    """Handles validation errors raised by request parsing."""
    current_app.logger.warning(f"Validation Error: {error.message}")
    return _error_body(error.message, error.code), error.status_code


@error_handlers_bp.app_errorhandler(PersistenceError)
def handle_persistence_error(error):
    """Handles storage failures that prevented an operation from starting."""
    current_app.logger.error(f"Persistence Error: {error.message}")
    return (
        _error_body("Game data is unavailable. Please try again later.", error.code),
        error.status_code,
    )


@error_handlers_bp.app_errorhandler(AppError)
def handle_app_error(error):
    """Handles generic application errors."""
    current_app.logger.error(f"Application Error: {error.message}")
    return _error_body(error.message, error.code), error.status_code


@error_handlers_bp.app_errorhandler(404)
def handle_404(e):
    """Handles generic 404 errors for routes that don't exist."""
    return _error_body("Not found.", "NotFound"), 404


@error_handlers_bp.app_errorhandler(405)
def handle_405(e):
    return _error_body("Method not allowed.", "MethodNotAllowed"), 405


@error_handlers_bp.app_errorhandler(500)
def handle_500(e):
    """Handles unexpected server errors."""
    current_app.logger.error(f"Internal Server Error: {e}")
    return _error_body("An unexpected error occurred.", "InternalError"), 500


@error_handlers_bp.app_errorhandler(CSRFError)
def handle_csrf_error(e):
    """
    Handles CSRF errors, which usually mean the session expired.
    Clients should fetch the state again to get a fresh token.
    """
    current_app.logger.warning(f"CSRF Error: {e.description}")
    return (
        _error_body(
            "Your session may have expired. Please refresh and try again.",
            "CSRFError",
        ),
        400,
    )
