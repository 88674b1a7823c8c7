"""Decorators for the game blueprint."""

import secrets
from functools import wraps

from flask import current_app, jsonify, request, session

from bracketbattle.core.constants import MODERATOR_TOKEN_HEADER


def moderator_required(f):
    """Reject requests that do not carry the moderator token.

    The token can be sent in the ``X-Moderator-Token`` header; a session that
    presented it once keeps the moderator flag.
    """

    @wraps(f)
    def decorated_function(*args, **kwargs):
        expected = current_app.config.get("MODERATOR_TOKEN") or ""
        supplied = request.headers.get(MODERATOR_TOKEN_HEADER, "")
        if expected and supplied and secrets.compare_digest(supplied, expected):
            session["is_moderator"] = True
        elif not session.get("is_moderator"):
            current_app.logger.warning(
                f"Moderator action {request.path} rejected for {request.remote_addr}."
            )
            return (
                jsonify(
                    {
                        "success": False,
                        "message": "You are not authorized to run the game.",
                        "data": None,
                        "error": "Forbidden",
                        "degraded": False,
                    }
                ),
                403,
            )
        return f(*args, **kwargs)

    return decorated_function
