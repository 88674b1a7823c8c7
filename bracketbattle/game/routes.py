"""Routes for the game blueprint."""

from __future__ import annotations

import random
import secrets
from typing import Any

from firebase_admin import firestore
from flask import current_app, jsonify, request, session
from flask_wtf.csrf import generate_csrf

from bracketbattle.core.constants import SESSION_IDENTITY_KEY
from bracketbattle.errors import ValidationError
from bracketbattle.extensions import csrf

from . import bp
from .decorators import moderator_required
from .forms import ConfirmIdentityForm, RegistrationForm, VoteForm
from .models import OperationResult
from .services import TournamentController
from .store import FirestorePromptSource, FirestoreResultSink, FirestoreStateStore


def get_controller() -> TournamentController:
    """Build a controller bound to the Firestore client for this request."""
    db = firestore.client()
    return TournamentController(
        FirestoreStateStore(db),
        FirestorePromptSource(db),
        FirestoreResultSink(db),
        rng=random.Random(),
        voting_duration=int(current_app.config["VOTING_DURATION_SECONDS"]),
    )


def identity_key() -> str:
    """Stable per-session key, created on first use."""
    key = session.get(SESSION_IDENTITY_KEY)
    if not key:
        key = secrets.token_urlsafe(16)
        session[SESSION_IDENTITY_KEY] = key
        session.permanent = True
    return key


def _respond(result: OperationResult) -> Any:
    if not result.success:
        current_app.logger.info(f"{request.path}: {result.error}: {result.message}")
    return jsonify(result.to_response()), result.status_code


def _form_error(form: Any) -> ValidationError:
    messages = [
        f"{getattr(form, field).label.text}: {', '.join(errors)}"
        for field, errors in form.errors.items()
        if hasattr(form, field)
    ]
    return ValidationError("; ".join(messages) or "Invalid submission.")


@bp.route("/<string:name>/select", methods=["POST"])
@csrf.exempt
@moderator_required
def select_tournament(name: str) -> Any:
    """Load or create a tournament and reload its prompts."""
    return _respond(get_controller().select_tournament(name))


@bp.route("/<string:name>/prompts", methods=["PUT"])
@csrf.exempt
@moderator_required
def set_prompts(name: str) -> Any:
    """Replace the prompt list.

    Accepts a JSON list, {"prompts": [...]}, or plain text with one prompt
    per line.
    """
    if request.is_json:
        payload = request.get_json(silent=True)
        texts = payload.get("prompts") if isinstance(payload, dict) else payload
    else:
        texts = request.get_data(as_text=True).splitlines()

    if not isinstance(texts, list) or not all(isinstance(t, str) for t in texts):
        raise ValidationError("Prompts must be a list of strings.")
    return _respond(get_controller().set_prompts(name, texts))


@bp.route("/<string:name>/start", methods=["POST"])
@csrf.exempt
@moderator_required
def start_game(name: str) -> Any:
    """Build the first round and open the waiting room."""
    return _respond(get_controller().start_game(name))


@bp.route("/<string:name>/launch", methods=["POST"])
@csrf.exempt
@moderator_required
def launch_next(name: str) -> Any:
    """Close the current matchup and launch the next one."""
    return _respond(get_controller().launch_next(name))


@bp.route("/<string:name>/reset", methods=["POST"])
@csrf.exempt
@moderator_required
def reset_game(name: str) -> Any:
    """Reset the tournament."""
    return _respond(get_controller().reset_game(name))


@bp.route("/<string:name>/results", methods=["GET"])
@moderator_required
def results(name: str) -> Any:
    """Champion and bracket listing."""
    return _respond(get_controller().get_results(name))


@bp.route("/<string:name>/register", methods=["POST"])
def register(name: str) -> Any:
    """Join the waiting room and receive an alias."""
    form = RegistrationForm()
    if not form.validate_on_submit():
        raise _form_error(form)
    return _respond(
        get_controller().register(
            name, form.first_name.data, form.last_name.data, identity_key()
        )
    )


@bp.route("/<string:name>/confirm", methods=["POST"])
def confirm_identity(name: str) -> Any:
    """Resume as an existing participant from this session."""
    form = ConfirmIdentityForm()
    if not form.validate_on_submit():
        raise _form_error(form)
    return _respond(
        get_controller().confirm_identity(
            name,
            form.first_name.data,
            form.last_name.data,
            form.alias.data,
            identity_key(),
        )
    )


@bp.route("/<string:name>/state", methods=["GET"])
def get_state(name: str) -> Any:
    """Current game state for the calling session."""
    result = get_controller().get_state(name, identity_key())
    if result.data is not None:
        result.data["csrfToken"] = generate_csrf()
    return _respond(result)


@bp.route("/<string:name>/vote", methods=["POST"])
def vote(name: str) -> Any:
    """Cast a ballot for the active matchup."""
    form = VoteForm()
    if not form.validate_on_submit():
        raise _form_error(form)

    alias = (form.alias.data or "").strip() or None
    return _respond(
        get_controller().vote(name, form.code.data.strip(), alias, identity_key())
    )
