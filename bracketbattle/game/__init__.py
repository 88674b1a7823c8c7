"""Game blueprint."""

from flask import Blueprint

bp = Blueprint("game", __name__, url_prefix="/games")

from . import routes  # noqa: E402, F401
from .models import Participant, TournamentState  # noqa: E402
from .services import TournamentController  # noqa: E402

__all__ = ["Participant", "TournamentState", "TournamentController", "routes"]
