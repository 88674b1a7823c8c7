"""Data models for the game blueprint."""

from __future__ import annotations

import datetime
from dataclasses import dataclass, field
from typing import Any, Optional

from bracketbattle.core.constants import (
    BYE_PROMPT_ID,
    BYE_PROMPT_TEXT,
    SCHEMA_VERSION,
    STATUS_GAME_OVER,
    STATUS_SETUP,
)
from bracketbattle.core.types import (
    ActiveMatchupDocument,
    APIResponse,
    GameDocument,
    MatchupDocument,
    ParticipantDocument,
    PromptDocument,
)
from bracketbattle.errors import InconsistentBracketError


def _dump_time(value: Optional[datetime.datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def _load_time(value: Any) -> Optional[datetime.datetime]:
    if not value:
        return None
    if isinstance(value, datetime.datetime):
        parsed = value
    else:
        parsed = datetime.datetime.fromisoformat(str(value))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=datetime.timezone.utc)
    return parsed


@dataclass(frozen=True)
class Prompt:
    """A single text prompt competing in the bracket."""

    id: str
    text: str

    @property
    def is_bye(self) -> bool:
        return self.id == BYE_PROMPT_ID

    def to_dict(self) -> PromptDocument:
        return {"id": self.id, "text": self.text}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Prompt:
        return cls(id=str(data["id"]), text=str(data.get("text", "")))


BYE_PROMPT = Prompt(id=BYE_PROMPT_ID, text=BYE_PROMPT_TEXT)


def _load_prompt(data: Optional[dict[str, Any]]) -> Optional[Prompt]:
    return Prompt.from_dict(data) if data else None


@dataclass
class Matchup:
    """Two prompts facing each other in one bracket position."""

    prompt_a: Prompt
    prompt_b: Prompt
    code_a: str
    code_b: str
    votes_a: int = 0
    votes_b: int = 0
    winner: Optional[Prompt] = None
    voters: list[str] = field(default_factory=list)
    voting_start_time: Optional[datetime.datetime] = None
    voting_end_time: Optional[datetime.datetime] = None

    @property
    def is_bye(self) -> bool:
        return self.prompt_b.is_bye

    @property
    def is_resolved(self) -> bool:
        return self.winner is not None

    def to_dict(self) -> MatchupDocument:
        return {
            "promptA": self.prompt_a.to_dict(),
            "promptB": self.prompt_b.to_dict(),
            "codeA": self.code_a,
            "codeB": self.code_b,
            "votesA": self.votes_a,
            "votesB": self.votes_b,
            "winner": self.winner.to_dict() if self.winner else None,
            "voters": list(self.voters),
            "votingStartTime": _dump_time(self.voting_start_time),
            "votingEndTime": _dump_time(self.voting_end_time),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Matchup:
        return cls(
            prompt_a=Prompt.from_dict(data["promptA"]),
            prompt_b=Prompt.from_dict(data["promptB"]),
            code_a=data.get("codeA", ""),
            code_b=data.get("codeB", ""),
            votes_a=int(data.get("votesA") or 0),
            votes_b=int(data.get("votesB") or 0),
            winner=_load_prompt(data.get("winner")),
            voters=list(data.get("voters") or []),
            voting_start_time=_load_time(data.get("votingStartTime")),
            voting_end_time=_load_time(data.get("votingEndTime")),
        )


Round = list[Matchup]
Bracket = list[Round]


def is_round_complete(round_: Round) -> bool:
    """A round is complete once every matchup in it has a winner."""
    return all(m.is_resolved for m in round_)


@dataclass
class ActiveMatchup:
    """The matchup currently open for voting, with its bracket position."""

    prompt_a: Prompt
    prompt_b: Prompt
    code_a: str
    code_b: str
    round: int
    matchup_index: int
    votes_a: int = 0
    votes_b: int = 0
    voters: list[str] = field(default_factory=list)
    voting_start_time: Optional[datetime.datetime] = None
    voting_end_time: Optional[datetime.datetime] = None

    @property
    def is_bye(self) -> bool:
        return self.prompt_b.is_bye

    def seconds_remaining(self, now: datetime.datetime) -> int:
        if self.voting_end_time is None:
            return 0
        remaining = (self.voting_end_time - now).total_seconds()
        return max(0, int(remaining))

    def to_dict(self) -> ActiveMatchupDocument:
        return {
            "promptA": self.prompt_a.to_dict(),
            "promptB": self.prompt_b.to_dict(),
            "codeA": self.code_a,
            "codeB": self.code_b,
            "votesA": self.votes_a,
            "votesB": self.votes_b,
            "voters": list(self.voters),
            "round": self.round,
            "matchupIndexInRound": self.matchup_index,
            "votingStartTime": _dump_time(self.voting_start_time),
            "votingEndTime": _dump_time(self.voting_end_time),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ActiveMatchup:
        return cls(
            prompt_a=Prompt.from_dict(data["promptA"]),
            prompt_b=Prompt.from_dict(data["promptB"]),
            code_a=data.get("codeA", ""),
            code_b=data.get("codeB", ""),
            round=int(data.get("round") or 0),
            matchup_index=int(data.get("matchupIndexInRound") or 0),
            votes_a=int(data.get("votesA") or 0),
            votes_b=int(data.get("votesB") or 0),
            voters=list(data.get("voters") or []),
            voting_start_time=_load_time(data.get("votingStartTime")),
            voting_end_time=_load_time(data.get("votingEndTime")),
        )


@dataclass
class Participant:
    """A registered voter and the alias they vote under."""

    first_name: str
    last_name: str
    alias: str
    identity_key: Optional[str] = None

    def to_dict(self) -> ParticipantDocument:
        return {
            "firstName": self.first_name,
            "lastName": self.last_name,
            "alias": self.alias,
            "identityKey": self.identity_key,
        }

    def to_public_dict(self) -> dict[str, Any]:
        """Participant data without the identity key."""
        return {
            "firstName": self.first_name,
            "lastName": self.last_name,
            "alias": self.alias,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Participant:
        return cls(
            first_name=data.get("firstName", ""),
            last_name=data.get("lastName", ""),
            alias=data["alias"],
            identity_key=data.get("identityKey"),
        )


@dataclass
class TournamentState:
    """Full snapshot of one tournament, persisted as a single document."""

    name: str
    status: str = STATUS_SETUP
    current_round: int = 0
    current_matchup_index: int = 0
    prompts: list[Prompt] = field(default_factory=list)
    bracket: Bracket = field(default_factory=list)
    active_matchup: Optional[ActiveMatchup] = None
    participants: list[Participant] = field(default_factory=list)
    version: int = 0
    schema_version: int = SCHEMA_VERSION

    def matchup_at(self, round_index: int, matchup_index: int) -> Matchup:
        """Return the stored matchup at a bracket position.

        Raises:
            InconsistentBracketError: If the position does not exist.
        """
        if 0 <= round_index < len(self.bracket):
            round_ = self.bracket[round_index]
            if 0 <= matchup_index < len(round_):
                return round_[matchup_index]
        raise InconsistentBracketError(
            f"Matchup R{round_index + 1}, M{matchup_index + 1} not found in bracket."
        )

    @property
    def champion(self) -> Optional[Prompt]:
        if self.status != STATUS_GAME_OVER or not self.bracket:
            return None
        final_round = self.bracket[-1]
        if len(final_round) == 1 and final_round[0].winner:
            return final_round[0].winner
        winners = [m.winner for m in final_round if m.winner and not m.winner.is_bye]
        return winners[0] if len(winners) == 1 else None

    def to_dict(self) -> GameDocument:
        # Firestore rejects directly nested arrays, so rounds are wrapped.
        return {
            "name": self.name,
            "status": self.status,
            "currentRound": self.current_round,
            "currentMatchupIndex": self.current_matchup_index,
            "prompts": [p.to_dict() for p in self.prompts],
            "bracket": [
                {"matchups": [m.to_dict() for m in round_]} for round_ in self.bracket
            ],
            "activeMatchup": (
                self.active_matchup.to_dict() if self.active_matchup else None
            ),
            "participants": [p.to_dict() for p in self.participants],
            "version": self.version,
            "schemaVersion": self.schema_version,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> TournamentState:
        active = data.get("activeMatchup")
        return cls(
            name=data["name"],
            status=data.get("status", STATUS_SETUP),
            current_round=int(data.get("currentRound") or 0),
            current_matchup_index=int(data.get("currentMatchupIndex") or 0),
            prompts=[Prompt.from_dict(p) for p in data.get("prompts") or []],
            bracket=[
                [Matchup.from_dict(m) for m in round_.get("matchups") or []]
                for round_ in data.get("bracket") or []
            ],
            active_matchup=ActiveMatchup.from_dict(active) if active else None,
            participants=[
                Participant.from_dict(p) for p in data.get("participants") or []
            ],
            version=int(data.get("version") or 0),
            schema_version=int(data.get("schemaVersion") or SCHEMA_VERSION),
        )


@dataclass
class VoteResult:
    """Counts after a successful vote."""

    code: str
    choice: Prompt
    votes_a: int
    votes_b: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "code": self.code,
            "choice": self.choice.to_dict(),
            "votesA": self.votes_a,
            "votesB": self.votes_b,
        }


@dataclass
class OperationResult:
    """Outcome of one controller operation, returned instead of raising."""

    success: bool
    message: str
    data: Optional[dict[str, Any]] = None
    error: Optional[str] = None
    degraded: bool = False
    status_code: int = 200

    def to_response(self) -> APIResponse:
        return {
            "success": self.success,
            "message": self.message,
            "data": self.data,
            "error": self.error,
            "degraded": self.degraded,
        }
