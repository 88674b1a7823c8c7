"""Document shapes stored in Firestore and returned by the API."""

from typing import Any, Dict, List, Optional, TypedDict  # noqa: UP035


class PromptDocument(TypedDict):
    id: str
    text: str


class PromptRow(TypedDict, total=False):
    """A seeded prompt under ``bracket_prompts/{name}/prompts``."""

    text: str
    position: int


class _MatchupBase(TypedDict):
    promptA: PromptDocument
    promptB: PromptDocument
    codeA: str
    codeB: str
    votesA: int
    votesB: int
    voters: List[str]  # noqa: UP006
    votingStartTime: Optional[str]
    votingEndTime: Optional[str]


class MatchupDocument(_MatchupBase):
    winner: Optional[PromptDocument]


class ActiveMatchupDocument(_MatchupBase):
    round: int
    matchupIndexInRound: int


class RoundDocument(TypedDict):
    """One bracket round. Firestore rejects arrays nested in arrays."""

    matchups: List[MatchupDocument]  # noqa: UP006


class ParticipantDocument(TypedDict):
    firstName: str
    lastName: str
    alias: str
    identityKey: Optional[str]


class GameDocument(TypedDict):
    """Snapshot stored at ``bracket_games/{name}``."""

    name: str
    status: str
    currentRound: int
    currentMatchupIndex: int
    prompts: List[PromptDocument]  # noqa: UP006
    bracket: List[RoundDocument]  # noqa: UP006
    activeMatchup: Optional[ActiveMatchupDocument]
    participants: List[ParticipantDocument]  # noqa: UP006
    version: int
    schemaVersion: int


class _APIResponseBase(TypedDict):
    success: bool
    message: str
    data: Optional[Dict[str, Any]]  # noqa: UP006


class APIResponse(_APIResponseBase, total=False):
    """JSON body of every game endpoint."""

    error: Optional[str]
    degraded: bool
