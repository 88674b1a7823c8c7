"""Utility functions for presenting game state."""

from __future__ import annotations

import datetime
from typing import Any, Optional

from .models import Matchup, Participant, TournamentState


def _matchup_line(
    round_index: int, matchup_index: int, matchup: Matchup
) -> dict[str, Any]:
    """Flatten one matchup for the results export."""
    return {
        "round": round_index + 1,
        "matchup": matchup_index + 1,
        "promptA": matchup.prompt_a.text,
        "promptB": matchup.prompt_b.text,
        "votesA": matchup.votes_a,
        "votesB": matchup.votes_b,
        "winner": matchup.winner.text if matchup.winner else None,
        "bye": matchup.is_bye,
    }


def bracket_summary(state: TournamentState) -> list[dict[str, Any]]:
    """List every matchup in bracket order with its tallies."""
    return [
        _matchup_line(r, m, matchup)
        for r, round_ in enumerate(state.bracket)
        for m, matchup in enumerate(round_)
    ]


def client_state(
    state: TournamentState,
    now: datetime.datetime,
    participant: Optional[Participant] = None,
) -> dict[str, Any]:
    """Build the snapshot sent to a browser.

    Voter lists and identity keys stay on the server; the caller only learns
    whether they have voted in the active matchup.
    """
    active = None
    if state.active_matchup:
        a = state.active_matchup
        active = {
            "promptA": a.prompt_a.to_dict(),
            "promptB": a.prompt_b.to_dict(),
            "codeA": a.code_a,
            "codeB": a.code_b,
            "votesA": a.votes_a,
            "votesB": a.votes_b,
            "round": a.round,
            "matchupIndexInRound": a.matchup_index,
            "votingStartTime": (
                a.voting_start_time.isoformat() if a.voting_start_time else None
            ),
            "votingEndTime": (
                a.voting_end_time.isoformat() if a.voting_end_time else None
            ),
            "secondsRemaining": a.seconds_remaining(now),
            "hasVoted": bool(participant and participant.alias in a.voters),
        }

    bracket = []
    for round_ in state.bracket:
        matchups = []
        for m in round_:
            matchups.append(
                {k: v for k, v in m.to_dict().items() if k != "voters"}
            )
        bracket.append(matchups)

    champion = state.champion
    return {
        "name": state.name,
        "status": state.status,
        "currentRound": state.current_round,
        "currentMatchupIndex": state.current_matchup_index,
        "promptCount": len(state.prompts),
        "participantCount": len(state.participants),
        "activeMatchup": active,
        "bracket": bracket,
        "champion": champion.to_dict() if champion else None,
        "participant": participant.to_public_dict() if participant else None,
    }
