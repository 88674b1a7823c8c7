"""Lifecycle of the single matchup open for voting."""

from __future__ import annotations

import datetime
import logging
import random

from bracketbattle.core.constants import DEFAULT_VOTING_DURATION_SECONDS
from bracketbattle.errors import (
    DuplicateVoteError,
    InvalidCodeError,
    VotingClosedError,
)

from .models import ActiveMatchup, Matchup, Prompt, VoteResult

logger = logging.getLogger(__name__)


class MatchupEngine:
    """Arms, votes on and resolves matchups.

    Every mutation is applied to both the ``ActiveMatchup`` projection and the
    ``Matchup`` stored in the bracket so the two never diverge.
    """

    def __init__(
        self,
        rng: random.Random,
        voting_duration: int = DEFAULT_VOTING_DURATION_SECONDS,
    ) -> None:
        self.rng = rng
        self.voting_duration = datetime.timedelta(seconds=voting_duration)

    def arm(
        self,
        matchup: Matchup,
        round_index: int,
        matchup_index: int,
        now: datetime.datetime,
    ) -> ActiveMatchup:
        """Open ``matchup`` for voting starting at ``now``."""
        end = now + self.voting_duration
        matchup.voting_start_time = now
        matchup.voting_end_time = end

        active = ActiveMatchup(
            prompt_a=matchup.prompt_a,
            prompt_b=matchup.prompt_b,
            code_a=matchup.code_a,
            code_b=matchup.code_b,
            round=round_index,
            matchup_index=matchup_index,
            votes_a=matchup.votes_a,
            votes_b=matchup.votes_b,
            voters=list(matchup.voters),
            voting_start_time=now,
            voting_end_time=end,
        )
        logger.info(
            f"Prepared active matchup for R{round_index + 1}, M{matchup_index + 1}: "
            f'"{matchup.prompt_a.text}" vs "{matchup.prompt_b.text}". '
            f"Voting ends: {end.isoformat()}"
        )
        return active

    @staticmethod
    def is_expired(active: ActiveMatchup, now: datetime.datetime) -> bool:
        return active.voting_end_time is not None and now >= active.voting_end_time

    def cast_vote(
        self,
        active: ActiveMatchup,
        stored: Matchup,
        voter_alias: str,
        choice_code: str,
        now: datetime.datetime,
    ) -> VoteResult:
        """Register one vote.

        Raises:
            VotingClosedError: If the deadline has passed.
            DuplicateVoteError: If ``voter_alias`` already voted here.
            InvalidCodeError: If ``choice_code`` is not on this ballot.
        """
        if self.is_expired(active, now):
            logger.info(
                f"Vote by {voter_alias} after voting ended for "
                f"{active.code_a} vs {active.code_b}."
            )
            raise VotingClosedError()

        if voter_alias in active.voters or voter_alias in stored.voters:
            logger.info(f"{voter_alias} has already voted in this matchup.")
            raise DuplicateVoteError()

        if choice_code == active.code_a:
            active.votes_a += 1
            choice = active.prompt_a
        elif choice_code == active.code_b and not active.is_bye:
            active.votes_b += 1
            choice = active.prompt_b
        else:
            raise InvalidCodeError()

        active.voters.append(voter_alias)
        stored.votes_a = active.votes_a
        stored.votes_b = active.votes_b
        stored.voters = list(active.voters)

        logger.info(
            f"Vote registered for {choice_code} by {voter_alias}. "
            f"Voters: {len(active.voters)}. "
            f"Votes: A:{active.votes_a}, B:{active.votes_b}"
        )
        return VoteResult(
            code=choice_code,
            choice=choice,
            votes_a=active.votes_a,
            votes_b=active.votes_b,
        )

    def resolve(self, active: ActiveMatchup, stored: Matchup) -> Prompt:
        """Pick the winner of ``active`` and record it in the bracket."""
        prompt_a, prompt_b = active.prompt_a, active.prompt_b

        if active.is_bye:
            winner = prompt_a
            logger.info(f'Matchup was a BYE for "{prompt_a.text}".')
        elif active.votes_a > active.votes_b:
            winner = prompt_a
        elif active.votes_b > active.votes_a:
            winner = prompt_b
        else:
            winner = self.rng.choice([prompt_a, prompt_b])
            logger.info(
                f'Tie occurred ("{prompt_a.text}" {active.votes_a} vs '
                f'"{prompt_b.text}" {active.votes_b}). '
                f'Winner by tie-breaker: "{winner.text}"'
            )

        stored.winner = winner
        stored.votes_a = active.votes_a
        stored.votes_b = active.votes_b
        stored.voters = list(active.voters)

        logger.info(
            f"Winner of R{active.round + 1}, M{active.matchup_index + 1} "
            f'("{prompt_a.text}" vs "{prompt_b.text}") is: "{winner.text}".'
        )
        return winner
