"""Single-elimination bracket construction."""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass
from typing import Union

from bracketbattle.core.constants import BYE_CODE, MIN_PROMPTS
from bracketbattle.errors import InconsistentBracketError, InsufficientPromptsError

from .models import BYE_PROMPT, Matchup, Prompt, Round, is_round_complete

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GameOver:
    """Signals that only one real winner is left."""

    winner: Prompt


def _pair(entrants: list[Prompt], code_suffix: str = "") -> Round:
    """Pair consecutive entrants, giving an unpaired last entrant a bye."""
    matchups: Round = []
    for i in range(0, len(entrants), 2):
        pair_number = i // 2 + 1
        code_a = f"A{pair_number}{code_suffix}"
        if i + 1 < len(entrants):
            matchups.append(
                Matchup(
                    prompt_a=entrants[i],
                    prompt_b=entrants[i + 1],
                    code_a=code_a,
                    code_b=f"B{pair_number}{code_suffix}",
                )
            )
        else:
            matchups.append(
                Matchup(
                    prompt_a=entrants[i],
                    prompt_b=BYE_PROMPT,
                    code_a=code_a,
                    code_b=BYE_CODE,
                    votes_a=1,
                    winner=entrants[i],
                )
            )
    return matchups


def build_first_round(prompts: list[Prompt], rng: random.Random) -> Round:
    """Shuffle the prompts and pair them into the opening round.

    Raises:
        InsufficientPromptsError: If fewer than two prompts are given.
    """
    if len(prompts) < MIN_PROMPTS:
        raise InsufficientPromptsError(
            "Not enough prompts to start a game. Please add at least "
            f"{MIN_PROMPTS} prompts."
        )

    shuffled = list(prompts)
    rng.shuffle(shuffled)
    round_ = _pair(shuffled)
    logger.info(f"Initial bracket setup with {len(round_)} matchups for Round 1.")
    return round_


def real_winners(round_: Round) -> list[Prompt]:
    """Winners of a round in bracket order, without the bye placeholder."""
    return [m.winner for m in round_ if m.winner and not m.winner.is_bye]


def build_next_round(
    previous_round: Round, round_number: int
) -> Union[Round, GameOver]:
    """Pair the winners of a completed round.

    ``round_number`` is the 1-based number of the round being built and is
    appended to the ballot codes so they stay unique across rounds.

    Raises:
        InconsistentBracketError: If the previous round is unfinished or has
            no real winners.
    """
    if not is_round_complete(previous_round):
        raise InconsistentBracketError(
            "Cannot set up next round: previous round not fully completed."
        )

    winners = real_winners(previous_round)
    if not winners:
        raise InconsistentBracketError(
            "No valid winners from previous round. The bracket may be corrupted."
        )
    if len(winners) == 1:
        logger.info(f'Only one winner advanced: "{winners[0].text}".')
        return GameOver(winners[0])

    round_ = _pair(winners, code_suffix=f"_R{round_number}")
    logger.info(f"Set up Round {round_number} with {len(round_)} matchups.")
    return round_
