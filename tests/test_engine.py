"""Tests for the matchup engine."""

from __future__ import annotations

import datetime
import random
import unittest

from bracketbattle.errors import DuplicateVoteError, InvalidCodeError, VotingClosedError
from bracketbattle.game.bracket import build_first_round
from bracketbattle.game.engine import MatchupEngine
from bracketbattle.game.models import VoteResult
from tests.conftest import START, NoShuffleRandom, make_prompts


class MatchupEngineTestCase(unittest.TestCase):
    """Test case for arming, voting and resolving."""

    def setUp(self) -> None:
        self.engine = MatchupEngine(random.Random(5), voting_duration=20)
        self.round = build_first_round(make_prompts("A", "B", "C"), NoShuffleRandom(0))
        self.stored = self.round[0]
        self.active = self.engine.arm(self.stored, 0, 0, START)

    def _vote(
        self, voter: str, code: str, at: datetime.datetime = START
    ) -> VoteResult:
        return self.engine.cast_vote(self.active, self.stored, voter, code, at)

    def test_arm_sets_window_on_both_views(self) -> None:
        end = START + datetime.timedelta(seconds=20)
        self.assertEqual(self.active.voting_end_time, end)
        self.assertEqual(self.stored.voting_start_time, START)
        self.assertEqual(self.stored.voting_end_time, end)
        self.assertEqual((self.active.round, self.active.matchup_index), (0, 0))
        self.assertEqual(self.active.seconds_remaining(START), 20)

    def test_vote_counts_mirrored(self) -> None:
        result = self._vote("Bold Red Fox", "B1")

        self.assertEqual(result.choice.text, "B")
        self.assertEqual((result.votes_a, result.votes_b), (0, 1))
        self.assertEqual(self.stored.votes_b, 1)
        self.assertEqual(self.stored.voters, ["Bold Red Fox"])

    def test_duplicate_vote_leaves_counts(self) -> None:
        self._vote("Bold Red Fox", "A1")

        with self.assertRaises(DuplicateVoteError):
            self._vote("Bold Red Fox", "B1")
        self.assertEqual((self.active.votes_a, self.active.votes_b), (1, 0))
        self.assertEqual(self.stored.voters, ["Bold Red Fox"])

    def test_vote_after_deadline(self) -> None:
        late = START + datetime.timedelta(seconds=20)
        self.assertTrue(self.engine.is_expired(self.active, late))

        with self.assertRaises(VotingClosedError):
            self._vote("Calm Jade Owl", "A1", late)
        self.assertEqual(self.active.voters, [])

    def test_unknown_code(self) -> None:
        with self.assertRaises(InvalidCodeError):
            self._vote("Calm Jade Owl", "A2")

    def test_bye_code_is_not_votable(self) -> None:
        bye = self.round[1]
        active = self.engine.arm(bye, 0, 1, START)
        with self.assertRaises(InvalidCodeError):
            self.engine.cast_vote(active, bye, "Calm Jade Owl", "BYE", START)

    def test_resolve_majority(self) -> None:
        self._vote("x", "A1")
        self._vote("y", "A1")
        self._vote("z", "B1")

        winner = self.engine.resolve(self.active, self.stored)

        self.assertEqual(winner.text, "A")
        self.assertEqual(self.stored.winner, winner)
        self.assertEqual((self.stored.votes_a, self.stored.votes_b), (2, 1))

    def test_resolve_bye_gives_real_prompt(self) -> None:
        bye = self.round[1]
        active = self.engine.arm(bye, 0, 1, START)
        self.assertEqual(self.engine.resolve(active, bye).text, "C")

    def test_tie_break_reaches_both_outcomes(self) -> None:
        winners = set()
        for seed in range(40):
            engine = MatchupEngine(random.Random(seed))
            round_ = build_first_round(make_prompts("A", "B"), NoShuffleRandom(0))
            active = engine.arm(round_[0], 0, 0, START)
            winners.add(engine.resolve(active, round_[0]).text)
        self.assertEqual(winners, {"A", "B"})


if __name__ == "__main__":
    unittest.main()
