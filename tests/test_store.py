"""Tests for the Firestore persistence layer using mockfirestore."""

from __future__ import annotations

import unittest
from unittest.mock import MagicMock, patch

from mockfirestore import MockFirestore

from bracketbattle.core.constants import STATUS_VOTING
from bracketbattle.errors import PersistenceError
from bracketbattle.game.bracket import build_first_round
from bracketbattle.game.engine import MatchupEngine
from bracketbattle.game.models import Participant, Prompt, TournamentState
from bracketbattle.game.store import (
    FirestorePromptSource,
    FirestoreResultSink,
    FirestoreStateStore,
)
from tests.conftest import START, MockBatch, NoShuffleRandom, make_prompts

ADA = ("room-12", "Ada", "Lovelace", "Brave Red Tiger")


class FirestoreStateStoreTestCase(unittest.TestCase):
    """Test case for snapshot persistence."""

    def setUp(self) -> None:
        self.db = MockFirestore()
        self.store = FirestoreStateStore(self.db)

    def _voting_state(self) -> TournamentState:
        state = TournamentState(name="room-12", status=STATUS_VOTING)
        state.prompts = make_prompts("Cats", "Dogs", "Birds")
        state.bracket = [build_first_round(state.prompts, NoShuffleRandom(0))]
        state.participants = [Participant("Ada", "Lovelace", "Brave Red Tiger", "k1")]
        engine = MatchupEngine(NoShuffleRandom(0))
        state.active_matchup = engine.arm(state.bracket[0][0], 0, 0, START)
        engine.cast_vote(
            state.active_matchup, state.bracket[0][0], "Brave Red Tiger", "A1", START
        )
        return state

    def test_missing_game(self) -> None:
        self.assertIsNone(self.store.load("nobody"))

    def test_save_and_load(self) -> None:
        state = self._voting_state()

        self.store.save(state)
        loaded = self.store.load("room-12")

        self.assertEqual(state.version, 1)
        self.assertEqual(loaded.to_dict(), state.to_dict())
        self.assertEqual(
            loaded.active_matchup.voting_end_time,
            state.active_matchup.voting_end_time,
        )
        self.assertTrue(loaded.bracket[0][1].is_bye)
        self.assertEqual(loaded.bracket[0][1].winner.text, "Birds")

    def test_rounds_stored_as_maps(self) -> None:
        self.store.save(self._voting_state())

        doc = self.db.collection("bracket_games").document("room-12").get().to_dict()

        self.assertIn("matchups", doc["bracket"][0])
        self.assertEqual(doc["schemaVersion"], 1)

    def test_corrupted_snapshot_is_discarded(self) -> None:
        self.db.collection("bracket_games").document("room-12").set(
            {"status": "voting", "currentRound": "not-a-number"}
        )

        self.assertIsNone(self.store.load("room-12"))
        doc = self.db.collection("bracket_games").document("room-12").get()
        self.assertFalse(doc.exists)

    def test_save_failure(self) -> None:
        db = MagicMock()
        db.collection.return_value.document.return_value.set.side_effect = (
            RuntimeError("deadline exceeded")
        )
        store = FirestoreStateStore(db)

        with self.assertRaises(PersistenceError):
            store.save(TournamentState(name="room-12"))


class FirestorePromptSourceTestCase(unittest.TestCase):
    """Test case for prompt seeding."""

    def setUp(self) -> None:
        self.db = MockFirestore()
        self.db.batch = MagicMock(side_effect=lambda: MockBatch(self.db))
        self.source = FirestorePromptSource(self.db)

    def test_replace_and_load(self) -> None:
        saved = self.source.replace_texts(
            "room-12", ["  Pizza", "", "Tacos ", "Sushi"]
        )

        self.assertEqual(saved, ["Pizza", "Tacos", "Sushi"])
        self.assertEqual(
            self.source.fetch_texts("room-12"), ["Pizza", "Tacos", "Sushi"]
        )

        prompts = self.source.load_prompts("room-12")
        self.assertEqual([p.text for p in prompts], ["Pizza", "Tacos", "Sushi"])
        self.assertTrue(prompts[0].id.startswith("prompt_1_"))
        self.assertEqual(len({p.id for p in prompts}), 3)

    def test_replace_drops_old_prompts(self) -> None:
        self.source.replace_texts("room-12", ["One", "Two", "Three"])
        self.source.replace_texts("room-12", ["Four", "Five"])

        self.assertEqual(self.source.fetch_texts("room-12"), ["Four", "Five"])

    def test_empty_source(self) -> None:
        self.assertEqual(self.source.load_prompts("room-12"), [])

    def test_read_failure(self) -> None:
        db = MagicMock()
        prompts = db.collection.return_value.document.return_value.collection
        prompts.return_value.stream.side_effect = RuntimeError("unavailable")
        with self.assertRaises(PersistenceError):
            FirestorePromptSource(db).fetch_texts("room-12")


class FirestoreResultSinkTestCase(unittest.TestCase):
    """Test case for the vote log and final results."""

    def setUp(self) -> None:
        self.db = MockFirestore()
        self.mock_firestore_module = MagicMock()
        self.mock_firestore_module.SERVER_TIMESTAMP = "2024-03-01"
        patcher = patch(
            "bracketbattle.game.store.firestore", new=self.mock_firestore_module
        )
        patcher.start()
        self.addCleanup(patcher.stop)
        self.sink = FirestoreResultSink(self.db)

    def test_votes_joined_per_round(self) -> None:
        self.sink.record_vote(*ADA, 1, "Cats")
        self.sink.record_vote(*ADA, 1, "Birds")
        self.sink.record_vote(*ADA, 2, "Cats")

        rows = self.sink.ballots("room-12")

        self.assertEqual(len(rows), 1)
        self.assertEqual(rows[0]["alias"], "Brave Red Tiger")
        self.assertEqual(rows[0]["firstName"], "Ada")
        self.assertEqual(rows[0]["round_1"], "Cats, Birds")
        self.assertEqual(rows[0]["round_2"], "Cats")

    def test_publish_results(self) -> None:
        lines = [{"round": 1, "matchup": 1, "winner": "Cats"}]

        self.sink.publish_results("room-12", Prompt(id="p1", text="Cats"), lines)

        ref = self.db.collection("bracket_results").document("room-12")
        doc = ref.get().to_dict()
        self.assertEqual(doc["champion"], "Cats")
        self.assertEqual(doc["bracket"], lines)
        self.assertEqual(doc["completedAt"], "2024-03-01")

    def test_clear(self) -> None:
        self.sink.record_vote(*ADA, 1, "Cats")
        self.sink.record_vote("room-12", "Alan", "Turing", "Calm Jade Owl", 1, "Dogs")

        self.sink.clear("room-12")

        self.assertEqual(self.sink.ballots("room-12"), [])

    def test_vote_write_failure(self) -> None:
        db = MagicMock()
        ballots = db.collection.return_value.document.return_value.collection
        ballots.return_value.document.return_value.get.side_effect = RuntimeError(
            "unavailable"
        )
        with self.assertRaises(PersistenceError):
            FirestoreResultSink(db).record_vote("room-12", "A", "B", "C", 1, "Cats")


if __name__ == "__main__":
    unittest.main()
