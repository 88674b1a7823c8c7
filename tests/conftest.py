"""Common utilities for tests."""

from __future__ import annotations

import copy
import datetime
import random
import unittest.mock
from typing import Any, Optional

from bracketbattle.errors import PersistenceError
from bracketbattle.game.models import Prompt, TournamentState

START = datetime.datetime(2024, 3, 1, 9, 0, tzinfo=datetime.timezone.utc)


class MockBatch:
    def __init__(self, db: Any) -> None:
        self.db = db
        self.updates: list[tuple[Any, Any, bool]] = []
        self.commit = unittest.mock.MagicMock(side_effect=self._real_commit)

    def set(self, ref: Any, data: Any, merge: bool = False) -> None:
        self.updates.append((ref, data, merge))

    def delete(self, ref: Any) -> None:
        self.updates.append((ref, "DELETE", False))

    def _real_commit(self) -> None:
        for ref, data, merge in self.updates:
            if data == "DELETE":
                ref.delete()
            else:
                ref.set(data, merge=merge)


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, now: datetime.datetime = START) -> None:
        self.now = now

    def __call__(self) -> datetime.datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += datetime.timedelta(seconds=seconds)


class NoShuffleRandom(random.Random):
    """Seeded RNG that keeps prompt order so bracket positions are known."""

    def shuffle(self, x: Any, *args: Any, **kwargs: Any) -> None:
        return None


def make_prompts(*texts: str) -> list[Prompt]:
    return [Prompt(id=f"p{i}", text=text) for i, text in enumerate(texts, start=1)]


class InMemoryStateStore:
    """Keeps serialized snapshots so every load goes through from_dict."""

    def __init__(self) -> None:
        self.docs: dict[str, dict[str, Any]] = {}
        self.fail_saves = False
        self.saves = 0

    def load(self, name: str) -> Optional[TournamentState]:
        data = self.docs.get(name)
        if data is None:
            return None
        return TournamentState.from_dict(copy.deepcopy(data))

    def save(self, state: TournamentState) -> None:
        state.version += 1
        if self.fail_saves:
            raise PersistenceError(f"Could not save game {state.name!r}: offline")
        self.docs[state.name] = copy.deepcopy(state.to_dict())
        self.saves += 1


class InMemoryPromptSource:
    def __init__(self, texts: Optional[dict[str, list[str]]] = None) -> None:
        self.texts = texts or {}
        self.fail = False

    def load_prompts(self, name: str) -> list[Prompt]:
        if self.fail:
            raise PersistenceError("Could not load prompts: offline")
        return make_prompts(*self.texts.get(name, []))

    def replace_texts(self, name: str, texts: list[str]) -> list[str]:
        if self.fail:
            raise PersistenceError("Could not save prompts: offline")
        cleaned = [t.strip() for t in texts if t and t.strip()]
        self.texts[name] = cleaned
        return cleaned


class RecordingResultSink:
    def __init__(self) -> None:
        self.votes: list[tuple[str, str, str, str, int, str]] = []
        self.published: list[tuple[str, Prompt, list[dict[str, Any]]]] = []
        self.cleared: list[str] = []
        self.fail_votes = False
        self.fail_publish = False

    def record_vote(
        self,
        name: str,
        first_name: str,
        last_name: str,
        alias: str,
        round_number: int,
        prompt_text: str,
    ) -> None:
        if self.fail_votes:
            raise PersistenceError(f"Could not record vote for {alias}: offline")
        self.votes.append(
            (name, first_name, last_name, alias, round_number, prompt_text)
        )

    def publish_results(
        self, name: str, champion: Prompt, bracket_lines: list[dict[str, Any]]
    ) -> None:
        if self.fail_publish:
            raise PersistenceError(f"Could not publish results for {name!r}: offline")
        self.published.append((name, champion, bracket_lines))

    def clear(self, name: str) -> None:
        self.cleared.append(name)
