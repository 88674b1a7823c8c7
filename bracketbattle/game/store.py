"""Firestore access for game snapshots, prompts and results."""

from __future__ import annotations

import logging
import uuid
from typing import TYPE_CHECKING, Any, Optional, cast

from firebase_admin import firestore

from bracketbattle.core.constants import (
    BALLOTS_SUBCOLLECTION,
    GAMES_COLLECTION,
    PROMPTS_COLLECTION,
    PROMPTS_SUBCOLLECTION,
    RESULTS_COLLECTION,
)
from bracketbattle.core.types import PromptRow
from bracketbattle.errors import PersistenceError

from .models import Prompt, TournamentState

if TYPE_CHECKING:
    from google.cloud.firestore_v1.base_document import DocumentSnapshot
    from google.cloud.firestore_v1.client import Client

logger = logging.getLogger(__name__)


def _client(db: Client | None) -> Client:
    return db if db is not None else firestore.client()


class FirestoreStateStore:
    """One snapshot document per tournament name."""

    def __init__(self, db: Client | None = None) -> None:
        self.db = _client(db)

    def _ref(self, name: str) -> Any:
        return self.db.collection(GAMES_COLLECTION).document(name)

    def load(self, name: str) -> Optional[TournamentState]:
        """Return the saved state, or None if missing or unreadable.

        Raises:
            PersistenceError: If Firestore cannot be read.
        """
        try:
            doc = cast("DocumentSnapshot", self._ref(name).get())
        except Exception as e:
            raise PersistenceError(f"Could not load game {name!r}: {e}") from e

        if not doc.exists:
            return None
        data = doc.to_dict() or {}
        try:
            return TournamentState.from_dict({**data, "name": name})
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            logger.error(f"Corrupted game state for {name!r}: {e}. Discarding it.")
            self.delete(name)
            return None

    def save(self, state: TournamentState) -> None:
        """Write the full snapshot, bumping its version.

        Raises:
            PersistenceError: If the write fails.
        """
        state.version += 1
        try:
            self._ref(state.name).set(state.to_dict())
        except Exception as e:
            raise PersistenceError(
                f"Could not save game {state.name!r}: {e}"
            ) from e
        logger.debug(f"Game {state.name!r} saved at version {state.version}.")

    def delete(self, name: str) -> None:
        try:
            self._ref(name).delete()
        except Exception as e:
            raise PersistenceError(f"Could not delete game {name!r}: {e}") from e


class FirestorePromptSource:
    """Ordered prompt texts stored under ``bracket_prompts/{name}/prompts``."""

    def __init__(self, db: Client | None = None) -> None:
        self.db = _client(db)

    def _collection(self, name: str) -> Any:
        return (
            self.db.collection(PROMPTS_COLLECTION)
            .document(name)
            .collection(PROMPTS_SUBCOLLECTION)
        )

    def fetch_texts(self, name: str) -> list[str]:
        """Return the non-blank prompt texts in their stored order.

        Raises:
            PersistenceError: If Firestore cannot be read.
        """
        try:
            docs = list(self._collection(name).stream())
        except Exception as e:
            raise PersistenceError(f"Could not load prompts for {name!r}: {e}") from e

        rows = []
        for doc in docs:
            if not doc.exists:
                continue
            data = cast(PromptRow, doc.to_dict() or {})
            text = str(data.get("text") or "").strip()
            if text:
                rows.append((data.get("position", 0), text))
        rows.sort(key=lambda row: row[0])
        return [text for _, text in rows]

    def load_prompts(self, name: str) -> list[Prompt]:
        texts = self.fetch_texts(name)
        prompts = [
            Prompt(id=f"prompt_{i}_{uuid.uuid4().hex}", text=text)
            for i, text in enumerate(texts, start=1)
        ]
        logger.info(f"Loaded {len(prompts)} prompts for {name!r}.")
        return prompts

    def replace_texts(self, name: str, texts: list[str]) -> list[str]:
        """Replace the stored prompts with ``texts`` (trimmed, blanks dropped).

        Raises:
            PersistenceError: If the write fails.
        """
        cleaned = [t.strip() for t in texts if t and t.strip()]
        collection = self._collection(name)
        try:
            batch = self.db.batch()
            for doc in collection.stream():
                batch.delete(doc.reference)
            for position, text in enumerate(cleaned, start=1):
                batch.set(collection.document(), {"text": text, "position": position})
            batch.commit()
        except Exception as e:
            raise PersistenceError(f"Could not save prompts for {name!r}: {e}") from e
        return cleaned


class FirestoreResultSink:
    """Per-vote audit rows and the final summary of each game."""

    def __init__(self, db: Client | None = None) -> None:
        self.db = _client(db)

    def _ref(self, name: str) -> Any:
        return self.db.collection(RESULTS_COLLECTION).document(name)

    def record_vote(
        self,
        name: str,
        first_name: str,
        last_name: str,
        alias: str,
        round_number: int,
        prompt_text: str,
    ) -> None:
        """Append ``prompt_text`` to the participant's entry for the round.

        Raises:
            PersistenceError: If the audit row cannot be written.
        """
        field = f"round_{round_number}"
        ref = self._ref(name).collection(BALLOTS_SUBCOLLECTION).document(alias)
        try:
            doc = cast("DocumentSnapshot", ref.get())
            existing = (doc.to_dict() or {}).get(field) if doc.exists else None
            value = f"{existing}, {prompt_text}" if existing else prompt_text
            ref.set(
                {
                    "firstName": first_name,
                    "lastName": last_name,
                    "alias": alias,
                    field: value,
                },
                merge=True,
            )
        except Exception as e:
            raise PersistenceError(f"Could not record vote for {alias}: {e}") from e

    def ballots(self, name: str) -> list[dict[str, Any]]:
        rows = []
        for doc in self._ref(name).collection(BALLOTS_SUBCOLLECTION).stream():
            if doc.exists:
                rows.append(doc.to_dict() or {})
        return rows

    def publish_results(
        self, name: str, champion: Prompt, bracket_lines: list[dict[str, Any]]
    ) -> None:
        """Store the champion and full bracket listing.

        Raises:
            PersistenceError: If the summary cannot be written.
        """
        try:
            self._ref(name).set(
                {
                    "champion": champion.text,
                    "bracket": bracket_lines,
                    "completedAt": firestore.SERVER_TIMESTAMP,
                },
                merge=True,
            )
        except Exception as e:
            raise PersistenceError(
                f"Could not publish results for {name!r}: {e}"
            ) from e
        logger.info(f'Results for {name!r} published. Champion: "{champion.text}".')

    def clear(self, name: str) -> None:
        """Remove ballots and results for one tournament.

        Raises:
            PersistenceError: If the delete fails.
        """
        ref = self._ref(name)
        try:
            for doc in ref.collection(BALLOTS_SUBCOLLECTION).stream():
                doc.reference.delete()
            ref.delete()
        except Exception as e:
            raise PersistenceError(f"Could not clear results for {name!r}: {e}") from e
