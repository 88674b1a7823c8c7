"""Participant registration and alias generation."""

from __future__ import annotations

import logging
import random
from typing import Optional

from bracketbattle.core.constants import (
    ALIAS_FALLBACK_SUFFIX_MAX,
    ALIAS_MAX_ATTEMPTS,
    STATUS_WAITING,
)
from bracketbattle.errors import (
    DuplicateResourceError,
    IdentityMismatchError,
    NotInWaitingStateError,
    UnknownParticipantError,
    ValidationError,
)

from .models import Participant

logger = logging.getLogger(__name__)

ADJECTIVES = (
    "Brave", "Clever", "Swift", "Quiet", "Mighty",
    "Gentle", "Jolly", "Lucky", "Bold", "Calm",
    "Eager", "Fuzzy", "Happy", "Witty", "Zany",
    "Sunny", "Sneaky", "Proud", "Merry", "Noble",
)

COLORS = (
    "Red", "Blue", "Green", "Yellow", "Purple",
    "Orange", "Pink", "Silver", "Golden", "Teal",
    "Crimson", "Indigo", "Violet", "Amber", "Coral",
    "Ivory", "Jade", "Scarlet", "Cobalt", "Bronze",
)

ANIMALS = (
    "Tiger", "Panda", "Falcon", "Otter", "Koala",
    "Dolphin", "Fox", "Owl", "Wolf", "Rabbit",
    "Penguin", "Lion", "Eagle", "Turtle", "Zebra",
    "Badger", "Moose", "Gecko", "Lynx", "Heron",
)


def _normalize(name: str) -> str:
    return " ".join(name.split()).casefold()


class RegistrationLedger:
    """Tracks the participants of one tournament.

    Works directly on the ``participants`` list of a ``TournamentState`` so
    changes land in the next saved snapshot.
    """

    def __init__(self, participants: list[Participant], rng: random.Random) -> None:
        self.participants = participants
        self.rng = rng

    def find_by_key(self, identity_key: Optional[str]) -> Optional[Participant]:
        if not identity_key:
            return None
        for participant in self.participants:
            if participant.identity_key == identity_key:
                return participant
        return None

    def find_by_alias(self, alias: Optional[str]) -> Optional[Participant]:
        if not alias:
            return None
        wanted = _normalize(alias)
        for participant in self.participants:
            if _normalize(participant.alias) == wanted:
                return participant
        return None

    def generate_alias(self) -> str:
        """Draw an unused "Adjective Color Animal" alias."""
        taken = {p.alias for p in self.participants}
        alias = ""
        for _ in range(ALIAS_MAX_ATTEMPTS):
            alias = " ".join(
                (
                    self.rng.choice(ADJECTIVES),
                    self.rng.choice(COLORS),
                    self.rng.choice(ANIMALS),
                )
            )
            if alias not in taken:
                return alias

        suffix = self.rng.randint(0, ALIAS_FALLBACK_SUFFIX_MAX)
        while f"{alias} {suffix}" in taken:
            suffix += 1
        fallback = f"{alias} {suffix}"
        logger.warning(f"Alias space crowded, falling back to {fallback!r}.")
        return fallback

    def register(
        self, status: str, first_name: str, last_name: str, identity_key: str
    ) -> Participant:
        """Add a participant while the waiting room is open.

        Raises:
            NotInWaitingStateError: If the game is not in the waiting room.
            DuplicateResourceError: If ``identity_key`` is already registered.
            ValidationError: If a name is blank.
        """
        if status != STATUS_WAITING:
            raise NotInWaitingStateError(
                "Registration is only open while the game is in the waiting room."
            )
        first_name = (first_name or "").strip()
        last_name = (last_name or "").strip()
        if not first_name or not last_name:
            raise ValidationError("First and last name are required.")
        if not identity_key:
            raise ValidationError("Missing session identity.")

        existing = self.find_by_key(identity_key)
        if existing:
            raise DuplicateResourceError(
                f"You are already registered as {existing.alias}."
            )

        participant = Participant(
            first_name=first_name,
            last_name=last_name,
            alias=self.generate_alias(),
            identity_key=identity_key,
        )
        self.participants.append(participant)
        logger.info(f"Registered {participant.alias}.")
        return participant

    def confirm_identity(
        self, first_name: str, last_name: str, alias: str, identity_key: str
    ) -> Participant:
        """Bind ``identity_key`` to the participant holding ``alias``.

        Raises:
            UnknownParticipantError: If no participant has ``alias``.
            IdentityMismatchError: If the names differ, or the key already
                belongs to someone else.
        """
        if not identity_key:
            raise ValidationError("Missing session identity.")

        participant = self.find_by_alias((alias or "").strip())
        if participant is None:
            raise UnknownParticipantError()

        if _normalize(participant.first_name) != _normalize(
            first_name or ""
        ) or _normalize(participant.last_name) != _normalize(last_name or ""):
            raise IdentityMismatchError()

        holder = self.find_by_key(identity_key)
        if holder is not None and holder is not participant:
            raise IdentityMismatchError(
                f"This session is already registered as {holder.alias}."
            )

        participant.identity_key = identity_key
        logger.info(f"Identity confirmed for {participant.alias}.")
        return participant
