"""Service layer for bracket game orchestration."""

from __future__ import annotations

import datetime
import logging
import random
import threading
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from typing import Any, Optional, Protocol

from bracketbattle.core.constants import (
    DEFAULT_VOTING_DURATION_SECONDS,
    STATUS_GAME_OVER,
    STATUS_ROUND_OVER,
    STATUS_SETUP,
    STATUS_VOTING,
    STATUS_WAITING,
)
from bracketbattle.errors import (
    AppError,
    GameOverError,
    IdentityMismatchError,
    InconsistentBracketError,
    NotInWaitingStateError,
    PersistenceError,
    UnknownParticipantError,
    ValidationError,
    VotingClosedError,
)

from .bracket import GameOver, build_first_round, build_next_round
from .engine import MatchupEngine
from .models import (
    OperationResult,
    Participant,
    Prompt,
    TournamentState,
    is_round_complete,
)
from .registration import RegistrationLedger
from .utils import bracket_summary, client_state

logger = logging.getLogger(__name__)


class StateStore(Protocol):
    def load(self, name: str) -> Optional[TournamentState]: ...

    def save(self, state: TournamentState) -> None: ...


class PromptSource(Protocol):
    def load_prompts(self, name: str) -> list[Prompt]: ...

    def replace_texts(self, name: str, texts: list[str]) -> list[str]: ...


class ResultSink(Protocol):
    def record_vote(
        self,
        name: str,
        first_name: str,
        last_name: str,
        alias: str,
        round_number: int,
        prompt_text: str,
    ) -> None: ...

    def publish_results(
        self, name: str, champion: Prompt, bracket_lines: list[dict[str, Any]]
    ) -> None: ...

    def clear(self, name: str) -> None: ...


class _LockEntry:
    def __init__(self) -> None:
        self.lock = threading.Lock()
        self.holders = 0


_locks: dict[str, _LockEntry] = {}
_locks_guard = threading.Lock()


@contextmanager
def tournament_lock(name: str) -> Iterator[None]:
    """Serialize read-mutate-persist sequences for one tournament.

    Entries are dropped once no caller holds or waits on them, so the
    registry only ever contains names with a request in flight.
    """
    with _locks_guard:
        entry = _locks.get(name)
        if entry is None:
            entry = _locks[name] = _LockEntry()
        entry.holders += 1
    try:
        with entry.lock:
            yield
    finally:
        with _locks_guard:
            entry.holders -= 1
            if entry.holders == 0:
                del _locks[name]


def utcnow() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc)


class _Operation:
    """Per-call bookkeeping collected while an operation runs."""

    def __init__(self) -> None:
        self.warnings: list[str] = []
        self.diagnostic: Optional[str] = None
        self.auto_advanced = False


class TournamentController:
    """Drives named tournaments through their state machine.

    Every public method loads the snapshot, mutates it, persists it and
    returns an ``OperationResult``. Domain errors never escape; a failed
    write after a successful mutation is reported as a degraded success.
    """

    def __init__(
        self,
        store: StateStore,
        prompt_source: PromptSource,
        sink: ResultSink,
        rng: Optional[random.Random] = None,
        clock: Callable[[], datetime.datetime] = utcnow,
        voting_duration: int = DEFAULT_VOTING_DURATION_SECONDS,
    ) -> None:
        self.store = store
        self.prompt_source = prompt_source
        self.sink = sink
        self.rng = rng or random.Random()
        self.clock = clock
        self.engine = MatchupEngine(self.rng, voting_duration)

    # Helpers

    def _load(self, name: str) -> TournamentState:
        state = self.store.load(name)
        if state is None:
            logger.info(f"No saved state for {name!r}. Initializing.")
            state = TournamentState(name=name)
        return state

    def _persist(self, state: TournamentState, op: _Operation) -> None:
        try:
            self.store.save(state)
        except PersistenceError as e:
            logger.error(f"{e.message} Change kept in memory only.")
            op.warnings.append("Recorded but not saved.")

    def _reload_prompts(self, state: TournamentState) -> None:
        try:
            state.prompts = self.prompt_source.load_prompts(state.name)
        except PersistenceError as e:
            logger.error(f"Error loading prompts: {e.message}")

    @staticmethod
    def _fail(error: AppError) -> OperationResult:
        return OperationResult(
            success=False,
            message=error.message,
            error=error.code,
            status_code=error.status_code,
        )

    @staticmethod
    def _done(
        message: str, op: _Operation, data: Optional[dict[str, Any]] = None
    ) -> OperationResult:
        if op.warnings:
            message = f"{message} Warning: {' '.join(op.warnings)}"
        if op.diagnostic and data is not None:
            data["diagnostic"] = op.diagnostic
        return OperationResult(
            success=True, message=message, data=data, degraded=bool(op.warnings)
        )

    def _state_data(
        self, state: TournamentState, identity_key: Optional[str] = None
    ) -> dict[str, Any]:
        participant = RegistrationLedger(state.participants, self.rng).find_by_key(
            identity_key
        )
        return client_state(state, self.clock(), participant)

    def _voter(
        self,
        state: TournamentState,
        alias: Optional[str],
        identity_key: Optional[str],
    ) -> Participant:
        ledger = RegistrationLedger(state.participants, self.rng)
        if alias:
            participant = ledger.find_by_alias(alias)
            if participant is None:
                raise UnknownParticipantError()
            if identity_key and participant.identity_key != identity_key:
                raise IdentityMismatchError("That alias belongs to another session.")
            return participant

        participant = ledger.find_by_key(identity_key)
        if participant is None:
            raise UnknownParticipantError("Please register before voting.")
        return participant

    # State machine

    def _resolve_active(self, state: TournamentState) -> Prompt:
        """Close the active matchup and move to ``round_over``."""
        active = state.active_matchup
        if active is None:
            raise InconsistentBracketError("No active matchup to resolve.")
        stored = state.matchup_at(active.round, active.matchup_index)
        winner = self.engine.resolve(active, stored)
        state.active_matchup = None
        state.status = STATUS_ROUND_OVER
        return winner

    def _arm_next_in_round(self, state: TournamentState) -> bool:
        if state.current_round >= len(state.bracket):
            return False
        round_ = state.bracket[state.current_round]
        for index in range(state.current_matchup_index, len(round_)):
            if not round_[index].is_resolved:
                state.current_matchup_index = index
                state.active_matchup = self.engine.arm(
                    round_[index], state.current_round, index, self.clock()
                )
                state.status = STATUS_VOTING
                return True
        logger.info(
            f"No more pending matchups in Round {state.current_round + 1} "
            f"from index {state.current_matchup_index}."
        )
        return False

    def _finish(self, state: TournamentState, champion: Prompt, op: _Operation) -> None:
        state.status = STATUS_GAME_OVER
        state.active_matchup = None
        logger.info(f'Game Over! Champion of {state.name!r}: "{champion.text}".')
        try:
            self.sink.publish_results(state.name, champion, bracket_summary(state))
        except PersistenceError as e:
            logger.error(e.message)
            op.warnings.append("Final results could not be exported.")

    def _prepare_next(self, state: TournamentState, op: _Operation) -> None:
        """Arm the next matchup, build the next round, or end the game.

        Raises:
            InconsistentBracketError: If none of those applies.
        """
        state.active_matchup = None
        if self._arm_next_in_round(state):
            return

        current = (
            state.bracket[state.current_round]
            if state.current_round < len(state.bracket)
            else []
        )
        if not current or not is_round_complete(current):
            raise InconsistentBracketError()

        if len(current) == 1 and current[0].winner:
            self._finish(state, current[0].winner, op)
            return

        next_round = build_next_round(current, state.current_round + 2)
        if isinstance(next_round, GameOver):
            self._finish(state, next_round.winner, op)
            return

        state.bracket.append(next_round)
        state.current_round += 1
        state.current_matchup_index = 0
        if not self._arm_next_in_round(state):
            raise InconsistentBracketError(
                "Could not prepare next matchup after advancing round. "
                "Game might be stuck."
            )

    def _advance(self, state: TournamentState, op: _Operation) -> None:
        """Resolve the open matchup, if any, then move on.

        On an inconsistent bracket the game is parked in ``round_over`` so
        the moderator can retry.
        """
        try:
            if state.status == STATUS_VOTING and state.active_matchup:
                self._resolve_active(state)
            self._prepare_next(state, op)
        except InconsistentBracketError as e:
            logger.error(f"Game {state.name!r} stuck: {e.message}")
            state.active_matchup = None
            state.status = STATUS_ROUND_OVER
            raise

    def _auto_advance(self, state: TournamentState, op: _Operation) -> None:
        """Run the expiry chain if the voting window has already closed."""
        active = state.active_matchup
        if state.status != STATUS_VOTING or active is None:
            return
        if not self.engine.is_expired(active, self.clock()):
            return

        logger.info(
            f'Automatic advancement: voting time expired for "{active.prompt_a.text}" '
            f'vs "{active.prompt_b.text}".'
        )
        op.auto_advanced = True
        try:
            self._advance(state, op)
        except InconsistentBracketError as e:
            op.diagnostic = e.message
        self._persist(state, op)

    # Moderator actions

    def select_tournament(self, name: str) -> OperationResult:
        """Load or create ``name`` and refresh its prompts from the source."""
        if not name or not name.strip():
            return self._fail(ValidationError("Tournament name is required."))
        op = _Operation()
        try:
            with tournament_lock(name):
                state = self._load(name)
                self._auto_advance(state, op)
                self._reload_prompts(state)
                self._persist(state, op)
        except AppError as e:
            return self._fail(e)
        return self._done(
            f"Tournament {name!r} selected with {len(state.prompts)} prompts.",
            op,
            self._state_data(state),
        )

    def set_prompts(self, name: str, texts: list[str]) -> OperationResult:
        """Replace the prompt list seeded for ``name``."""
        op = _Operation()
        try:
            with tournament_lock(name):
                saved = self.prompt_source.replace_texts(name, texts)
                state = self._load(name)
                if state.status == STATUS_SETUP:
                    self._reload_prompts(state)
                    self._persist(state, op)
        except AppError as e:
            return self._fail(e)
        return self._done(f"Saved {len(saved)} prompts.", op, {"prompts": saved})

    def start_game(self, name: str) -> OperationResult:
        """Build round one and open the waiting room."""
        op = _Operation()
        try:
            with tournament_lock(name):
                state = self._load(name)
                if not state.prompts:
                    logger.info("start_game: prompts are empty, loading from source.")
                    self._reload_prompts(state)
                if state.status not in (STATUS_SETUP, STATUS_WAITING):
                    logger.warning(
                        f"Restarting {name!r} from status {state.status}; "
                        "the existing bracket is discarded."
                    )

                first_round = build_first_round(state.prompts, self.rng)
                state.status = STATUS_WAITING
                state.current_round = 0
                state.current_matchup_index = 0
                state.bracket = [first_round]
                state.active_matchup = None
                self._persist(state, op)
        except AppError as e:
            return self._fail(e)
        return self._done(
            'Game set to "Waiting Room". Participants can now register.',
            op,
            self._state_data(state),
        )

    def launch_next(self, name: str) -> OperationResult:
        """Close the open matchup (if any) and launch whatever comes next."""
        op = _Operation()
        try:
            with tournament_lock(name):
                state = self._load(name)
                if state.status == STATUS_SETUP:
                    raise NotInWaitingStateError(
                        'Please "Start Game" first to initialize prompts and '
                        "waiting room."
                    )
                if state.status == STATUS_GAME_OVER:
                    raise GameOverError()
                if state.status == STATUS_VOTING:
                    logger.info("Moderator manually advancing from voting state.")
                try:
                    self._advance(state, op)
                finally:
                    self._persist(state, op)
        except AppError as e:
            return self._fail(e)

        if state.status == STATUS_GAME_OVER:
            champion = state.champion
            message = "Game Over! Final winner determined."
            if champion:
                message = f'Game Over! The winner is "{champion.text}".'
        else:
            message = (
                f"Round {state.current_round + 1}, "
                f"Matchup {state.current_matchup_index + 1} launched!"
            )
        return self._done(message, op, self._state_data(state))

    def reset_game(self, name: str) -> OperationResult:
        """Wipe state, participants, ballots and results for ``name``."""
        op = _Operation()
        try:
            with tournament_lock(name):
                try:
                    self.sink.clear(name)
                except PersistenceError as e:
                    logger.error(e.message)
                    op.warnings.append("Old results could not be cleared.")
                state = TournamentState(name=name)
                self._reload_prompts(state)
                self._persist(state, op)
        except AppError as e:
            return self._fail(e)
        return self._done(
            "Game has been reset. Prompts reloaded.", op, self._state_data(state)
        )

    def get_results(self, name: str) -> OperationResult:
        op = _Operation()
        try:
            with tournament_lock(name):
                state = self._load(name)
                self._auto_advance(state, op)
        except AppError as e:
            return self._fail(e)
        champion = state.champion
        return self._done(
            "Game over." if champion else "Game still in progress.",
            op,
            {
                "status": state.status,
                "champion": champion.to_dict() if champion else None,
                "bracket": bracket_summary(state),
            },
        )

    # Participant actions

    def register(
        self, name: str, first_name: str, last_name: str, identity_key: str
    ) -> OperationResult:
        op = _Operation()
        try:
            with tournament_lock(name):
                state = self._load(name)
                ledger = RegistrationLedger(state.participants, self.rng)
                participant = ledger.register(
                    state.status, first_name, last_name, identity_key
                )
                self._persist(state, op)
        except AppError as e:
            return self._fail(e)
        return self._done(
            f"Welcome, {participant.alias}!",
            op,
            {"participant": participant.to_public_dict()},
        )

    def confirm_identity(
        self,
        name: str,
        first_name: str,
        last_name: str,
        alias: str,
        identity_key: str,
    ) -> OperationResult:
        op = _Operation()
        try:
            with tournament_lock(name):
                state = self._load(name)
                ledger = RegistrationLedger(state.participants, self.rng)
                participant = ledger.confirm_identity(
                    first_name, last_name, alias, identity_key
                )
                self._persist(state, op)
        except AppError as e:
            return self._fail(e)
        return self._done(
            f"Welcome back, {participant.alias}!",
            op,
            {"participant": participant.to_public_dict()},
        )

    def get_state(
        self, name: str, identity_key: Optional[str] = None
    ) -> OperationResult:
        """Current snapshot for one caller, after any pending auto-advance."""
        op = _Operation()
        try:
            with tournament_lock(name):
                state = self._load(name)
                self._auto_advance(state, op)
        except AppError as e:
            return self._fail(e)
        return self._done("OK", op, self._state_data(state, identity_key))

    def vote(
        self,
        name: str,
        code: str,
        alias: Optional[str] = None,
        identity_key: Optional[str] = None,
    ) -> OperationResult:
        """Cast a ballot for ``code`` on the active matchup.

        The voter is named by ``alias``, by ``identity_key``, or both; when
        both are given they must belong to the same participant.
        """
        op = _Operation()
        try:
            with tournament_lock(name):
                state = self._load(name)
                self._auto_advance(state, op)

                participant = self._voter(state, alias, identity_key)

                active = state.active_matchup
                if state.status != STATUS_VOTING or active is None:
                    if op.auto_advanced:
                        raise VotingClosedError()
                    raise NotInWaitingStateError(
                        "Voting is not currently active or no matchup is live."
                    )
                # The ballot was cast for the matchup that just expired.
                if op.auto_advanced and code not in (active.code_a, active.code_b):
                    raise VotingClosedError()

                stored = state.matchup_at(active.round, active.matchup_index)
                result = self.engine.cast_vote(
                    active, stored, participant.alias, code, self.clock()
                )
                self._persist(state, op)
                try:
                    self.sink.record_vote(
                        name,
                        participant.first_name,
                        participant.last_name,
                        participant.alias,
                        active.round + 1,
                        result.choice.text,
                    )
                except PersistenceError as e:
                    logger.error(e.message)
                    op.warnings.append("The vote log could not be updated.")
        except AppError as e:
            return self._fail(e)

        data = client_state(state, self.clock(), participant)
        data["vote"] = result.to_dict()
        return self._done("Vote registered!", op, data)
