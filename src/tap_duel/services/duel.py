"""Per-device driver for one duel session."""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from uuid import UUID

from tap_duel.domain.errors import StoreError
from tap_duel.domain.sessions import Session, SessionStatus
from tap_duel.services.race_clock import ClockReading, RaceClock
from tap_duel.services.scores import ScoreReconciler
from tap_duel.services.sessions import SessionManager, Unsubscribe
from tap_duel.services.state_machine import SessionStateMachine
from tap_duel.services.users import UserService

logger = logging.getLogger(__name__)

CONNECTION_PROBLEM = "Connection problem. Try again."


def _utc_now() -> datetime:
    return datetime.now(tz=UTC)


@dataclass(frozen=True)
class DuelView:
    """Everything a screen needs to render the duel."""

    session: Session
    player_id: int
    own_score: int
    opponent_score: int
    clock: ClockReading | None
    status_text: str
    reward_coins: int = 0

    @property
    def status(self) -> SessionStatus:
        return self.session.status

    @property
    def is_host(self) -> bool:
        return self.session.is_host(self.player_id)

    @property
    def is_winner(self) -> bool | None:
        if self.session.winner_id is None:
            return None
        return self.session.winner_id == self.player_id

    @property
    def rematch_session_id(self) -> UUID | None:
        return self.session.next_session_id


@dataclass
class DuelClient:
    """Owns the local state of one session and reacts to store changes.

    Taps, clock ticks and notifications arrive as independent callbacks;
    every handler reads and writes this single state container.
    """

    manager: SessionManager
    session_id: UUID
    player_id: int
    win_score: int = 100
    clock: Callable[[], datetime] = field(default=_utc_now)
    on_update: Callable[[DuelView], None] | None = None
    user_service: UserService | None = None
    win_reward_coins: int = 10
    status_text: str = ""
    machine: SessionStateMachine | None = field(default=None, init=False)
    race_clock: RaceClock | None = field(default=None, init=False)
    scores: ScoreReconciler = field(init=False)
    _unsubscribe: Unsubscribe | None = field(default=None, init=False)
    _finish_claimed: bool = field(default=False, init=False)
    _pending_rematch_id: UUID | None = field(default=None, init=False)
    _reward_coins: int = field(default=0, init=False)
    _clock_stop: asyncio.Event = field(default_factory=asyncio.Event, init=False)

    def __post_init__(self) -> None:
        self.scores = ScoreReconciler(win_score=self.win_score)

    async def connect(self) -> bool:
        """Subscribe to changes, then load the current state once."""
        try:
            self._unsubscribe = await self.manager.subscribe(
                self.session_id, self.handle_change
            )
            session = await self.manager.get_session(self.session_id)
        except StoreError:
            logger.exception("Failed to observe session %s", self.session_id)
            self._set_status(CONNECTION_PROBLEM)
            return False
        if session is None:
            self._set_status("Game not found")
            return False
        self.handle_change(session)
        return True

    async def close(self) -> None:
        self._clock_stop.set()
        if self._unsubscribe is not None:
            unsubscribe, self._unsubscribe = self._unsubscribe, None
            await unsubscribe()

    def handle_change(self, snapshot: Session) -> None:
        """Apply a store snapshot; stale or repeated snapshots are harmless."""
        if snapshot.id != self.session_id:
            return
        if self.machine is None:
            self.machine = SessionStateMachine(snapshot)
            entered: SessionStatus | None = snapshot.status
        else:
            had_rematch = self.machine.session.next_session_id is not None
            entered = self.machine.observe(snapshot)
            if not had_rematch and self.machine.session.next_session_id is not None:
                if not self.machine.session.is_host(self.player_id):
                    self.status_text = "Host created a rematch!"
        session = self.machine.session
        opponent_id = session.opponent_of(self.player_id)
        self.scores.observe(
            session.score_of(self.player_id),
            session.score_of(opponent_id) if opponent_id is not None else 0,
        )
        if self.race_clock is None and session.start_time is not None:
            self.race_clock = RaceClock(session.start_time, clock=self.clock)
        if entered is SessionStatus.RACING:
            self.status_text = "Race starting!"
        elif entered is SessionStatus.FINISHED:
            if self.race_clock is not None:
                self.race_clock.freeze(self.clock())
            self.status_text = (
                "VICTORY" if session.winner_id == self.player_id else "DEFEAT"
            )
        self._emit()

    def view(self) -> DuelView | None:
        if self.machine is None:
            return None
        return DuelView(
            session=self.machine.session,
            player_id=self.player_id,
            own_score=self.scores.own_score,
            opponent_score=self.scores.opponent,
            clock=self.race_clock.read() if self.race_clock else None,
            status_text=self.status_text,
            reward_coins=self._reward_coins,
        )

    def can_tap(self) -> bool:
        if self.machine is None or self.machine.status is not SessionStatus.RACING:
            return False
        return self.race_clock is None or not self.race_clock.read().is_counting_down

    async def start_race(self) -> bool:
        """Start the race; only the host may do so once a guest has joined."""
        if self.machine is None or not self.machine.can_start(self.player_id):
            return False
        try:
            return await self.manager.start_session(self.session_id)
        except StoreError:
            logger.exception("Failed to start session %s", self.session_id)
            self._set_status(CONNECTION_PROBLEM)
            return False

    async def run_clock(self, on_tick: Callable[[ClockReading], None]) -> None:
        """Feed clock readings to the screen until the race ends or closes."""
        if self.race_clock is None:
            return
        async for reading in self.race_clock.ticks(self._clock_stop):
            on_tick(reading)

    async def tap(self) -> int | None:
        """Register one local tap and return the new own score.

        Once the win score is reached, further taps re-attempt a finish
        claim that failed on a store fault.
        """
        if not self.can_tap():
            return None
        score = self.scores.tap()
        if score is None:
            await self.retry_finish()
            return None
        self._emit()
        calls: list[Awaitable[object]] = [
            self.manager.increment_score(self.session_id, self.player_id)
        ]
        if self.scores.reached_win_score and not self._finish_claimed:
            calls.append(self._claim_finish())
        results = await asyncio.gather(*calls, return_exceptions=True)
        for result in results:
            if isinstance(result, StoreError):
                logger.error(
                    "Failed to sync tap for session %s",
                    self.session_id,
                    exc_info=result,
                )
                self._set_status(CONNECTION_PROBLEM)
            elif isinstance(result, BaseException):
                raise result
        return score

    async def retry_finish(self) -> bool:
        """Claim the win again if an earlier claim never reached the store."""
        if (
            self._finish_claimed
            or not self.scores.reached_win_score
            or not self.can_tap()
        ):
            return False
        try:
            return await self._claim_finish()
        except StoreError:
            logger.exception("Failed to finish session %s", self.session_id)
            self._set_status(CONNECTION_PROBLEM)
            return False

    async def _claim_finish(self) -> bool:
        won = await self.manager.finish_session(self.session_id, self.player_id)
        self._finish_claimed = True
        if won and self.user_service is not None and self.win_reward_coins > 0:
            balance = await self.user_service.update_balance(
                self.player_id, self.win_reward_coins
            )
            if balance is not None:
                self._reward_coins = self.win_reward_coins
                self._emit()
        return won

    async def request_rematch(self) -> UUID | None:
        """Host creates the rematch; guest follows the link if it exists."""
        if self.machine is None or self.machine.status is not SessionStatus.FINISHED:
            return None
        session = self.machine.session
        if not session.is_host(self.player_id):
            if session.next_session_id is None:
                self._set_status("Waiting for host...")
                return None
            try:
                joined = await self.manager.join_session(
                    session.next_session_id, self.player_id
                )
            except StoreError:
                logger.exception("Failed to join rematch of %s", self.session_id)
                self._set_status(CONNECTION_PROBLEM)
                return None
            if not joined:
                self._set_status("Could not join rematch")
                return None
            return session.next_session_id
        if self._pending_rematch_id is not None and session.next_session_id is None:
            try:
                await self.manager.ensure_rematch_link(
                    self.session_id, self._pending_rematch_id
                )
            except StoreError:
                logger.warning("Rematch link still missing", exc_info=True)
            return self._pending_rematch_id
        self._set_status("Creating Rematch...")
        new_session_id = await self.manager.create_rematch(
            self.session_id, self.player_id
        )
        if new_session_id is None:
            self._set_status("Error creating rematch")
            return None
        self._pending_rematch_id = new_session_id
        return new_session_id

    def _set_status(self, text: str) -> None:
        self.status_text = text
        self._emit()

    def _emit(self) -> None:
        if self.on_update is None:
            return
        current = self.view()
        if current is not None:
            self.on_update(current)
