"""Session lifecycle commands issued against the shared session store."""

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from typing import Protocol
from uuid import UUID

from tap_duel.domain.errors import StoreError
from tap_duel.domain.sessions import Session, SessionStatus

logger = logging.getLogger(__name__)

SessionListener = Callable[[Session], None]
Unsubscribe = Callable[[], Awaitable[None]]


class SessionStore(Protocol):
    """Persistence and change-feed interface for duel sessions."""

    async def insert_session(self, row: dict[str, object]) -> Session:
        """Insert a session row and return the stored session."""

    async def fetch_session(self, session_id: UUID) -> Session | None:
        """Return the current session, if present."""

    async def update_session(
        self,
        session_id: UUID,
        changes: dict[str, object],
        expected: dict[str, object] | None = None,
    ) -> Session | None:
        """Apply changes if every expected column matches.

        An expected value of None means the column must currently be null.
        Returns the updated session, or None when no row matched.
        """

    async def increment_score(
        self, session_id: UUID, player_id: int, amount: int
    ) -> None:
        """Atomically add to the score column owned by the player."""

    async def subscribe(
        self, session_id: UUID, on_change: SessionListener
    ) -> Unsubscribe:
        """Deliver every later change of the session to the listener."""


def _utc_now() -> datetime:
    return datetime.now(tz=UTC)


@dataclass
class SessionManager:
    """Issues lifecycle commands for duel sessions."""

    store: SessionStore
    start_grace_seconds: float = 3.0
    clock: Callable[[], datetime] = field(default=_utc_now)

    async def create_session(self, host_id: int) -> UUID | None:
        """Create an empty lobby and return its id, or None on store fault."""
        try:
            session = await self.store.insert_session(
                {
                    "host_id": host_id,
                    "status": SessionStatus.LOBBY.value,
                    "host_score": 0,
                    "guest_score": 0,
                }
            )
        except StoreError:
            logger.exception("Failed to create session for host %s", host_id)
            return None
        logger.info("Created session %s for host %s", session.id, host_id)
        return session.id

    async def get_session(self, session_id: UUID) -> Session | None:
        return await self.store.fetch_session(session_id)

    async def join_session(self, session_id: UUID, guest_id: int) -> bool:
        """Claim the guest slot; False when unknown, full or the host itself."""
        session = await self.store.fetch_session(session_id)
        if session is None or session.host_id == guest_id:
            logger.info("Join rejected for %s on session %s", guest_id, session_id)
            return False
        if session.guest_id == guest_id:
            return True
        updated = await self.store.update_session(
            session_id,
            {"guest_id": guest_id},
            expected={"guest_id": None},
        )
        if updated is None:
            logger.info("Guest slot of session %s already claimed", session_id)
            return False
        return True

    async def start_session(self, session_id: UUID) -> bool:
        """Move a lobby with a guest to RACING with a shared start time."""
        session = await self.store.fetch_session(session_id)
        if (
            session is None
            or session.guest_id is None
            or session.status is not SessionStatus.LOBBY
        ):
            logger.info("Start rejected for session %s", session_id)
            return False
        start_time = self.clock() + timedelta(seconds=self.start_grace_seconds)
        updated = await self.store.update_session(
            session_id,
            {
                "status": SessionStatus.RACING.value,
                "start_time": start_time.isoformat(),
            },
            expected={"status": SessionStatus.LOBBY.value},
        )
        return updated is not None

    async def increment_score(
        self, session_id: UUID, player_id: int, amount: int = 1
    ) -> None:
        """Add to the player's own score with a single atomic store call."""
        if amount < 1:
            raise ValueError("Score increments must be positive")
        await self.store.increment_score(session_id, player_id, amount)

    async def finish_session(self, session_id: UUID, winner_id: int) -> bool:
        """Claim the win; a late second claim is a no-op returning False."""
        updated = await self.store.update_session(
            session_id,
            {"status": SessionStatus.FINISHED.value, "winner_id": winner_id},
            expected={"status": SessionStatus.RACING.value},
        )
        if updated is None:
            logger.info("Finish by %s ignored for session %s", winner_id, session_id)
            return False
        logger.info("Session %s won by %s", session_id, winner_id)
        return True

    async def create_rematch(self, old_session_id: UUID, host_id: int) -> UUID | None:
        """Create a follow-up lobby and link the finished session to it.

        The two writes are not transactional. If the link write fails the
        new session is still returned and usable; only the guest's
        automatic navigation is lost.
        """
        try:
            old_session = await self.store.fetch_session(old_session_id)
        except StoreError:
            logger.exception("Failed to load session %s for rematch", old_session_id)
            return None
        if (
            old_session is None
            or old_session.host_id != host_id
            or old_session.status is not SessionStatus.FINISHED
        ):
            return None
        if old_session.next_session_id is not None:
            return old_session.next_session_id

        new_session_id = await self.create_session(host_id)
        if new_session_id is None:
            return None
        try:
            if await self.ensure_rematch_link(old_session_id, new_session_id):
                return new_session_id
            current = await self.store.fetch_session(old_session_id)
        except StoreError:
            logger.warning(
                "Rematch %s created but not linked from %s",
                new_session_id,
                old_session_id,
                exc_info=True,
            )
            return new_session_id
        if current is not None and current.next_session_id is not None:
            return current.next_session_id
        return new_session_id

    async def ensure_rematch_link(
        self, old_session_id: UUID, new_session_id: UUID
    ) -> bool:
        """Write the rematch link if it is still missing."""
        updated = await self.store.update_session(
            old_session_id,
            {"next_game_id": str(new_session_id)},
            expected={"next_game_id": None, "status": SessionStatus.FINISHED.value},
        )
        return updated is not None

    async def subscribe(
        self, session_id: UUID, on_change: SessionListener
    ) -> Unsubscribe:
        return await self.store.subscribe(session_id, on_change)
