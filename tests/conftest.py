"""Shared test fixtures."""

import asyncio
from dataclasses import dataclass, field
from datetime import UTC, datetime
from uuid import UUID, uuid4

import pytest

from tap_duel.config import Settings
from tap_duel.domain.errors import StoreError
from tap_duel.domain.models import UserProfile
from tap_duel.domain.sessions import Session, session_from_row
from tap_duel.services.invites import InviteCodec
from tap_duel.services.lobby import LobbyService
from tap_duel.services.sessions import (
    SessionListener,
    SessionManager,
    SessionStore,
    Unsubscribe,
)
from tap_duel.services.users import ProfileRepository, UserService

HOST_ID = 1001
GUEST_ID = 2002


@dataclass
class InMemorySessionStore(SessionStore):
    """In-memory session store that notifies subscribers on every update.

    Reads and writes yield to the event loop first, so concurrent callers
    interleave the way remote requests do; each write itself is atomic.
    """

    rows: dict[UUID, dict[str, object]] = field(default_factory=dict)
    listeners: dict[UUID, list[SessionListener]] = field(default_factory=dict)
    failing: set[str] = field(default_factory=set)
    increments: int = 0

    async def insert_session(self, row: dict[str, object]) -> Session:
        await self._roundtrip("insert")
        session_id = uuid4()
        self.rows[session_id] = {
            "id": str(session_id),
            "guest_id": None,
            "start_time": None,
            "winner_id": None,
            "next_game_id": None,
            "created_at": datetime.now(tz=UTC).isoformat(),
            **row,
        }
        return session_from_row(dict(self.rows[session_id]))

    async def fetch_session(self, session_id: UUID) -> Session | None:
        await self._roundtrip("fetch")
        row = self.rows.get(session_id)
        return session_from_row(dict(row)) if row else None

    async def update_session(
        self,
        session_id: UUID,
        changes: dict[str, object],
        expected: dict[str, object] | None = None,
    ) -> Session | None:
        await self._roundtrip("update")
        row = self.rows.get(session_id)
        if row is None:
            return None
        for column, value in (expected or {}).items():
            if row.get(column) != value:
                return None
        row.update(changes)
        self._notify(session_id)
        return session_from_row(dict(row))

    async def increment_score(
        self, session_id: UUID, player_id: int, amount: int
    ) -> None:
        await self._roundtrip("increment")
        row = self.rows.get(session_id)
        if row is None:
            return
        if row["host_id"] == player_id:
            row["host_score"] = int(row["host_score"]) + amount
        elif row.get("guest_id") == player_id:
            row["guest_score"] = int(row["guest_score"]) + amount
        else:
            return
        self.increments += 1
        self._notify(session_id)

    async def subscribe(
        self, session_id: UUID, on_change: SessionListener
    ) -> Unsubscribe:
        self.listeners.setdefault(session_id, []).append(on_change)

        async def unsubscribe() -> None:
            self.listeners[session_id].remove(on_change)

        return unsubscribe

    def snapshot(self, session_id: UUID) -> Session:
        return session_from_row(dict(self.rows[session_id]))

    async def _roundtrip(self, operation: str) -> None:
        await asyncio.sleep(0)
        if operation in self.failing:
            raise StoreError(f"{operation} failed")

    def _notify(self, session_id: UUID) -> None:
        for listener in list(self.listeners.get(session_id, [])):
            listener(self.snapshot(session_id))


@dataclass
class InMemoryProfileRepository(ProfileRepository):
    """In-memory profile repository for tests."""

    profiles: dict[int, UserProfile] = field(default_factory=dict)
    failing: bool = False

    async def get_profile(self, user_id: int) -> UserProfile | None:
        if self.failing:
            raise StoreError("profiles unavailable")
        return self.profiles.get(user_id)

    async def create_profile(self, profile: UserProfile) -> UserProfile:
        self.profiles[profile.id] = profile
        return profile

    async def set_coins(self, user_id: int, coins: int) -> UserProfile | None:
        profile = self.profiles.get(user_id)
        if profile is None:
            return None
        updated = UserProfile(
            id=profile.id,
            username=profile.username,
            full_name=profile.full_name,
            coins=coins,
            is_premium=profile.is_premium,
        )
        self.profiles[user_id] = updated
        return updated


class FrozenClock:
    """Controllable UTC clock."""

    def __init__(self, now: datetime | None = None) -> None:
        self.now = now or datetime(2026, 1, 1, 12, 0, tzinfo=UTC)

    def __call__(self) -> datetime:
        return self.now


@pytest.fixture
def settings() -> Settings:
    return Settings(
        supabase_url="https://example.supabase.co",
        supabase_key=(
            "eyJhbGciOiJIUzI1NiIsInR5cCI6IkpXVCJ9."
            "eyJyb2xlIjoiYW5vbiJ9."
            "c2lnbmF0dXJlLXNpZ25hdHVyZQ"
        ),
    )


@pytest.fixture
def store() -> InMemorySessionStore:
    return InMemorySessionStore()


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock()


@pytest.fixture
def manager(store: InMemorySessionStore, clock: FrozenClock) -> SessionManager:
    return SessionManager(store=store, start_grace_seconds=3.0, clock=clock)


@pytest.fixture
def profile_repository() -> InMemoryProfileRepository:
    return InMemoryProfileRepository()


@pytest.fixture
def lobby_service(
    manager: SessionManager, profile_repository: InMemoryProfileRepository
) -> LobbyService:
    return LobbyService(
        session_manager=manager,
        user_service=UserService(profile_repository),
        codec=InviteCodec(bot_username="pukaboy_bot", app_name="game"),
    )
