"""Supabase-backed session store with realtime change notifications."""

import logging
from dataclasses import dataclass, field
from uuid import UUID, uuid4

import httpx
from postgrest import APIError
from supabase import AsyncClient

from tap_duel.domain.errors import StoreError
from tap_duel.domain.sessions import Session, session_from_row
from tap_duel.services.sessions import SessionListener, SessionStore, Unsubscribe

logger = logging.getLogger(__name__)

_TABLE = "game_sessions"


@dataclass
class SupabaseSessionStore(SessionStore):
    """Supabase implementation of the shared session record."""

    client: AsyncClient
    channels: dict[str, object] = field(default_factory=dict)

    async def insert_session(self, row: dict[str, object]) -> Session:
        """Insert a session row and return it."""
        try:
            response = await self.client.table(_TABLE).insert(row).execute()
        except (APIError, httpx.HTTPError) as exc:
            raise StoreError("Failed to create session") from exc
        if not response.data:
            raise StoreError("Failed to create session")
        return session_from_row(response.data[0])

    async def fetch_session(self, session_id: UUID) -> Session | None:
        """Return a session by id, if present."""
        try:
            response = (
                await self.client.table(_TABLE)
                .select("*")
                .eq("id", str(session_id))
                .limit(1)
                .execute()
            )
        except (APIError, httpx.HTTPError) as exc:
            raise StoreError(f"Failed to load session {session_id}") from exc
        if not response.data:
            return None
        return session_from_row(response.data[0])

    async def update_session(
        self,
        session_id: UUID,
        changes: dict[str, object],
        expected: dict[str, object] | None = None,
    ) -> Session | None:
        """Update the row only where the expected columns still match."""
        query = self.client.table(_TABLE).update(changes).eq("id", str(session_id))
        for column, value in (expected or {}).items():
            if value is None:
                query = query.is_(column, "null")
            else:
                query = query.eq(column, value)
        try:
            response = await query.execute()
        except (APIError, httpx.HTTPError) as exc:
            raise StoreError(f"Failed to update session {session_id}") from exc
        if not response.data:
            return None
        return session_from_row(response.data[0])

    async def increment_score(
        self, session_id: UUID, player_id: int, amount: int
    ) -> None:
        """Call the increment_score database function."""
        try:
            await self.client.rpc(
                "increment_score",
                {"game_id": str(session_id), "player_id": player_id, "amount": amount},
            ).execute()
        except (APIError, httpx.HTTPError) as exc:
            raise StoreError(f"Failed to increment score in {session_id}") from exc

    async def subscribe(
        self, session_id: UUID, on_change: SessionListener
    ) -> Unsubscribe:
        """Open a realtime channel for UPDATE events on one session row."""
        # Each subscription gets its own topic so it can be removed on its own.
        name = f"game_{session_id}:{uuid4().hex[:8]}"

        def handle(payload: dict[str, object]) -> None:
            row = _record_from_payload(payload)
            if row is None:
                logger.warning("Ignoring realtime payload without record on %s", name)
                return
            on_change(session_from_row(row))

        channel = self.client.channel(name)
        channel.on_postgres_changes(
            "UPDATE",
            schema="public",
            table=_TABLE,
            filter=f"id=eq.{session_id}",
            callback=handle,
        )
        await channel.subscribe()
        self.channels[name] = channel

        async def unsubscribe() -> None:
            if self.channels.pop(name, None) is not None:
                await self.client.remove_channel(channel)

        return unsubscribe

    async def close(self) -> None:
        """Remove every channel opened by this store."""
        while self.channels:
            _, channel = self.channels.popitem()
            await self.client.remove_channel(channel)


def _record_from_payload(payload: dict[str, object]) -> dict[str, object] | None:
    # Realtime wraps the new row as data.record; older servers send it as "new".
    data = payload.get("data")
    if isinstance(data, dict) and isinstance(data.get("record"), dict):
        return data["record"]
    record = payload.get("new") or payload.get("record")
    return record if isinstance(record, dict) else None
