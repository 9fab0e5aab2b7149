"""Domain models for duel sessions."""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from uuid import UUID


class SessionStatus(str, Enum):
    """Lifecycle status of a duel session, ordered LOBBY < RACING < FINISHED."""

    LOBBY = "LOBBY"
    RACING = "RACING"
    FINISHED = "FINISHED"

    @property
    def rank(self) -> int:
        return _STATUS_ORDER.index(self)


_STATUS_ORDER = [SessionStatus.LOBBY, SessionStatus.RACING, SessionStatus.FINISHED]


@dataclass(frozen=True)
class Session:
    """Represents one shared duel record."""

    id: UUID
    host_id: int
    guest_id: int | None
    status: SessionStatus
    host_score: int = 0
    guest_score: int = 0
    start_time: datetime | None = None
    winner_id: int | None = None
    next_session_id: UUID | None = None
    created_at: datetime | None = None

    def is_host(self, player_id: int) -> bool:
        return self.host_id == player_id

    def score_of(self, player_id: int) -> int:
        """Return the stored score attributed to a player."""
        if player_id == self.host_id:
            return self.host_score
        if self.guest_id is not None and player_id == self.guest_id:
            return self.guest_score
        return 0

    def opponent_of(self, player_id: int) -> int | None:
        if player_id == self.host_id:
            return self.guest_id
        return self.host_id


def session_from_row(row: dict[str, object]) -> Session:
    """Build a session from a `game_sessions` row."""
    return Session(
        id=UUID(str(row["id"])),
        host_id=int(row["host_id"]),
        guest_id=_optional_int(row.get("guest_id")),
        status=SessionStatus(row["status"]),
        host_score=int(row.get("host_score") or 0),
        guest_score=int(row.get("guest_score") or 0),
        start_time=_optional_datetime(row.get("start_time")),
        winner_id=_optional_int(row.get("winner_id")),
        next_session_id=(
            UUID(str(row["next_game_id"])) if row.get("next_game_id") else None
        ),
        created_at=_optional_datetime(row.get("created_at")),
    )


def _optional_int(value: object) -> int | None:
    return int(value) if value is not None else None


def _optional_datetime(value: object) -> datetime | None:
    if value is None or isinstance(value, datetime):
        return value
    # Postgres may emit a trailing "Z" or a space separator.
    return datetime.fromisoformat(str(value).replace("Z", "+00:00"))
