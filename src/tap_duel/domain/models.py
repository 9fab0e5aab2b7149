"""Domain models for players."""

from dataclasses import dataclass


@dataclass(frozen=True)
class UserProfile:
    """Represents a player profile stored in the database."""

    id: int
    username: str | None
    full_name: str | None
    coins: int
    is_premium: bool = False
