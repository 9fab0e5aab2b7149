"""Player identity and balance logic."""

import logging
from dataclasses import dataclass
from typing import Protocol

from tap_duel.domain.errors import StoreError
from tap_duel.domain.models import UserProfile
from tap_duel.telegram_models import TelegramUser

logger = logging.getLogger(__name__)


class ProfileRepository(Protocol):
    """Persistence interface for player profiles."""

    async def get_profile(self, user_id: int) -> UserProfile | None:
        """Return the profile for a Telegram user id, if present."""

    async def create_profile(self, profile: UserProfile) -> UserProfile:
        """Create and return a new profile."""

    async def set_coins(self, user_id: int, coins: int) -> UserProfile | None:
        """Store a new coin balance and return the updated profile."""


@dataclass
class UserService:
    """Get-or-create identity provider keyed by Telegram user id."""

    repository: ProfileRepository
    welcome_bonus_coins: int = 100

    async def get_or_create_user(
        self, telegram_user: TelegramUser
    ) -> UserProfile | None:
        """Return the player's profile, creating it on first contact."""
        try:
            existing = await self.repository.get_profile(telegram_user.id)
            if existing:
                return existing
            return await self.repository.create_profile(
                UserProfile(
                    id=telegram_user.id,
                    username=telegram_user.username,
                    full_name=telegram_user.full_name,
                    coins=self.welcome_bonus_coins,
                )
            )
        except StoreError:
            logger.exception("Failed to load profile for %s", telegram_user.id)
            return None

    async def get_profile(self, user_id: int) -> UserProfile | None:
        return await self.repository.get_profile(user_id)

    async def update_balance(self, user_id: int, amount: int) -> int | None:
        """Add coins to a balance and return it, or None if unavailable."""
        try:
            profile = await self.repository.get_profile(user_id)
            if profile is None:
                return None
            updated = await self.repository.set_coins(user_id, profile.coins + amount)
        except StoreError:
            logger.exception("Failed to update balance for %s", user_id)
            return None
        return updated.coins if updated else None
