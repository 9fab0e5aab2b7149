"""Supabase-backed player profile repository."""

from dataclasses import dataclass

import httpx
from postgrest import APIError
from supabase import AsyncClient

from tap_duel.domain.errors import StoreError
from tap_duel.domain.models import UserProfile
from tap_duel.services.users import ProfileRepository


@dataclass
class SupabaseProfileRepository(ProfileRepository):
    """Supabase implementation for player profiles."""

    client: AsyncClient

    async def get_profile(self, user_id: int) -> UserProfile | None:
        """Return the profile for a Telegram user id, if present."""
        try:
            response = (
                await self.client.table("profiles")
                .select("*")
                .eq("id", user_id)
                .limit(1)
                .execute()
            )
        except (APIError, httpx.HTTPError) as exc:
            raise StoreError(f"Failed to load profile {user_id}") from exc
        if not response.data:
            return None
        return _parse_profile(response.data[0])

    async def create_profile(self, profile: UserProfile) -> UserProfile:
        """Create a profile row and return it."""
        try:
            response = (
                await self.client.table("profiles")
                .insert(
                    {
                        "id": profile.id,
                        "username": profile.username,
                        "full_name": profile.full_name,
                        "puka_coins": profile.coins,
                        "is_premium": profile.is_premium,
                    }
                )
                .execute()
            )
        except (APIError, httpx.HTTPError) as exc:
            raise StoreError(f"Failed to create profile {profile.id}") from exc
        if not response.data:
            raise StoreError(f"Failed to create profile {profile.id}")
        return _parse_profile(response.data[0])

    async def set_coins(self, user_id: int, coins: int) -> UserProfile | None:
        """Store a new coin balance."""
        try:
            response = (
                await self.client.table("profiles")
                .update({"puka_coins": coins})
                .eq("id", user_id)
                .execute()
            )
        except (APIError, httpx.HTTPError) as exc:
            raise StoreError(f"Failed to update coins of {user_id}") from exc
        if not response.data:
            return None
        return _parse_profile(response.data[0])


def _parse_profile(row: dict[str, object]) -> UserProfile:
    return UserProfile(
        id=int(row["id"]),
        username=row.get("username"),
        full_name=row.get("full_name"),
        coins=int(row.get("puka_coins") or 0),
        is_premium=bool(row.get("is_premium")),
    )
