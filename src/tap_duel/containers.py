"""Dependency container wiring for the application."""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from uuid import UUID

from supabase import acreate_client

from tap_duel.adapters.supabase_profile_repository import SupabaseProfileRepository
from tap_duel.adapters.supabase_session_store import SupabaseSessionStore
from tap_duel.app_logging import configure_logging
from tap_duel.config import Settings
from tap_duel.services.duel import DuelClient, DuelView
from tap_duel.services.invites import InviteCodec
from tap_duel.services.lobby import LobbyService
from tap_duel.services.sessions import SessionManager
from tap_duel.services.users import UserService


@dataclass
class AppContainer:
    """Holds application-wide dependencies."""

    settings: Settings
    session_manager: SessionManager
    user_service: UserService
    lobby_service: LobbyService
    close_resources: Callable[[], Awaitable[None]]

    def duel_client(
        self,
        session_id: UUID,
        player_id: int,
        on_update: Callable[[DuelView], None] | None = None,
    ) -> DuelClient:
        """Create the local driver for one session."""
        return DuelClient(
            manager=self.session_manager,
            session_id=session_id,
            player_id=player_id,
            win_score=self.settings.win_score,
            on_update=on_update,
            user_service=self.user_service,
            win_reward_coins=self.settings.win_reward_coins,
        )


async def build_container(settings: Settings | None = None) -> AppContainer:
    """Create the default dependency container."""
    resolved_settings = settings or Settings()
    configure_logging(resolved_settings.log_level)
    supabase_client = await acreate_client(
        resolved_settings.supabase_url, resolved_settings.supabase_key
    )
    session_store = SupabaseSessionStore(supabase_client)
    session_manager = SessionManager(
        store=session_store,
        start_grace_seconds=resolved_settings.start_grace_seconds,
    )
    user_service = UserService(
        SupabaseProfileRepository(supabase_client),
        welcome_bonus_coins=resolved_settings.welcome_bonus_coins,
    )
    lobby_service = LobbyService(
        session_manager=session_manager,
        user_service=user_service,
        codec=InviteCodec(
            bot_username=resolved_settings.telegram_bot_username,
            app_name=resolved_settings.telegram_app_name,
        ),
    )

    async def close_resources() -> None:
        await session_store.close()

    return AppContainer(
        settings=resolved_settings,
        session_manager=session_manager,
        user_service=user_service,
        lobby_service=lobby_service,
        close_resources=close_resources,
    )
