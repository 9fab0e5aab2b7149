"""Lobby entry points: hosting, deep-link joining and app bootstrap."""

import logging
from dataclasses import dataclass
from enum import Enum
from uuid import UUID

from tap_duel.domain.errors import StoreError
from tap_duel.domain.models import UserProfile
from tap_duel.domain.sessions import Session
from tap_duel.services.invites import InviteCodec, InviteLinks
from tap_duel.services.sessions import SessionManager
from tap_duel.services.users import UserService
from tap_duel.telegram_models import TelegramInitData

logger = logging.getLogger(__name__)


class JoinOutcome(str, Enum):
    """Result of following an invitation."""

    JOINED = "JOINED"
    NOT_AN_INVITE = "NOT_AN_INVITE"
    REJECTED = "REJECTED"


@dataclass(frozen=True)
class HostedDuel:
    """A freshly created lobby and its invitation links."""

    session_id: UUID
    invite: InviteLinks


@dataclass(frozen=True)
class JoinResult:
    outcome: JoinOutcome
    session_id: UUID | None = None


@dataclass(frozen=True)
class Bootstrap:
    """Outcome of launching the app."""

    status: str
    user: UserProfile | None = None
    session_id: UUID | None = None


@dataclass
class LobbyService:
    """Creates and joins duel lobbies on behalf of players."""

    session_manager: SessionManager
    user_service: UserService
    codec: InviteCodec

    async def host_duel(self, host: UserProfile) -> HostedDuel | None:
        """Create a lobby and return links to share with an opponent."""
        session_id = await self.session_manager.create_session(host.id)
        if session_id is None:
            return None
        return HostedDuel(session_id=session_id, invite=self.codec.links(session_id))

    async def join_from_start_param(
        self, guest: UserProfile, start_param: str | None
    ) -> JoinResult:
        """Join the session named by a deep-link start parameter."""
        session_id = self.codec.decode(start_param)
        if session_id is None:
            return JoinResult(JoinOutcome.NOT_AN_INVITE)
        try:
            joined = await self.session_manager.join_session(session_id, guest.id)
        except StoreError:
            logger.exception("Failed to join session %s", session_id)
            joined = False
        if not joined:
            return JoinResult(JoinOutcome.REJECTED, session_id)
        return JoinResult(JoinOutcome.JOINED, session_id)

    async def opponent_profile(
        self, session: Session, player_id: int
    ) -> UserProfile | None:
        opponent_id = session.opponent_of(player_id)
        if opponent_id is None:
            return None
        return await self.user_service.get_profile(opponent_id)

    async def bootstrap(self, init_data: TelegramInitData) -> Bootstrap:
        """Authenticate the launching player and follow a join link if present."""
        if init_data.user is None:
            return Bootstrap(status="Run in Telegram")
        user = await self.user_service.get_or_create_user(init_data.user)
        if user is None:
            return Bootstrap(status="Auth Error")
        result = await self.join_from_start_param(user, init_data.start_param)
        if result.outcome is JoinOutcome.REJECTED:
            return Bootstrap(status="Could not join game (Full or Error)", user=user)
        return Bootstrap(status="Ready", user=user, session_id=result.session_id)
