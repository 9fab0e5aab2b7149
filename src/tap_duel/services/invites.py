"""Deep-link invitations for duel sessions."""

from dataclasses import dataclass
from urllib.parse import quote
from uuid import UUID

INVITE_PREFIX = "join_"
SHARE_TEXT = "🏁 DUEL ME!"


@dataclass(frozen=True)
class InviteLinks:
    """Links handed to the host for inviting a guest."""

    invite_url: str
    share_url: str


@dataclass(frozen=True)
class InviteCodec:
    """Maps session ids to Mini App start parameters and back."""

    bot_username: str
    app_name: str

    def encode(self, session_id: UUID) -> str:
        return f"{INVITE_PREFIX}{session_id}"

    def decode(self, start_param: str | None) -> UUID | None:
        """Return the session id of a join invitation, if it is one."""
        if not start_param or not start_param.startswith(INVITE_PREFIX):
            return None
        try:
            return UUID(start_param.removeprefix(INVITE_PREFIX))
        except ValueError:
            return None

    def links(self, session_id: UUID) -> InviteLinks:
        invite_url = (
            f"https://t.me/{self.bot_username}/{self.app_name}"
            f"?startapp={self.encode(session_id)}"
        )
        share_url = (
            f"https://t.me/share/url?url={quote(invite_url, safe='')}"
            f"&text={quote(SHARE_TEXT, safe='')}"
        )
        return InviteLinks(invite_url=invite_url, share_url=share_url)
