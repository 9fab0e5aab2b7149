"""Pydantic models for the Telegram Mini App launch payload."""

from pydantic import BaseModel


class TelegramUser(BaseModel):
    """Telegram user payload."""

    id: int
    is_bot: bool | None = None
    first_name: str = ""
    last_name: str | None = None
    username: str | None = None
    language_code: str | None = None

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name or ''}".strip()


class TelegramInitData(BaseModel):
    """Unsafe init data exposed to the Mini App."""

    user: TelegramUser | None = None
    start_param: str | None = None
