"""Identity claim extracted from verified Telegram WebApp initData."""

from typing import Optional

from pydantic import BaseModel, ConfigDict


class VerifiedIdentity(BaseModel):
    """Telegram user whose initData passed the signature and freshness checks."""

    user_id: int
    username: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    auth_timestamp: int
    query_id: Optional[str] = None

    model_config = ConfigDict(frozen=True)

    @property
    def display_name(self) -> str:
        """Return @username, else the full name, else the numeric id."""
        if self.username:
            return f"@{self.username}"
        full_name = " ".join(part for part in (self.first_name, self.last_name) if part).strip()
        return full_name or f"id {self.user_id}"
