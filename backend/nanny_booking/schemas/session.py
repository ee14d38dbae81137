from typing import Optional

from pydantic import BaseModel


class BookingSession(BaseModel):
    """Authenticated caller as handed over by the auth layer."""

    user_id: Optional[str] = None
    role: Optional[str] = None

    @property
    def is_authenticated(self) -> bool:
        return bool(self.user_id)

    @property
    def is_client(self) -> bool:
        return (self.role or "").strip().lower() == "client"

    @property
    def key(self) -> str:
        return self.user_id or "anonymous"
