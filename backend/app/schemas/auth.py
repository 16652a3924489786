"""Auth schemas."""

from datetime import datetime

from pydantic import BaseModel


class SessionInfo(BaseModel):
    authenticated: bool
    auth_mode: str
    email: str | None = None
    expires_at: datetime | None = None


class LogoutResult(BaseModel):
    success: bool = True
