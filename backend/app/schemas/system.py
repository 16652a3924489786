"""Health check schemas."""

from pydantic import BaseModel


class HealthResponse(BaseModel):
    status: str = "ok"
    version: str
    service: str = "parts-catalog"
    auth_mode: str
    failure_mode: str
