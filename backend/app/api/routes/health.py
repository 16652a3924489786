"""Health check endpoints."""

from fastapi import APIRouter

from app import __version__
from app.config import settings
from app.schemas.system import HealthResponse

router = APIRouter()


@router.get("/health", response_model=HealthResponse)
async def health_check():
    """Lightweight liveness check; does not touch Drive."""
    return HealthResponse(
        version=__version__,
        auth_mode=settings.auth_mode,
        failure_mode=settings.catalog_failure_mode,
    )


@router.get("/ping")
async def ping():
    return {"status": "ok"}
