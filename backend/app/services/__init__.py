"""Business logic services — singleton registry."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from app.config import settings

if TYPE_CHECKING:
    from app.services.credential_provider import CredentialProvider
    from app.services.oauth_service import GoogleOAuth
    from app.services.scheduler import SessionScheduler
    from app.services.session_store import SessionStore

logger = logging.getLogger(__name__)

_session_store: SessionStore | None = None
_credential_provider: CredentialProvider | None = None
_oauth: GoogleOAuth | None = None
_scheduler: SessionScheduler | None = None


async def init_services() -> None:
    """Create and wire up all service singletons."""
    global _session_store, _credential_provider, _oauth, _scheduler

    from app.services.credential_provider import CredentialProvider
    from app.services.oauth_service import GoogleOAuth
    from app.services.scheduler import SessionScheduler
    from app.services.session_store import DatabaseSessionStore, MemorySessionStore

    if settings.session_backend == "database":
        from app.database import async_session, init_db

        await init_db()
        _session_store = DatabaseSessionStore(async_session)
    else:
        _session_store = MemorySessionStore()
    logger.info("Session store: %s", settings.session_backend)

    _credential_provider = CredentialProvider(_session_store)
    _oauth = GoogleOAuth()

    if settings.auth_mode == "oauth" and not _oauth.configured:
        logger.warning(
            "Google OAuth client not configured (PARTS_GOOGLE_CLIENT_ID / "
            "PARTS_GOOGLE_CLIENT_SECRET) — admin login disabled"
        )
    if not settings.root_folder_id:
        logger.warning("PARTS_ROOT_FOLDER_ID not set — catalog endpoints will fail")

    _scheduler = SessionScheduler(_session_store)
    _scheduler.start()


async def shutdown_services() -> None:
    """Stop the scheduler."""
    global _scheduler
    if _scheduler:
        await _scheduler.stop()
        _scheduler = None


def get_session_store() -> SessionStore:
    if _session_store is None:
        raise RuntimeError("Services not initialized — call init_services() first")
    return _session_store


def get_credential_provider() -> CredentialProvider:
    if _credential_provider is None:
        raise RuntimeError("Services not initialized — call init_services() first")
    return _credential_provider


def get_oauth() -> GoogleOAuth:
    if _oauth is None:
        raise RuntimeError("Services not initialized — call init_services() first")
    return _oauth
