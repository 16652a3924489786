"""APScheduler-based background jobs — expired session cleanup."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from apscheduler.schedulers.asyncio import AsyncIOScheduler

from app.config import settings

if TYPE_CHECKING:
    from app.services.session_store import SessionStore

logger = logging.getLogger(__name__)


class SessionScheduler:
    """Periodically removes expired admin sessions from the store."""

    def __init__(self, store: SessionStore, interval_seconds: int | None = None):
        self._store = store
        self._interval = interval_seconds or settings.session_purge_interval_seconds
        self._scheduler = AsyncIOScheduler(
            job_defaults={"coalesce": True, "max_instances": 1}
        )

    @property
    def running(self) -> bool:
        return self._scheduler.running

    def start(self) -> None:
        self._scheduler.add_job(
            self.purge_sessions,
            "interval",
            seconds=self._interval,
            id="purge_sessions",
            name="Purge expired admin sessions",
        )
        self._scheduler.start()
        logger.info("Session scheduler started — purging every %ds", self._interval)

    async def stop(self) -> None:
        if self._scheduler.running:
            self._scheduler.shutdown(wait=False)
            logger.info("Session scheduler stopped")

    async def purge_sessions(self) -> int:
        try:
            count = await self._store.purge_expired()
        except Exception as e:
            logger.error("Session purge failed: %s", e)
            return 0
        if count:
            logger.info("Purged %d expired sessions", count)
        return count
