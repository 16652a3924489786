"""Admin session storage — in-memory LRU or SQLite, both with TTL expiry."""

from __future__ import annotations

import abc
import asyncio
import logging
import secrets
from collections import OrderedDict
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta, timezone

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.config import settings
from app.models.admin_session import AdminSession

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class SessionRecord:
    """Server-side state for one browser session."""
    session_id: str
    expires_at: datetime
    email: str | None = None
    credentials_json: str | None = None
    oauth_state: str | None = None
    code_verifier: str | None = None
    created_at: datetime = field(default_factory=_utcnow)

    @classmethod
    def new(cls, ttl: timedelta | None = None) -> "SessionRecord":
        ttl = ttl or timedelta(minutes=settings.session_ttl_minutes)
        return cls(session_id=secrets.token_urlsafe(32), expires_at=_utcnow() + ttl)

    @property
    def is_expired(self) -> bool:
        return self.expires_at <= _utcnow()

    @property
    def is_authenticated(self) -> bool:
        return bool(self.credentials_json)


class SessionStore(abc.ABC):
    """Session persistence contract injected into request handling."""

    @abc.abstractmethod
    async def get(self, session_id: str) -> SessionRecord | None:
        """Return the live session, or None if unknown or expired."""

    @abc.abstractmethod
    async def save(self, record: SessionRecord) -> None:
        ...

    @abc.abstractmethod
    async def delete(self, session_id: str) -> None:
        ...

    @abc.abstractmethod
    async def purge_expired(self) -> int:
        """Drop expired sessions, returning how many were removed."""


class MemorySessionStore(SessionStore):
    """Bounded in-process store; least recently used sessions are evicted first."""

    def __init__(self, max_entries: int | None = None):
        self._max_entries = max_entries or settings.session_max_entries
        self._records: OrderedDict[str, SessionRecord] = OrderedDict()
        self._lock = asyncio.Lock()

    def __len__(self) -> int:
        return len(self._records)

    async def get(self, session_id: str) -> SessionRecord | None:
        async with self._lock:
            record = self._records.get(session_id)
            if record is None:
                return None
            if record.is_expired:
                del self._records[session_id]
                return None
            self._records.move_to_end(session_id)
            return replace(record)

    async def save(self, record: SessionRecord) -> None:
        async with self._lock:
            self._records[record.session_id] = replace(record)
            self._records.move_to_end(record.session_id)
            while len(self._records) > self._max_entries:
                evicted, _ = self._records.popitem(last=False)
                logger.debug("Evicted session %s… (store full)", evicted[:8])

    async def delete(self, session_id: str) -> None:
        async with self._lock:
            self._records.pop(session_id, None)

    async def purge_expired(self) -> int:
        async with self._lock:
            expired = [sid for sid, rec in self._records.items() if rec.is_expired]
            for sid in expired:
                del self._records[sid]
        return len(expired)


def _naive(dt: datetime) -> datetime:
    """SQLite DateTime columns hold naive UTC."""
    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc).replace(tzinfo=None)
    return dt


def _aware(dt: datetime) -> datetime:
    return dt if dt.tzinfo is not None else dt.replace(tzinfo=timezone.utc)


class DatabaseSessionStore(SessionStore):
    """Sessions persisted in the ``admin_sessions`` table; survives restarts."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def get(self, session_id: str) -> SessionRecord | None:
        async with self._session_factory() as db:
            row = await db.get(AdminSession, session_id)
            if row is None:
                return None
            record = SessionRecord(
                session_id=row.id,
                expires_at=_aware(row.expires_at),
                email=row.email,
                credentials_json=row.credentials_json,
                oauth_state=row.oauth_state,
                code_verifier=row.code_verifier,
                created_at=_aware(row.created_at) if row.created_at else _utcnow(),
            )
            if record.is_expired:
                await db.delete(row)
                await db.commit()
                return None
            return record

    async def save(self, record: SessionRecord) -> None:
        async with self._session_factory() as db:
            row = await db.get(AdminSession, record.session_id)
            if row is None:
                row = AdminSession(id=record.session_id, created_at=_naive(record.created_at))
                db.add(row)
            row.email = record.email
            row.credentials_json = record.credentials_json
            row.oauth_state = record.oauth_state
            row.code_verifier = record.code_verifier
            row.expires_at = _naive(record.expires_at)
            await db.commit()

    async def delete(self, session_id: str) -> None:
        async with self._session_factory() as db:
            await db.execute(delete(AdminSession).where(AdminSession.id == session_id))
            await db.commit()

    async def purge_expired(self) -> int:
        async with self._session_factory() as db:
            result = await db.execute(
                select(AdminSession.id).where(AdminSession.expires_at <= _naive(_utcnow()))
            )
            expired = list(result.scalars().all())
            if expired:
                await db.execute(delete(AdminSession).where(AdminSession.id.in_(expired)))
                await db.commit()
        return len(expired)
