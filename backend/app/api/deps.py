"""FastAPI dependency injection — session cookie, Drive capability, catalog."""

from __future__ import annotations

import logging
from typing import AsyncGenerator, Optional

from fastapi import Depends, HTTPException, Request, Response, status
from jose import JWTError, jwt

from app.config import settings
from app.exceptions import AuthError, CatalogError
from app.services import get_credential_provider, get_session_store
from app.services.catalog_service import CatalogService
from app.services.credential_provider import CredentialProvider
from app.services.drive_client import DriveClient
from app.services.session_store import SessionRecord, SessionStore

logger = logging.getLogger(__name__)


def http_error(exc: CatalogError) -> HTTPException:
    """Translate a domain error into the matching HTTP response."""
    if exc.status_code >= 500:
        logger.error("%s: %s", exc.__class__.__name__, exc.message)
    return HTTPException(status_code=exc.status_code, detail=exc.message)


def encode_session_cookie(record: SessionRecord) -> str:
    """Signed cookie value carrying only the session id and its expiry."""
    return jwt.encode(
        {"sid": record.session_id, "exp": int(record.expires_at.timestamp())},
        settings.secret_key,
        algorithm=settings.token_algorithm,
    )


def decode_session_cookie(value: str) -> Optional[str]:
    try:
        payload = jwt.decode(value, settings.secret_key, algorithms=[settings.token_algorithm])
    except JWTError:
        return None
    sid = payload.get("sid")
    return sid if isinstance(sid, str) else None


def set_session_cookie(response: Response, record: SessionRecord) -> None:
    max_age = max(0, int(record.expires_at.timestamp() - record.created_at.timestamp()))
    response.set_cookie(
        settings.session_cookie_name,
        encode_session_cookie(record),
        max_age=max_age,
        httponly=True,
        samesite="lax",
        secure=settings.session_cookie_secure,
        path="/",
    )


def clear_session_cookie(response: Response) -> None:
    response.delete_cookie(settings.session_cookie_name, path="/")


async def get_current_session(
    request: Request,
    store: SessionStore = Depends(get_session_store),
) -> Optional[SessionRecord]:
    """Session referenced by the cookie, or None."""
    cookie = request.cookies.get(settings.session_cookie_name)
    if not cookie:
        return None
    session_id = decode_session_cookie(cookie)
    if not session_id:
        return None
    return await store.get(session_id)


async def get_drive_client(
    session: Optional[SessionRecord] = Depends(get_current_session),
    provider: CredentialProvider = Depends(get_credential_provider),
) -> AsyncGenerator[DriveClient, None]:
    """Drive capability for the caller — 401 when there is none."""
    try:
        token = await provider.access_token(session)
    except AuthError as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=exc.message,
        )
    if not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated — log in via /api/auth/login",
        )

    async with DriveClient(token) as drive:
        yield drive


async def get_catalog_service(
    drive: DriveClient = Depends(get_drive_client),
) -> CatalogService:
    if not settings.root_folder_id:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Parts root folder not configured",
        )
    return CatalogService(drive, settings.root_folder_id)
