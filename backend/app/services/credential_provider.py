"""Resolves a session (or the service account) to a Drive access token."""

from __future__ import annotations

import asyncio
import json
import logging
from typing import TYPE_CHECKING

import google.auth.exceptions
from google.auth.transport.requests import Request
from google.oauth2 import service_account
from google.oauth2.credentials import Credentials

from app.config import settings
from app.exceptions import AuthError

if TYPE_CHECKING:
    from app.services.session_store import SessionRecord, SessionStore

logger = logging.getLogger(__name__)


class CredentialProvider:
    """Turns request identity into a usable Google access token.

    In ``oauth`` mode the token comes from the admin's session and is
    refreshed (and written back) when expired. In ``service_account`` mode a
    single key file serves every request.
    """

    def __init__(
        self,
        store: SessionStore,
        auth_mode: str | None = None,
        service_account_file: str | None = None,
        scopes: list[str] | None = None,
    ):
        self._store = store
        self._auth_mode = auth_mode or settings.auth_mode
        self._service_account_file = service_account_file or settings.google_service_account_file
        self._scopes = scopes or settings.google_scopes
        self._sa_credentials: service_account.Credentials | None = None
        self._sa_lock = asyncio.Lock()

    @property
    def auth_mode(self) -> str:
        return self._auth_mode

    async def access_token(self, record: SessionRecord | None) -> str | None:
        """Valid access token, or None when the caller is unauthenticated."""
        if self._auth_mode == "service_account":
            return await self._service_account_token()
        if record is None or not record.credentials_json:
            return None
        return await self._session_token(record)

    async def _session_token(self, record: SessionRecord) -> str | None:
        try:
            creds = Credentials.from_authorized_user_info(json.loads(record.credentials_json))
        except (ValueError, KeyError) as exc:
            logger.warning("Discarding unreadable credentials in session %s…: %s", record.session_id[:8], exc)
            return None

        if creds.valid:
            return creds.token

        if not creds.refresh_token:
            return None
        try:
            await asyncio.to_thread(creds.refresh, Request())
        except google.auth.exceptions.RefreshError as exc:
            logger.info("Token refresh rejected for %s: %s", record.email, exc)
            return None
        except google.auth.exceptions.TransportError as exc:
            logger.warning("Token refresh unreachable for %s: %s", record.email, exc)
            return None

        record.credentials_json = creds.to_json()
        await self._store.save(record)
        logger.debug("Refreshed access token for %s", record.email)
        return creds.token

    async def _service_account_token(self) -> str:
        if not self._service_account_file:
            raise AuthError("Service account key file is not configured")

        async with self._sa_lock:
            if self._sa_credentials is None:
                try:
                    self._sa_credentials = service_account.Credentials.from_service_account_file(
                        self._service_account_file,
                        scopes=[s for s in self._scopes if s.startswith("https://www.googleapis.com/auth/drive")],
                    )
                except (OSError, ValueError) as exc:
                    raise AuthError(f"Cannot load service account key: {exc}") from exc

            creds = self._sa_credentials
            if not creds.valid:
                try:
                    await asyncio.to_thread(creds.refresh, Request())
                except google.auth.exceptions.GoogleAuthError as exc:
                    raise AuthError(f"Service account token request failed: {exc}") from exc
            return creds.token
