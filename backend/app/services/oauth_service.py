"""Google OAuth 2.0 web-server flow for admin login."""

from __future__ import annotations

import asyncio
import logging
import os
from dataclasses import dataclass

import httpx
from google.oauth2.credentials import Credentials
from google_auth_oauthlib.flow import Flow

from app.config import settings
from app.exceptions import AuthError

logger = logging.getLogger(__name__)

AUTH_URI = "https://accounts.google.com/o/oauth2/auth"
TOKEN_URI = "https://oauth2.googleapis.com/token"
USERINFO_URI = "https://openidconnect.googleapis.com/v1/userinfo"
REVOKE_URI = "https://oauth2.googleapis.com/revoke"


@dataclass
class AuthorizationRequest:
    url: str
    state: str
    code_verifier: str | None


class GoogleOAuth:
    """Builds consent URLs and exchanges authorization codes."""

    def __init__(
        self,
        client_id: str | None = None,
        client_secret: str | None = None,
        redirect_uri: str | None = None,
        scopes: list[str] | None = None,
    ):
        self._client_id = client_id or settings.google_client_id
        self._client_secret = client_secret or settings.google_client_secret
        self._redirect_uri = redirect_uri or settings.google_redirect_uri
        self._scopes = scopes or settings.google_scopes

        # Google may return granted scopes in a different form (e.g. "email" for userinfo.email)
        os.environ.setdefault("OAUTHLIB_RELAX_TOKEN_SCOPE", "1")
        if self._redirect_uri.startswith("http://") and settings.environment == "development":
            # oauthlib refuses plain-http callbacks otherwise
            os.environ.setdefault("OAUTHLIB_INSECURE_TRANSPORT", "1")

    @property
    def configured(self) -> bool:
        return bool(self._client_id and self._client_secret)

    def _client_config(self) -> dict:
        return {
            "web": {
                "client_id": self._client_id,
                "client_secret": self._client_secret,
                "auth_uri": AUTH_URI,
                "token_uri": TOKEN_URI,
                "redirect_uris": [self._redirect_uri],
            }
        }

    def _flow(self, state: str | None = None, code_verifier: str | None = None) -> Flow:
        return Flow.from_client_config(
            self._client_config(),
            scopes=self._scopes,
            redirect_uri=self._redirect_uri,
            state=state,
            code_verifier=code_verifier,
            autogenerate_code_verifier=True,
        )

    def begin(self) -> AuthorizationRequest:
        """Start a login: consent URL plus the state and PKCE verifier to remember."""
        if not self.configured:
            raise AuthError("Google OAuth client is not configured")
        flow = self._flow()
        url, state = flow.authorization_url(
            access_type="offline",
            include_granted_scopes="true",
            prompt="consent",
        )
        return AuthorizationRequest(url=url, state=state, code_verifier=flow.code_verifier)

    async def complete(self, code: str, state: str, code_verifier: str | None) -> Credentials:
        """Exchange the authorization code for user credentials."""
        flow = self._flow(state=state, code_verifier=code_verifier)
        try:
            await asyncio.to_thread(flow.fetch_token, code=code)
        except Exception as exc:
            logger.warning("OAuth code exchange failed: %s", exc)
            raise AuthError(f"OAuth code exchange failed: {exc}") from exc
        return flow.credentials

    async def fetch_email(self, access_token: str) -> str | None:
        try:
            async with httpx.AsyncClient(timeout=10.0) as client:
                resp = await client.get(
                    USERINFO_URI,
                    headers={"Authorization": f"Bearer {access_token}"},
                )
            resp.raise_for_status()
        except httpx.HTTPError as exc:
            logger.warning("Userinfo lookup failed: %s", exc)
            return None
        email = resp.json().get("email")
        return email.lower() if email else None

    async def revoke(self, token: str) -> bool:
        """Best-effort token revocation at logout."""
        try:
            async with httpx.AsyncClient(timeout=10.0) as client:
                resp = await client.post(
                    REVOKE_URI,
                    params={"token": token},
                    headers={"Content-Type": "application/x-www-form-urlencoded"},
                )
            return resp.status_code == 200
        except httpx.HTTPError as exc:
            logger.warning("Token revocation failed: %s", exc)
            return False
