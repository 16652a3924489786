"""Tests for GoogleOAuth — consent URL, code exchange, userinfo, revoke."""

import os
from unittest.mock import AsyncMock, MagicMock, patch
from urllib.parse import parse_qs, urlparse

import httpx
import pytest

from app.exceptions import AuthError
from app.services.oauth_service import GoogleOAuth


@pytest.fixture
def oauth():
    return GoogleOAuth(
        client_id="client-1.apps.googleusercontent.com",
        client_secret="secret-1",
        redirect_uri="https://parts.example.com/api/auth/callback",
        scopes=["openid", "https://www.googleapis.com/auth/drive"],
    )


def _mock_http(mock_client_cls, method: str, resp):
    mock_http = AsyncMock()
    setattr(mock_http, method, AsyncMock(return_value=resp))
    mock_http.__aenter__ = AsyncMock(return_value=mock_http)
    mock_http.__aexit__ = AsyncMock(return_value=False)
    mock_client_cls.return_value = mock_http
    return mock_http


class TestBegin:
    def test_relaxed_scope_set_on_construction(self):
        with patch.dict(os.environ, {}, clear=True):
            GoogleOAuth(client_id="c", client_secret="s", redirect_uri="https://x/cb", scopes=["openid"])
            assert os.environ["OAUTHLIB_RELAX_TOKEN_SCOPE"] == "1"
            assert "OAUTHLIB_INSECURE_TRANSPORT" not in os.environ

    def test_consent_url(self, oauth):
        request = oauth.begin()
        query = parse_qs(urlparse(request.url).query)

        assert request.url.startswith("https://accounts.google.com/o/oauth2/auth")
        assert query["client_id"] == ["client-1.apps.googleusercontent.com"]
        assert query["redirect_uri"] == ["https://parts.example.com/api/auth/callback"]
        assert query["state"] == [request.state]
        assert query["access_type"] == ["offline"]
        assert query["code_challenge_method"] == ["S256"]
        assert request.code_verifier

    def test_each_login_gets_fresh_state(self, oauth):
        assert oauth.begin().state != oauth.begin().state

    def test_unconfigured(self):
        with patch("app.services.oauth_service.settings") as mock_settings:
            mock_settings.google_client_id = ""
            mock_settings.google_client_secret = ""
            mock_settings.google_redirect_uri = "https://x/cb"
            mock_settings.google_scopes = ["openid"]
            oauth = GoogleOAuth()
        with pytest.raises(AuthError):
            oauth.begin()


class TestComplete:
    @pytest.mark.asyncio
    async def test_exchange_uses_stored_verifier(self, oauth):
        flow = MagicMock()
        flow.credentials = MagicMock(token="access-1")

        with patch.object(GoogleOAuth, "_flow", return_value=flow) as make_flow:
            creds = await oauth.complete("code-1", "state-1", "verifier-1")

        make_flow.assert_called_once_with(state="state-1", code_verifier="verifier-1")
        flow.fetch_token.assert_called_once_with(code="code-1")
        assert creds.token == "access-1"

    @pytest.mark.asyncio
    async def test_exchange_failure(self, oauth):
        flow = MagicMock()
        flow.fetch_token.side_effect = ValueError("invalid_grant")

        with patch.object(GoogleOAuth, "_flow", return_value=flow):
            with pytest.raises(AuthError, match="invalid_grant"):
                await oauth.complete("code-1", "state-1", None)


class TestUserinfo:
    @pytest.mark.asyncio
    @patch("app.services.oauth_service.httpx.AsyncClient")
    async def test_email_lowercased(self, mock_client_cls, oauth):
        resp = MagicMock()
        resp.raise_for_status = MagicMock()
        resp.json.return_value = {"email": "Admin@Example.com"}
        http = _mock_http(mock_client_cls, "get", resp)

        assert await oauth.fetch_email("access-1") == "admin@example.com"
        assert http.get.call_args.kwargs["headers"] == {"Authorization": "Bearer access-1"}

    @pytest.mark.asyncio
    @patch("app.services.oauth_service.httpx.AsyncClient")
    async def test_lookup_failure(self, mock_client_cls, oauth):
        mock_http = AsyncMock()
        mock_http.get = AsyncMock(side_effect=httpx.ConnectError("offline"))
        mock_http.__aenter__ = AsyncMock(return_value=mock_http)
        mock_http.__aexit__ = AsyncMock(return_value=False)
        mock_client_cls.return_value = mock_http

        assert await oauth.fetch_email("access-1") is None

    @pytest.mark.asyncio
    @patch("app.services.oauth_service.httpx.AsyncClient")
    async def test_revoke(self, mock_client_cls, oauth):
        resp = MagicMock(status_code=200)
        http = _mock_http(mock_client_cls, "post", resp)

        assert await oauth.revoke("access-1") is True
        assert http.post.call_args.kwargs["params"] == {"token": "access-1"}
