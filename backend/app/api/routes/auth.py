"""Auth routes — Google OAuth delegation for the catalog administrator."""

from __future__ import annotations

import json
import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import JSONResponse, RedirectResponse

from app.api.deps import clear_session_cookie, get_current_session, http_error, set_session_cookie
from app.config import settings
from app.exceptions import AuthError
from app.schemas.auth import LogoutResult, SessionInfo
from app.services import get_oauth, get_session_store
from app.services.oauth_service import GoogleOAuth
from app.services.session_store import SessionRecord, SessionStore

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/login")
async def login(
    session: Optional[SessionRecord] = Depends(get_current_session),
    store: SessionStore = Depends(get_session_store),
    oauth: GoogleOAuth = Depends(get_oauth),
):
    """Start the Google consent flow."""
    if settings.auth_mode != "oauth":
        raise HTTPException(status_code=400, detail="Login is disabled in service_account mode")
    try:
        auth_request = oauth.begin()
    except AuthError as e:
        raise HTTPException(status_code=500, detail=e.message)

    record = session or SessionRecord.new()
    record.oauth_state = auth_request.state
    record.code_verifier = auth_request.code_verifier
    await store.save(record)

    response = RedirectResponse(auth_request.url, status_code=status.HTTP_302_FOUND)
    set_session_cookie(response, record)
    return response


@router.get("/callback")
async def callback(
    code: Optional[str] = None,
    state: Optional[str] = None,
    error: Optional[str] = None,
    session: Optional[SessionRecord] = Depends(get_current_session),
    store: SessionStore = Depends(get_session_store),
    oauth: GoogleOAuth = Depends(get_oauth),
):
    """Finish the consent flow and attach credentials to the session."""
    if error:
        raise HTTPException(status_code=401, detail=f"Authorization denied: {error}")
    if not code or not state:
        raise HTTPException(status_code=400, detail="Missing code or state")
    if session is None or not session.oauth_state or session.oauth_state != state:
        raise HTTPException(status_code=400, detail="OAuth state mismatch — restart login")

    try:
        creds = await oauth.complete(code, state, session.code_verifier)
    except AuthError as e:
        raise http_error(e)

    email = await oauth.fetch_email(creds.token)
    if settings.admin_emails and email not in settings.admin_emails:
        logger.warning("Rejected login for non-admin account %s", email)
        await store.delete(session.session_id)
        raise HTTPException(status_code=403, detail="Account is not an administrator")

    session.email = email
    session.credentials_json = creds.to_json()
    session.oauth_state = None
    session.code_verifier = None
    await store.save(session)
    logger.info("Admin %s logged in", email or "<unknown>")

    response = RedirectResponse(settings.post_login_redirect, status_code=status.HTTP_302_FOUND)
    set_session_cookie(response, session)
    return response


@router.api_route("/logout", methods=["GET", "POST"], response_model=LogoutResult)
async def logout(
    session: Optional[SessionRecord] = Depends(get_current_session),
    store: SessionStore = Depends(get_session_store),
    oauth: GoogleOAuth = Depends(get_oauth),
):
    """Drop the local session; succeeds even without one."""
    if session is not None:
        if settings.revoke_on_logout and session.credentials_json:
            token = json.loads(session.credentials_json).get("token")
            if token:
                await oauth.revoke(token)
        await store.delete(session.session_id)
        logger.info("Admin %s logged out", session.email or "<unknown>")

    response = JSONResponse(LogoutResult().model_dump())
    clear_session_cookie(response)
    return response


@router.get("/me", response_model=SessionInfo)
async def me(session: Optional[SessionRecord] = Depends(get_current_session)):
    """Current session state."""
    if settings.auth_mode == "service_account":
        return SessionInfo(authenticated=True, auth_mode=settings.auth_mode)
    if session is None or not session.is_authenticated:
        return SessionInfo(authenticated=False, auth_mode=settings.auth_mode)
    return SessionInfo(
        authenticated=True,
        auth_mode=settings.auth_mode,
        email=session.email,
        expires_at=session.expires_at,
    )
