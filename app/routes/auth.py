"""
Authentication endpoints - email/password and Google sign-in via Firebase Auth.

Every flow answers with the caller's auth session snapshot (user, modal
flags, errors). The browser session is identified by the session cookie;
an authenticated session additionally carries the idToken cookie that the
protected pages are gated on.
"""

import logging
from typing import Any, Dict

from fastapi import APIRouter, HTTPException, Request, Response, status
from fastapi.responses import JSONResponse

from app.core.settings import settings
from app.models.user import EmailRequest, GoogleAuthRequest, LogInRequest, SignUpRequest
from app.services.auth_service import get_auth_service
from app.services.auth_session import CLIENT_ACTIONS, AuthAction, AuthSessionState, AuthSessionStore
from app.services.identity_provider import IdentityError
from app.utils.security import extract_id_token

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["Authentication"])


def _session_id(request: Request, response: Response) -> str:
    sid = request.cookies.get(settings.SESSION_COOKIE_NAME)
    if not sid:
        sid = AuthSessionStore.new_session_id()
        response.set_cookie(
            settings.SESSION_COOKIE_NAME,
            sid,
            httponly=True,
            samesite="lax",
            secure=settings.AUTH_COOKIE_SECURE,
        )
    return sid


def _set_auth_cookie(response: Response, id_token: str) -> None:
    response.set_cookie(
        settings.AUTH_COOKIE_NAME,
        id_token,
        httponly=True,
        samesite="lax",
        secure=settings.AUTH_COOKIE_SECURE,
        max_age=3600,
    )


def _clear_auth_cookie(response: Response) -> None:
    response.delete_cookie(settings.AUTH_COOKIE_NAME)


def _result(state: AuthSessionState) -> Dict[str, Any]:
    return {"success": not state.errors, "session": state.snapshot()}


@router.post("/signup")
async def sign_up(body: SignUpRequest, request: Request, response: Response):
    """Create an account. The account stays signed out until its email is verified."""
    sid = _session_id(request, response)
    state = await get_auth_service().sign_up(sid, body)
    return _result(state)


@router.post("/login")
async def log_in(body: LogInRequest, request: Request, response: Response):
    sid = _session_id(request, response)
    state, id_token = await get_auth_service().log_in(sid, body)
    if id_token:
        _set_auth_cookie(response, id_token)
    else:
        _clear_auth_cookie(response)
    return _result(state)


@router.post("/google")
async def google_sign_in(body: GoogleAuthRequest, request: Request, response: Response):
    sid = _session_id(request, response)
    state, id_token = await get_auth_service().google_sign_in(sid, body.id_token)
    if id_token:
        _set_auth_cookie(response, id_token)
    return _result(state)


@router.post("/logout")
async def log_out(request: Request, response: Response):
    sid = _session_id(request, response)
    state = get_auth_service().log_out(sid)
    _clear_auth_cookie(response)
    return _result(state)


@router.get("/session")
async def get_session(request: Request, response: Response):
    """Mirror the identity provider's view of the current session."""
    sid = _session_id(request, response)
    token = extract_id_token(request)
    state, valid = await get_auth_service().observe_session(sid, token)
    if token and not valid:
        _clear_auth_cookie(response)
    return {"session": state.snapshot()}


@router.post("/session/actions/{action}")
async def dispatch_action(action: str, request: Request, response: Response):
    """Modal toggles (open/close/switch sign-up and log-in, clear errors)."""
    try:
        auth_action = AuthAction(action)
    except ValueError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Unknown action: {action}")
    if auth_action not in CLIENT_ACTIONS:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"Action not allowed: {action}")

    sid = _session_id(request, response)
    state = get_auth_service().store.dispatch(sid, auth_action)
    return {"session": state.snapshot()}


@router.post("/forgot-password")
async def forgot_password(body: EmailRequest, request: Request, response: Response):
    sid = _session_id(request, response)
    state = await get_auth_service().forgot_password(sid, body.email)
    return {"success": bool(state.forgot_password_success), "session": state.snapshot()}


@router.post("/resend-verification")
async def resend_verification(request: Request, response: Response):
    sid = _session_id(request, response)
    state = await get_auth_service().resend_verification(sid)
    return {"success": state.resent_success, "session": state.snapshot()}


@router.post("/password-reset")
async def password_reset(body: EmailRequest):
    """
    Generate a password-reset link for delivery through another channel.
    """
    try:
        link = await get_auth_service().password_reset_link(body.email)
    except ValueError as e:
        return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"error": str(e)})
    except IdentityError as e:
        logger.warning(f"Password reset link failed: {e.code}")
        return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"error": e.user_message})
    return {"success": True, "link": link}
