"""
Auth session state - one immutable value per browser session.

All changes go through reduce(state, action, **payload); nothing else
mutates a state. AuthSessionStore keeps the current state per session
cookie and hands out read-only snapshots.

Rules:
- An authenticated session never has an auth modal open.
- Pending verification credentials are never serialized.
"""

import logging
import threading
import time
import uuid
from collections import OrderedDict
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import Field

from app.models.base import CamelModel
from app.models.user import AuthAccount, UserProfile

logger = logging.getLogger(__name__)


class AuthAction(str, Enum):
    OPEN_SIGN_UP = "open_sign_up"
    OPEN_LOG_IN = "open_log_in"
    CLOSE_SIGN_UP = "close_sign_up"
    CLOSE_LOG_IN = "close_log_in"
    SWITCH_TO_LOG_IN = "switch_to_log_in"
    SWITCH_TO_SIGN_UP = "switch_to_sign_up"
    CLEAR_ERRORS = "clear_errors"
    REQUEST_STARTED = "request_started"
    REQUEST_FAILED = "request_failed"
    VERIFICATION_REQUIRED = "verification_required"
    SESSION_CHANGED = "session_changed"
    SIGNED_OUT = "signed_out"
    VERIFICATION_RESENT = "verification_resent"
    VERIFICATION_RESEND_FAILED = "verification_resend_failed"
    PASSWORD_RESET_SENT = "password_reset_sent"
    PASSWORD_RESET_FAILED = "password_reset_failed"


# Actions the browser may dispatch directly (modal toggles only)
CLIENT_ACTIONS = {
    AuthAction.OPEN_SIGN_UP,
    AuthAction.OPEN_LOG_IN,
    AuthAction.CLOSE_SIGN_UP,
    AuthAction.CLOSE_LOG_IN,
    AuthAction.SWITCH_TO_LOG_IN,
    AuthAction.SWITCH_TO_SIGN_UP,
    AuthAction.CLEAR_ERRORS,
}


class AuthSessionState(CamelModel):
    user: Optional[AuthAccount] = None
    profile: Optional[UserProfile] = None
    is_loading: bool = False
    is_sign_up_open: bool = False
    is_log_in_open: bool = False
    show_verify_email: bool = False
    errors: Dict[str, str] = Field(default_factory=dict)
    resend_available_at: float = 0.0
    resent_success: bool = False
    resent_error: str = ""
    forgot_password_success: str = ""
    forgot_password_error: str = ""
    pending_email: Optional[str] = None
    pending_id_token: Optional[str] = Field(None, exclude=True)

    class Config:
        frozen = True

    @property
    def is_authenticated(self) -> bool:
        return self.user is not None

    def resend_timer(self, now: Optional[float] = None) -> int:
        """Seconds left before another verification email may be requested."""
        remaining = self.resend_available_at - (time.time() if now is None else now)
        return max(0, int(remaining + 0.999))

    def snapshot(self, now: Optional[float] = None) -> Dict[str, Any]:
        data = self.to_document()
        data.pop("resendAvailableAt", None)
        data["isAuthenticated"] = self.is_authenticated
        data["isEmailVerified"] = bool(self.user and self.user.email_verified)
        data["resendTimer"] = self.resend_timer(now)
        return data


_CLOSED_MODALS = {"is_sign_up_open": False, "is_log_in_open": False, "show_verify_email": False}


def reduce(state: AuthSessionState, action: AuthAction, **payload) -> AuthSessionState:
    """Return the state that follows state after action."""
    action = AuthAction(action)

    if action in (AuthAction.OPEN_SIGN_UP, AuthAction.SWITCH_TO_SIGN_UP):
        if state.is_authenticated:
            return state
        changes = {"is_sign_up_open": True, "is_log_in_open": False, "show_verify_email": False, "errors": {}}
    elif action in (AuthAction.OPEN_LOG_IN, AuthAction.SWITCH_TO_LOG_IN):
        if state.is_authenticated:
            return state
        changes = {"is_log_in_open": True, "is_sign_up_open": False, "show_verify_email": False, "errors": {}}
    elif action == AuthAction.CLOSE_SIGN_UP:
        changes = {"is_sign_up_open": False, "show_verify_email": False, "errors": {}}
    elif action == AuthAction.CLOSE_LOG_IN:
        changes = {"is_log_in_open": False, "errors": {}}
    elif action == AuthAction.CLEAR_ERRORS:
        changes = {"errors": {}}
    elif action == AuthAction.REQUEST_STARTED:
        flow = payload.get("flow")
        changes = {"is_loading": True}
        if flow == "forgot_password":
            changes.update(forgot_password_success="", forgot_password_error="")
        elif flow == "resend_verification":
            changes.update(resent_success=False, resent_error="")
        else:
            changes["errors"] = {}
    elif action == AuthAction.REQUEST_FAILED:
        changes = {"is_loading": False, "errors": dict(payload.get("errors") or {})}
    elif action == AuthAction.VERIFICATION_REQUIRED:
        changes = {
            "is_loading": False,
            "user": None,
            "profile": None,
            "show_verify_email": True,
            "errors": dict(payload.get("errors") or {}),
            "pending_email": payload.get("email"),
            "pending_id_token": payload.get("id_token"),
        }
    elif action == AuthAction.SESSION_CHANGED:
        user = payload.get("user")
        changes = {"is_loading": False, "user": user, "profile": payload.get("profile")}
        if user is not None:
            changes.update(_CLOSED_MODALS, errors={}, pending_email=None, pending_id_token=None)
    elif action == AuthAction.SIGNED_OUT:
        changes = {"is_loading": False, "user": None, "profile": None}
    elif action == AuthAction.VERIFICATION_RESENT:
        changes = {
            "is_loading": False,
            "resent_success": True,
            "resent_error": "",
            "resend_available_at": float(payload.get("available_at", 0.0)),
        }
    elif action == AuthAction.VERIFICATION_RESEND_FAILED:
        changes = {"is_loading": False, "resent_success": False, "resent_error": payload.get("message", "")}
    elif action == AuthAction.PASSWORD_RESET_SENT:
        changes = {"is_loading": False, "forgot_password_success": payload.get("message", ""), "forgot_password_error": ""}
    elif action == AuthAction.PASSWORD_RESET_FAILED:
        changes = {"is_loading": False, "forgot_password_success": "", "forgot_password_error": payload.get("message", "")}
    else:  # pragma: no cover - every AuthAction is handled above
        raise ValueError(f"Unhandled auth action: {action}")

    return state.model_copy(update=changes)


class AuthSessionStore:
    """In-memory auth session states keyed by session cookie value."""

    def __init__(self, max_sessions: int = 10000):
        self.max_sessions = max_sessions
        self._states: "OrderedDict[str, AuthSessionState]" = OrderedDict()
        self._lock = threading.Lock()

    @staticmethod
    def new_session_id() -> str:
        return uuid.uuid4().hex

    def get(self, sid: Optional[str]) -> AuthSessionState:
        if not sid:
            return AuthSessionState()
        with self._lock:
            return self._states.get(sid) or AuthSessionState()

    def dispatch(self, sid: str, action: AuthAction, **payload) -> AuthSessionState:
        with self._lock:
            current = self._states.get(sid) or AuthSessionState()
            new_state = reduce(current, action, **payload)
            self._states[sid] = new_state
            self._states.move_to_end(sid)
            while len(self._states) > self.max_sessions:
                self._states.popitem(last=False)
        logger.debug(f"Auth session {sid[:8]}: {AuthAction(action).value}")
        return new_state

    def discard(self, sid: str) -> None:
        with self._lock:
            self._states.pop(sid, None)

    def clear(self) -> None:
        with self._lock:
            self._states.clear()


_session_store: Optional[AuthSessionStore] = None


def get_auth_session_store() -> AuthSessionStore:
    global _session_store
    if _session_store is None:
        _session_store = AuthSessionStore()
    return _session_store
