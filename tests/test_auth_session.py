"""
Auth Session State Tests
========================
The auth/modal reducer and the per-session store.

Covers:
    - Modal toggles are mutually exclusive and clear errors
    - Authenticated sessions never open an auth modal
    - Verification-required state keeps the pending token out of snapshots
    - Resend cooldown timer
    - Store isolation and eviction
"""
import pytest

from app.models.user import AuthAccount
from app.services.auth_session import AuthAction, AuthSessionState, AuthSessionStore, reduce


USER = AuthAccount(uid="uid-asha", email="asha@example.com", email_verified=True)


# ---------------------------------------------------------------------------
# Modal toggles
# ---------------------------------------------------------------------------
def test_open_sign_up_closes_log_in():
    state = reduce(AuthSessionState(), AuthAction.OPEN_LOG_IN)
    state = reduce(state, AuthAction.OPEN_SIGN_UP)

    assert state.is_sign_up_open is True
    assert state.is_log_in_open is False


def test_switch_to_log_in():
    state = reduce(AuthSessionState(is_sign_up_open=True), AuthAction.SWITCH_TO_LOG_IN)
    assert (state.is_sign_up_open, state.is_log_in_open) == (False, True)


def test_open_clears_errors():
    state = AuthSessionState(errors={"email": "Email is required"})
    assert reduce(state, AuthAction.OPEN_LOG_IN).errors == {}


def test_close_sign_up_hides_verify_email():
    state = AuthSessionState(is_sign_up_open=True, show_verify_email=True)
    state = reduce(state, AuthAction.CLOSE_SIGN_UP)
    assert state.is_sign_up_open is False
    assert state.show_verify_email is False


@pytest.mark.parametrize("action", [AuthAction.OPEN_SIGN_UP, AuthAction.OPEN_LOG_IN, AuthAction.SWITCH_TO_SIGN_UP])
def test_authenticated_session_ignores_open(action):
    state = AuthSessionState(user=USER)
    assert reduce(state, action) is state


def test_reduce_returns_new_state():
    state = AuthSessionState()
    new_state = reduce(state, AuthAction.OPEN_SIGN_UP)
    assert new_state is not state
    assert state.is_sign_up_open is False


def test_reduce_accepts_action_names():
    assert reduce(AuthSessionState(), "open_log_in").is_log_in_open is True


# ---------------------------------------------------------------------------
# Request lifecycle
# ---------------------------------------------------------------------------
def test_request_failed_sets_errors():
    state = reduce(AuthSessionState(), AuthAction.REQUEST_STARTED)
    assert state.is_loading is True

    state = reduce(state, AuthAction.REQUEST_FAILED, errors={"general": "nope"})
    assert state.is_loading is False
    assert state.errors == {"general": "nope"}


def test_session_changed_closes_modals():
    state = AuthSessionState(is_log_in_open=True, errors={"general": "x"}, pending_id_token="t")
    state = reduce(state, AuthAction.SESSION_CHANGED, user=USER)

    assert state.is_authenticated is True
    assert state.is_log_in_open is False
    assert state.errors == {}
    assert state.pending_id_token is None


def test_verification_required_signs_out_and_hides_token():
    state = reduce(
        AuthSessionState(user=USER, is_sign_up_open=True),
        AuthAction.VERIFICATION_REQUIRED,
        email="asha@example.com",
        id_token="secret-token",
    )

    assert state.user is None
    assert state.show_verify_email is True
    assert state.pending_id_token == "secret-token"
    snapshot = state.snapshot(now=0)
    assert snapshot["pendingEmail"] == "asha@example.com"
    assert "pendingIdToken" not in snapshot
    assert "secret-token" not in str(snapshot)


def test_request_started_for_forgot_password_keeps_errors():
    state = AuthSessionState(errors={"email": "bad"}, forgot_password_error="old")
    state = reduce(state, AuthAction.REQUEST_STARTED, flow="forgot_password")
    assert state.errors == {"email": "bad"}
    assert state.forgot_password_error == ""


# ---------------------------------------------------------------------------
# Resend timer / snapshot
# ---------------------------------------------------------------------------
def test_resend_timer_counts_down():
    state = reduce(AuthSessionState(), AuthAction.VERIFICATION_RESENT, available_at=160.0)

    assert state.resent_success is True
    assert state.resend_timer(now=100.0) == 60
    assert state.resend_timer(now=159.5) == 1
    assert state.resend_timer(now=200.0) == 0


def test_snapshot_flags():
    snapshot = AuthSessionState(user=USER).snapshot(now=0)
    assert snapshot["isAuthenticated"] is True
    assert snapshot["isEmailVerified"] is True
    assert snapshot["resendTimer"] == 0
    assert "resendAvailableAt" not in snapshot


# ---------------------------------------------------------------------------
# Store
# ---------------------------------------------------------------------------
def test_store_sessions_are_isolated():
    store = AuthSessionStore()
    store.dispatch("a", AuthAction.OPEN_SIGN_UP)

    assert store.get("a").is_sign_up_open is True
    assert store.get("b").is_sign_up_open is False
    assert store.get(None) == AuthSessionState()


def test_store_evicts_oldest():
    store = AuthSessionStore(max_sessions=2)
    for sid in ("a", "b", "c"):
        store.dispatch(sid, AuthAction.OPEN_LOG_IN)

    assert store.get("a").is_log_in_open is False
    assert store.get("c").is_log_in_open is True
