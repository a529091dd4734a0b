"""
Auth flows - sign-up, log-in, Google sign-in, session mirroring, email
verification and password reset.

Every flow reports its outcome by dispatching AuthActions on the caller's
session; the returned state is what the browser renders. Identity calls are
blocking and run in the default executor.

DESIGN NOTE:
- A session exists only for accounts whose email is verified AND that have
  a profile document. Anything else is signed out.
- Sign-up never creates a session: it sends a verification email instead.
"""

import asyncio
import logging
import re
import time
from typing import Dict, Optional, Tuple

from app.core.settings import settings
from app.models.user import AuthAccount, LogInRequest, SignUpRequest, UserProfile
from app.services.auth_session import AuthAction, AuthSessionState, AuthSessionStore, get_auth_session_store
from app.services.identity_provider import IdentityError, IdentityProvider, get_identity_provider
from app.services.user_service import UserService, get_user_service

logger = logging.getLogger(__name__)

EMAIL_PATTERN = re.compile(r"\S+@\S+\.\S+")
MIN_PASSWORD_LENGTH = 6

VERIFY_BEFORE_LOGIN_MESSAGE = "Please verify your email before logging in. Check your inbox for a verification link."
RESEND_FAILED_MESSAGE = "Failed to resend verification email."
PASSWORD_RESET_SENT_MESSAGE = "Password reset email sent! Please check your inbox."

DISPOSABLE_EMAIL_DOMAINS = frozenset([
    "10minutemail.com", "mailinator.com", "guerrillamail.com", "tempmail.org",
    "throwaway.email", "mailnesia.com", "maildrop.cc", "getairmail.com",
    "sharklasers.com", "grr.la", "guerrillamailblock.com", "pokemail.net",
    "spam4.me", "bccto.me", "chacuo.net", "dispostable.com", "mailinator2.com",
    "mailmetrash.com", "trashmail.net", "mailnull.com", "getnada.com",
    "yopmail.com", "yopmail.net", "yopmail.org", "cool.fr.nf", "jetable.fr.nf",
    "nospam.ze.tc", "nomail.xl.cx", "mega.zik.dj", "speed.1s.fr", "courriel.fr.nf",
    "moncourrier.fr.nf", "monemail.fr.nf", "monmail.fr.nf", "mailo.com",
    "mailcatch.com", "mailinator3.com", "mailinator4.com", "mailinator5.com",
    "mailinator6.com", "mailinator7.com", "mailinator8.com", "mailinator9.com",
    "mailinator10.com",
])


def is_disposable_email(email: str) -> bool:
    if not email or "@" not in email:
        return False
    return email.split("@", 1)[1].strip().lower() in DISPOSABLE_EMAIL_DOMAINS


def validate_sign_up(data: SignUpRequest) -> Dict[str, str]:
    errors: Dict[str, str] = {}
    if not data.name.strip():
        errors["name"] = "Name is required"
    if not data.email.strip():
        errors["email"] = "Email is required"
    elif not EMAIL_PATTERN.search(data.email):
        errors["email"] = "Email is invalid"
    elif is_disposable_email(data.email):
        errors["email"] = "Disposable emails are not allowed. Please use a permanent email address."
    if not data.password:
        errors["password"] = "Password is required"
    elif len(data.password) < MIN_PASSWORD_LENGTH:
        errors["password"] = f"Password must be at least {MIN_PASSWORD_LENGTH} characters"
    if data.password != data.confirm_password:
        errors["confirmPassword"] = "Passwords do not match"
    return errors


def validate_log_in(data: LogInRequest) -> Dict[str, str]:
    errors: Dict[str, str] = {}
    if not data.email.strip():
        errors["email"] = "Email is required"
    elif not EMAIL_PATTERN.search(data.email):
        errors["email"] = "Email is invalid"
    if not data.password:
        errors["password"] = "Password is required"
    return errors


class AuthService:
    def __init__(
        self,
        identity: Optional[IdentityProvider] = None,
        users: Optional[UserService] = None,
        store: Optional[AuthSessionStore] = None,
    ):
        self._identity = identity
        self._users = users
        self.store = store or get_auth_session_store()

    @property
    def identity(self) -> IdentityProvider:
        return self._identity or get_identity_provider()

    @property
    def users(self) -> UserService:
        return self._users or get_user_service()

    async def _call(self, fn, *args, **kwargs):
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, lambda: fn(*args, **kwargs))

    def _fail(self, sid: str, error: Exception) -> AuthSessionState:
        if isinstance(error, IdentityError):
            message = error.user_message
            logger.warning(f"Auth request failed: {error.code} ({error.detail})")
        else:
            message = str(error) or "An unexpected error occurred."
            logger.error(f"Auth request failed: {error}", exc_info=True)
        return self.store.dispatch(sid, AuthAction.REQUEST_FAILED, errors={"general": message})

    # ------------------------------------------------------------------
    # Flows
    # ------------------------------------------------------------------

    async def sign_up(self, sid: str, data: SignUpRequest) -> AuthSessionState:
        """
        Create an unverified account: display name, profile document, then a
        verification email. The new account is left signed out.
        """
        self.store.dispatch(sid, AuthAction.REQUEST_STARTED)
        errors = validate_sign_up(data)
        if errors:
            return self.store.dispatch(sid, AuthAction.REQUEST_FAILED, errors=errors)

        name = data.name.strip()
        email = data.email.strip()
        try:
            account: AuthAccount = await self._call(self.identity.sign_up, email, data.password)
            await self._call(self.identity.update_display_name, account.uid, name)
            await self._call(self.users.create_profile, account.uid, account.email, name, False)
            await self._call(self.identity.send_verification_email, account.id_token)
        except Exception as e:
            return self._fail(sid, e)

        logger.info(f"Account created for {email}; awaiting email verification")
        return self.store.dispatch(
            sid,
            AuthAction.VERIFICATION_REQUIRED,
            email=account.email,
            id_token=account.id_token,
        )

    async def log_in(self, sid: str, data: LogInRequest) -> Tuple[AuthSessionState, Optional[str]]:
        """
        Password log-in. Returns the new state and the ID token to store in the
        session cookie (None when no session was created).
        """
        self.store.dispatch(sid, AuthAction.REQUEST_STARTED)
        errors = validate_log_in(data)
        if errors:
            return self.store.dispatch(sid, AuthAction.REQUEST_FAILED, errors=errors), None

        try:
            account: AuthAccount = await self._call(self.identity.sign_in, data.email.strip(), data.password)
            profile: Optional[UserProfile] = await self._call(self.users.get_profile, account.uid)

            if not account.email_verified:
                if profile is None:
                    await self._call(self.users.create_profile, account.uid, account.email, account.display_name or "", False)
                logger.info(f"Log-in refused for unverified account {account.uid}")
                state = self.store.dispatch(
                    sid,
                    AuthAction.VERIFICATION_REQUIRED,
                    errors={"general": VERIFY_BEFORE_LOGIN_MESSAGE},
                    email=account.email,
                    id_token=account.id_token,
                )
                return state, None

            if profile is None:
                profile = await self._call(self.users.create_profile, account.uid, account.email, account.display_name or "", True)
            else:
                profile = await self._call(self.users.record_login, account.uid, True if not profile.verified else None)
        except Exception as e:
            return self._fail(sid, e), None

        logger.info(f"User logged in: {account.uid}")
        state = self.store.dispatch(sid, AuthAction.SESSION_CHANGED, user=account, profile=profile)
        return state, account.id_token

    async def google_sign_in(self, sid: str, id_token: str) -> Tuple[AuthSessionState, Optional[str]]:
        """Sign in with an ID token from the Google popup; creates the profile on first use."""
        self.store.dispatch(sid, AuthAction.REQUEST_STARTED)
        try:
            claims = await self._call(self.identity.verify_id_token, id_token)
            account: AuthAccount = await self._call(self.identity.get_account, claims["uid"])
            profile = await self._call(self.users.get_profile, account.uid)
            if profile is None:
                profile = await self._call(
                    self.users.create_profile,
                    account.uid,
                    account.email,
                    account.display_name or "",
                    True,
                    account.photo_url,
                )
            else:
                profile = await self._call(self.users.record_login, account.uid, True if not profile.verified else None)
        except Exception as e:
            return self._fail(sid, e), None

        logger.info(f"User signed in with Google: {account.uid}")
        state = self.store.dispatch(sid, AuthAction.SESSION_CHANGED, user=account, profile=profile)
        return state, id_token

    async def observe_session(self, sid: str, id_token: Optional[str]) -> Tuple[AuthSessionState, bool]:
        """
        Mirror the identity provider's view of the session cookie.

        Returns the state and whether the presented token is still a valid
        session. Missing profile, unverified email or a bad token sign out.
        """
        if not id_token:
            state = self.store.get(sid)
            if state.is_authenticated:
                state = self.store.dispatch(sid, AuthAction.SIGNED_OUT)
            return state, False

        try:
            claims = await self._call(self.identity.verify_id_token, id_token)
            account: AuthAccount = await self._call(self.identity.get_account, claims["uid"])
            profile = await self._call(self.users.get_profile, account.uid)
        except IdentityError as e:
            logger.info(f"Session token rejected: {e.code}")
            return self.store.dispatch(sid, AuthAction.SIGNED_OUT), False
        except Exception as e:
            logger.error(f"Failed to load session profile: {e}", exc_info=True)
            return self.store.dispatch(sid, AuthAction.SIGNED_OUT), False

        if profile is None:
            logger.info(f"No profile for {account.uid}; signing out")
            return self.store.dispatch(sid, AuthAction.SIGNED_OUT), False
        if not account.email_verified:
            logger.info(f"Unverified account {account.uid} detected; signing out")
            return self.store.dispatch(sid, AuthAction.SIGNED_OUT), False

        if not profile.verified:
            try:
                profile = await self._call(self.users.mark_verified, account.uid)
            except Exception as e:
                logger.error(f"Failed to mark {account.uid} verified: {e}", exc_info=True)
                return self.store.dispatch(sid, AuthAction.SIGNED_OUT), False
        return self.store.dispatch(sid, AuthAction.SESSION_CHANGED, user=account, profile=profile), True

    async def resend_verification(self, sid: str, now: Optional[float] = None) -> AuthSessionState:
        """Resend the verification email; a no-op while the cooldown runs."""
        now = time.time() if now is None else now
        state = self.store.get(sid)
        if state.resend_timer(now) > 0:
            return state

        self.store.dispatch(sid, AuthAction.REQUEST_STARTED, flow="resend_verification")
        if not state.pending_id_token:
            return self.store.dispatch(sid, AuthAction.VERIFICATION_RESEND_FAILED, message=RESEND_FAILED_MESSAGE)
        try:
            await self._call(self.identity.send_verification_email, state.pending_id_token)
        except Exception as e:
            logger.warning(f"Resending verification email failed: {e}")
            return self.store.dispatch(sid, AuthAction.VERIFICATION_RESEND_FAILED, message=RESEND_FAILED_MESSAGE)

        return self.store.dispatch(
            sid,
            AuthAction.VERIFICATION_RESENT,
            available_at=now + settings.RESEND_VERIFICATION_COOLDOWN_SECONDS,
        )

    async def forgot_password(self, sid: str, email: str) -> AuthSessionState:
        self.store.dispatch(sid, AuthAction.REQUEST_STARTED, flow="forgot_password")
        try:
            await self._call(self.identity.send_password_reset_email, email.strip())
        except IdentityError as e:
            return self.store.dispatch(sid, AuthAction.PASSWORD_RESET_FAILED, message=e.user_message)
        return self.store.dispatch(sid, AuthAction.PASSWORD_RESET_SENT, message=PASSWORD_RESET_SENT_MESSAGE)

    def log_out(self, sid: str) -> AuthSessionState:
        return self.store.dispatch(sid, AuthAction.SIGNED_OUT)

    async def password_reset_link(self, email: Optional[str]) -> str:
        """
        Generate a password-reset link for out-of-band delivery.

        Raises ValueError when email is missing, IdentityError on provider failure.
        """
        if not email or not email.strip():
            raise ValueError("Missing email")
        return await self._call(self.identity.generate_password_reset_link, email.strip())


_auth_service: Optional[AuthService] = None


def get_auth_service() -> AuthService:
    global _auth_service
    if _auth_service is None:
        _auth_service = AuthService()
    return _auth_service
