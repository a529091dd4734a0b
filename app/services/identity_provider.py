"""
Identity provider boundary - Firebase Authentication.

Password flows (sign-up, sign-in, verification and reset emails) go through
the Identity Toolkit REST API with the project's web API key; token
verification and account administration use the firebase_admin SDK.

Every failure surfaces as IdentityError carrying a Firebase-style code
("auth/email-already-in-use", ...) that auth_error_message() turns into
the text shown to users.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, Optional
import logging

import requests
from firebase_admin import auth

from app.config.firebase import initialize_firebase_app
from app.core.settings import settings
from app.models.user import AuthAccount

logger = logging.getLogger(__name__)

IDENTITY_TOOLKIT_URL = "https://identitytoolkit.googleapis.com/v1/accounts:{method}"

AUTH_ERROR_MESSAGES = {
    "auth/email-already-in-use": "This email is already registered.",
    "auth/invalid-email": "Invalid email address.",
    "auth/invalid-credential": "Invalid email or password. Please check your credentials and try again.",
    "auth/operation-not-allowed": "Email/password accounts are not enabled.",
    "auth/weak-password": "Password is too weak.",
    "auth/user-disabled": "This account has been disabled.",
    "auth/user-not-found": "No account found with this email.",
    "auth/wrong-password": "Incorrect password.",
    "auth/too-many-requests": "Too many failed attempts. Please try again later.",
    "auth/network-request-failed": "Network error. Please check your connection.",
    "auth/popup-closed-by-user": "Sign-in was cancelled.",
    "auth/popup-blocked": "Pop-up was blocked. Please allow pop-ups for this site.",
    "auth/cancelled-popup-request": "Sign-in was cancelled.",
    "auth/account-exists-with-different-credential": (
        "An account already exists with the same email but different sign-in credentials."
    ),
    "auth/requires-recent-login": "Please log in again to complete this action.",
    "auth/invalid-id-token": "Your session has expired. Please log in again.",
    "auth/configuration-not-found": "Authentication is not configured on the server.",
}
DEFAULT_AUTH_ERROR = "An unexpected error occurred."

# Identity Toolkit REST error codes -> Firebase client codes
REST_ERROR_CODES = {
    "EMAIL_EXISTS": "auth/email-already-in-use",
    "INVALID_EMAIL": "auth/invalid-email",
    "INVALID_LOGIN_CREDENTIALS": "auth/invalid-credential",
    "INVALID_PASSWORD": "auth/wrong-password",
    "EMAIL_NOT_FOUND": "auth/user-not-found",
    "USER_NOT_FOUND": "auth/user-not-found",
    "USER_DISABLED": "auth/user-disabled",
    "OPERATION_NOT_ALLOWED": "auth/operation-not-allowed",
    "PASSWORD_LOGIN_DISABLED": "auth/operation-not-allowed",
    "TOO_MANY_ATTEMPTS_TRY_LATER": "auth/too-many-requests",
    "WEAK_PASSWORD": "auth/weak-password",
    "INVALID_ID_TOKEN": "auth/invalid-id-token",
    "TOKEN_EXPIRED": "auth/invalid-id-token",
    "CREDENTIAL_TOO_OLD_LOGIN_AGAIN": "auth/requires-recent-login",
}


def auth_error_message(code: Optional[str], fallback: Optional[str] = None) -> str:
    return AUTH_ERROR_MESSAGES.get(code or "", fallback or DEFAULT_AUTH_ERROR)


class IdentityError(Exception):
    def __init__(self, code: str, detail: Optional[str] = None):
        self.code = code
        self.detail = detail
        super().__init__(detail or code)

    @property
    def user_message(self) -> str:
        return auth_error_message(self.code, self.detail)


class IdentityProvider(ABC):
    """Abstract identity provider used by the auth flows."""

    @abstractmethod
    def sign_up(self, email: str, password: str) -> AuthAccount:
        raise NotImplementedError

    @abstractmethod
    def sign_in(self, email: str, password: str) -> AuthAccount:
        raise NotImplementedError

    @abstractmethod
    def update_display_name(self, uid: str, name: str) -> None:
        raise NotImplementedError

    @abstractmethod
    def send_verification_email(self, id_token: str) -> None:
        raise NotImplementedError

    @abstractmethod
    def send_password_reset_email(self, email: str) -> None:
        raise NotImplementedError

    @abstractmethod
    def verify_id_token(self, id_token: str) -> Dict[str, Any]:
        raise NotImplementedError

    @abstractmethod
    def get_account(self, uid: str) -> AuthAccount:
        raise NotImplementedError

    @abstractmethod
    def generate_password_reset_link(self, email: str) -> str:
        raise NotImplementedError


class FirebaseIdentityProvider(IdentityProvider):
    def __init__(self, api_key: Optional[str], timeout: float = 5.0, session: Optional[requests.Session] = None):
        self.api_key = api_key
        self.timeout = timeout
        self.http = session or requests.Session()

    def _post(self, method: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        if not self.api_key:
            raise IdentityError("auth/configuration-not-found", "FIREBASE_WEB_API_KEY is not set")
        try:
            resp = self.http.post(
                IDENTITY_TOOLKIT_URL.format(method=method),
                params={"key": self.api_key},
                json=payload,
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise IdentityError("auth/network-request-failed", str(e)) from e

        try:
            data: Dict[str, Any] = resp.json()
        except ValueError:
            data = {}

        if resp.status_code != 200:
            raw = ((data.get("error") or {}).get("message") or f"HTTP {resp.status_code}")
            # e.g. "WEAK_PASSWORD : Password should be at least 6 characters"
            rest_code = raw.split(":")[0].strip()
            code = REST_ERROR_CODES.get(rest_code, "auth/internal-error")
            logger.warning(f"Identity Toolkit {method} failed: {raw}")
            raise IdentityError(code, raw)
        return data

    def sign_up(self, email: str, password: str) -> AuthAccount:
        data = self._post("signUp", {"email": email, "password": password, "returnSecureToken": True})
        return AuthAccount(uid=data["localId"], email=data.get("email", email), id_token=data.get("idToken"))

    def sign_in(self, email: str, password: str) -> AuthAccount:
        data = self._post("signInWithPassword", {"email": email, "password": password, "returnSecureToken": True})
        account = self.get_account(data["localId"])
        return account.model_copy(update={"id_token": data.get("idToken")})

    def send_verification_email(self, id_token: str) -> None:
        self._post("sendOobCode", {"requestType": "VERIFY_EMAIL", "idToken": id_token})

    def send_password_reset_email(self, email: str) -> None:
        self._post("sendOobCode", {"requestType": "PASSWORD_RESET", "email": email})

    def update_display_name(self, uid: str, name: str) -> None:
        initialize_firebase_app()
        try:
            auth.update_user(uid, display_name=name)
        except auth.UserNotFoundError as e:
            raise IdentityError("auth/user-not-found", str(e)) from e

    def verify_id_token(self, id_token: str) -> Dict[str, Any]:
        initialize_firebase_app()
        try:
            return auth.verify_id_token(id_token)
        except (auth.InvalidIdTokenError, auth.ExpiredIdTokenError, auth.RevokedIdTokenError, ValueError) as e:
            raise IdentityError("auth/invalid-id-token", str(e)) from e
        except auth.UserDisabledError as e:
            raise IdentityError("auth/user-disabled", str(e)) from e

    def get_account(self, uid: str) -> AuthAccount:
        initialize_firebase_app()
        try:
            record = auth.get_user(uid)
        except auth.UserNotFoundError as e:
            raise IdentityError("auth/user-not-found", str(e)) from e
        return AuthAccount(
            uid=record.uid,
            email=record.email,
            display_name=record.display_name,
            email_verified=bool(record.email_verified),
            photo_url=record.photo_url,
        )

    def generate_password_reset_link(self, email: str) -> str:
        initialize_firebase_app()
        try:
            return auth.generate_password_reset_link(email)
        except auth.UserNotFoundError as e:
            raise IdentityError("auth/user-not-found", str(e)) from e
        except ValueError as e:
            raise IdentityError("auth/invalid-email", str(e)) from e


_identity_provider: Optional[IdentityProvider] = None


def get_identity_provider() -> IdentityProvider:
    global _identity_provider
    if _identity_provider is None:
        if not settings.FIREBASE_WEB_API_KEY:
            logger.warning("FIREBASE_WEB_API_KEY not set; email/password sign-in is disabled")
        _identity_provider = FirebaseIdentityProvider(
            api_key=settings.FIREBASE_WEB_API_KEY,
            timeout=settings.EXTERNAL_TIMEOUT_SECONDS,
        )
    return _identity_provider


def set_identity_provider(provider: Optional[IdentityProvider]) -> None:
    global _identity_provider
    _identity_provider = provider
