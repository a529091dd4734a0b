"""
User Service - Manage user profiles in Firestore.

Profiles live at users/{uid}, keyed by the Firebase Auth uid. Timestamps are
ISO-8601 UTC strings.
"""

from app.config.firebase import get_db
from app.models.user import UserProfile
from datetime import datetime, timezone
from typing import Any, Dict, Optional
import logging

logger = logging.getLogger(__name__)


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class UserService:
    """
    Service for user profile management in Firestore.
    """

    def __init__(self):
        self.db = get_db()

    def _ref(self, uid: str):
        return self.db.collection("users").document(uid)

    def get_profile(self, uid: str) -> Optional[UserProfile]:
        """
        Get a user's profile.

        Returns:
            UserProfile or None if the document does not exist
        """
        doc = self._ref(uid).get()
        if not doc.exists:
            return None
        data = doc.to_dict() or {}
        data.setdefault("uid", uid)
        return UserProfile(**data)

    def create_profile(
        self,
        uid: str,
        email: Optional[str],
        name: str = "",
        verified: bool = False,
        photo_url: Optional[str] = None,
    ) -> UserProfile:
        """
        Create (or overwrite) the profile document for a new account.

        Args:
            uid: Firebase Auth uid
            email: Account email
            name: Display name given at sign-up
            verified: Whether the email is already verified
        """
        now = _now_iso()
        profile = UserProfile(
            uid=uid,
            email=email,
            name=name,
            created_at=now,
            verified=verified,
            last_login_at=now,
            photo_url=photo_url,
        )
        try:
            self._ref(uid).set(profile.model_dump(by_alias=True, exclude_none=True))
            logger.info(f"User profile created: {uid} (verified={verified})")
        except Exception as e:
            logger.error(f"Failed to create user profile {uid}: {str(e)}", exc_info=True)
            raise
        return profile

    def update_profile(self, uid: str, updates: Dict[str, Any]) -> UserProfile:
        """
        Update profile fields (camelCase Firestore keys) and return the new profile.
        """
        try:
            self._ref(uid).update(updates)
        except Exception as e:
            logger.error(f"Failed to update user profile {uid}: {str(e)}")
            raise
        return self.get_profile(uid)

    def record_login(self, uid: str, verified: Optional[bool] = None) -> UserProfile:
        """Touch lastLoginAt, optionally marking the profile verified."""
        updates: Dict[str, Any] = {"lastLoginAt": _now_iso()}
        if verified is not None:
            updates["verified"] = verified
        return self.update_profile(uid, updates)

    def mark_verified(self, uid: str) -> UserProfile:
        return self.update_profile(uid, {"verified": True})


# Global service instance (singleton pattern)
_user_service = None


def get_user_service() -> UserService:
    """
    Get or create UserService singleton instance.

    Returns:
        UserService: The global user service instance
    """
    global _user_service
    if _user_service is None:
        _user_service = UserService()
    return _user_service
