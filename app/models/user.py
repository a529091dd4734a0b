"""
User models for authentication and user management.
"""

from typing import Optional

from pydantic import Field

from app.models.base import CamelModel


class UserProfile(CamelModel):
    """Profile document stored at users/{uid}."""
    uid: str
    email: Optional[str] = None
    name: str = ""
    created_at: Optional[str] = None
    verified: bool = False
    last_login_at: Optional[str] = None
    photo_url: Optional[str] = None


class SignUpRequest(CamelModel):
    name: str = ""
    email: str = ""
    password: str = ""
    confirm_password: str = ""


class LogInRequest(CamelModel):
    email: str = ""
    password: str = ""


class GoogleAuthRequest(CamelModel):
    id_token: str = Field(..., min_length=1, description="Firebase ID token from the Google popup sign-in")


class EmailRequest(CamelModel):
    email: str = ""


class AuthAccount(CamelModel):
    """An identity-provider account as seen by the auth flows."""
    uid: str
    email: Optional[str] = None
    display_name: Optional[str] = None
    email_verified: bool = False
    photo_url: Optional[str] = None
    # Present only right after a password sign-up / sign-in
    id_token: Optional[str] = Field(None, exclude=True)
