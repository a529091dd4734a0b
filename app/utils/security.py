"""
Request authentication helpers.

The browser presents its Firebase ID token either as an
"Authorization: Bearer <token>" header or in the idToken cookie.
"""

import asyncio
import logging
from typing import Any, Dict, Optional

from fastapi import HTTPException, Request, status

from app.core.settings import settings
from app.services.identity_provider import IdentityError, get_identity_provider

logger = logging.getLogger(__name__)


def extract_id_token(request: Request) -> Optional[str]:
    """Bearer header first, then the auth cookie."""
    header = request.headers.get("Authorization", "")
    if header.lower().startswith("bearer "):
        token = header[7:].strip()
        if token:
            return token
    return request.cookies.get(settings.AUTH_COOKIE_NAME) or None


async def verify_request_token(token: str) -> Optional[Dict[str, Any]]:
    """Verified reporter identity for a token, or None when it does not verify.

    Accounts whose email is not verified yet count as signed out.
    """
    loop = asyncio.get_running_loop()
    try:
        claims = await loop.run_in_executor(None, get_identity_provider().verify_id_token, token)
    except IdentityError as e:
        logger.info(f"Rejected ID token: {e.code}")
        return None
    if not claims.get("email_verified"):
        logger.info(f"Rejected ID token for unverified account {claims.get('uid')}")
        return None
    return {"uid": claims.get("uid"), "email": claims.get("email")}


async def get_current_user(request: Request) -> Dict[str, Any]:
    """FastAPI dependency: the authenticated user, or 401."""
    token = extract_id_token(request)
    if not token:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Authentication required")
    user = await verify_request_token(token)
    if user is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid or expired session")
    return user


async def get_optional_user(request: Request) -> Optional[Dict[str, Any]]:
    """FastAPI dependency: the authenticated user when a valid token is presented."""
    token = extract_id_token(request)
    if not token:
        return None
    return await verify_request_token(token)
