"""
FastAPI dependencies shared by the route modules.

Authentication:
    get_current_restaurant   401 when no bearer token, 403 when invalid/expired
    get_optional_restaurant  anonymous (None) instead of failing

Injectable collaborators (overridden in tests via app.dependency_overrides):
    get_today, get_email_service, get_image_host
"""

import logging
from datetime import date
from typing import Any, Optional

import jwt
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from menuqr.core.security import decode_access_token
from menuqr.services.email import get_email_service
from menuqr.services.storage import get_image_host

logger = logging.getLogger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)

INVALID_TOKEN = {
    "error": "Invalid or expired token",
    "message": "The provided token is invalid or has expired. Please login again.",
}


def get_today() -> date:
    """Server's local calendar date."""
    return date.today()


async def get_current_restaurant(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> dict[str, Any]:
    """Decoded claims ({restaurant_id, email, exp}) of a valid access token."""
    if credentials is None or not credentials.credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={
                "error": "Access token required",
                "message": "Please provide a valid authentication token in the Authorization header",
            },
        )

    try:
        claims = decode_access_token(credentials.credentials)
    except jwt.InvalidTokenError as e:
        logger.warning(f"Token verification failed: {e}")
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=INVALID_TOKEN,
        )

    if "restaurant_id" not in claims:
        # Client session tokens are signed with the same secret
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=INVALID_TOKEN,
        )

    return claims


async def get_optional_restaurant(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> Optional[dict[str, Any]]:
    """Claims of a valid access token, or None for anonymous callers."""
    if credentials is None or not credentials.credentials:
        return None
    try:
        claims = decode_access_token(credentials.credentials)
    except jwt.InvalidTokenError:
        return None
    return claims if "restaurant_id" in claims else None


__all__ = [
    "get_today",
    "get_current_restaurant",
    "get_optional_restaurant",
    "get_email_service",
    "get_image_host",
]
