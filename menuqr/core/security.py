"""
Password hashing and token helpers.

- bcrypt for restaurant passwords
- PyJWT (HS256) for access tokens and client session tokens
- secrets for one-shot password reset tokens
"""

import secrets
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

import bcrypt
import jwt

from menuqr.core.config import get_settings

# bcrypt ignores everything past 72 bytes; newer releases raise instead
BCRYPT_MAX_BYTES = 72


def _password_bytes(password: str) -> bytes:
    return password.encode("utf-8")[:BCRYPT_MAX_BYTES]


def hash_password(password: str) -> str:
    """Hash a plaintext password with the configured cost factor."""
    settings = get_settings()
    salt = bcrypt.gensalt(rounds=settings.bcrypt_rounds)
    return bcrypt.hashpw(_password_bytes(password), salt).decode("utf-8")


def verify_password(password: str, hashed: str) -> bool:
    """Compare a plaintext password against a stored hash."""
    try:
        return bcrypt.checkpw(_password_bytes(password), hashed.encode("utf-8"))
    except ValueError:
        # Malformed hash in the database
        return False


def _sign(claims: dict[str, Any], expires_hours: Optional[int] = None) -> str:
    settings = get_settings()
    hours = expires_hours if expires_hours is not None else settings.jwt_expires_hours
    payload = dict(claims)
    payload["exp"] = datetime.now(timezone.utc) + timedelta(hours=hours)
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def create_access_token(restaurant_id: int, email: str) -> str:
    """Sign a restaurant access token carrying `restaurant_id` and `email`."""
    return _sign({"restaurant_id": restaurant_id, "email": email})


def create_client_session_token(client_type: str, **identity: Any) -> str:
    """
    Sign a session token for a dine-in or delivery client.

    Args:
        client_type: "internal" or "external"
        identity: table_number for tables, address for delivery clients
    """
    return _sign({**identity, "type": client_type})


def decode_access_token(token: str) -> dict[str, Any]:
    """
    Verify signature and expiry of a token.

    Raises:
        jwt.InvalidTokenError: on bad signature, malformed token or expiry
    """
    settings = get_settings()
    return jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])


def generate_reset_token() -> str:
    """64 lowercase hex characters."""
    return secrets.token_hex(32)


def reset_token_expiry() -> datetime:
    settings = get_settings()
    return datetime.now() + timedelta(minutes=settings.reset_token_expiry_minutes)
