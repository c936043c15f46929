from datetime import datetime, timedelta, timezone

import jwt
import pytest

from menuqr.core.config import get_settings
from menuqr.core.security import (
    create_access_token,
    create_client_session_token,
    decode_access_token,
    generate_reset_token,
    hash_password,
    verify_password,
)


def test_hash_and_verify_password():
    hashed = hash_password("Secret123")

    assert hashed != "Secret123"
    assert verify_password("Secret123", hashed)
    assert not verify_password("Secret124", hashed)


def test_verify_password_with_malformed_hash():
    assert verify_password("Secret123", "not-a-bcrypt-hash") is False


def test_long_passwords_are_truncated_consistently():
    password = "Aa1" + "x" * 100
    hashed = hash_password(password)

    assert verify_password(password, hashed)


def test_access_token_round_trip():
    token = create_access_token(7, "owner@cheztest.com")
    claims = decode_access_token(token)

    assert claims["restaurant_id"] == 7
    assert claims["email"] == "owner@cheztest.com"

    lifetime = datetime.fromtimestamp(claims["exp"], tz=timezone.utc) - datetime.now(timezone.utc)
    assert timedelta(hours=23) < lifetime <= timedelta(hours=24)


def test_expired_token_is_rejected():
    settings = get_settings()
    token = jwt.encode(
        {"restaurant_id": 1, "exp": datetime.now(timezone.utc) - timedelta(seconds=5)},
        settings.jwt_secret,
        algorithm=settings.jwt_algorithm,
    )

    with pytest.raises(jwt.ExpiredSignatureError):
        decode_access_token(token)


def test_foreign_signature_is_rejected():
    token = jwt.encode({"restaurant_id": 1}, "another-secret", algorithm="HS256")

    with pytest.raises(jwt.InvalidTokenError):
        decode_access_token(token)


def test_client_session_token_carries_type():
    claims = decode_access_token(create_client_session_token("internal", table_number=5))

    assert claims["type"] == "internal"
    assert claims["table_number"] == 5
    assert "restaurant_id" not in claims


def test_reset_tokens_are_unique_hex():
    first, second = generate_reset_token(), generate_reset_token()

    assert len(first) == 64
    assert int(first, 16) >= 0
    assert first != second
