"""Tests for JWT token management."""

from datetime import datetime, timedelta, timezone

import jwt
import pytest

from conftest import _ensure_test_keys
from mentorhub.auth.jwt import _load_keys, create_access_token, reset_keys, verify_token
from mentorhub.config import get_settings


@pytest.fixture(autouse=True)
def _keys() -> None:
    _ensure_test_keys()
    get_settings.cache_clear()
    reset_keys()


def _sign(**overrides: object) -> str:
    private_key, _ = _load_keys()
    settings = get_settings()
    now = datetime.now(timezone.utc)
    payload = {
        "sub": "1",
        "username": "alice",
        "iat": now,
        "exp": now + timedelta(minutes=5),
        "iss": settings.jwt_issuer,
        "type": "access",
        **overrides,
    }
    return jwt.encode(payload, private_key, algorithm=settings.jwt_algorithm)


class TestAccessToken:
    def test_create_and_verify(self):
        payload = verify_token(create_access_token(user_id=1, username="alice"))
        assert payload["sub"] == "1"
        assert payload["username"] == "alice"
        assert payload["type"] == "access"
        assert payload["iss"] == "mentorhub"

    def test_expiry_from_settings(self):
        payload = verify_token(create_access_token(user_id=1, username="alice"))
        assert payload["exp"] - payload["iat"] == get_settings().jwt_access_token_expire_minutes * 60

    def test_wrong_type_rejected(self):
        with pytest.raises(jwt.InvalidTokenError, match="Expected token type"):
            verify_token(_sign(type="refresh"), expected_type="access")


class TestVerification:
    def test_expired_token_rejected(self):
        past = datetime.now(timezone.utc) - timedelta(hours=1)
        with pytest.raises(jwt.InvalidTokenError, match="expired"):
            verify_token(_sign(iat=past - timedelta(hours=1), exp=past))

    def test_wrong_issuer_rejected(self):
        with pytest.raises(jwt.InvalidTokenError):
            verify_token(_sign(iss="someone-else"))

    def test_garbage_rejected(self):
        with pytest.raises(jwt.InvalidTokenError):
            verify_token("not.a.token")

    def test_tampered_signature_rejected(self):
        token = create_access_token(user_id=1, username="alice")
        head, body, sig = token.split(".")
        tampered = f"{head}.{body}.{sig[:-4]}AAAA"
        with pytest.raises(jwt.InvalidTokenError):
            verify_token(tampered)
