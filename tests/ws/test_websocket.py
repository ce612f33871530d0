"""WebSocket integration tests: auth and connection lifecycle."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import jwt as pyjwt
import pytest
from fastapi.testclient import TestClient

from conftest import _ensure_test_keys
from mentorhub.auth.jwt import _load_keys, create_access_token, reset_keys
from mentorhub.config import get_settings


@pytest.fixture
def test_client() -> TestClient:
    """Sync TestClient for WebSocket testing (no database needed)."""
    _ensure_test_keys()
    get_settings.cache_clear()
    reset_keys()
    from mentorhub.main import create_app

    return TestClient(create_app())


@pytest.fixture
def ws_token(test_client: TestClient) -> str:
    return create_access_token(user_id=1, username="alice")


@pytest.fixture
def expired_ws_token(test_client: TestClient) -> str:
    private_key, _ = _load_keys()
    settings = get_settings()
    now = datetime.now(timezone.utc)
    payload = {
        "sub": "1",
        "username": "alice",
        "iat": now - timedelta(hours=2),
        "exp": now - timedelta(hours=1),
        "iss": settings.jwt_issuer,
        "type": "access",
    }
    return pyjwt.encode(payload, private_key, algorithm=settings.jwt_algorithm)


class TestWebSocketAuth:
    def test_connect_with_valid_token(self, test_client: TestClient, ws_token: str) -> None:
        with test_client.websocket_connect(f"/ws?token={ws_token}") as ws:
            ws.send_json({"action": "ping"})
            assert ws.receive_json() == {"type": "pong"}

    def test_connect_with_invalid_token(self, test_client: TestClient) -> None:
        with pytest.raises(Exception):  # noqa: B017
            with test_client.websocket_connect("/ws?token=invalid.jwt.token") as ws:
                ws.receive_json()

    def test_connect_with_expired_token(self, test_client: TestClient, expired_ws_token: str) -> None:
        with pytest.raises(Exception):  # noqa: B017
            with test_client.websocket_connect(f"/ws?token={expired_ws_token}") as ws:
                ws.receive_json()


class TestWebSocketProtocol:
    def test_subscribe_and_unsubscribe(self, test_client: TestClient, ws_token: str) -> None:
        with test_client.websocket_connect(f"/ws?token={ws_token}") as ws:
            ws.send_json({"action": "subscribe", "channel": "ranklist"})
            assert ws.receive_json() == {"type": "subscribed", "channel": "ranklist"}
            ws.send_json({"action": "unsubscribe", "channel": "ranklist"})
            assert ws.receive_json() == {"type": "unsubscribed", "channel": "ranklist"}

    def test_subscribe_invalid_channel(self, test_client: TestClient, ws_token: str) -> None:
        with test_client.websocket_connect(f"/ws?token={ws_token}") as ws:
            ws.send_json({"action": "subscribe", "channel": "chat"})
            data = ws.receive_json()
            assert data["type"] == "error"
            assert "Invalid channel" in data["message"]

    def test_invalid_json(self, test_client: TestClient, ws_token: str) -> None:
        with test_client.websocket_connect(f"/ws?token={ws_token}") as ws:
            ws.send_text("not valid json {{{")
            data = ws.receive_json()
            assert data["type"] == "error"
            assert "Invalid JSON" in data["message"]

    def test_unknown_action(self, test_client: TestClient, ws_token: str) -> None:
        with test_client.websocket_connect(f"/ws?token={ws_token}") as ws:
            ws.send_json({"action": "explode"})
            data = ws.receive_json()
            assert data["type"] == "error"
            assert "Unknown action" in data["message"]
