"""Unit tests for WebSocket ConnectionManager."""

from __future__ import annotations

import json
from unittest.mock import AsyncMock, MagicMock

import pytest

from mentorhub.ws.manager import VALID_CHANNELS, ConnectionManager


@pytest.fixture
def mgr() -> ConnectionManager:
    """Fresh ConnectionManager for each test."""
    return ConnectionManager()


def _make_ws(*, fail_send: bool = False) -> MagicMock:
    ws = AsyncMock()
    if fail_send:
        ws.send_text = AsyncMock(side_effect=RuntimeError("connection closed"))
    return ws


class TestConnect:
    @pytest.mark.asyncio
    async def test_connect_registers_client(self, mgr: ConnectionManager) -> None:
        ws = _make_ws()
        await mgr.connect(ws, "conn-1", user_id=42, username="alice")
        ws.accept.assert_awaited_once()
        assert mgr.connection_count == 1
        assert mgr.get_stats()["unique_users"] == 1

    @pytest.mark.asyncio
    async def test_two_tabs_same_user(self, mgr: ConnectionManager) -> None:
        await mgr.connect(_make_ws(), "conn-1", user_id=42, username="alice")
        await mgr.connect(_make_ws(), "conn-2", user_id=42, username="alice")
        assert mgr.connection_count == 2
        assert mgr.get_stats()["unique_users"] == 1


class TestSubscriptions:
    @pytest.mark.asyncio
    async def test_valid_channels(self, mgr: ConnectionManager) -> None:
        await mgr.connect(_make_ws(), "conn-1", user_id=1, username="a")
        for channel in VALID_CHANNELS:
            assert await mgr.subscribe("conn-1", channel) is True
        assert mgr.get_stats()["channels"] == {"ranklist": 1, "progress": 1}

    @pytest.mark.asyncio
    async def test_invalid_channel(self, mgr: ConnectionManager) -> None:
        await mgr.connect(_make_ws(), "conn-1", user_id=1, username="a")
        assert await mgr.subscribe("conn-1", "chat") is False
        assert await mgr.subscribe("nonexistent", "ranklist") is False

    @pytest.mark.asyncio
    async def test_disconnect_cleans_up(self, mgr: ConnectionManager) -> None:
        await mgr.connect(_make_ws(), "conn-1", user_id=1, username="a")
        await mgr.subscribe("conn-1", "ranklist")
        await mgr.disconnect("conn-1")
        await mgr.disconnect("conn-1")
        assert mgr.get_stats() == {"total_connections": 0, "unique_users": 0, "channels": {}}

    @pytest.mark.asyncio
    async def test_unsubscribe(self, mgr: ConnectionManager) -> None:
        await mgr.connect(_make_ws(), "conn-1", user_id=1, username="a")
        await mgr.subscribe("conn-1", "ranklist")
        assert await mgr.unsubscribe("conn-1", "ranklist") is True
        assert "ranklist" not in mgr.get_stats()["channels"]


class TestBroadcast:
    @pytest.mark.asyncio
    async def test_reaches_subscribers_only(self, mgr: ConnectionManager) -> None:
        ws1, ws2 = _make_ws(), _make_ws()
        await mgr.connect(ws1, "conn-1", user_id=1, username="a")
        await mgr.connect(ws2, "conn-2", user_id=2, username="b")
        await mgr.subscribe("conn-1", "ranklist")

        sent = await mgr.broadcast_to_channel("ranklist", {"type": "ranklist_update", "scopes": ["global"]})
        assert sent == 1
        parsed = json.loads(ws1.send_text.call_args[0][0])
        assert parsed == {"channel": "ranklist", "data": {"type": "ranklist_update", "scopes": ["global"]}}
        ws2.send_text.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_dead_connection_dropped(self, mgr: ConnectionManager) -> None:
        await mgr.connect(_make_ws(fail_send=True), "conn-dead", user_id=1, username="a")
        await mgr.subscribe("conn-dead", "ranklist")

        assert await mgr.broadcast_to_channel("ranklist", {"type": "x"}) == 0
        assert mgr.connection_count == 0


class TestSendToUser:
    @pytest.mark.asyncio
    async def test_targets_user_and_channel(self, mgr: ConnectionManager) -> None:
        mine, other, unsubscribed = _make_ws(), _make_ws(), _make_ws()
        await mgr.connect(mine, "conn-1", user_id=42, username="a")
        await mgr.connect(unsubscribed, "conn-2", user_id=42, username="a")
        await mgr.connect(other, "conn-3", user_id=99, username="b")
        await mgr.subscribe("conn-1", "progress")
        await mgr.subscribe("conn-3", "progress")

        sent = await mgr.send_to_user(42, "progress", {"type": "progress_update", "problem_id": 7})
        assert sent == 1
        mine.send_text.assert_awaited_once()
        unsubscribed.send_text.assert_not_awaited()
        other.send_text.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_unknown_user(self, mgr: ConnectionManager) -> None:
        assert await mgr.send_to_user(5, "progress", {}) == 0
