"""Server clock helpers and the /time endpoint."""

from __future__ import annotations

from datetime import datetime, timezone

import pytest

from conftest import T0
from mentorhub.progress.clock import from_epoch_ms, server_now, to_epoch_ms


def test_epoch_ms_round_trip() -> None:
    ms = to_epoch_ms(T0)
    assert ms == 1772452800000
    assert from_epoch_ms(ms) == T0


def test_server_now_is_aware_utc() -> None:
    assert server_now().tzinfo is not None
    assert server_now().utcoffset().total_seconds() == 0


@pytest.mark.asyncio
async def test_time_endpoint(client) -> None:
    before = to_epoch_ms(datetime.now(timezone.utc))
    response = await client.get("/time")
    after = to_epoch_ms(datetime.now(timezone.utc))
    assert response.status_code == 200
    assert before <= response.json()["serverTime"] <= after
