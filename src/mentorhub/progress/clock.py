"""Server clock: the single time source for unlock-deadline math."""

from __future__ import annotations

from datetime import datetime, timezone

from fastapi import APIRouter

router = APIRouter(tags=["Clock"])


def server_now() -> datetime:
    """Current server time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def to_epoch_ms(value: datetime) -> int:
    """Convert an aware datetime to milliseconds since the Unix epoch."""
    return int(value.timestamp() * 1000)


def from_epoch_ms(value: int) -> datetime:
    """Convert milliseconds since the Unix epoch to an aware UTC datetime."""
    return datetime.fromtimestamp(value / 1000, tz=timezone.utc)


@router.get("/time")
async def get_server_time() -> dict[str, int]:
    """Current server time in ms since epoch. Clients derive their clock offset from it."""
    return {"serverTime": to_epoch_ms(server_now())}
