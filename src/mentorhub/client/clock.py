"""Client clock synchronised to the server's /time endpoint."""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable
from datetime import datetime, timezone

from mentorhub.client.api import MentorHubClient
from mentorhub.client.errors import MentorHubError

logger = logging.getLogger(__name__)


def _local_ms() -> int:
    return int(time.time() * 1000)


class ClockSync:
    """Tracks offset = server time - local time, in milliseconds.

    Unlock countdowns are computed from now_ms() so a skewed local clock
    cannot unlock a solution early. A failed sync keeps the previous offset.
    """

    def __init__(self, api: MentorHubClient, local_clock: Callable[[], int] = _local_ms) -> None:
        self.api = api
        self.local_clock = local_clock
        self.offset_ms = 0
        self.synced = False

    async def sync(self) -> int:
        before = self.local_clock()
        try:
            server_ms = await self.api.server_time()
        except MentorHubError as exc:
            logger.warning("Clock sync failed, keeping offset %dms: %s", self.offset_ms, exc)
            return self.offset_ms
        self.offset_ms = server_ms - before
        self.synced = True
        return self.offset_ms

    async def run(self, interval: float = 300.0, stop: asyncio.Event | None = None) -> None:
        """Resync every interval seconds until stop is set."""
        stop = stop or asyncio.Event()
        while not stop.is_set():
            await self.sync()
            try:
                await asyncio.wait_for(stop.wait(), timeout=interval)
            except asyncio.TimeoutError:
                pass

    def now_ms(self) -> int:
        return self.local_clock() + self.offset_ms

    def now(self) -> datetime:
        return datetime.fromtimestamp(self.now_ms() / 1000, tz=timezone.utc)
