"""Client-side progress driver: attempts, solves and unlock timers.

Unlock is client-observed and server-confirmed. The tracker arms a timer per
attempted-but-locked problem; tick() fires the due ones against the server,
which recomputes the deadline itself. A timer stays armed until the server
confirms, so every due unlock is fired at least once.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable

from mentorhub.client.api import MentorHubClient
from mentorhub.client.cache import CachedProgress, LocalProgressCache
from mentorhub.client.clock import ClockSync
from mentorhub.client.errors import (
    AuthenticationRequired,
    MentorHubError,
    NotFound,
    StoreUnavailable,
    UnlockNotDue,
)

logger = logging.getLogger(__name__)


class ProgressTracker:
    def __init__(self, api: MentorHubClient, cache: LocalProgressCache, clock: ClockSync) -> None:
        self.api = api
        self.cache = cache
        self.clock = clock
        self._timers: dict[int, int] = {}  # problem id -> deadline (server ms)

    @property
    def armed(self) -> dict[int, int]:
        return dict(self._timers)

    def arm(self, problem_id: int, deadline_ms: int) -> None:
        self._timers[problem_id] = deadline_ms

    def cancel(self, problem_id: int) -> None:
        """Disarm a timer. Cancelling one that was never armed is a no-op."""
        self._timers.pop(problem_id, None)

    def _apply(self, views: list[dict]) -> None:
        self.cache.mirror(views)
        for view in views:
            pid = int(view["problem_id"])
            if view["unlocked"] or view.get("unlock_deadline") is None:
                self.cancel(pid)
            else:
                self.arm(pid, int(view["unlock_deadline"]))

    async def attempt(self, problem_id: int) -> dict:
        """Record an attempt and arm the unlock timer."""
        if not self.api.authenticated:
            raise AuthenticationRequired()
        result = await self.api.attempt(problem_id)
        self._apply([result["progress"]])
        return result

    async def solve(self, problem_id: int) -> dict:
        """Record a solve; the problem unlocks at once and its timer is cancelled."""
        if not self.api.authenticated:
            raise AuthenticationRequired()
        result = await self.api.solve(problem_id)
        self._apply([result["progress"]])
        return result

    async def tick(self) -> list[int]:
        """Fire every due unlock. Returns the problem ids the server confirmed.

        A failure on one problem never stops the others from firing. A missing
        problem is disarmed; any other failure leaves its timer armed for the
        next tick. An expired identity is raised once every due timer was tried.
        """
        now = self.clock.now_ms()
        confirmed: list[int] = []
        auth_error: AuthenticationRequired | None = None
        for pid, deadline in sorted(self._timers.items()):
            if deadline > now:
                continue
            try:
                view = await self.api.unlock(pid)
            except UnlockNotDue as exc:
                # Server clock disagrees; re-arm on its countdown
                self.arm(pid, now + exc.remaining_seconds * 1000)
                continue
            except StoreUnavailable:
                logger.warning("Unlock for problem %s not confirmed, retrying next tick", pid)
                continue
            except NotFound:
                logger.warning("Problem %s no longer exists, dropping its timer", pid)
                self.cancel(pid)
                continue
            except AuthenticationRequired as exc:
                auth_error = exc
                continue
            except MentorHubError as exc:
                logger.warning("Unlock for problem %s failed, retrying next tick: %s", pid, exc)
                continue
            self._apply([view])
            confirmed.append(pid)
        if auth_error is not None:
            raise auth_error
        return confirmed

    async def load_course(
        self, slug: str, on_prefill: Callable[[CachedProgress], None] | None = None,
    ) -> dict:
        """Show cached state first, then replace it with the server's answer.

        If the server cannot be reached the cache is left as it was.
        """
        if on_prefill is not None:
            on_prefill(self.cache.prefill())
        data = await self.api.course_progress(slug)
        if self.api.authenticated:
            self._apply([p["progress"] for p in data["problems"]])
        return data

    async def run(self, interval: float = 1.0, stop: asyncio.Event | None = None) -> None:
        """Tick until stop is set."""
        stop = stop or asyncio.Event()
        while not stop.is_set():
            await self.tick()
            try:
                await asyncio.wait_for(stop.wait(), timeout=interval)
            except asyncio.TimeoutError:
                pass
