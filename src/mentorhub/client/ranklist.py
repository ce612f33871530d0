"""Live ranklist view with WebSocket-driven refresh and a polling fallback."""

from __future__ import annotations

import asyncio
import logging

from mentorhub.client.api import MentorHubClient
from mentorhub.client.errors import MentorHubError

logger = logging.getLogger(__name__)


class RanklistView:
    """One page of a global or course ranklist.

    refresh() recomputes only the current page. A failed refresh keeps the
    last good page and records the error.
    """

    def __init__(
        self,
        api: MentorHubClient,
        course_slug: str | None = None,
        *,
        per_page: int | None = None,
    ) -> None:
        self.api = api
        self.course_slug = course_slug
        self.per_page = per_page
        self.page = 1
        self.filters: dict[str, str | None] = {"q": None, "institution": None, "country": None}
        self.data: dict | None = None
        self.last_error: MentorHubError | None = None

    @property
    def entries(self) -> list[dict]:
        return self.data["entries"] if self.data else []

    @property
    def scope(self) -> str | None:
        if self.data:
            return self.data["scope"]
        return "global" if self.course_slug is None else None

    async def refresh(self) -> dict | None:
        try:
            data = await self.api.ranklist(
                self.course_slug, page=self.page, per_page=self.per_page, **self.filters,
            )
        except MentorHubError as exc:
            logger.warning("Ranklist refresh failed, keeping last page: %s", exc)
            self.last_error = exc
            return self.data
        self.data = data
        self.last_error = None
        return data

    async def go_to(self, page: int) -> dict | None:
        self.page = max(page, 1)
        return await self.refresh()

    async def set_filters(
        self, q: str | None = None, institution: str | None = None, country: str | None = None,
    ) -> dict | None:
        self.filters = {"q": q, "institution": institution, "country": country}
        return await self.refresh()

    def affected_by(self, event: dict) -> bool:
        scopes = event.get("scopes")
        if not scopes or self.scope is None:
            return True
        return self.scope in scopes

    async def handle_event(self, message: dict) -> bool:
        """React to a WebSocket message. Returns True if the page was refreshed."""
        if message.get("channel") != "ranklist":
            return False
        if not self.affected_by(message.get("data") or {}):
            return False
        await self.refresh()
        return True

    async def poll(self, interval: float = 15.0, stop: asyncio.Event | None = None) -> None:
        """Refresh on a fixed interval; used when no WebSocket is available."""
        stop = stop or asyncio.Event()
        while not stop.is_set():
            await self.refresh()
            try:
                await asyncio.wait_for(stop.wait(), timeout=interval)
            except asyncio.TimeoutError:
                pass
