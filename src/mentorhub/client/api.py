"""Async HTTP client for the MentorHub API."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from mentorhub.client.errors import (
    AuthenticationRequired,
    MentorHubError,
    NotFound,
    SolutionLocked,
    StoreUnavailable,
    UnlockNotDue,
)

logger = logging.getLogger(__name__)


class MentorHubClient:
    """Thin wrapper over httpx.AsyncClient that maps error responses to exceptions.

    Calls that write progress refuse locally, before any request, when no
    token is set.
    """

    def __init__(
        self,
        base_url: str,
        token: str | None = None,
        *,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.token = token
        self._http = httpx.AsyncClient(base_url=base_url, timeout=timeout, transport=transport)

    async def __aenter__(self) -> MentorHubClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._http.aclose()

    @property
    def authenticated(self) -> bool:
        return self.token is not None

    async def _request(self, method: str, path: str, *, auth: bool = False, **kwargs: Any) -> Any:  # noqa: ANN401
        if auth and self.token is None:
            raise AuthenticationRequired()

        headers = {"Authorization": f"Bearer {self.token}"} if self.token else {}
        try:
            response = await self._http.request(method, path, headers=headers, **kwargs)
        except httpx.TransportError as exc:
            raise StoreUnavailable(f"Could not reach server: {exc}") from exc

        if response.is_success:
            return response.json()
        raise self._error_for(response)

    @staticmethod
    def _error_for(response: httpx.Response) -> MentorHubError:
        try:
            body = response.json()
        except ValueError:
            body = {}
        detail = str(body.get("detail") or response.reason_phrase)
        status = response.status_code

        if status == 401:
            return AuthenticationRequired(detail, login_url=body.get("login_url", "/login"))
        if status == 503:
            return StoreUnavailable(detail, status_code=status)
        if status == 404:
            return NotFound(detail, status_code=status)
        if status == 409 and "remaining_seconds" in body:
            return UnlockNotDue(detail, int(body["remaining_seconds"]))
        if status == 403 and "remaining_seconds" in body:
            return SolutionLocked(detail, int(body["remaining_seconds"]), bool(body.get("attempted")))
        return MentorHubError(detail, status_code=status)

    # --- Clock ---

    async def server_time(self) -> int:
        data = await self._request("GET", "/time")
        return int(data["serverTime"])

    # --- Progress ---

    async def get_progress(self, problem_id: int) -> dict:
        return await self._request("GET", f"/api/v1/problems/{problem_id}/progress")

    async def attempt(self, problem_id: int) -> dict:
        return await self._request("POST", f"/api/v1/problems/{problem_id}/attempt", auth=True)

    async def solve(self, problem_id: int) -> dict:
        return await self._request("POST", f"/api/v1/problems/{problem_id}/solve", auth=True)

    async def unlock(self, problem_id: int) -> dict:
        return await self._request("POST", f"/api/v1/problems/{problem_id}/unlock", auth=True)

    async def solution(self, problem_id: int) -> dict:
        return await self._request("GET", f"/api/v1/problems/{problem_id}/solution", auth=True)

    async def vote(self, problem_id: int, vote: str) -> dict:
        return await self._request("POST", f"/api/v1/problems/{problem_id}/vote", auth=True, json={"vote": vote})

    async def course_progress(self, slug: str) -> dict:
        return await self._request("GET", f"/api/v1/courses/{slug}/progress")

    async def enroll(self, slug: str) -> dict:
        return await self._request("POST", f"/api/v1/courses/{slug}/enroll", auth=True)

    # --- Ranklist ---

    async def ranklist(
        self,
        course_slug: str | None = None,
        *,
        page: int = 1,
        per_page: int | None = None,
        q: str | None = None,
        institution: str | None = None,
        country: str | None = None,
    ) -> dict:
        """Global ranklist, or a course's when course_slug is given."""
        params: dict[str, Any] = {"page": page}
        for key, value in (("per_page", per_page), ("q", q), ("institution", institution), ("country", country)):
            if value:
                params[key] = value
        path = f"/api/v1/ranklist/courses/{course_slug}" if course_slug else "/api/v1/ranklist/global"
        return await self._request("GET", path, params=params)

    async def course_top(self, course_slug: str) -> dict:
        return await self._request("GET", f"/api/v1/ranklist/courses/{course_slug}/top")

    async def my_rank(self) -> dict:
        return await self._request("GET", "/api/v1/ranklist/me", auth=True)

    async def profiles_bulk(self, ids: list[int]) -> list[dict]:
        data = await self._request("POST", "/api/v1/profiles/bulk", json={"ids": ids})
        return data["profiles"]
