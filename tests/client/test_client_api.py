"""MentorHubClient tests against a mocked transport."""

from __future__ import annotations

import json

import httpx
import pytest

from mentorhub.client.api import MentorHubClient
from mentorhub.client.errors import (
    AuthenticationRequired,
    MentorHubError,
    NotFound,
    SolutionLocked,
    StoreUnavailable,
    UnlockNotDue,
)

pytestmark = pytest.mark.asyncio


def _client(handler, token: str | None = "tok") -> MentorHubClient:
    return MentorHubClient("http://api.test", token, transport=httpx.MockTransport(handler))


async def test_write_without_token_refused_locally() -> None:
    calls: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return httpx.Response(200, json={})

    async with _client(handler, token=None) as api:
        for call in (api.attempt(1), api.solve(1), api.unlock(1), api.my_rank()):
            with pytest.raises(AuthenticationRequired):
                await call
    assert calls == []


async def test_bearer_header_and_json_body() -> None:
    seen: dict = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["auth"] = request.headers.get("authorization")
        seen["body"] = json.loads(request.content)
        seen["path"] = request.url.path
        return httpx.Response(200, json={"problem_id": 3, "counts": {"up": 1, "down": 0}})

    async with _client(handler) as api:
        await api.vote(3, "up")
    assert seen == {"auth": "Bearer tok", "body": {"vote": "up"}, "path": "/api/v1/problems/3/vote"}


async def test_ranklist_query_params() -> None:
    seen: list[httpx.URL] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request.url)
        return httpx.Response(200, json={"entries": []})

    async with _client(handler, token=None) as api:
        await api.ranklist(page=2, q="ali")
        await api.ranklist("dsa", country="US")

    assert seen[0].path == "/api/v1/ranklist/global"
    assert dict(seen[0].params) == {"page": "2", "q": "ali"}
    assert seen[1].path == "/api/v1/ranklist/courses/dsa"
    assert dict(seen[1].params) == {"page": "1", "country": "US"}


@pytest.mark.parametrize(
    ("status", "body", "error"),
    [
        (401, {"detail": "Authentication required", "login_url": "/signin"}, AuthenticationRequired),
        (404, {"detail": "Problem 9 not found"}, NotFound),
        (409, {"detail": "Solution unlocks in 30s", "remaining_seconds": 30}, UnlockNotDue),
        (403, {"detail": "locked", "remaining_seconds": 60, "attempted": True}, SolutionLocked),
        (503, {"detail": "Progress store unavailable"}, StoreUnavailable),
        (500, {"detail": "Internal server error"}, MentorHubError),
    ],
)
async def test_error_mapping(status: int, body: dict, error: type[MentorHubError]) -> None:
    async with _client(lambda request: httpx.Response(status, json=body)) as api:
        with pytest.raises(error) as exc_info:
            await api.unlock(9)

    assert type(exc_info.value) is error
    assert exc_info.value.status_code == status
    if error is AuthenticationRequired:
        assert exc_info.value.login_url == "/signin"
    if error is UnlockNotDue:
        assert exc_info.value.remaining_seconds == 30
    if error is SolutionLocked:
        assert exc_info.value.attempted is True


async def test_transport_error_is_store_unavailable() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("refused", request=request)

    async with _client(handler) as api:
        with pytest.raises(StoreUnavailable):
            await api.solve(1)


async def test_server_time() -> None:
    async with _client(lambda request: httpx.Response(200, json={"serverTime": 1234})) as api:
        assert await api.server_time() == 1234
