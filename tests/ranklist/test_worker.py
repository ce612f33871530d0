"""Reconcile worker tests."""

from __future__ import annotations

import json
from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy import select

from conftest import T0
from mentorhub.client.ranklist import RanklistView
from mentorhub.db.models import CourseUserStat, Solve
from mentorhub.ranklist.worker import RanklistWorkerSettings, _reconcile_minutes, reconcile_course_stats

pytestmark = pytest.mark.asyncio


async def test_reconcile_rebuilds_and_notifies(db_session, alice, dsa_course) -> None:
    course, problems = dsa_course
    db_session.add(Solve(user_id=alice.id, problem_id=problems[0].id, solved_at=T0))
    await db_session.commit()

    redis = AsyncMock()
    patterns: list[str] = []

    async def scan_iter(match: str):
        patterns.append(match)
        for key in ():
            yield key

    redis.scan_iter = scan_iter
    written = await reconcile_course_stats({"redis": redis})

    assert written == 1
    stat = (await db_session.execute(select(CourseUserStat))).scalar_one()
    assert (stat.course_id, stat.total_solves) == (course.id, 1)
    assert patterns == ["ranklist:global:page:*", f"ranklist:course:{course.id}:page:*"]
    channel, raw = redis.publish.call_args[0]
    assert channel == "pubsub:ranklist_update"
    assert json.loads(raw)["scopes"] == ["global", f"course:{course.id}"]


async def test_reconcile_refreshes_open_course_views(db_session, alice, dsa_course) -> None:
    course, problems = dsa_course
    db_session.add(Solve(user_id=alice.id, problem_id=problems[1].id, solved_at=T0))
    await db_session.commit()

    redis = AsyncMock()

    async def no_keys(*args, **kwargs):
        for key in ():
            yield key

    redis.scan_iter = no_keys
    await reconcile_course_stats({"redis": redis})
    update = json.loads(redis.publish.call_args[0][1])

    page = {"scope": f"course:{course.id}", "entries": []}
    api = MagicMock()
    api.ranklist = AsyncMock(return_value=page)
    view = RanklistView(api, "dsa")
    await view.refresh()

    assert await view.handle_event({"channel": "ranklist", "data": update}) is True
    assert api.ranklist.await_count == 2


async def test_reconcile_without_solves_is_quiet(database) -> None:
    redis = AsyncMock()
    assert await reconcile_course_stats({"redis": redis}) == 0
    redis.publish.assert_not_called()


def test_cron_schedule() -> None:
    assert _reconcile_minutes() == {0, 15, 30, 45}
    assert RanklistWorkerSettings.functions == [reconcile_course_stats]
