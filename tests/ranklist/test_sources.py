"""Raw and aggregate sources must rank identically."""

from __future__ import annotations

from datetime import timedelta

import pytest

from conftest import T0, make_course, make_user
from mentorhub.progress import service
from mentorhub.ranklist.aggregate import rebuild_course_stats
from mentorhub.ranklist.ranking import RanklistScope, SolveFact
from mentorhub.ranklist.service import rank
from mentorhub.ranklist.sources import AggregateSource, FallbackSource, RawSolveSource

pytestmark = pytest.mark.asyncio


class _StaticSource:
    name = "static"

    def __init__(self, facts: list[SolveFact]) -> None:
        self.facts = facts
        self.calls = 0

    async def fetch_solve_facts(self, scope: RanklistScope) -> list[SolveFact]:
        self.calls += 1
        return self.facts


async def _solve(db, user, problem, minutes: int) -> None:
    await service.record_solve(db, user.id, problem.id, now=T0 + timedelta(minutes=minutes))


async def test_course_scope_parity(db_session, alice, bob, dsa_course) -> None:
    course, problems = dsa_course
    carol = await make_user(db_session, "carol")
    await _solve(db_session, alice, problems[0], 5)
    await _solve(db_session, bob, problems[0], 1)
    await _solve(db_session, bob, problems[1], 2)
    await _solve(db_session, carol, problems[2], 5)
    await _solve(db_session, alice, problems[1], 9)

    scope = RanklistScope.course(course.id)
    raw = await rank(RawSolveSource(db_session), scope)
    agg = await rank(AggregateSource(db_session), scope)
    assert raw == agg
    assert [r.user_id for r in raw] == [bob.id, alice.id, carol.id]


async def test_raw_course_scope_ignores_other_courses(db_session, alice, dsa_course) -> None:
    course, _ = dsa_course
    _, other = await make_course(db_session, "sql", [("joins", "easy")])
    await _solve(db_session, alice, other[0], 1)

    assert await rank(RawSolveSource(db_session), RanklistScope.course(course.id)) == []
    assert len(await rank(RawSolveSource(db_session), RanklistScope.global_scope())) == 1


async def test_rebuild_matches_incremental(db_session, alice, bob, dsa_course) -> None:
    course, problems = dsa_course
    await _solve(db_session, alice, problems[0], 1)
    await _solve(db_session, bob, problems[2], 2)
    before = await rank(AggregateSource(db_session), RanklistScope.course(course.id))

    await rebuild_course_stats(db_session)
    after = await rank(AggregateSource(db_session), RanklistScope.course(course.id))
    assert before == after


async def test_fallback_used_only_when_primary_empty() -> None:
    fact = SolveFact(user_id=1, solves=1, first_solved_at=T0)
    empty, full = _StaticSource([]), _StaticSource([fact])

    assert await FallbackSource(empty, full).fetch_solve_facts(RanklistScope.global_scope()) == [fact]

    backup = _StaticSource([])
    assert await FallbackSource(full, backup).fetch_solve_facts(RanklistScope.global_scope()) == [fact]
    assert backup.calls == 0
