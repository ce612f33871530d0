"""Solve-fact sources for the ranklist.

Both sources answer the same question through fetch_solve_facts(scope), so
the ranking code cannot drift between the small widgets (raw fold over the
solves table) and the paginated views (pre-aggregated course_user_stats).
"""

from __future__ import annotations

from typing import Protocol

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from mentorhub.db.models import CourseProblem, CourseUserStat, Solve
from mentorhub.ranklist.ranking import RanklistScope, SolveFact


class SolveFactSource(Protocol):
    name: str

    async def fetch_solve_facts(self, scope: RanklistScope) -> list[SolveFact]: ...


class RawSolveSource:
    """Folds raw Solve rows, scoped to the course's problem set."""

    name = "raw"

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def fetch_solve_facts(self, scope: RanklistScope) -> list[SolveFact]:
        query = select(Solve.user_id, Solve.solved_at)
        if not scope.is_global:
            course_problems = select(CourseProblem.problem_id).where(
                CourseProblem.course_id == scope.course_id
            )
            query = query.where(Solve.problem_id.in_(course_problems))

        result = await self.db.execute(query.order_by(Solve.solved_at.asc()))
        return [SolveFact(user_id=row.user_id, solves=1, first_solved_at=row.solved_at) for row in result]


class AggregateSource:
    """Reads the materialized per-course rollup. Global scope sums across courses."""

    name = "aggregate"

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def fetch_solve_facts(self, scope: RanklistScope) -> list[SolveFact]:
        query = select(
            CourseUserStat.user_id,
            CourseUserStat.total_solves,
            CourseUserStat.first_solved_at,
        ).where(CourseUserStat.total_solves > 0)
        if not scope.is_global:
            query = query.where(CourseUserStat.course_id == scope.course_id)

        result = await self.db.execute(query)
        return [
            SolveFact(user_id=row.user_id, solves=row.total_solves, first_solved_at=row.first_solved_at)
            for row in result
        ]


class FallbackSource:
    """Primary source, falling back to a secondary one when the primary is empty.

    Used for the aggregate table before its first rebuild.
    """

    def __init__(self, primary: SolveFactSource, fallback: SolveFactSource) -> None:
        self.primary = primary
        self.fallback = fallback
        self.name = primary.name

    async def fetch_solve_facts(self, scope: RanklistScope) -> list[SolveFact]:
        facts = await self.primary.fetch_solve_facts(scope)
        if facts:
            return facts
        return await self.fallback.fetch_solve_facts(scope)
