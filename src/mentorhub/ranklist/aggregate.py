"""course_user_stats maintenance.

The solve path bumps each affected (course, user) row exactly once per newly
created Solve. The reconcile job rebuilds rows from the solves table and only
ever raises totals, so total_solves never decreases.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any

from sqlalchemy import case, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from mentorhub.db.models import CourseProblem, CourseUserStat, Solve
from mentorhub.progress.store import dialect_insert

logger = logging.getLogger(__name__)


def _earliest(existing: Any, incoming: Any) -> Any:  # noqa: ANN401
    """SQL expression picking the earlier of two nullable timestamps."""
    return case(
        (existing.is_(None), incoming),
        (incoming < existing, incoming),
        else_=existing,
    )


async def bump_course_stats(
    db: AsyncSession, user_id: int, course_ids: list[int], solved_at: datetime,
) -> None:
    """Count one new solve for the user in every course containing the problem."""
    for course_id in course_ids:
        stmt = dialect_insert(db, CourseUserStat).values(
            course_id=course_id,
            user_id=user_id,
            total_solves=1,
            first_solved_at=solved_at,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["course_id", "user_id"],
            set_={
                "total_solves": CourseUserStat.total_solves + 1,
                "first_solved_at": _earliest(CourseUserStat.first_solved_at, stmt.excluded.first_solved_at),
            },
        )
        await db.execute(stmt)


async def rebuild_course_stats(db: AsyncSession, course_id: int | None = None) -> dict[int, int]:
    """Recompute rollups from solves. Returns rows written per course id.

    Existing totals are never lowered; first_solved_at only moves earlier.
    """
    query = (
        select(
            CourseProblem.course_id,
            Solve.user_id,
            func.count().label("total"),
            func.min(Solve.solved_at).label("first_solved_at"),
        )
        .join(CourseProblem, CourseProblem.problem_id == Solve.problem_id)
        .group_by(CourseProblem.course_id, Solve.user_id)
    )
    if course_id is not None:
        query = query.where(CourseProblem.course_id == course_id)

    rows = (await db.execute(query)).all()

    written: dict[int, int] = {}
    for row in rows:
        stmt = dialect_insert(db, CourseUserStat).values(
            course_id=row.course_id,
            user_id=row.user_id,
            total_solves=row.total,
            first_solved_at=row.first_solved_at,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["course_id", "user_id"],
            set_={
                "total_solves": case(
                    (stmt.excluded.total_solves > CourseUserStat.total_solves, stmt.excluded.total_solves),
                    else_=CourseUserStat.total_solves,
                ),
                "first_solved_at": _earliest(CourseUserStat.first_solved_at, stmt.excluded.first_solved_at),
            },
        )
        await db.execute(stmt)
        written[row.course_id] = written.get(row.course_id, 0) + 1

    await db.commit()
    logger.info("course_user_stats rebuilt: %d rows (course=%s)", len(rows), course_id)
    return written
