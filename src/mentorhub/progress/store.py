"""Progress Store: idempotent writes of Attempt, Solve, ballot and enrollment facts.

Every fact table is keyed by its owning (user, target) pair. Inserts go through
INSERT ... ON CONFLICT DO NOTHING so a duplicate (retry, second tab,
double-click) commits nothing and is reported as "already there", never as an
error. Concurrent duplicates converge on the row that committed first.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from datetime import datetime
from typing import Any

from sqlalchemy import func, select, update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession

from mentorhub.db.models import (
    Attempt,
    ContentLike,
    Course,
    CourseProblem,
    Enrollment,
    Problem,
    ProblemVote,
    Solve,
)
from mentorhub.progress.errors import CourseNotFound, ProblemNotFound
from mentorhub.progress.state import ProgressFacts, problem_sort_key

logger = logging.getLogger(__name__)

VOTE_VALUES = ("up", "down")


def dialect_insert(db: AsyncSession, model: type[Any]) -> Any:  # noqa: ANN401
    """INSERT construct for the session's backend with ON CONFLICT support."""
    dialect = db.get_bind().dialect.name
    if dialect == "postgresql":
        return postgresql.insert(model)
    if dialect == "sqlite":
        return sqlite.insert(model)
    msg = f"Unsupported database dialect: {dialect}"
    raise RuntimeError(msg)


async def insert_ignore(
    db: AsyncSession,
    model: type[Any],
    values: dict[str, Any],
    key_columns: Iterable[str],
) -> bool:
    """Insert a row unless its key already exists. Returns True if this call created it."""
    key_columns = list(key_columns)
    stmt = (
        dialect_insert(db, model)
        .values(**values)
        .on_conflict_do_nothing(index_elements=key_columns)
        .returning(getattr(model, key_columns[0]))
    )
    result = await db.execute(stmt)
    created = result.scalar_one_or_none() is not None
    if not created:
        logger.debug("Duplicate %s row ignored: %s", model.__tablename__, values)
    return created


# ---------------------------------------------------------------------------
# Attempts & solves
# ---------------------------------------------------------------------------


async def insert_attempt(db: AsyncSession, user_id: int, problem_id: int, attempted_at: datetime) -> bool:
    """Record the first attempt. A later duplicate never moves attempted_at."""
    return await insert_ignore(
        db,
        Attempt,
        {"user_id": user_id, "problem_id": problem_id, "attempted_at": attempted_at},
        ("user_id", "problem_id"),
    )


async def insert_solve(db: AsyncSession, user_id: int, problem_id: int, solved_at: datetime) -> bool:
    """Record the solve. Solves are immutable; there is no unsolve."""
    return await insert_ignore(
        db,
        Solve,
        {"user_id": user_id, "problem_id": problem_id, "solved_at": solved_at},
        ("user_id", "problem_id"),
    )


async def mark_unlocked(db: AsyncSession, user_id: int, problem_id: int, unlocked_at: datetime) -> bool:
    """Persist the unlock marker once. Returns True if this call wrote it."""
    result = await db.execute(
        update(Attempt)
        .where(
            Attempt.user_id == user_id,
            Attempt.problem_id == problem_id,
            Attempt.unlocked_at.is_(None),
        )
        .values(unlocked_at=unlocked_at)
    )
    return (result.rowcount or 0) > 0


async def get_progress_facts(
    db: AsyncSession, user_id: int, problem_ids: list[int],
) -> dict[int, ProgressFacts]:
    """Load attempt/solve facts for one user over a set of problems."""
    if not problem_ids:
        return {}

    attempts = await db.execute(
        select(Attempt.problem_id, Attempt.attempted_at, Attempt.unlocked_at)
        .where(Attempt.user_id == user_id, Attempt.problem_id.in_(problem_ids))
    )
    attempt_map = {row.problem_id: row for row in attempts}

    solves = await db.execute(
        select(Solve.problem_id, Solve.solved_at)
        .where(Solve.user_id == user_id, Solve.problem_id.in_(problem_ids))
    )
    solve_map = {row.problem_id: row.solved_at for row in solves}

    facts: dict[int, ProgressFacts] = {}
    for pid in problem_ids:
        attempt = attempt_map.get(pid)
        facts[pid] = ProgressFacts(
            attempted_at=attempt.attempted_at if attempt else None,
            unlocked_at=attempt.unlocked_at if attempt else None,
            solved_at=solve_map.get(pid),
        )
    return facts


async def count_by_problem(
    db: AsyncSession, model: type[Attempt] | type[Solve], problem_ids: list[int],
) -> dict[int, int]:
    """Count Attempt or Solve rows per problem (zero-filled)."""
    counts = {pid: 0 for pid in problem_ids}
    if not problem_ids:
        return counts
    result = await db.execute(
        select(model.problem_id, func.count().label("cnt"))
        .where(model.problem_id.in_(problem_ids))
        .group_by(model.problem_id)
    )
    for row in result:
        counts[row.problem_id] = row.cnt
    return counts


async def get_problem_course_ids(db: AsyncSession, problem_id: int) -> list[int]:
    """Courses whose problem set contains the problem."""
    result = await db.execute(
        select(CourseProblem.course_id).where(CourseProblem.problem_id == problem_id)
    )
    return sorted({row.course_id for row in result})


# ---------------------------------------------------------------------------
# Ballots
# ---------------------------------------------------------------------------


async def cast_problem_vote(
    db: AsyncSession, user_id: int, problem_id: int, vote: str, cast_at: datetime,
) -> bool:
    """One vote per (problem, user), forever. A second vote changes nothing."""
    if vote not in VOTE_VALUES:
        msg = f"Unknown vote value: {vote}"
        raise ValueError(msg)
    return await insert_ignore(
        db,
        ProblemVote,
        {"problem_id": problem_id, "user_id": user_id, "vote": vote, "cast_at": cast_at},
        ("problem_id", "user_id"),
    )


async def get_vote_counts(db: AsyncSession, problem_id: int) -> dict[str, int]:
    """Derive vote counts by grouping ballots by value."""
    counts = dict.fromkeys(VOTE_VALUES, 0)
    result = await db.execute(
        select(ProblemVote.vote, func.count().label("cnt"))
        .where(ProblemVote.problem_id == problem_id)
        .group_by(ProblemVote.vote)
    )
    for row in result:
        counts[row.vote] = row.cnt
    return counts


async def get_user_vote(db: AsyncSession, user_id: int, problem_id: int) -> str | None:
    result = await db.execute(
        select(ProblemVote.vote).where(
            ProblemVote.problem_id == problem_id, ProblemVote.user_id == user_id,
        )
    )
    return result.scalar_one_or_none()


async def cast_like(db: AsyncSession, user_id: int, target_id: str, cast_at: datetime) -> bool:
    return await insert_ignore(
        db,
        ContentLike,
        {"target_id": target_id, "user_id": user_id, "cast_at": cast_at},
        ("target_id", "user_id"),
    )


async def get_like_count(db: AsyncSession, target_id: str) -> int:
    result = await db.execute(
        select(func.count()).select_from(ContentLike).where(ContentLike.target_id == target_id)
    )
    return int(result.scalar_one())


async def has_liked(db: AsyncSession, user_id: int, target_id: str) -> bool:
    result = await db.execute(
        select(ContentLike.user_id).where(
            ContentLike.target_id == target_id, ContentLike.user_id == user_id,
        )
    )
    return result.scalar_one_or_none() is not None


# ---------------------------------------------------------------------------
# Enrollments
# ---------------------------------------------------------------------------


async def insert_enrollment(db: AsyncSession, user_id: int, course_id: int, enrolled_at: datetime) -> bool:
    return await insert_ignore(
        db,
        Enrollment,
        {"user_id": user_id, "course_id": course_id, "enrolled_at": enrolled_at},
        ("user_id", "course_id"),
    )


async def is_enrolled(db: AsyncSession, user_id: int, course_id: int) -> bool:
    result = await db.execute(
        select(Enrollment.user_id).where(Enrollment.user_id == user_id, Enrollment.course_id == course_id)
    )
    return result.scalar_one_or_none() is not None


async def get_enrollment_counts(db: AsyncSession, course_ids: list[int]) -> dict[int, int]:
    """Enrollment count per course (zero-filled, duplicates ignored)."""
    unique_ids = sorted(set(course_ids))
    counts = {cid: 0 for cid in unique_ids}
    if not unique_ids:
        return counts
    result = await db.execute(
        select(Enrollment.course_id, func.count().label("cnt"))
        .where(Enrollment.course_id.in_(unique_ids))
        .group_by(Enrollment.course_id)
    )
    for row in result:
        counts[row.course_id] = row.cnt
    return counts


# ---------------------------------------------------------------------------
# Catalog
# ---------------------------------------------------------------------------


async def get_problem(db: AsyncSession, problem_id: int) -> Problem:
    result = await db.execute(select(Problem).where(Problem.id == problem_id))
    problem = result.scalar_one_or_none()
    if problem is None:
        raise ProblemNotFound(problem_id)
    return problem


async def get_course_by_slug(db: AsyncSession, slug: str) -> Course:
    result = await db.execute(select(Course).where(Course.slug == slug))
    course = result.scalar_one_or_none()
    if course is None:
        raise CourseNotFound(slug)
    return course


async def get_course_problems(db: AsyncSession, course_id: int) -> list[Problem]:
    """Problems of a course ordered easy, medium, hard, then by ordinal."""
    result = await db.execute(
        select(Problem, CourseProblem.ordinal)
        .join(CourseProblem, CourseProblem.problem_id == Problem.id)
        .where(CourseProblem.course_id == course_id)
    )
    rows = result.all()
    rows.sort(key=lambda row: (*problem_sort_key(row[0].difficulty, row[1]), row[0].id))
    return [row[0] for row in rows]
