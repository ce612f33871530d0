"""Progress service: attempt, unlock, solve and ballot operations.

Write paths require an identity and are idempotent: repeating an operation is
reported as "already done" and changes nothing. Unlock state is never stored
as the source of truth; it is recomputed from attempted_at on every read and
the unlocked_at marker is written lazily.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import datetime

from redis.asyncio import Redis
from sqlalchemy.ext.asyncio import AsyncSession

from mentorhub.db.models import Attempt, Solve
from mentorhub.progress import store
from mentorhub.progress.clock import server_now, to_epoch_ms
from mentorhub.progress.errors import AuthenticationRequired, SolutionLocked, UnlockNotDue
from mentorhub.progress.state import (
    ProgressFacts,
    ProgressStatus,
    ProgressView,
    compute_view,
    unlock_delay,
)
from mentorhub.ranklist.aggregate import bump_course_stats
from mentorhub.ranklist.service import invalidate_ranklist_cache, publish_ranklist_update

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProgressResult:
    created: bool
    message: str
    view: ProgressView


def _require_user(user_id: int | None) -> int:
    if user_id is None:
        raise AuthenticationRequired("Authentication required")
    return user_id


def serialize_view(view: ProgressView) -> dict:
    """Wire form of a view: timestamps as epoch milliseconds."""
    return {
        "problem_id": view.problem_id,
        "status": view.status.value,
        "unlocked": view.unlocked,
        "unlock_deadline": to_epoch_ms(view.unlock_deadline) if view.unlock_deadline else None,
        "remaining_seconds": view.remaining_seconds,
        "attempted_at": to_epoch_ms(view.attempted_at) if view.attempted_at else None,
        "solved_at": to_epoch_ms(view.solved_at) if view.solved_at else None,
    }


async def publish_progress_update(redis: Redis | None, user_id: int, view: ProgressView) -> None:
    """Push a progress change to the user's other WebSocket connections."""
    if redis is None:
        return
    try:
        await redis.publish(
            f"ws:user:{user_id}",
            json.dumps({"event": "progress_update", "data": serialize_view(view)}),
        )
    except Exception:
        logger.warning("Failed to publish progress update", exc_info=True)


async def _load_view(
    db: AsyncSession, user_id: int, problem_id: int, difficulty: str | None, now: datetime,
) -> ProgressView:
    facts = (await store.get_progress_facts(db, user_id, [problem_id]))[problem_id]
    return compute_view(problem_id, facts, difficulty, now)


async def view_problem(
    db: AsyncSession, user_id: int | None, problem_id: int, now: datetime | None = None,
) -> ProgressView:
    """Current state of a problem for a user. Anonymous viewers see it unattempted.

    A time-unlocked problem without a marker gets the marker persisted here.
    """
    now = now or server_now()
    problem = await store.get_problem(db, problem_id)
    if user_id is None:
        return compute_view(problem_id, ProgressFacts(), problem.difficulty, now)

    view = await _load_view(db, user_id, problem_id, problem.difficulty, now)
    if view.needs_unlock_marker:
        await store.mark_unlocked(db, user_id, problem_id, now)
        await db.commit()
    return view


async def record_attempt(
    db: AsyncSession,
    user_id: int | None,
    problem_id: int,
    now: datetime | None = None,
    redis: Redis | None = None,
) -> ProgressResult:
    """Start the unlock timer. A repeat attempt never moves attempted_at."""
    user_id = _require_user(user_id)
    now = now or server_now()
    problem = await store.get_problem(db, problem_id)

    created = await store.insert_attempt(db, user_id, problem_id, now)
    await db.commit()

    view = await _load_view(db, user_id, problem_id, problem.difficulty, now)
    if created:
        logger.info("Attempt recorded: user=%s problem=%s", user_id, problem_id)
        await publish_progress_update(redis, user_id, view)
    return ProgressResult(
        created=created,
        message="Attempt recorded" if created else "Already attempted",
        view=view,
    )


async def record_solve(
    db: AsyncSession,
    user_id: int | None,
    problem_id: int,
    now: datetime | None = None,
    redis: Redis | None = None,
) -> ProgressResult:
    """Mark a problem solved, unlocking it immediately.

    Course rollups are bumped in the same transaction and only when this call
    created the Solve row, so retries never double count.
    """
    user_id = _require_user(user_id)
    now = now or server_now()
    problem = await store.get_problem(db, problem_id)

    # A solve without a prior attempt is stamped as attempted at solve time
    await store.insert_attempt(db, user_id, problem_id, now)
    created = await store.insert_solve(db, user_id, problem_id, now)
    await store.mark_unlocked(db, user_id, problem_id, now)

    course_ids: list[int] = []
    if created:
        course_ids = await store.get_problem_course_ids(db, problem_id)
        await bump_course_stats(db, user_id, course_ids, now)
    await db.commit()

    view = await _load_view(db, user_id, problem_id, problem.difficulty, now)
    if created:
        logger.info("Solve recorded: user=%s problem=%s courses=%s", user_id, problem_id, course_ids)
        await invalidate_ranklist_cache(redis, course_ids)
        await publish_ranklist_update(redis, user_id, course_ids)
        await publish_progress_update(redis, user_id, view)
    return ProgressResult(
        created=created,
        message="Solved" if created else "Already solved",
        view=view,
    )


async def fire_unlock(
    db: AsyncSession,
    user_id: int | None,
    problem_id: int,
    now: datetime | None = None,
    redis: Redis | None = None,
) -> ProgressView:
    """Persist the unlock once its deadline has passed. Safe to fire repeatedly."""
    user_id = _require_user(user_id)
    now = now or server_now()
    problem = await store.get_problem(db, problem_id)

    view = await _load_view(db, user_id, problem_id, problem.difficulty, now)
    if view.status == ProgressStatus.UNATTEMPTED:
        raise UnlockNotDue(problem_id, int(unlock_delay(problem.difficulty).total_seconds()))
    if not view.unlocked:
        raise UnlockNotDue(problem_id, view.remaining_seconds)

    if await store.mark_unlocked(db, user_id, problem_id, now):
        await db.commit()
        await publish_progress_update(redis, user_id, view)
    return view


async def get_solution(
    db: AsyncSession, user_id: int | None, problem_id: int, now: datetime | None = None,
) -> dict:
    """Solution link, only once the problem is unlocked for the caller."""
    user_id = _require_user(user_id)
    view = await view_problem(db, user_id, problem_id, now)
    if not view.unlocked:
        raise SolutionLocked(
            problem_id,
            view.remaining_seconds,
            attempted=view.status != ProgressStatus.UNATTEMPTED,
        )
    problem = await store.get_problem(db, problem_id)
    return {"problem_id": problem_id, "solution_url": problem.solution_url}


async def get_course_progress(
    db: AsyncSession, slug: str, user_id: int | None, now: datetime | None = None,
) -> dict:
    """Course problem list with the caller's views and per-problem counts."""
    now = now or server_now()
    course = await store.get_course_by_slug(db, slug)
    problems = await store.get_course_problems(db, course.id)
    problem_ids = [p.id for p in problems]

    solved_counts = await store.count_by_problem(db, Solve, problem_ids)
    attempted_counts = await store.count_by_problem(db, Attempt, problem_ids)

    facts: dict[int, ProgressFacts] = {}
    enrolled = False
    if user_id is not None:
        facts = await store.get_progress_facts(db, user_id, problem_ids)
        enrolled = await store.is_enrolled(db, user_id, course.id)

    items = []
    markers_written = False
    for problem in problems:
        view = compute_view(problem.id, facts.get(problem.id, ProgressFacts()), problem.difficulty, now)
        if user_id is not None and view.needs_unlock_marker:
            markers_written |= await store.mark_unlocked(db, user_id, problem.id, now)
        items.append({
            "problem": problem,
            "view": view,
            "solved_count": solved_counts[problem.id],
            "attempted_count": attempted_counts[problem.id],
        })
    if markers_written:
        await db.commit()

    return {"course": course, "enrolled": enrolled, "items": items}


async def enroll(
    db: AsyncSession, user_id: int | None, slug: str, now: datetime | None = None,
) -> dict:
    user_id = _require_user(user_id)
    course = await store.get_course_by_slug(db, slug)
    created = await store.insert_enrollment(db, user_id, course.id, now or server_now())
    await db.commit()
    return {
        "course_id": course.id,
        "created": created,
        "message": "Enrolled" if created else "Already enrolled",
    }


async def vote(
    db: AsyncSession,
    user_id: int | None,
    problem_id: int,
    value: str,
    now: datetime | None = None,
) -> dict:
    """Cast the caller's single vote on a problem."""
    user_id = _require_user(user_id)
    await store.get_problem(db, problem_id)
    created = await store.cast_problem_vote(db, user_id, problem_id, value, now or server_now())
    await db.commit()
    summary = await problem_votes(db, problem_id, user_id)
    return {
        **summary,
        "created": created,
        "message": "Vote recorded" if created else "Already voted",
    }


async def problem_votes(db: AsyncSession, problem_id: int, user_id: int | None = None) -> dict:
    await store.get_problem(db, problem_id)
    counts = await store.get_vote_counts(db, problem_id)
    user_vote = await store.get_user_vote(db, user_id, problem_id) if user_id is not None else None
    return {"problem_id": problem_id, "counts": counts, "user_vote": user_vote}


async def like(
    db: AsyncSession, user_id: int | None, target_id: str, now: datetime | None = None,
) -> dict:
    user_id = _require_user(user_id)
    created = await store.cast_like(db, user_id, target_id, now or server_now())
    await db.commit()
    return {
        **await like_status(db, target_id, user_id),
        "created": created,
        "message": "Liked" if created else "Already liked",
    }


async def like_status(db: AsyncSession, target_id: str, user_id: int | None = None) -> dict:
    liked = await store.has_liked(db, user_id, target_id) if user_id is not None else False
    return {"target_id": target_id, "likes": await store.get_like_count(db, target_id), "liked": liked}
