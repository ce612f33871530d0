"""Progress API: attempts, solves, unlocks, solutions, ballots and courses."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from redis.asyncio import Redis
from sqlalchemy.ext.asyncio import AsyncSession

from mentorhub.auth.dependencies import get_current_user, get_optional_user
from mentorhub.database import get_session
from mentorhub.db.models import User
from mentorhub.dependencies import get_redis_dep
from mentorhub.progress import service
from mentorhub.progress.schemas import (
    CourseProblemResponse,
    CourseProgressResponse,
    EnrollmentCountsRequest,
    EnrollmentCountsResponse,
    EnrollResponse,
    LikeResponse,
    LikeStatusResponse,
    ProgressActionResponse,
    ProgressViewResponse,
    SolutionResponse,
    VoteRequest,
    VoteResponse,
    VoteSummaryResponse,
)
from mentorhub.progress.state import ProgressView, normalize_difficulty
from mentorhub.progress.store import get_enrollment_counts

router = APIRouter(prefix="/api/v1", tags=["Progress"])


def _view(view: ProgressView) -> ProgressViewResponse:
    return ProgressViewResponse(**service.serialize_view(view))


def _action(result: service.ProgressResult) -> ProgressActionResponse:
    return ProgressActionResponse(created=result.created, message=result.message, progress=_view(result.view))


# ── Problems ──


@router.get("/problems/{problem_id}/progress", response_model=ProgressViewResponse)
async def problem_progress(
    problem_id: int,
    user: User | None = Depends(get_optional_user),
    db: AsyncSession = Depends(get_session),  # noqa: B008
) -> ProgressViewResponse:
    """Caller's state for one problem. Anonymous callers see it unattempted."""
    view = await service.view_problem(db, user.id if user else None, problem_id)
    return _view(view)


@router.post("/problems/{problem_id}/attempt", response_model=ProgressActionResponse)
async def attempt_problem(
    problem_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),  # noqa: B008
    redis: Redis | None = Depends(get_redis_dep),
) -> ProgressActionResponse:
    """Record the first attempt and start the unlock timer."""
    return _action(await service.record_attempt(db, user.id, problem_id, redis=redis))


@router.post("/problems/{problem_id}/solve", response_model=ProgressActionResponse)
async def solve_problem(
    problem_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),  # noqa: B008
    redis: Redis | None = Depends(get_redis_dep),
) -> ProgressActionResponse:
    return _action(await service.record_solve(db, user.id, problem_id, redis=redis))


@router.post("/problems/{problem_id}/unlock", response_model=ProgressViewResponse)
async def unlock_problem(
    problem_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),  # noqa: B008
    redis: Redis | None = Depends(get_redis_dep),
) -> ProgressViewResponse:
    """Fired by the client's unlock timer. 409 with the countdown if early."""
    return _view(await service.fire_unlock(db, user.id, problem_id, redis=redis))


@router.get("/problems/{problem_id}/solution", response_model=SolutionResponse)
async def problem_solution(
    problem_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),  # noqa: B008
) -> SolutionResponse:
    return SolutionResponse(**await service.get_solution(db, user.id, problem_id))


@router.post("/problems/{problem_id}/vote", response_model=VoteResponse)
async def vote_problem(
    problem_id: int,
    body: VoteRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),  # noqa: B008
) -> VoteResponse:
    return VoteResponse(**await service.vote(db, user.id, problem_id, body.vote))


@router.get("/problems/{problem_id}/votes", response_model=VoteSummaryResponse)
async def problem_votes(
    problem_id: int,
    user: User | None = Depends(get_optional_user),
    db: AsyncSession = Depends(get_session),  # noqa: B008
) -> VoteSummaryResponse:
    return VoteSummaryResponse(**await service.problem_votes(db, problem_id, user.id if user else None))


# ── Likes ──


@router.post("/likes/{target_id}", response_model=LikeResponse)
async def like_target(
    target_id: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),  # noqa: B008
) -> LikeResponse:
    return LikeResponse(**await service.like(db, user.id, target_id))


@router.get("/likes/{target_id}", response_model=LikeStatusResponse)
async def like_status(
    target_id: str,
    user: User | None = Depends(get_optional_user),
    db: AsyncSession = Depends(get_session),  # noqa: B008
) -> LikeStatusResponse:
    return LikeStatusResponse(**await service.like_status(db, target_id, user.id if user else None))


# ── Courses ──


@router.post("/courses/enrollment-counts", response_model=EnrollmentCountsResponse)
async def enrollment_counts(
    body: EnrollmentCountsRequest,
    db: AsyncSession = Depends(get_session),  # noqa: B008
) -> EnrollmentCountsResponse:
    return EnrollmentCountsResponse(counts=await get_enrollment_counts(db, body.course_ids))


@router.get("/courses/{slug}/progress", response_model=CourseProgressResponse)
async def course_progress(
    slug: str,
    user: User | None = Depends(get_optional_user),
    db: AsyncSession = Depends(get_session),  # noqa: B008
) -> CourseProgressResponse:
    """Ordered problem list with the caller's progress and per-problem counts."""
    data = await service.get_course_progress(db, slug, user.id if user else None)
    course = data["course"]
    return CourseProgressResponse(
        course_id=course.id,
        slug=course.slug,
        title=course.title,
        enrolled=data["enrolled"],
        problems=[
            CourseProblemResponse(
                id=item["problem"].id,
                title=item["problem"].title,
                platform=item["problem"].platform,
                link=item["problem"].link,
                difficulty=normalize_difficulty(item["problem"].difficulty).value,
                solved_count=item["solved_count"],
                attempted_count=item["attempted_count"],
                progress=_view(item["view"]),
            )
            for item in data["items"]
        ],
    )


@router.post("/courses/{slug}/enroll", response_model=EnrollResponse)
async def enroll_course(
    slug: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),  # noqa: B008
) -> EnrollResponse:
    return EnrollResponse(**await service.enroll(db, user.id, slug))
