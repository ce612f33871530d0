"""Ranklist API: global and course ranklists, top widgets, caller rank."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from redis.asyncio import Redis
from sqlalchemy.ext.asyncio import AsyncSession

from mentorhub.auth.dependencies import get_current_user
from mentorhub.database import get_session
from mentorhub.db.models import User
from mentorhub.dependencies import get_redis_dep
from mentorhub.progress.store import get_course_by_slug
from mentorhub.ranklist.ranking import RanklistScope
from mentorhub.ranklist.schemas import (
    MyRankResponse,
    RanklistEntryResponse,
    RanklistPageResponse,
    TopRanklistResponse,
)
from mentorhub.ranklist.service import (
    RanklistFilters,
    get_ranklist,
    get_top_ranklist,
    get_user_rank,
)

router = APIRouter(prefix="/api/v1/ranklist", tags=["Ranklist"])


def _page_response(data: dict) -> RanklistPageResponse:
    return RanklistPageResponse(
        **{k: v for k, v in data.items() if k != "entries"},
        entries=[RanklistEntryResponse(**e) for e in data["entries"]],
    )


@router.get("/global", response_model=RanklistPageResponse)
async def global_ranklist(
    page: int = Query(1, ge=1),
    per_page: int | None = Query(None, ge=1),
    q: str | None = Query(None, max_length=128),
    institution: str | None = Query(None),
    country: str | None = Query(None),
    db: AsyncSession = Depends(get_session),  # noqa: B008
    redis: Redis | None = Depends(get_redis_dep),
) -> RanklistPageResponse:
    """Global ranklist. Filters narrow the requested page only."""
    data = await get_ranklist(
        db,
        RanklistScope.global_scope(),
        page=page,
        per_page=per_page,
        filters=RanklistFilters(q=q, institution=institution, country=country),
        redis=redis,
    )
    return _page_response(data)


@router.get("/courses/{slug}", response_model=RanklistPageResponse)
async def course_ranklist(
    slug: str,
    page: int = Query(1, ge=1),
    per_page: int | None = Query(None, ge=1),
    q: str | None = Query(None, max_length=128),
    institution: str | None = Query(None),
    country: str | None = Query(None),
    db: AsyncSession = Depends(get_session),  # noqa: B008
    redis: Redis | None = Depends(get_redis_dep),
) -> RanklistPageResponse:
    course = await get_course_by_slug(db, slug)
    data = await get_ranklist(
        db,
        RanklistScope.course(course.id),
        page=page,
        per_page=per_page,
        filters=RanklistFilters(q=q, institution=institution, country=country),
        redis=redis,
    )
    return _page_response(data)


@router.get("/courses/{slug}/top", response_model=TopRanklistResponse)
async def course_top(
    slug: str,
    limit: int | None = Query(None, ge=1),
    db: AsyncSession = Depends(get_session),  # noqa: B008
) -> TopRanklistResponse:
    course = await get_course_by_slug(db, slug)
    data = await get_top_ranklist(db, course, limit)
    return TopRanklistResponse(
        scope=data["scope"],
        course_slug=data["course_slug"],
        fallback=data["fallback"],
        entries=[RanklistEntryResponse(**e) for e in data["entries"]],
    )


@router.get("/me", response_model=MyRankResponse)
async def my_rank(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),  # noqa: B008
) -> MyRankResponse:
    return MyRankResponse(**await get_user_rank(db, user.id))
