"""Ranklist service: paginated course/global ranklists, top widgets, "my rank".

Paginated views read the course_user_stats rollup (falling back to the raw
solves table before its first rebuild). Rendered unfiltered pages are cached
in Redis for a short TTL and invalidated on every new solve. Name, institution
and country filters are applied to the fetched page only: a search never
widens the window to other pages.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass

from redis.asyncio import Redis
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from mentorhub.config import get_settings
from mentorhub.db.models import Course, Enrollment
from mentorhub.profiles.service import choose_name, get_profiles_map
from mentorhub.progress.clock import to_epoch_ms
from mentorhub.ranklist.ranking import (
    RankedUser,
    RanklistScope,
    find_rank,
    paginate,
    rank_facts,
)
from mentorhub.ranklist.sources import (
    AggregateSource,
    FallbackSource,
    RawSolveSource,
    SolveFactSource,
)

logger = logging.getLogger(__name__)

RANKLIST_UPDATE_CHANNEL = "pubsub:ranklist_update"


@dataclass(frozen=True)
class RanklistFilters:
    """Page-local filters. Empty values match everything."""

    q: str | None = None
    institution: str | None = None
    country: str | None = None

    @property
    def active(self) -> bool:
        return bool(self.q or self.institution or self.country)

    def matches(self, entry: dict) -> bool:
        if self.q:
            needle = self.q.strip().lower()
            haystack = " ".join(
                str(entry.get(field) or "") for field in ("name", "username", "full_name")
            ).lower()
            if needle not in haystack:
                return False
        if self.institution and (entry.get("institution") or "").strip().lower() != self.institution.strip().lower():
            return False
        if self.country and (entry.get("country") or "").strip().lower() != self.country.strip().lower():
            return False
        return True


def build_page_cache_key(scope: RanklistScope, page: int, per_page: int) -> str:
    return f"ranklist:{scope.key}:page:{page}:{per_page}"


def paginated_source(db: AsyncSession) -> SolveFactSource:
    return FallbackSource(AggregateSource(db), RawSolveSource(db))


async def rank(source: SolveFactSource, scope: RanklistScope) -> list[RankedUser]:
    """Rank every user with at least one solve in scope."""
    return rank_facts(await source.fetch_solve_facts(scope))


def _entry(ranked: RankedUser, profile: dict | None) -> dict:
    profile = profile or {}
    return {
        "rank": ranked.rank,
        "user_id": ranked.user_id,
        "name": choose_name(profile, ranked.user_id),
        "username": profile.get("username"),
        "full_name": profile.get("full_name"),
        "institution": profile.get("institution"),
        "country": profile.get("country"),
        "avatar_url": profile.get("avatar_url"),
        "total_solves": ranked.total_solves,
        "first_solved_at": to_epoch_ms(ranked.first_solved_at) if ranked.first_solved_at else None,
    }


async def _read_cached_page(redis: Redis | None, key: str) -> dict | None:
    if redis is None:
        return None
    try:
        raw = await redis.get(key)
    except Exception:
        logger.warning("Ranklist cache read failed", exc_info=True)
        return None
    return json.loads(raw) if raw else None


async def _write_cached_page(redis: Redis | None, key: str, payload: dict) -> None:
    if redis is None:
        return
    try:
        await redis.set(key, json.dumps(payload), ex=get_settings().ranklist_cache_ttl_seconds)
    except Exception:
        logger.warning("Ranklist cache write failed", exc_info=True)


async def get_ranklist(
    db: AsyncSession,
    scope: RanklistScope,
    page: int = 1,
    per_page: int | None = None,
    filters: RanklistFilters | None = None,
    redis: Redis | None = None,
    source: SolveFactSource | None = None,
) -> dict:
    """One page of a ranklist with profiles attached, then page-local filters."""
    settings = get_settings()
    page = max(page, 1)
    per_page = min(max(per_page or settings.ranklist_default_page_size, 1), settings.ranklist_max_page_size)
    filters = filters or RanklistFilters()

    key = build_page_cache_key(scope, page, per_page)
    cached = await _read_cached_page(redis, key)
    if cached is None:
        ranked = await rank(source or paginated_source(db), scope)
        window = paginate(ranked, page, per_page)
        profiles = await get_profiles_map(db, [r.user_id for r in window])
        cached = {
            "total": len(ranked),
            "entries": [_entry(r, profiles.get(r.user_id)) for r in window],
        }
        await _write_cached_page(redis, key, cached)

    entries = cached["entries"]
    filtered = [e for e in entries if filters.matches(e)] if filters.active else entries

    return {
        "scope": scope.key,
        "page": page,
        "per_page": per_page,
        "total": cached["total"],
        "entries": filtered,
        "countries": sorted({e["country"] for e in entries if e.get("country")}),
        "institutions": sorted({e["institution"] for e in entries if e.get("institution")}),
    }


async def get_top_ranklist(db: AsyncSession, course: Course, limit: int | None = None) -> dict:
    """Top-N widget for a course, folded from raw solves.

    A course nobody has solved yet lists its enrolled users (zero solves,
    earliest enrollment first) so the widget is never empty for an active course.
    """
    settings = get_settings()
    limit = min(max(limit or settings.ranklist_widget_size, 1), settings.ranklist_enrollment_fallback_limit)
    scope = RanklistScope.course(course.id)

    ranked = (await rank(RawSolveSource(db), scope))[:limit]
    fallback = False
    if not ranked:
        result = await db.execute(
            select(Enrollment.user_id, Enrollment.enrolled_at)
            .where(Enrollment.course_id == course.id)
            .order_by(Enrollment.enrolled_at.asc(), Enrollment.user_id.asc())
            .limit(limit)
        )
        ranked = [
            RankedUser(rank=idx + 1, user_id=row.user_id, total_solves=0, first_solved_at=row.enrolled_at)
            for idx, row in enumerate(result)
        ]
        fallback = bool(ranked)

    profiles = await get_profiles_map(db, [r.user_id for r in ranked])
    return {
        "scope": scope.key,
        "course_slug": course.slug,
        "fallback": fallback,
        "entries": [_entry(r, profiles.get(r.user_id)) for r in ranked],
    }


async def get_user_rank(db: AsyncSession, user_id: int, source: SolveFactSource | None = None) -> dict:
    """Caller's position in the global ranklist."""
    ranked = await rank(source or paginated_source(db), RanklistScope.global_scope())
    mine = find_rank(ranked, user_id)
    return {
        "user_id": user_id,
        "rank": mine.rank if mine else None,
        "total_ranked": len(ranked),
        "total_solves": mine.total_solves if mine else 0,
    }


async def invalidate_ranklist_cache(redis: Redis | None, course_ids: list[int] | None) -> None:
    """Drop cached pages for the global ranklist and each affected course.

    course_ids=None drops every cached page.
    """
    if redis is None:
        return
    if course_ids is None:
        patterns = ["ranklist:*:page:*"]
    else:
        scopes = [RanklistScope.global_scope()] + [RanklistScope.course(cid) for cid in course_ids]
        patterns = [f"ranklist:{scope.key}:page:*" for scope in scopes]
    try:
        for pattern in patterns:
            keys = [key async for key in redis.scan_iter(match=pattern)]
            if keys:
                await redis.delete(*keys)
    except Exception:
        logger.warning("Ranklist cache invalidation failed", exc_info=True)


async def publish_ranklist_update(redis: Redis | None, user_id: int | None, course_ids: list[int]) -> None:
    """Tell live viewers which scopes changed. Best-effort."""
    if redis is None:
        return
    scopes = ["global"] + [RanklistScope.course(cid).key for cid in course_ids]
    try:
        await redis.publish(
            RANKLIST_UPDATE_CHANNEL,
            json.dumps({"user_id": user_id, "course_ids": course_ids, "scopes": scopes}),
        )
    except Exception:
        logger.warning("Failed to publish ranklist update", exc_info=True)
