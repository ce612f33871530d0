"""Pydantic schemas for ranklist API responses."""

from __future__ import annotations

from pydantic import BaseModel


class RanklistEntryResponse(BaseModel):
    rank: int
    user_id: int
    name: str
    username: str | None = None
    full_name: str | None = None
    institution: str | None = None
    country: str | None = None
    avatar_url: str | None = None
    total_solves: int
    first_solved_at: int | None = None  # epoch ms


class RanklistPageResponse(BaseModel):
    scope: str  # "global" | "course:<id>"
    page: int
    per_page: int
    total: int
    entries: list[RanklistEntryResponse]
    # Filter choices drawn from the fetched page
    countries: list[str]
    institutions: list[str]


class TopRanklistResponse(BaseModel):
    scope: str
    course_slug: str
    fallback: bool  # True when listing enrolled users of an unsolved course
    entries: list[RanklistEntryResponse]


class MyRankResponse(BaseModel):
    user_id: int
    rank: int | None
    total_ranked: int
    total_solves: int
