"""Pydantic schemas for progress, ballot and enrollment API responses.

Timestamps are epoch milliseconds so clients can compare them against their
clock-synced local time directly.
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field


class ProgressViewResponse(BaseModel):
    problem_id: int
    status: Literal["unattempted", "attempted", "solved"]
    unlocked: bool
    unlock_deadline: int | None = None
    remaining_seconds: int
    attempted_at: int | None = None
    solved_at: int | None = None


class ProgressActionResponse(BaseModel):
    created: bool
    message: str
    progress: ProgressViewResponse


class SolutionResponse(BaseModel):
    problem_id: int
    solution_url: str | None


# --- Course listing ---


class CourseProblemResponse(BaseModel):
    id: int
    title: str
    platform: str | None
    link: str | None
    difficulty: Literal["easy", "medium", "hard"]
    solved_count: int
    attempted_count: int
    progress: ProgressViewResponse


class CourseProgressResponse(BaseModel):
    course_id: int
    slug: str
    title: str
    enrolled: bool
    problems: list[CourseProblemResponse]


class EnrollResponse(BaseModel):
    course_id: int
    created: bool
    message: str


class EnrollmentCountsRequest(BaseModel):
    course_ids: list[int] = Field(default_factory=list)


class EnrollmentCountsResponse(BaseModel):
    counts: dict[int, int]


# --- Ballots ---


class VoteRequest(BaseModel):
    vote: Literal["up", "down"]


class VoteSummaryResponse(BaseModel):
    problem_id: int
    counts: dict[str, int]  # {"up": N, "down": N}
    user_vote: Literal["up", "down"] | None = None


class VoteResponse(VoteSummaryResponse):
    created: bool
    message: str


class LikeStatusResponse(BaseModel):
    target_id: str
    likes: int
    liked: bool


class LikeResponse(LikeStatusResponse):
    created: bool
    message: str
