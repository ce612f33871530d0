"""Deterministic ranklist ordering: one comparator for every data source.

Users ranked by total_solves DESC, then first_solved_at ASC (earlier first
solve wins, missing last), then user_id ASC so pages are stable across requests.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime, timezone


@dataclass(frozen=True)
class RanklistScope:
    """The problem set a ranklist aggregates over: one course, or everything."""

    course_id: int | None = None

    @classmethod
    def course(cls, course_id: int) -> RanklistScope:
        return cls(course_id=course_id)

    @classmethod
    def global_scope(cls) -> RanklistScope:
        return cls(course_id=None)

    @property
    def is_global(self) -> bool:
        return self.course_id is None

    @property
    def key(self) -> str:
        return "global" if self.is_global else f"course:{self.course_id}"


@dataclass(frozen=True)
class SolveFact:
    """A unit of solve evidence for one user.

    A raw Solve row is SolveFact(user, 1, solved_at); an aggregate row is
    SolveFact(user, total_solves, first_solved_at). Folding either gives the
    same per-user totals.
    """

    user_id: int
    solves: int
    first_solved_at: datetime | None


@dataclass(frozen=True)
class RankedUser:
    rank: int
    user_id: int
    total_solves: int
    first_solved_at: datetime | None


_FAR_FUTURE = datetime(9999, 12, 31, tzinfo=timezone.utc)


def fold_facts(facts: Iterable[SolveFact]) -> dict[int, SolveFact]:
    """Sum solves and keep the earliest first solve per user."""
    folded: dict[int, SolveFact] = {}
    for fact in facts:
        prev = folded.get(fact.user_id)
        if prev is None:
            folded[fact.user_id] = fact
            continue
        firsts = [t for t in (prev.first_solved_at, fact.first_solved_at) if t is not None]
        folded[fact.user_id] = SolveFact(
            user_id=fact.user_id,
            solves=prev.solves + fact.solves,
            first_solved_at=min(firsts) if firsts else None,
        )
    return folded


def rank_sort_key(fact: SolveFact) -> tuple[int, datetime, int]:
    return (-fact.solves, fact.first_solved_at or _FAR_FUTURE, fact.user_id)


def rank_facts(facts: Iterable[SolveFact]) -> list[RankedUser]:
    """Fold facts per user and rank them. Users with no solves are dropped."""
    folded = [f for f in fold_facts(facts).values() if f.solves > 0]
    ordered = sorted(folded, key=rank_sort_key)
    return [
        RankedUser(
            rank=idx + 1,
            user_id=f.user_id,
            total_solves=f.solves,
            first_solved_at=f.first_solved_at,
        )
        for idx, f in enumerate(ordered)
    ]


def paginate(ranked: list[RankedUser], page: int, per_page: int) -> list[RankedUser]:
    """Slice one 1-indexed page out of a ranked list."""
    start = (max(page, 1) - 1) * per_page
    return ranked[start:start + per_page]


def find_rank(ranked: list[RankedUser], user_id: int) -> RankedUser | None:
    for entry in ranked:
        if entry.user_id == user_id:
            return entry
    return None
