"""Problem progress lifecycle as a pure function of durable timestamps.

    unattempted -> attempted -> (unlocked at attempted_at + delay)
    solved is terminal and forces unlocked.

Nothing here keeps a running timer: any process holding attempted_at,
unlocked_at and solved_at can recompute the same answer for any "now".
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum

from mentorhub.config import Settings, get_settings


class Difficulty(str, Enum):
    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"


class ProgressStatus(str, Enum):
    UNATTEMPTED = "unattempted"
    ATTEMPTED = "attempted"
    SOLVED = "solved"


# Easy -> medium -> hard, unknown last
DIFFICULTY_ORDER: dict[str, int] = {"easy": 0, "medium": 1, "hard": 2}


def normalize_difficulty(value: str | None) -> Difficulty:
    """Map a stored difficulty label to a level. Unrecognized values count as medium."""
    try:
        return Difficulty((value or "").strip().lower())
    except ValueError:
        return Difficulty.MEDIUM


def unlock_delay(difficulty: str | None, settings: Settings | None = None) -> timedelta:
    """Time between the first attempt and the solution unlocking."""
    settings = settings or get_settings()
    minutes = {
        Difficulty.EASY: settings.unlock_delay_easy_minutes,
        Difficulty.MEDIUM: settings.unlock_delay_medium_minutes,
        Difficulty.HARD: settings.unlock_delay_hard_minutes,
    }[normalize_difficulty(difficulty)]
    return timedelta(minutes=minutes)


def unlock_deadline(
    attempted_at: datetime, difficulty: str | None, settings: Settings | None = None,
) -> datetime:
    return attempted_at + unlock_delay(difficulty, settings)


@dataclass(frozen=True)
class ProgressFacts:
    """The durable facts for one (user, problem)."""

    attempted_at: datetime | None = None
    unlocked_at: datetime | None = None
    solved_at: datetime | None = None


@dataclass(frozen=True)
class ProgressView:
    """Derived lifecycle state for one (user, problem) at a given instant."""

    problem_id: int
    status: ProgressStatus
    unlocked: bool
    unlock_deadline: datetime | None
    remaining_seconds: int
    attempted_at: datetime | None = None
    solved_at: datetime | None = None
    # Unlocked by time but the durable marker is not written yet
    needs_unlock_marker: bool = False


def compute_view(
    problem_id: int,
    facts: ProgressFacts,
    difficulty: str | None,
    now: datetime,
    settings: Settings | None = None,
) -> ProgressView:
    """Derive the lifecycle state. Computed unlock wins over a missing marker."""
    deadline = (
        unlock_deadline(facts.attempted_at, difficulty, settings)
        if facts.attempted_at is not None
        else None
    )

    if facts.solved_at is not None:
        status = ProgressStatus.SOLVED
    elif facts.attempted_at is not None:
        status = ProgressStatus.ATTEMPTED
    else:
        status = ProgressStatus.UNATTEMPTED

    time_unlocked = deadline is not None and now >= deadline
    unlocked = facts.unlocked_at is not None or facts.solved_at is not None or time_unlocked

    remaining = 0
    if not unlocked and deadline is not None:
        # Round up so a countdown never shows 0 while still locked
        remaining = max(0, math.ceil((deadline - now).total_seconds()))

    return ProgressView(
        problem_id=problem_id,
        status=status,
        unlocked=unlocked,
        unlock_deadline=deadline,
        remaining_seconds=remaining,
        attempted_at=facts.attempted_at,
        solved_at=facts.solved_at,
        needs_unlock_marker=(
            unlocked and facts.attempted_at is not None and facts.unlocked_at is None
        ),
    )


def problem_sort_key(difficulty: str | None, ordinal: int | None) -> tuple[int, int]:
    """Course listing order: easy, medium, hard, unknown; then ordinal."""
    return (DIFFICULTY_ORDER.get((difficulty or "").strip().lower(), 99), ordinal or 0)
