"""Unit tests for the pure progress state machine."""

from __future__ import annotations

from datetime import timedelta

import pytest

from conftest import T0
from mentorhub.config import Settings
from mentorhub.progress.state import (
    Difficulty,
    ProgressFacts,
    ProgressStatus,
    compute_view,
    normalize_difficulty,
    problem_sort_key,
    unlock_deadline,
    unlock_delay,
)


class TestUnlockDelay:
    @pytest.mark.parametrize(
        ("difficulty", "minutes"),
        [("easy", 15), ("medium", 20), ("hard", 30), ("HARD", 30), (" Easy ", 15)],
    )
    def test_delay_per_difficulty(self, difficulty: str, minutes: int) -> None:
        assert unlock_delay(difficulty) == timedelta(minutes=minutes)

    @pytest.mark.parametrize("difficulty", [None, "", "legendary"])
    def test_unknown_difficulty_uses_medium(self, difficulty: str | None) -> None:
        assert normalize_difficulty(difficulty) is Difficulty.MEDIUM
        assert unlock_delay(difficulty) == timedelta(minutes=20)

    def test_delays_are_configurable(self) -> None:
        settings = Settings(unlock_delay_easy_minutes=1)
        assert unlock_deadline(T0, "easy", settings) == T0 + timedelta(minutes=1)


class TestComputeView:
    def test_unattempted(self) -> None:
        view = compute_view(1, ProgressFacts(), "easy", T0)
        assert view.status is ProgressStatus.UNATTEMPTED
        assert view.unlocked is False
        assert view.unlock_deadline is None
        assert view.remaining_seconds == 0

    def test_medium_locked_before_deadline(self) -> None:
        facts = ProgressFacts(attempted_at=T0)
        view = compute_view(1, facts, "medium", T0 + timedelta(minutes=19, seconds=59))
        assert view.status is ProgressStatus.ATTEMPTED
        assert view.unlocked is False
        assert view.remaining_seconds == 1

    def test_medium_unlocked_at_deadline(self) -> None:
        view = compute_view(1, ProgressFacts(attempted_at=T0), "medium", T0 + timedelta(minutes=20))
        assert view.unlocked is True
        assert view.remaining_seconds == 0
        assert view.unlock_deadline == T0 + timedelta(minutes=20)

    def test_easy_scenario(self) -> None:
        """Locked at T0+10 with five minutes left, unlocked at T0+16."""
        facts = ProgressFacts(attempted_at=T0)
        at_ten = compute_view(1, facts, "easy", T0 + timedelta(minutes=10))
        assert at_ten.unlocked is False
        assert at_ten.remaining_seconds == 300

        at_sixteen = compute_view(1, facts, "easy", T0 + timedelta(minutes=16))
        assert at_sixteen.unlocked is True

    def test_partial_second_rounds_up(self) -> None:
        view = compute_view(1, ProgressFacts(attempted_at=T0), "easy", T0 + timedelta(minutes=14, seconds=59.5))
        assert view.unlocked is False
        assert view.remaining_seconds == 1

    def test_solve_unlocks_immediately(self) -> None:
        facts = ProgressFacts(attempted_at=T0, solved_at=T0 + timedelta(seconds=5))
        view = compute_view(1, facts, "hard", T0 + timedelta(seconds=5))
        assert view.status is ProgressStatus.SOLVED
        assert view.unlocked is True
        assert view.remaining_seconds == 0

    def test_marker_unlocks_even_if_clock_disagrees(self) -> None:
        facts = ProgressFacts(attempted_at=T0, unlocked_at=T0 + timedelta(minutes=20))
        view = compute_view(1, facts, "medium", T0 + timedelta(minutes=1))
        assert view.unlocked is True
        assert view.needs_unlock_marker is False

    def test_computed_unlock_wins_over_missing_marker(self) -> None:
        view = compute_view(1, ProgressFacts(attempted_at=T0), "hard", T0 + timedelta(minutes=31))
        assert view.unlocked is True
        assert view.needs_unlock_marker is True

    def test_solved_without_marker_needs_marker(self) -> None:
        facts = ProgressFacts(attempted_at=T0, solved_at=T0)
        assert compute_view(1, facts, "easy", T0).needs_unlock_marker is True


class TestProblemOrdering:
    def test_easy_medium_hard_then_ordinal(self) -> None:
        items = [("hard", 0), ("easy", 2), ("medium", 1), ("easy", 1), (None, 0)]
        ordered = sorted(items, key=lambda i: problem_sort_key(*i))
        assert ordered == [("easy", 1), ("easy", 2), ("medium", 1), ("hard", 0), (None, 0)]
