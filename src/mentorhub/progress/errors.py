"""Domain errors raised by progress and ranklist services.

Duplicate facts are not errors: the store reports them as "already there".
"""

from __future__ import annotations


class ProgressError(Exception):
    """Base class for progress domain errors."""


class AuthenticationRequired(ProgressError):
    """An attempt, solve or ballot was requested without an identity."""


class ProblemNotFound(ProgressError, LookupError):
    def __init__(self, problem_id: int) -> None:
        super().__init__(f"Problem {problem_id} not found")
        self.problem_id = problem_id


class CourseNotFound(ProgressError, LookupError):
    def __init__(self, slug: str) -> None:
        super().__init__(f"Course '{slug}' not found")
        self.slug = slug


class UnlockNotDue(ProgressError):
    """The unlock timer was fired before its deadline."""

    def __init__(self, problem_id: int, remaining_seconds: int) -> None:
        super().__init__(f"Solution unlocks in {remaining_seconds}s")
        self.problem_id = problem_id
        self.remaining_seconds = remaining_seconds


class SolutionLocked(ProgressError):
    """The worked solution is still behind the timer."""

    def __init__(self, problem_id: int, remaining_seconds: int, attempted: bool) -> None:
        if attempted:
            message = f"Solution unlocks in {remaining_seconds}s"
        else:
            message = "Attempt the problem to start the unlock timer"
        super().__init__(message)
        self.problem_id = problem_id
        self.remaining_seconds = remaining_seconds
        self.attempted = attempted
