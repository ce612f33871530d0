"""Errors raised by the MentorHub client."""

from __future__ import annotations


class MentorHubError(Exception):
    """An API call failed."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class AuthenticationRequired(MentorHubError):
    """No identity: the caller should be sent to login_url. Nothing was written."""

    def __init__(self, message: str = "Authentication required", login_url: str = "/login") -> None:
        super().__init__(message, status_code=401)
        self.login_url = login_url


class StoreUnavailable(MentorHubError):
    """The server (or its database) could not be reached. Local state is untouched."""


class NotFound(MentorHubError):
    pass


class UnlockNotDue(MentorHubError):
    def __init__(self, message: str, remaining_seconds: int) -> None:
        super().__init__(message, status_code=409)
        self.remaining_seconds = remaining_seconds


class SolutionLocked(MentorHubError):
    def __init__(self, message: str, remaining_seconds: int, attempted: bool) -> None:
        super().__init__(message, status_code=403)
        self.remaining_seconds = remaining_seconds
        self.attempted = attempted
