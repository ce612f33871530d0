"""Global error handler: consistent JSON error responses."""

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import InterfaceError, OperationalError
from starlette.exceptions import HTTPException as StarletteHTTPException

from mentorhub.config import get_settings
from mentorhub.progress.errors import (
    AuthenticationRequired,
    CourseNotFound,
    ProblemNotFound,
    SolutionLocked,
    UnlockNotDue,
)

logger = structlog.get_logger()


def setup_error_handlers(app: FastAPI) -> None:
    """Register global exception handlers."""

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(_request: Request, exc: StarletteHTTPException) -> JSONResponse:
        """Handle HTTP exceptions with consistent JSON format."""
        return JSONResponse(
            status_code=exc.status_code,
            content={"detail": exc.detail},
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(_request: Request, exc: RequestValidationError) -> JSONResponse:
        """Handle validation errors with consistent JSON format."""
        return JSONResponse(
            status_code=422,
            content={"detail": "Validation error", "errors": exc.errors()},
        )

    @app.exception_handler(AuthenticationRequired)
    async def auth_required_handler(_request: Request, exc: AuthenticationRequired) -> JSONResponse:
        """Nothing was written; point the caller at the login page."""
        return JSONResponse(
            status_code=401,
            content={"detail": str(exc) or "Authentication required", "login_url": get_settings().login_url},
            headers={"WWW-Authenticate": "Bearer"},
        )

    @app.exception_handler(ProblemNotFound)
    @app.exception_handler(CourseNotFound)
    async def not_found_handler(_request: Request, exc: LookupError) -> JSONResponse:
        return JSONResponse(status_code=404, content={"detail": str(exc)})

    @app.exception_handler(UnlockNotDue)
    async def unlock_not_due_handler(_request: Request, exc: UnlockNotDue) -> JSONResponse:
        return JSONResponse(
            status_code=409,
            content={"detail": str(exc), "remaining_seconds": exc.remaining_seconds},
        )

    @app.exception_handler(SolutionLocked)
    async def solution_locked_handler(_request: Request, exc: SolutionLocked) -> JSONResponse:
        return JSONResponse(
            status_code=403,
            content={
                "detail": str(exc),
                "remaining_seconds": exc.remaining_seconds,
                "attempted": exc.attempted,
            },
        )

    @app.exception_handler(OperationalError)
    @app.exception_handler(InterfaceError)
    async def store_unavailable_handler(request: Request, exc: Exception) -> JSONResponse:
        """Database unreachable: report it, never pretend the write happened."""
        logger.error("progress_store_unavailable", path=request.url.path, error=str(exc))
        return JSONResponse(
            status_code=503,
            content={"detail": "Progress store unavailable"},
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Catch-all for unhandled exceptions; always return JSON."""
        logger.error(
            "unhandled_exception",
            path=request.url.path,
            method=request.method,
            error=str(exc),
            exc_info=exc,
        )
        return JSONResponse(
            status_code=500,
            content={"detail": "Internal server error"},
        )
