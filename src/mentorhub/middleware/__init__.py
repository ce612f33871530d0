"""Middleware registration for the progress and ranklist API."""

from fastapi import FastAPI

from mentorhub.config import Settings
from mentorhub.middleware.cors import setup_cors
from mentorhub.middleware.error_handler import setup_error_handlers
from mentorhub.middleware.logging import setup_logging
from mentorhub.middleware.rate_limit import RateLimitMiddleware
from mentorhub.middleware.request_id import RequestIdMiddleware


def setup_middleware(app: FastAPI, settings: Settings) -> None:
    """Wire logging, error mapping and the middleware stack.

    Starlette runs middleware in reverse-add order. Request IDs are bound
    before rate limiting so throttled requests still carry one, and CORS is
    added last so 401/409/429 bodies reach browser clients.
    """
    setup_logging(settings)
    setup_error_handlers(app)
    app.add_middleware(
        RateLimitMiddleware,
        requests_per_window=settings.rate_limit_requests,
        window_seconds=settings.rate_limit_window_seconds,
    )
    app.add_middleware(RequestIdMiddleware)
    setup_cors(app, settings)
