"""FastAPI application factory."""

import asyncio
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI

from mentorhub.config import get_settings
from mentorhub.database import close_db, init_db
from mentorhub.health.router import router as health_router
from mentorhub.middleware import setup_middleware
from mentorhub.profiles.router import router as profiles_router
from mentorhub.progress.clock import router as clock_router
from mentorhub.progress.router import router as progress_router
from mentorhub.ranklist.router import router as ranklist_router
from mentorhub.redis_client import close_redis, get_redis, init_redis
from mentorhub.ws.bridge import PubSubBridge
from mentorhub.ws.router import router as ws_router

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
    """Startup and shutdown lifecycle."""
    settings = get_settings()
    await init_db(settings.database_url)

    bridge: PubSubBridge | None = None
    bridge_task: asyncio.Task[None] | None = None
    if settings.redis_url:
        await init_redis(settings.redis_url)
        # Redis pub/sub -> WebSocket bridge
        bridge = PubSubBridge(get_redis())
        bridge_task = asyncio.create_task(bridge.start())
    else:
        logger.warning("redis_disabled", reason="MH_REDIS_URL is empty")

    yield

    if bridge is not None and bridge_task is not None:
        await bridge.stop()
        bridge_task.cancel()
        try:
            await bridge_task
        except asyncio.CancelledError:
            pass

    await close_db()
    await close_redis()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="MentorHub API",
        description="Problem progress tracking, timed solution unlocks and ranklists",
        version=settings.app_version,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        lifespan=lifespan,
    )

    setup_middleware(app, settings)
    app.include_router(health_router, tags=["Health"])
    app.include_router(clock_router)
    app.include_router(progress_router)
    app.include_router(ranklist_router)
    app.include_router(profiles_router)
    app.include_router(ws_router)

    return app


app = create_app()
