"""FastAPI application factory."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI

from recovery.auth.router import router as auth_router
from recovery.challenges.router import router as challenges_router
from recovery.config import Settings, get_settings
from recovery.health.router import router as health_router
from recovery.interests.router import router as interests_router
from recovery.interests.seed import seed_interests
from recovery.matches.router import router as matches_router
from recovery.matches.service import pending_matches_provider
from recovery.messages.router import router as messages_router
from recovery.middleware import setup_middleware
from recovery.redis_client import close_redis, create_redis
from recovery.storage.factory import build_storage
from recovery.users.router import router as users_router
from recovery.ws.hub import NotificationHub
from recovery.ws.router import router as ws_router

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Startup and shutdown lifecycle."""
    settings: Settings = app.state.settings
    if settings.redis_url:
        app.state.redis = create_redis(settings.redis_url)
    if settings.seed_interests:
        await seed_interests(app.state.storage)
    logger.info(
        "startup",
        storage_backend=settings.storage_backend,
        rate_limiting=app.state.redis is not None,
    )

    yield

    await app.state.hub.close()
    await app.state.storage.close()
    await close_redis(app.state.redis)
    app.state.redis = None
    logger.info("shutdown")


def create_app(settings: Settings | None = None) -> FastAPI:
    """Create and configure the FastAPI application.

    Storage and the notification hub are built here, not in the lifespan, so
    they exist for clients that never run startup events.
    """
    settings = settings or get_settings()

    app = FastAPI(
        title="Recovery Partners API",
        description="Backend API for recovery accountability partners: matches, messages and shared challenges",
        version=settings.app_version,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        lifespan=lifespan,
    )

    storage = build_storage(settings)
    app.state.settings = settings
    app.state.storage = storage
    app.state.hub = NotificationHub(pending_matches_provider(storage))
    app.state.redis = None

    setup_middleware(app, settings)
    app.include_router(health_router, tags=["Health"])
    app.include_router(auth_router)
    app.include_router(users_router)
    app.include_router(interests_router)
    app.include_router(matches_router)
    app.include_router(messages_router)
    app.include_router(challenges_router)
    app.include_router(ws_router)

    return app


app = create_app()
