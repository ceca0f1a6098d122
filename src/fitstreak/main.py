"""FastAPI application factory."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from fitstreak.config import get_settings
from fitstreak.database import close_db, init_db
from fitstreak.health.router import router as health_router
from fitstreak.middleware import setup_middleware
from fitstreak.redis_client import close_redis, init_redis
from fitstreak.streaks.router import router as streaks_router


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
    """Startup and shutdown lifecycle."""
    settings = get_settings()
    await init_db(settings.database_url)
    await init_redis(settings.redis_url)

    yield

    await close_db()
    await close_redis()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="fitstreak API",
        description="Engagement streaks, metric streaks and retroactive claims",
        version=settings.app_version,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        lifespan=lifespan,
    )

    setup_middleware(app, settings)
    app.include_router(health_router, tags=["Health"])
    app.include_router(streaks_router)

    return app


app = create_app()
