"""FastAPI application factory."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from codeboard.config import get_settings
from codeboard.dashboard.router import router as dashboard_router
from codeboard.database import close_db, init_db
from codeboard.health.router import router as health_router
from codeboard.middleware import setup_middleware
from codeboard.redis_client import close_redis, init_redis
from codeboard.ws.router import router as ws_router


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
        title="Codeboard API",
        description="Role-based coding activity dashboards for students, teams, sections and departments",
        version=settings.app_version,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        lifespan=lifespan,
    )

    setup_middleware(app, settings)
    app.include_router(health_router, tags=["Health"])
    app.include_router(dashboard_router)
    app.include_router(ws_router)

    return app


app = create_app()
