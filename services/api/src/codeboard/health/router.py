"""Health, readiness, and version endpoints."""

from fastapi import APIRouter
from sqlalchemy import text

from codeboard.config import get_settings
from codeboard.database import get_session_factory
from codeboard.redis_client import get_redis

router = APIRouter()


@router.get("/health")
async def health() -> dict[str, str]:
    """Liveness probe: returns 200 if the process is alive."""
    return {"status": "healthy"}


@router.get("/ready")
async def readiness() -> dict[str, object]:
    """Readiness probe: the activity store must answer; Redis only degrades signals."""
    checks: dict[str, object] = {}

    try:
        async with get_session_factory()() as session:
            await session.execute(text("SELECT 1"))
        checks["activity_store"] = "ok"
    except Exception as exc:
        checks["activity_store"] = f"error: {exc}"

    try:
        await get_redis().ping()
        checks["signals"] = "ok"
    except Exception as exc:
        checks["signals"] = f"error: {exc}"

    status = "ready" if checks["activity_store"] == "ok" else "unavailable"
    if status == "ready" and checks["signals"] != "ok":
        status = "degraded"
    return {"status": status, "checks": checks}


@router.get("/version")
async def version() -> dict[str, str]:
    """Return API version and environment."""
    settings = get_settings()
    return {
        "version": settings.app_version,
        "environment": settings.environment,
    }
