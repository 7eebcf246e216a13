"""Team standings arq worker: periodic cross-team ranking pass.

Runs every 5 minutes and republishes today's standings and the month's goal
progress. Dashboards read whatever the latest run published; until the
first run of the day completes, team rank and monthly goal read as
unavailable.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

import redis.asyncio as aioredis

from codeboard.config import get_settings
from codeboard.database import close_db, get_session_factory, init_db
from codeboard.metrics.records import today_in
from codeboard.metrics.standings import rebuild_team_standings

logger = logging.getLogger(__name__)


async def standings_startup(ctx: dict) -> None:  # type: ignore[type-arg]
    """Initialize DB + Redis connections on worker startup."""
    settings = get_settings()
    await init_db(settings.database_url)
    ctx["redis_client"] = aioredis.from_url(
        settings.redis_url,
        encoding="utf-8",
        decode_responses=True,
        max_connections=5,
    )
    logger.info("Standings worker started")


async def standings_shutdown(ctx: dict) -> None:  # type: ignore[type-arg]
    """Clean up on worker shutdown."""
    redis_client: aioredis.Redis | None = ctx.get("redis_client")
    if redis_client:
        await redis_client.aclose()
    await close_db()
    logger.info("Standings worker shut down")


async def refresh_team_standings(ctx: dict) -> int:  # type: ignore[type-arg]
    """Recompute team standings for today in the activity timezone."""
    settings = get_settings()
    redis_client: aioredis.Redis = ctx["redis_client"]
    day = today_in(settings.activity_timezone, datetime.now(timezone.utc))

    async with get_session_factory()() as db:
        return await rebuild_team_standings(
            db,
            redis_client,
            day,
            goal_per_member=settings.monthly_goal_per_member,
            ttl_seconds=settings.standings_ttl_seconds,
        )
