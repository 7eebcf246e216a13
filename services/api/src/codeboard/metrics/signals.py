"""External signals the aggregators consume but never compute.

Team standings and monthly goal progress come from the standings pass
(see ``codeboard.metrics.standings``). Placement readiness, ingestion health
and the support desk counter are published to Redis by their owning
systems. A missing, unreadable or malformed signal yields ``None`` so the
tier result can mark the field unavailable.
"""

from __future__ import annotations

import math
from collections.abc import Callable
from datetime import date
from typing import Any, Protocol

import redis.asyncio as aioredis
import structlog
from redis.exceptions import RedisError

from codeboard.metrics.schemas import OperationalHealth, TeamStanding

logger = structlog.get_logger()

PLACEMENT_READY_KEY = "placement:ready"  # hash: department_id -> ready student count
OPS_INGESTION_KEY = "ops:ingestion"  # hash: system_health, api_success (percent)
SUPPORT_TICKETS_KEY = "ops:support:open_tickets"


def build_standings_key(day: date) -> str:
    """Sorted set of team_id -> today's total problems."""
    return f"standings:teams:{day.isoformat()}"


def build_standings_rank_key(day: date) -> str:
    """Hash of team_id -> 1-based rank for the day."""
    return f"standings:teams:{day.isoformat()}:rank"


def build_monthly_goal_key(day: date) -> str:
    """Hash of team_id -> percent of the month-to-date goal achieved."""
    return f"standings:teams:monthly:{day.strftime('%Y-%m')}"


class SignalSource(Protocol):
    async def team_standing(self, team_id: str, day: date) -> TeamStanding | None: ...

    async def placement_ready(self, department_id: str) -> int | None: ...

    async def operational_health(self) -> OperationalHealth | None: ...



class RedisSignalSource:
    """Reads signals from Redis. Values that are absent or fail to parse read as ``None``."""

    def __init__(self, redis: aioredis.Redis) -> None:
        self._redis = redis

    async def team_standing(self, team_id: str, day: date) -> TeamStanding | None:
        try:
            pipe = self._redis.pipeline()
            pipe.hget(build_standings_rank_key(day), team_id)
            pipe.zscore(build_standings_key(day), team_id)
            pipe.zcard(build_standings_key(day))
            pipe.hget(build_monthly_goal_key(day), team_id)
            rank, score, total, goal = await pipe.execute()
        except RedisError:
            logger.warning("team_standing_unreadable", team_id=team_id, day=day.isoformat(), exc_info=True)
            return None

        rank = _parse_number("team_rank", rank, int, minimum=1)
        goal = _parse_number("monthly_goal", goal, float, minimum=0)
        if rank is None and goal is None:
            return None
        return TeamStanding(
            team_id=team_id,
            rank=rank,
            total_teams=_parse_number("total_teams", total, int, minimum=0) or 0,
            today_total=_parse_number("team_today_total", score, _as_int, minimum=0) or 0,
            monthly_goal=goal,
        )

    async def placement_ready(self, department_id: str) -> int | None:
        try:
            value = await self._redis.hget(PLACEMENT_READY_KEY, department_id)
        except RedisError:
            logger.warning("placement_signal_unreadable", department_id=department_id, exc_info=True)
            return None
        return _parse_number("placement_ready", value, int, minimum=0)

    async def operational_health(self) -> OperationalHealth | None:
        try:
            pipe = self._redis.pipeline()
            pipe.hgetall(OPS_INGESTION_KEY)
            pipe.get(SUPPORT_TICKETS_KEY)
            ingestion, tickets = await pipe.execute()
        except RedisError:
            logger.warning("operational_health_unreadable", exc_info=True)
            return None

        ingestion = ingestion or {}
        health = OperationalHealth(
            system_health=_parse_number("system_health", ingestion.get("system_health"), float, minimum=0),
            api_success=_parse_number("api_success", ingestion.get("api_success"), float, minimum=0),
            support_tickets=_parse_number("support_tickets", tickets, int, minimum=0),
        )
        if health == OperationalHealth():
            return None
        return health


class NullSignalSource:
    """Signal source for deployments without the external publishers."""

    async def team_standing(self, team_id: str, day: date) -> TeamStanding | None:
        return None

    async def placement_ready(self, department_id: str) -> int | None:
        return None

    async def operational_health(self) -> OperationalHealth | None:
        return None


def _as_int(value: str | float) -> int:
    # Sorted-set scores come back as floats.
    return int(float(value))


def _parse_number(
    signal: str,
    value: str | float | None,
    convert: Callable[[Any], float],
    minimum: float | None = None,
) -> Any:  # noqa: ANN401
    """Convert one raw signal value; a publisher's bad value only costs that field."""
    if value is None:
        return None
    try:
        number = convert(value)
    except (TypeError, ValueError):
        logger.warning("signal_value_invalid", signal=signal, value=value)
        return None
    if not math.isfinite(number) or (minimum is not None and number < minimum):
        logger.warning("signal_value_out_of_range", signal=signal, value=value)
        return None
    return number
