"""Cross-team standings pass.

Team rank and monthly goal progress compare a team against every other
team, which a single cohort's records cannot answer. This pass computes them
from the store for all teams at once and publishes the result to Redis,
where ``RedisSignalSource.team_standing`` picks it up.

Ranking is deterministic: today's total descending, team id ascending.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from datetime import date

import redis.asyncio as aioredis
from sqlalchemy import and_, distinct, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from codeboard.db.models import DailyStat, Team, TeamMember
from codeboard.metrics.schemas import TeamStanding
from codeboard.metrics.signals import (
    build_monthly_goal_key,
    build_standings_key,
    build_standings_rank_key,
)

logger = logging.getLogger(__name__)


def rank_teams(totals: Mapping[str, int]) -> list[TeamStanding]:
    """Rank teams by today's total. Every team gets a distinct 1-based rank."""
    ordered = sorted(totals.items(), key=lambda item: (-item[1], item[0]))
    count = len(ordered)
    return [
        TeamStanding(team_id=team_id, rank=idx + 1, total_teams=count, today_total=total)
        for idx, (team_id, total) in enumerate(ordered)
    ]


def monthly_goal_progress(month_total: int, members: int, goal_per_member: int) -> float:
    """Percent of the month's goal achieved so far, one decimal.

    The goal is ``goal_per_member`` problems per active member for the
    calendar month. Progress may exceed 100.
    """
    target = members * goal_per_member
    if target <= 0:
        return 0.0
    return round(month_total / target * 100, 1)


async def load_team_totals(db: AsyncSession, day: date) -> tuple[dict[str, int], dict[str, int], dict[str, int]]:
    """Per-team (today's total, month-to-date total, active member count)."""
    month_start = day.replace(day=1)
    active_team = and_(TeamMember.is_active.is_(True), Team.status != "inactive")

    today_result = await db.execute(
        select(TeamMember.team_id, func.coalesce(func.sum(DailyStat.daily_increase), 0).label("total"))
        .join(Team, Team.id == TeamMember.team_id)
        .outerjoin(DailyStat, and_(DailyStat.user_id == TeamMember.user_id, DailyStat.date == day))
        .where(active_team)
        .group_by(TeamMember.team_id)
    )
    today = {str(row.team_id): int(row.total) for row in today_result}

    month_result = await db.execute(
        select(
            TeamMember.team_id,
            func.coalesce(func.sum(DailyStat.daily_increase), 0).label("total"),
            func.count(distinct(TeamMember.user_id)).label("members"),
        )
        .join(Team, Team.id == TeamMember.team_id)
        .outerjoin(
            DailyStat,
            and_(
                DailyStat.user_id == TeamMember.user_id,
                DailyStat.date >= month_start,
                DailyStat.date <= day,
            ),
        )
        .where(active_team)
        .group_by(TeamMember.team_id)
    )
    month: dict[str, int] = {}
    members: dict[str, int] = {}
    for row in month_result:
        month[str(row.team_id)] = int(row.total)
        members[str(row.team_id)] = int(row.members)

    return today, month, members


async def publish_standings(
    redis: aioredis.Redis,
    day: date,
    standings: list[TeamStanding],
    goals: Mapping[str, float],
    ttl_seconds: int,
) -> None:
    """Replace the day's standings and the month's goal hash in one transaction."""
    key = build_standings_key(day)
    rank_key = build_standings_rank_key(day)
    goal_key = build_monthly_goal_key(day)

    pipe = redis.pipeline(transaction=True)
    pipe.delete(key, rank_key, goal_key)
    if standings:
        pipe.zadd(key, {s.team_id: s.today_total for s in standings})
        pipe.hset(rank_key, mapping={s.team_id: s.rank for s in standings})
    if goals:
        pipe.hset(goal_key, mapping=dict(goals))
    pipe.expire(key, ttl_seconds)
    pipe.expire(rank_key, ttl_seconds)
    pipe.expire(goal_key, ttl_seconds)
    await pipe.execute()


async def rebuild_team_standings(
    db: AsyncSession,
    redis: aioredis.Redis,
    day: date,
    goal_per_member: int,
    ttl_seconds: int,
) -> int:
    """Recompute and publish standings for ``day``. Returns the number of teams ranked."""
    today, month, members = await load_team_totals(db, day)
    standings = rank_teams(today)
    goals = {
        team_id: monthly_goal_progress(month.get(team_id, 0), members.get(team_id, 0), goal_per_member)
        for team_id in today
    }
    await publish_standings(redis, day, standings, goals, ttl_seconds)
    logger.info("Team standings refreshed for %s: %d teams", day.isoformat(), len(standings))
    return len(standings)
