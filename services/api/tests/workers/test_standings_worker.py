"""Standings rebuild and the arq job that schedules it."""

from __future__ import annotations

from datetime import date
from unittest.mock import AsyncMock, MagicMock

import pytest

from codeboard.metrics import standings as standings_module
from codeboard.workers.settings import WorkerSettings
from codeboard.workers.standings_worker import refresh_team_standings

pytestmark = pytest.mark.asyncio

DAY = date(2026, 10, 19)


def _redis_with_pipeline():
    pipe = MagicMock()
    pipe.execute = AsyncMock(return_value=[])
    redis = MagicMock()
    redis.pipeline.return_value = pipe
    return redis, pipe


async def test_rebuild_ranks_and_publishes_goals(monkeypatch):
    totals = AsyncMock(return_value=({"T1": 10, "T2": 25}, {"T1": 180, "T2": 90}, {"T1": 4, "T2": 3}))
    monkeypatch.setattr(standings_module, "load_team_totals", totals)
    redis, pipe = _redis_with_pipeline()

    ranked = await standings_module.rebuild_team_standings(
        MagicMock(), redis, DAY, goal_per_member=100, ttl_seconds=600
    )

    assert ranked == 2
    pipe.zadd.assert_called_once_with("standings:teams:2026-10-19", {"T2": 25, "T1": 10})
    pipe.hset.assert_any_call("standings:teams:2026-10-19:rank", mapping={"T2": 1, "T1": 2})
    pipe.hset.assert_any_call("standings:teams:monthly:2026-10", mapping={"T1": 45.0, "T2": 30.0})
    pipe.execute.assert_awaited_once()


async def test_refresh_job_uses_worker_redis(monkeypatch):
    session = MagicMock()
    session_cm = MagicMock()
    session_cm.__aenter__ = AsyncMock(return_value=session)
    session_cm.__aexit__ = AsyncMock(return_value=False)
    monkeypatch.setattr(
        "codeboard.workers.standings_worker.get_session_factory",
        lambda: MagicMock(return_value=session_cm),
    )
    rebuild = AsyncMock(return_value=7)
    monkeypatch.setattr("codeboard.workers.standings_worker.rebuild_team_standings", rebuild)
    redis = MagicMock()

    assert await refresh_team_standings({"redis_client": redis}) == 7
    args, kwargs = rebuild.await_args
    assert args[0] is session
    assert args[1] is redis
    assert kwargs["goal_per_member"] == 100


async def test_worker_schedules_refresh():
    assert refresh_team_standings in WorkerSettings.functions
    assert len(WorkerSettings.cron_jobs) == 1
