"""arq worker settings module.

Import path for arq CLI: arq codeboard.workers.settings.WorkerSettings
"""

from __future__ import annotations

from arq import cron
from arq.connections import RedisSettings

from codeboard.config import get_settings
from codeboard.workers.standings_worker import (
    refresh_team_standings,
    standings_shutdown,
    standings_startup,
)


class WorkerSettings:
    """arq worker settings for the team standings pass."""

    functions = [refresh_team_standings]
    cron_jobs = [
        cron(refresh_team_standings, minute=set(range(0, 60, 5)), run_at_startup=True),
    ]
    on_startup = standings_startup
    on_shutdown = standings_shutdown
    redis_settings = RedisSettings.from_dsn(get_settings().redis_url)
    max_jobs = 2
    job_timeout = 120
