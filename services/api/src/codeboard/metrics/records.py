"""Turning raw store rows into validated activity records."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from datetime import date, datetime
from typing import Any
from zoneinfo import ZoneInfo

import structlog
from pydantic import ValidationError

from codeboard.metrics.errors import MalformedRecord
from codeboard.metrics.schemas import ActivityRecord

logger = structlog.get_logger()

REQUIRED_NUMERIC_FIELDS = ("total_solved", "daily_increase", "coding_streak")


def today_in(timezone_name: str, now: datetime | None = None) -> date:
    """Calendar date of "today" in the activity timezone."""
    tz = ZoneInfo(timezone_name)
    if now is None:
        return datetime.now(tz).date()
    return now.astimezone(tz).date()


def parse_record(row: Mapping[str, Any]) -> ActivityRecord:
    """Validate one store row. Raises MalformedRecord instead of ValidationError.

    A missing or null numeric field is malformed; it is never read as zero.
    """
    missing = [name for name in REQUIRED_NUMERIC_FIELDS if row.get(name) is None]
    if missing:
        raise MalformedRecord(_row_id(row), [f"{name} missing" for name in missing])
    try:
        return ActivityRecord.model_validate(dict(row))
    except ValidationError as exc:
        problems = [f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in exc.errors()]
        raise MalformedRecord(_row_id(row), problems) from exc


def parse_records(rows: Iterable[Mapping[str, Any]]) -> tuple[list[ActivityRecord], int]:
    """Parse rows, skipping malformed ones. Returns (records, malformed_count)."""
    records: list[ActivityRecord] = []
    malformed = 0
    for row in rows:
        try:
            records.append(parse_record(row))
        except MalformedRecord as exc:
            malformed += 1
            logger.warning("malformed_record_skipped", row_id=exc.row_id, problems=exc.problems)
    if malformed:
        logger.warning("malformed_records_skipped", count=malformed, parsed=len(records))
    return records, malformed


def _row_id(row: Mapping[str, Any]) -> str | None:
    row_id = row.get("id")
    if row_id is not None:
        return str(row_id)
    user_id = row.get("user_id")
    return f"{user_id}:{row.get('platform')}:{row.get('date')}" if user_id else None
