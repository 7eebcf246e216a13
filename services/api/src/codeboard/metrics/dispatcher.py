"""Aggregation dispatcher: role -> cohort -> records -> reduction -> state.

The pipeline runs sequentially: the cohort is resolved to completion before
any activity record is requested, external signals are read next, and the
reduction itself never suspends. A dispatcher instance belongs to one viewer
session; its generation counter makes sure a slow load for a role the
viewer already navigated away from is never committed.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

import structlog

from codeboard.config import Settings, get_settings
from codeboard.metrics.aggregators import AggregationInputs, aggregator_for
from codeboard.metrics.cohort import CohortResolver
from codeboard.metrics.errors import StoreUnavailable
from codeboard.metrics.records import parse_records, today_in
from codeboard.metrics.schemas import AggregateResult, DashboardState, ErrorInfo, Role
from codeboard.metrics.signals import SignalSource
from codeboard.metrics.store import ActivityStore, RecordFilter

logger = structlog.get_logger()


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class _Attempt:
    """How far a load got, for error reporting."""

    cohort_size: int | None = None


async def run_pipeline(
    role: Role,
    viewer_id: str,
    store: ActivityStore,
    signals: SignalSource,
    settings: Settings,
    now: datetime,
    attempt: _Attempt | None = None,
) -> AggregateResult:
    """Fetch-then-reduce for one (role, viewer). Raises StoreUnavailable."""
    attempt = attempt or _Attempt()
    aggregator = aggregator_for(role)
    day = today_in(settings.activity_timezone, now)

    cohort = await CohortResolver(store).resolve(role, viewer_id)
    attempt.cohort_size = cohort.size

    rows = []
    if not cohort.is_empty:
        user_ids = None if cohort.kind == "system" else cohort.members
        rows = await store.query_records(RecordFilter.for_day(day, user_ids), ordering=("user_id", "platform"))
    records, malformed = parse_records(rows)
    external = await aggregator.gather(signals, cohort, day)

    inputs = AggregationInputs(
        day=day,
        now=now,
        cohort=cohort,
        records=tuple(records),
        malformed=malformed,
        high_activity_threshold=settings.high_activity_threshold,
        faculty_recency=timedelta(days=settings.faculty_recency_days),
        **external,
    )
    result = aggregator.aggregate(inputs)
    logger.debug(
        "tier_aggregated",
        role=role.value,
        tier=result.tier.value,
        cohort_size=cohort.size,
        records=len(records),
        no_data=result.no_data,
    )
    return result


class AggregationDispatcher:
    """Runs loads for one viewer session and exposes loading/error/result state."""

    def __init__(
        self,
        store: ActivityStore,
        signals: SignalSource,
        settings: Settings | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._store = store
        self._signals = signals
        self._settings = settings or get_settings()
        self._clock = clock
        self._generation = 0
        self._inflight: asyncio.Task[DashboardState | None] | None = None
        self.state = DashboardState()

    @property
    def generation(self) -> int:
        return self._generation

    async def load(self, role: Role | str, viewer_id: str) -> DashboardState | None:
        """Load the tier for ``role``. Returns None if a newer load superseded this one."""
        role = Role(role)
        self._generation += 1
        generation = self._generation
        self.state = DashboardState(status="loading", role=role, generation=generation)

        attempt = _Attempt()
        try:
            result = await asyncio.wait_for(
                run_pipeline(role, viewer_id, self._store, self._signals, self._settings, self._clock(), attempt),
                timeout=self._settings.store_timeout_seconds,
            )
            state = DashboardState(status="ready", role=role, generation=generation, result=result)
        except asyncio.TimeoutError:
            logger.warning(
                "store_timeout",
                role=role.value,
                viewer_id=viewer_id,
                cohort_size=attempt.cohort_size,
                timeout=self._settings.store_timeout_seconds,
            )
            err = StoreUnavailable("activity store timed out", role=role.value, cohort_size=attempt.cohort_size)
            state = _error_state(role, generation, err)
        except StoreUnavailable as exc:
            logger.warning("store_unavailable", role=role.value, viewer_id=viewer_id, error=exc.message)
            state = _error_state(role, generation, exc.with_context(role.value, attempt.cohort_size))
        except Exception as exc:
            # Never leave the session stuck in "loading"; the caller still sees the exception.
            if generation == self._generation:
                self.state = DashboardState(
                    status="error",
                    role=role,
                    generation=generation,
                    error=ErrorInfo(
                        kind=type(exc).__name__,
                        message="dashboard load failed",
                        role=role,
                        cohort_size=attempt.cohort_size,
                        retryable=False,
                    ),
                )
            raise

        if generation != self._generation:
            logger.info("stale_result_discarded", role=role.value, generation=generation, current=self._generation)
            return None
        self.state = state
        return state

    def submit(self, role: Role | str, viewer_id: str) -> asyncio.Task[DashboardState | None]:
        """Start a load in the background, cancelling the previous one."""
        self.cancel()
        self._inflight = asyncio.create_task(self.load(role, viewer_id))
        return self._inflight

    def cancel(self) -> None:
        if self._inflight is not None and not self._inflight.done():
            self._inflight.cancel()
        self._inflight = None


def _error_state(role: Role, generation: int, exc: StoreUnavailable) -> DashboardState:
    return DashboardState(
        status="error",
        role=role,
        generation=generation,
        error=ErrorInfo(
            kind=type(exc).__name__,
            message=exc.message,
            role=role,
            cohort_size=exc.cohort_size,
            retryable=exc.retryable,
        ),
    )
