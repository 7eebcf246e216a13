"""Hierarchical metrics aggregation engine.

Turns per-user, per-day activity records into the statistics each role's
dashboard shows. Entry points are ``AggregationDispatcher`` for sessions
that switch roles and ``run_pipeline`` for one-shot loads.
"""

from codeboard.metrics.aggregators import AGGREGATORS, AggregationInputs, aggregator_for  # noqa: F401
from codeboard.metrics.dispatcher import AggregationDispatcher, run_pipeline  # noqa: F401
from codeboard.metrics.errors import (  # noqa: F401
    CohortUnresolved,
    MalformedRecord,
    MetricsError,
    StoreUnavailable,
)
from codeboard.metrics.schemas import (  # noqa: F401
    ActivityRecord,
    Cohort,
    DashboardState,
    Role,
    Tier,
)
