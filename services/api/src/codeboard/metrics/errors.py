"""Error taxonomy for the aggregation engine.

Nothing here is fatal to the process: an unresolved cohort degrades to an
empty cohort, a malformed row is skipped, and a store failure becomes a
retryable error state.
"""

from __future__ import annotations


class MetricsError(Exception):
    """Base class for aggregation engine errors."""


class CohortUnresolved(MetricsError):
    """The viewer lacks the assignment needed to resolve a cohort (no section, no team...)."""

    def __init__(self, role: str, viewer_id: str, reason: str) -> None:
        super().__init__(f"cohort for {role} {viewer_id!r} unresolved: {reason}")
        self.role = role
        self.viewer_id = viewer_id
        self.reason = reason


class StoreUnavailable(MetricsError):
    """The record store failed or timed out. Callers may retry."""

    retryable = True

    def __init__(self, message: str, role: str | None = None, cohort_size: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.role = role
        self.cohort_size = cohort_size

    def with_context(self, role: str, cohort_size: int | None) -> StoreUnavailable:
        """Copy of this error annotated with the attempted role and cohort size."""
        err = StoreUnavailable(self.message, role=role, cohort_size=cohort_size)
        err.__cause__ = self.__cause__
        return err


class MalformedRecord(MetricsError):
    """An activity row is missing required numeric fields or carries invalid values."""

    def __init__(self, row_id: str | None, problems: list[str]) -> None:
        super().__init__(f"malformed activity record {row_id!r}: {'; '.join(problems)}")
        self.row_id = row_id
        self.problems = problems
