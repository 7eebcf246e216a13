"""Tier aggregators: one reduction strategy per role.

``aggregate`` is a pure function of its inputs: no I/O, no clock reads, no
state kept between calls. Anything an aggregator needs from outside the
activity records (standings, placement readiness, ops telemetry) is fetched
beforehand by ``gather`` and handed in through ``AggregationInputs``.

Empty cohorts report zero for every count and average and set ``no_data``,
so "nobody to measure" never looks like "measured zero activity".
"""

from __future__ import annotations

from collections import Counter
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Any, ClassVar

from codeboard.metrics.schemas import (
    ActivityRecord,
    AggregateResult,
    Cohort,
    DepartmentStats,
    OperationalHealth,
    PersonalStats,
    Role,
    SectionStats,
    SystemStats,
    TeamStanding,
    TeamStats,
    Tier,
)
from codeboard.metrics.signals import SignalSource

DEFAULT_HIGH_ACTIVITY_THRESHOLD = 10
DEFAULT_FACULTY_RECENCY = timedelta(days=7)


@dataclass(frozen=True)
class AggregationInputs:
    """Everything a reduction may look at."""

    day: date
    now: datetime
    cohort: Cohort
    records: tuple[ActivityRecord, ...] = ()
    malformed: int = 0
    high_activity_threshold: int = DEFAULT_HIGH_ACTIVITY_THRESHOLD
    faculty_recency: timedelta = DEFAULT_FACULTY_RECENCY
    team_standing: TeamStanding | None = None
    placement_ready: int | None = None
    operations: OperationalHealth | None = None


def todays_records(inputs: AggregationInputs) -> list[ActivityRecord]:
    """Records dated ``inputs.day`` that belong to the cohort.

    The system tier fetches by date only; filtering here keeps records of
    deactivated accounts out of ``active_today``.
    """
    members = inputs.cohort.members
    return [r for r in inputs.records if r.date == inputs.day and r.user_id in members]


def increase_by_user(records: Iterable[ActivityRecord]) -> dict[str, int]:
    """Problems solved today per user, summed across platforms."""
    totals: Counter[str] = Counter()
    for r in records:
        totals[r.user_id] += r.daily_increase
    return dict(totals)


def active_average(total: int, active: int) -> float:
    """Average over active members, one decimal. 0 when nobody was active."""
    if active <= 0:
        return 0.0
    return round(total / active, 1)


class TierAggregator:
    """Base strategy. Subclasses set ``tier`` and implement ``aggregate``."""

    tier: ClassVar[Tier]

    async def gather(self, signals: SignalSource, cohort: Cohort, day: date) -> dict[str, Any]:
        """Fetch external inputs for this tier. Keys match AggregationInputs fields."""
        return {}

    def aggregate(self, inputs: AggregationInputs) -> AggregateResult:
        raise NotImplementedError


class PersonalAggregator(TierAggregator):
    tier = Tier.PERSONAL

    def aggregate(self, inputs: AggregationInputs) -> PersonalStats:
        records = todays_records(inputs)
        team_rank = min((r.rank_in_team for r in records if r.rank_in_team is not None), default=None)
        section_rank = min((r.rank_in_section for r in records if r.rank_in_section is not None), default=None)

        unavailable = []
        if team_rank is None:
            unavailable.append("team_rank")
        if section_rank is None:
            unavailable.append("section_rank")

        return PersonalStats(
            no_data=inputs.cohort.is_empty,
            malformed_records=inputs.malformed,
            unavailable=unavailable,
            today_problems=sum(r.daily_increase for r in records),
            current_streak=max((r.coding_streak for r in records), default=0),
            total_solved=sum(r.total_solved for r in records),
            team_rank=team_rank,
            section_rank=section_rank,
            platforms_active=len({r.platform for r in records}),
        )


class TeamAggregator(TierAggregator):
    tier = Tier.TEAM

    async def gather(self, signals: SignalSource, cohort: Cohort, day: date) -> dict[str, Any]:
        if cohort.is_empty or cohort.key is None:
            return {}
        return {"team_standing": await signals.team_standing(cohort.key, day)}

    def aggregate(self, inputs: AggregationInputs) -> TeamStats:
        standing = inputs.team_standing
        team_rank = standing.rank if standing else None
        monthly_goal = standing.monthly_goal if standing else None
        unavailable = [
            name for name, value in (("team_rank", team_rank), ("monthly_goal", monthly_goal)) if value is None
        ]

        if inputs.cohort.is_empty:
            return TeamStats(no_data=True, malformed_records=inputs.malformed, unavailable=unavailable)

        per_user = increase_by_user(todays_records(inputs))
        active = len(per_user)
        roster = inputs.cohort.size
        return TeamStats(
            malformed_records=inputs.malformed,
            unavailable=unavailable,
            team_average=active_average(sum(per_user.values()), active),
            active_members=active,
            roster_size=roster,
            inactive_members=roster - active,
            team_rank=team_rank,
            monthly_goal=monthly_goal,
        )


class SectionAggregator(TierAggregator):
    tier = Tier.SECTION

    def aggregate(self, inputs: AggregationInputs) -> SectionStats:
        if inputs.cohort.is_empty:
            return SectionStats(no_data=True, malformed_records=inputs.malformed)

        per_user = increase_by_user(todays_records(inputs))
        active = len(per_user)
        roster = inputs.cohort.size
        top = sum(1 for solved in per_user.values() if solved >= inputs.high_activity_threshold)
        return SectionStats(
            malformed_records=inputs.malformed,
            section_average=active_average(sum(per_user.values()), active),
            active_students=active,
            top_performers=top,
            need_attention=roster - active,
            roster_size=roster,
        )


class DepartmentAggregator(TierAggregator):
    tier = Tier.DEPARTMENT

    async def gather(self, signals: SignalSource, cohort: Cohort, day: date) -> dict[str, Any]:
        if cohort.is_empty or cohort.key is None:
            return {}
        return {"placement_ready": await signals.placement_ready(cohort.key)}

    def aggregate(self, inputs: AggregationInputs) -> DepartmentStats:
        unavailable = ["placement_ready"] if inputs.placement_ready is None else []
        if inputs.cohort.is_empty:
            return DepartmentStats(no_data=True, malformed_records=inputs.malformed, unavailable=unavailable)

        per_user = increase_by_user(todays_records(inputs))
        active = len(per_user)
        since = inputs.now - inputs.faculty_recency
        faculty = inputs.cohort.faculty
        recent = sum(1 for f in faculty if f.last_sign_in_at is not None and f.last_sign_in_at >= since)
        return DepartmentStats(
            malformed_records=inputs.malformed,
            unavailable=unavailable,
            department_average=active_average(sum(per_user.values()), active),
            total_students=inputs.cohort.size,
            active_students=active,
            placement_ready=inputs.placement_ready,
            faculty_usage=recent,
            faculty_total=len(faculty),
        )


class SystemAggregator(TierAggregator):
    tier = Tier.SYSTEM

    async def gather(self, signals: SignalSource, cohort: Cohort, day: date) -> dict[str, Any]:
        return {"operations": await signals.operational_health()}

    def aggregate(self, inputs: AggregationInputs) -> SystemStats:
        ops = inputs.operations or OperationalHealth()
        unavailable = [
            name
            for name in ("system_health", "api_success", "support_tickets")
            if getattr(ops, name) is None
        ]
        telemetry = {
            "system_health": ops.system_health,
            "api_success": ops.api_success,
            "support_tickets": ops.support_tickets,
        }
        if inputs.cohort.is_empty:
            return SystemStats(no_data=True, malformed_records=inputs.malformed, unavailable=unavailable, **telemetry)

        roles = Counter(member.role.value for member in inputs.cohort.roster)
        return SystemStats(
            malformed_records=inputs.malformed,
            unavailable=unavailable,
            total_users=inputs.cohort.size,
            active_today=len({r.user_id for r in todays_records(inputs)}),
            role_distribution=dict(sorted(roles.items())),
            **telemetry,
        )


AGGREGATORS: dict[Role, TierAggregator] = {
    Role.STUDENT: PersonalAggregator(),
    Role.TEAM_LEAD: TeamAggregator(),
    Role.ADVISOR: SectionAggregator(),
    Role.HOD: DepartmentAggregator(),
    Role.ADMIN: SystemAggregator(),
}


def aggregator_for(role: Role | str) -> TierAggregator:
    """Dispatch table lookup. Raises ValueError for an unknown role."""
    return AGGREGATORS[Role(role)]
