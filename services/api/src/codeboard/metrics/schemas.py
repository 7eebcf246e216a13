"""Engine data types: activity records, cohorts, and per-tier results."""

from __future__ import annotations

import datetime as dt
from datetime import datetime
from enum import Enum
from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, NonNegativeInt, PositiveInt, field_validator


class Role(str, Enum):
    """Viewer roles. Each role sees exactly one tier."""

    STUDENT = "student"
    TEAM_LEAD = "team_lead"
    ADVISOR = "advisor"
    HOD = "hod"
    ADMIN = "admin"


class Tier(str, Enum):
    PERSONAL = "personal"
    TEAM = "team"
    SECTION = "section"
    DEPARTMENT = "department"
    SYSTEM = "system"


class Platform(str, Enum):
    """Coding platforms a student can link."""

    LEETCODE = "leetcode"
    SKILLRACK = "skillrack"
    CODECHEF = "codechef"
    HACKERRANK = "hackerrank"
    GITHUB = "github"


FACULTY_ROLES = frozenset({Role.ADVISOR, Role.HOD})


# ── Inputs ──


class ActivityRecord(BaseModel):
    """One user's activity on one platform for one calendar day."""

    model_config = ConfigDict(frozen=True)

    user_id: str = Field(min_length=1)
    platform: Platform
    date: dt.date
    total_solved: NonNegativeInt
    daily_increase: NonNegativeInt
    coding_streak: NonNegativeInt
    rank_in_team: PositiveInt | None = None
    rank_in_section: PositiveInt | None = None

    @field_validator("platform", mode="before")
    @classmethod
    def _normalize_platform(cls, value: object) -> object:
        if isinstance(value, str):
            return value.strip().lower()
        return value

    @field_validator("rank_in_team", "rank_in_section", mode="before")
    @classmethod
    def _drop_unset_rank(cls, value: object) -> object:
        # Ingestion writes 0 for "not ranked yet".
        if isinstance(value, int) and value <= 0:
            return None
        return value


class RosterMember(BaseModel):
    """A cohort member as read from the roster tables."""

    model_config = ConfigDict(frozen=True)

    user_id: str
    role: Role = Role.STUDENT
    last_sign_in_at: datetime | None = None


class Viewer(BaseModel):
    """Roster keys for the signed-in viewer."""

    model_config = ConfigDict(frozen=True)

    user_id: str
    role: Role
    section_id: str | None = None
    department_id: str | None = None


class Cohort(BaseModel):
    """The set of users whose records feed a tier.

    ``members`` is empty when the cohort could not be resolved; ``unresolved``
    then carries the reason. For the system tier ``members`` is the active
    population and records are fetched by date only.
    """

    model_config = ConfigDict(frozen=True)

    kind: Literal["self", "team", "section", "department", "system"]
    key: str | None = None
    members: frozenset[str] = frozenset()
    roster: tuple[RosterMember, ...] = ()
    faculty: tuple[RosterMember, ...] = ()
    unresolved: str | None = None

    @property
    def size(self) -> int:
        return len(self.members)

    @property
    def is_empty(self) -> bool:
        return not self.members


class TeamStanding(BaseModel):
    """Output of the cross-team ranking pass for one team."""

    model_config = ConfigDict(frozen=True)

    team_id: str
    rank: PositiveInt | None = None
    total_teams: NonNegativeInt = 0
    today_total: NonNegativeInt = 0
    monthly_goal: float | None = None


class OperationalHealth(BaseModel):
    """Ingestion pipeline telemetry and support desk counters."""

    model_config = ConfigDict(frozen=True)

    system_health: float | None = None
    api_success: float | None = None
    support_tickets: NonNegativeInt | None = None


# ── Results ──


class TierResult(BaseModel):
    """Fields shared by every tier's statistics record.

    ``unavailable`` lists fields whose value could not be sourced; those
    fields are ``None`` rather than a number that looks like real data.
    """

    model_config = ConfigDict(frozen=True)

    tier: Tier
    no_data: bool = False
    malformed_records: NonNegativeInt = 0
    unavailable: list[str] = Field(default_factory=list)


class PersonalStats(TierResult):
    tier: Literal[Tier.PERSONAL] = Tier.PERSONAL
    today_problems: int = 0
    current_streak: int = 0
    total_solved: int = 0
    team_rank: int | None = None
    section_rank: int | None = None
    platforms_active: int = 0


class TeamStats(TierResult):
    tier: Literal[Tier.TEAM] = Tier.TEAM
    team_average: float = 0.0
    active_members: int = 0
    roster_size: int = 0
    inactive_members: int = 0
    team_rank: int | None = None
    monthly_goal: float | None = None


class SectionStats(TierResult):
    tier: Literal[Tier.SECTION] = Tier.SECTION
    section_average: float = 0.0
    active_students: int = 0
    top_performers: int = 0
    need_attention: int = 0
    roster_size: int = 0


class DepartmentStats(TierResult):
    tier: Literal[Tier.DEPARTMENT] = Tier.DEPARTMENT
    department_average: float = 0.0
    total_students: int = 0
    active_students: int = 0
    placement_ready: int | None = None
    faculty_usage: int = 0
    faculty_total: int = 0


class SystemStats(TierResult):
    tier: Literal[Tier.SYSTEM] = Tier.SYSTEM
    total_users: int = 0
    active_today: int = 0
    system_health: float | None = None
    api_success: float | None = None
    support_tickets: int | None = None
    role_distribution: dict[str, int] = Field(default_factory=dict)


AggregateResult = Annotated[
    Union[PersonalStats, TeamStats, SectionStats, DepartmentStats, SystemStats],
    Field(discriminator="tier"),
]


# ── Dispatcher state ──


class ErrorInfo(BaseModel):
    kind: str
    message: str
    role: Role
    cohort_size: int | None = None
    retryable: bool = True


class DashboardState(BaseModel):
    """What the presentation layer renders: idle, loading, ready, or error."""

    status: Literal["idle", "loading", "ready", "error"] = "idle"
    role: Role | None = None
    generation: int = 0
    result: AggregateResult | None = None
    error: ErrorInfo | None = None
