"""Shared test fixtures and in-memory fakes of the store and signal contracts."""

from __future__ import annotations

import asyncio
from collections.abc import AsyncGenerator, Iterator, Sequence
from datetime import date, datetime, timezone
from typing import Any

import pytest
import pytest_asyncio
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient

from codeboard.config import Settings
from codeboard.dependencies import get_dispatcher
from codeboard.main import create_app
from codeboard.metrics.dispatcher import AggregationDispatcher
from codeboard.metrics.errors import StoreUnavailable
from codeboard.metrics.schemas import OperationalHealth, Role, RosterMember, TeamStanding, Viewer
from codeboard.metrics.store import RecordFilter

TODAY = date(2026, 10, 19)
NOW = datetime(2026, 10, 19, 12, 0, 0, tzinfo=timezone.utc)


def make_row(
    user_id: str,
    daily_increase: int | None = 0,
    platform: str = "leetcode",
    day: date = TODAY,
    total_solved: int | None = 0,
    coding_streak: int | None = 0,
    rank_in_team: int | None = None,
    rank_in_section: int | None = None,
) -> dict[str, Any]:
    """A daily_stats row as the store returns it."""
    return {
        "id": f"{user_id}-{platform}-{day.isoformat()}",
        "user_id": user_id,
        "platform": platform,
        "date": day,
        "total_solved": total_solved,
        "daily_increase": daily_increase,
        "coding_streak": coding_streak,
        "rank_in_team": rank_in_team,
        "rank_in_section": rank_in_section,
    }


def make_profile(
    user_id: str,
    role: str = "student",
    section_id: str | None = None,
    department_id: str | None = None,
    is_active: bool = True,
    last_sign_in_at: datetime | None = None,
) -> dict[str, Any]:
    return {
        "user_id": user_id,
        "role": role,
        "section_id": section_id,
        "department_id": department_id,
        "is_active": is_active,
        "last_sign_in_at": last_sign_in_at,
    }


class InMemoryActivityStore:
    """ActivityStore over plain lists. Records every call in ``calls``."""

    def __init__(
        self,
        rows: Sequence[dict[str, Any]] = (),
        profiles: Sequence[dict[str, Any]] = (),
        teams: dict[str, str] | None = None,
        team_members: dict[str, list[str]] | None = None,
        fail_on: set[str] | None = None,
        delays: dict[str, float] | None = None,
    ) -> None:
        self.rows = list(rows)
        self.profiles = {p["user_id"]: p for p in profiles}
        self.teams = teams or {}  # lead user_id -> team_id
        self.team_members = team_members or {}  # team_id -> member user_ids
        self.fail_on = fail_on or set()
        self.delays = delays or {}
        self.calls: list[tuple[str, Any]] = []

    async def _enter(self, operation: str, arg: Any) -> None:  # noqa: ANN401
        self.calls.append((operation, arg))
        delay = self.delays.get(operation)
        if delay:
            await asyncio.sleep(delay)
        if operation in self.fail_on:
            raise StoreUnavailable(f"activity store unavailable during {operation}")

    async def query_records(
        self,
        filters: RecordFilter,
        ordering: Sequence[str] = (),
        limit: int | None = None,
    ) -> list[dict[str, Any]]:
        await self._enter("query_records", filters)
        day = date.fromisoformat(filters.date)
        rows = [r for r in self.rows if r["date"] == day]
        if filters.user_id is not None:
            rows = [r for r in rows if r["user_id"] == filters.user_id]
        if filters.user_ids is not None:
            rows = [r for r in rows if r["user_id"] in filters.user_ids]
        for term in reversed(ordering):
            name = term.lstrip("-")
            rows.sort(key=lambda r: r[name], reverse=term.startswith("-"))
        return rows[:limit] if limit is not None else rows

    async def query_roster(self, kind: str, key: str | None) -> list[RosterMember]:
        await self._enter(f"query_roster:{kind}", key)
        profiles = list(self.profiles.values())
        if kind == "team":
            ids = self.team_members.get(key or "", [])
            return [
                RosterMember(
                    user_id=uid,
                    role=self.profiles.get(uid, {}).get("role", "student"),
                    last_sign_in_at=self.profiles.get(uid, {}).get("last_sign_in_at"),
                )
                for uid in ids
            ]
        if kind == "section":
            selected = [p for p in profiles if p["section_id"] == key and p["role"] == "student"]
        elif kind == "department":
            selected = [p for p in profiles if p["department_id"] == key and p["role"] == "student"]
        elif kind == "faculty":
            selected = [p for p in profiles if p["department_id"] == key and p["role"] in ("advisor", "hod")]
        elif kind == "active":
            selected = [p for p in profiles if p["is_active"]]
        else:
            raise ValueError(f"Unknown roster kind: {kind}")
        return [
            RosterMember(user_id=p["user_id"], role=p["role"], last_sign_in_at=p["last_sign_in_at"])
            for p in selected
        ]

    async def get_viewer(self, viewer_id: str) -> Viewer | None:
        await self._enter("get_viewer", viewer_id)
        p = self.profiles.get(viewer_id)
        if p is None:
            return None
        return Viewer(
            user_id=viewer_id,
            role=Role(p["role"]),
            section_id=p["section_id"],
            department_id=p["department_id"],
        )

    async def find_team_led_by(self, viewer_id: str) -> str | None:
        await self._enter("find_team_led_by", viewer_id)
        return self.teams.get(viewer_id)

    def operations(self) -> list[str]:
        return [op for op, _ in self.calls]


class StaticSignalSource:
    """SignalSource returning fixed values."""

    def __init__(
        self,
        standings: dict[str, TeamStanding] | None = None,
        placement: dict[str, int] | None = None,
        operations: OperationalHealth | None = None,
    ) -> None:
        self.standings = standings or {}
        self.placement = placement or {}
        self.operations = operations

    async def team_standing(self, team_id: str, day: date) -> TeamStanding | None:
        return self.standings.get(team_id)

    async def placement_ready(self, department_id: str) -> int | None:
        return self.placement.get(department_id)

    async def operational_health(self) -> OperationalHealth | None:
        return self.operations


@pytest.fixture
def settings() -> Settings:
    """Settings independent of the developer's environment."""
    return Settings(
        _env_file=None,
        activity_timezone="UTC",
        high_activity_threshold=10,
        store_timeout_seconds=1.0,
        faculty_recency_days=7,
        log_format="console",
    )


@pytest.fixture
def campus_store() -> InMemoryActivityStore:
    """A small campus: one department, one section, one team, five students.

    s1..s4 are in section SEC-A, s5 in SEC-B; all five in department CSE.
    Team T1 is led by s1 and has members s1, s2, s3, s4.
    """
    profiles = [
        make_profile("s1", "team_lead", "SEC-A", "CSE"),
        make_profile("s2", "student", "SEC-A", "CSE"),
        make_profile("s3", "student", "SEC-A", "CSE"),
        make_profile("s4", "student", "SEC-A", "CSE"),
        make_profile("s5", "student", "SEC-B", "CSE"),
        make_profile("adv", "advisor", "SEC-A", "CSE", last_sign_in_at=datetime(2026, 10, 18, tzinfo=timezone.utc)),
        make_profile("hod", "hod", None, "CSE", last_sign_in_at=datetime(2026, 9, 1, tzinfo=timezone.utc)),
        make_profile("root", "admin"),
        make_profile("gone", "student", "SEC-A", "CSE", is_active=False),
    ]
    rows = [
        make_row("s1", 5, total_solved=120, coding_streak=4, rank_in_team=1),
        make_row("s2", 3, "leetcode", total_solved=80, coding_streak=2),
        make_row("s2", 2, "codechef", total_solved=40, coding_streak=6),
        make_row("s5", 12, total_solved=300, coding_streak=9),
        make_row("s3", 7, day=date(2026, 10, 18)),
    ]
    return InMemoryActivityStore(
        rows=rows,
        profiles=profiles,
        teams={"s1": "T1"},
        team_members={"T1": ["s1", "s2", "s3", "s4"]},
    )


@pytest.fixture
def signals() -> StaticSignalSource:
    return StaticSignalSource(
        standings={"T1": TeamStanding(team_id="T1", rank=1, total_teams=3, today_total=10, monthly_goal=55.0)},
        placement={"CSE": 2},
        operations=OperationalHealth(system_health=99.1, api_success=98.4, support_tickets=3),
    )


@pytest.fixture
def app(campus_store: InMemoryActivityStore, signals: StaticSignalSource, settings: Settings) -> Iterator[FastAPI]:
    """Application wired to the in-memory campus with a fixed clock. No lifespan, no database."""
    application = create_app()
    application.dependency_overrides[get_dispatcher] = lambda: AggregationDispatcher(
        campus_store, signals, settings, clock=lambda: NOW
    )
    yield application
    application.dependency_overrides.clear()


@pytest_asyncio.fixture
async def client(app: FastAPI) -> AsyncGenerator[AsyncClient, None]:
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
