"""SQLActivityStore: query building, row shaping and failure mapping."""

from __future__ import annotations

from datetime import date
from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest
from sqlalchemy.dialects import postgresql
from sqlalchemy.exc import OperationalError

from codeboard.metrics.errors import StoreUnavailable
from codeboard.metrics.schemas import Role
from codeboard.metrics.store import RecordFilter, SQLActivityStore

pytestmark = pytest.mark.asyncio

DAY = date(2026, 10, 19)


class RecordingSession:
    """Async session stand-in that records statements and returns canned results."""

    def __init__(self, result=None, error: Exception | None = None, enter_error: Exception | None = None):
        self.result = result if result is not None else MagicMock()
        self.error = error
        self.enter_error = enter_error
        self.statements = []

    async def __aenter__(self):
        if self.enter_error is not None:
            raise self.enter_error
        return self

    async def __aexit__(self, *exc_info):
        return False

    async def execute(self, stmt):
        self.statements.append(stmt)
        if self.error is not None:
            raise self.error
        return self.result


def _store(session: RecordingSession) -> SQLActivityStore:
    return SQLActivityStore(lambda: session)


def _compiled(stmt):
    compiled = stmt.compile(dialect=postgresql.dialect())
    return str(compiled), compiled.params


class TestQueryRecords:
    async def test_set_membership_and_ordering(self):
        result = MagicMock()
        result.mappings.return_value.all.return_value = [
            {"id": 7, "user_id": 42, "platform": "leetcode", "date": DAY, "daily_increase": 3},
        ]
        session = RecordingSession(result)

        rows = await _store(session).query_records(
            RecordFilter.for_day(DAY, frozenset({"b", "a"})), ordering=("user_id", "-daily_increase"), limit=50
        )

        assert rows == [{"id": "7", "user_id": "42", "platform": "leetcode", "date": DAY, "daily_increase": 3}]
        sql, params = _compiled(session.statements[0])
        assert "daily_stats.user_id IN" in sql
        assert "ORDER BY daily_stats.user_id ASC, daily_stats.daily_increase DESC" in sql
        assert "LIMIT" in sql
        assert ["a", "b"] in params.values()
        assert DAY in params.values()

    async def test_single_user_is_equality(self):
        session = RecordingSession()
        await _store(session).query_records(RecordFilter.for_day(DAY, frozenset({"s2"})))
        sql, params = _compiled(session.statements[0])
        assert "daily_stats.user_id = " in sql
        assert " IN " not in sql
        assert "s2" in params.values()

    async def test_date_only(self):
        session = RecordingSession()
        await _store(session).query_records(RecordFilter.for_day(DAY))
        sql, _ = _compiled(session.statements[0])
        assert "daily_stats.date = " in sql
        assert "daily_stats.user_id =" not in sql
        assert " IN " not in sql

    async def test_empty_membership_skips_query(self):
        session = RecordingSession()
        assert await _store(session).query_records(RecordFilter.for_day(DAY, frozenset())) == []
        assert session.statements == []

    async def test_unknown_ordering_column(self):
        session = RecordingSession()
        with pytest.raises(ValueError):
            await _store(session).query_records(RecordFilter.for_day(DAY), ordering=("password",))
        assert session.statements == []


class TestQueryRoster:
    async def test_team_roster_only_active_memberships(self):
        result = MagicMock()
        result.all.return_value = [("u1", "student", None), ("u2", None, None)]
        session = RecordingSession(result)

        members = await _store(session).query_roster("team", "T1")

        assert [(m.user_id, m.role) for m in members] == [("u1", Role.STUDENT), ("u2", Role.STUDENT)]
        sql, params = _compiled(session.statements[0])
        assert "team_members.is_active IS true" in sql
        assert "T1" in params.values()

    async def test_section_roster_is_students(self):
        session = RecordingSession()
        session.result.all.return_value = []
        await _store(session).query_roster("section", "SEC-A")
        sql, params = _compiled(session.statements[0])
        assert "profiles.section_id = " in sql
        assert "student" in params.values()

    async def test_faculty_roster_roles(self):
        session = RecordingSession()
        session.result.all.return_value = []
        await _store(session).query_roster("faculty", "CSE")
        sql, params = _compiled(session.statements[0])
        assert "profiles.role IN" in sql
        assert sorted(next(v for v in params.values() if isinstance(v, list))) == ["advisor", "hod"]

    async def test_active_roster(self):
        session = RecordingSession()
        session.result.all.return_value = []
        await _store(session).query_roster("active", None)
        sql, _ = _compiled(session.statements[0])
        assert "profiles.is_active IS true" in sql

    async def test_unknown_kind(self):
        with pytest.raises(ValueError):
            await _store(RecordingSession()).query_roster("campus", None)  # type: ignore[arg-type]


class TestViewerLookups:
    async def test_most_recent_non_inactive_team(self):
        session = RecordingSession()
        session.result.scalar_one_or_none.return_value = "team-uuid"

        assert await _store(session).find_team_led_by("s1") == "team-uuid"
        sql, params = _compiled(session.statements[0])
        assert "teams.team_lead_id = " in sql
        assert "teams.status != " in sql
        assert "ORDER BY teams.created_at DESC" in sql
        assert "LIMIT" in sql
        assert "inactive" in params.values()

    async def test_leads_no_team(self):
        session = RecordingSession()
        session.result.scalar_one_or_none.return_value = None
        assert await _store(session).find_team_led_by("s2") is None

    async def test_get_viewer(self):
        session = RecordingSession()
        session.result.first.return_value = SimpleNamespace(
            user_id="adv", role="advisor", section_id="SEC-A", department_id=None
        )
        viewer = await _store(session).get_viewer("adv")
        assert viewer.role is Role.ADVISOR
        assert viewer.section_id == "SEC-A"
        assert viewer.department_id is None

    async def test_viewer_with_unknown_role(self):
        session = RecordingSession()
        session.result.first.return_value = SimpleNamespace(
            user_id="x", role="principal", section_id=None, department_id=None
        )
        assert await _store(session).get_viewer("x") is None

    async def test_missing_viewer(self):
        session = RecordingSession()
        session.result.first.return_value = None
        assert await _store(session).get_viewer("nobody") is None


class TestFailures:
    async def test_driver_error_becomes_store_unavailable(self):
        session = RecordingSession(error=OperationalError("SELECT 1", {}, Exception("server closed the connection")))
        with pytest.raises(StoreUnavailable) as exc_info:
            await _store(session).query_records(RecordFilter.for_day(DAY, frozenset({"a", "b"})))
        assert exc_info.value.retryable is True
        assert "query_records" in exc_info.value.message
        assert isinstance(exc_info.value.__cause__, OperationalError)

    async def test_connection_refused_becomes_store_unavailable(self):
        session = RecordingSession(enter_error=ConnectionRefusedError("connection refused"))
        with pytest.raises(StoreUnavailable):
            await _store(session).find_team_led_by("s1")

    async def test_roster_failure(self):
        session = RecordingSession(error=OperationalError("SELECT 1", {}, Exception("timeout")))
        with pytest.raises(StoreUnavailable) as exc_info:
            await _store(session).query_roster("section", "SEC-A")
        assert "query_roster:section" in exc_info.value.message
