"""Activity record store contract and its SQLAlchemy implementation.

The engine only ever reads: today's activity rows, roster membership, and
the viewer's own roster keys. Rows are returned as plain mappings so that
malformed rows can be detected and skipped during parsing.
"""

from __future__ import annotations

from collections.abc import AsyncIterator, Sequence
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import date
from typing import Any, Literal, Protocol

import structlog
from pydantic import ValidationError
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from codeboard.db.models import DailyStat, Profile, Team, TeamMember
from codeboard.metrics.errors import StoreUnavailable
from codeboard.metrics.schemas import FACULTY_ROLES, Role, RosterMember, Viewer

logger = structlog.get_logger()

RosterKind = Literal["team", "section", "department", "faculty", "active"]

_RECORD_COLUMNS = (
    "id",
    "user_id",
    "platform",
    "date",
    "total_solved",
    "daily_increase",
    "coding_streak",
    "rank_in_team",
    "rank_in_section",
)


@dataclass(frozen=True)
class RecordFilter:
    """Predicates for ``query_records``.

    ``date`` is an ISO ``YYYY-MM-DD`` string. ``user_id`` is an equality
    predicate, ``user_ids`` a set-membership predicate; leave both unset to
    match every user.
    """

    date: str
    user_id: str | None = None
    user_ids: frozenset[str] | None = None

    @classmethod
    def for_day(cls, day: date, user_ids: frozenset[str] | None = None) -> RecordFilter:
        if user_ids is not None and len(user_ids) == 1:
            return cls(date=day.isoformat(), user_id=next(iter(user_ids)))
        return cls(date=day.isoformat(), user_ids=user_ids)


class ActivityStore(Protocol):
    async def query_records(
        self,
        filters: RecordFilter,
        ordering: Sequence[str] = (),
        limit: int | None = None,
    ) -> list[dict[str, Any]]: ...

    async def query_roster(self, kind: RosterKind, key: str | None) -> list[RosterMember]: ...

    async def get_viewer(self, viewer_id: str) -> Viewer | None: ...

    async def find_team_led_by(self, viewer_id: str) -> str | None: ...


class SQLActivityStore:
    """ActivityStore over the async SQLAlchemy session factory.

    Each call opens its own short-lived session so a store instance can be
    shared by concurrent loads.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    @asynccontextmanager
    async def _session(self, operation: str) -> AsyncIterator[AsyncSession]:
        try:
            async with self._session_factory() as session:
                yield session
        except (SQLAlchemyError, OSError) as exc:
            logger.warning("store_query_failed", operation=operation, error=str(exc))
            raise StoreUnavailable(f"activity store unavailable during {operation}") from exc

    async def query_records(
        self,
        filters: RecordFilter,
        ordering: Sequence[str] = (),
        limit: int | None = None,
    ) -> list[dict[str, Any]]:
        if filters.user_ids is not None and not filters.user_ids:
            return []

        stmt = select(*(getattr(DailyStat, name) for name in _RECORD_COLUMNS)).where(
            DailyStat.date == date.fromisoformat(filters.date)
        )
        if filters.user_id is not None:
            stmt = stmt.where(DailyStat.user_id == filters.user_id)
        if filters.user_ids is not None:
            stmt = stmt.where(DailyStat.user_id.in_(sorted(filters.user_ids)))
        for term in ordering:
            stmt = stmt.order_by(_order_clause(term))
        if limit is not None:
            stmt = stmt.limit(limit)

        async with self._session("query_records") as session:
            result = await session.execute(stmt)
            rows = result.mappings().all()
        return [
            {**row, "id": str(row["id"]), "user_id": str(row["user_id"])}
            for row in rows
        ]

    async def query_roster(self, kind: RosterKind, key: str | None) -> list[RosterMember]:
        if kind == "team":
            stmt = (
                select(TeamMember.user_id, Profile.role, Profile.last_sign_in_at)
                .outerjoin(Profile, Profile.user_id == TeamMember.user_id)
                .where(TeamMember.team_id == key, TeamMember.is_active.is_(True))
            )
        elif kind == "section":
            stmt = select(Profile.user_id, Profile.role, Profile.last_sign_in_at).where(
                Profile.section_id == key, Profile.role == Role.STUDENT.value
            )
        elif kind == "department":
            stmt = select(Profile.user_id, Profile.role, Profile.last_sign_in_at).where(
                Profile.department_id == key, Profile.role == Role.STUDENT.value
            )
        elif kind == "faculty":
            stmt = select(Profile.user_id, Profile.role, Profile.last_sign_in_at).where(
                Profile.department_id == key,
                Profile.role.in_([r.value for r in FACULTY_ROLES]),
            )
        elif kind == "active":
            stmt = select(Profile.user_id, Profile.role, Profile.last_sign_in_at).where(
                Profile.is_active.is_(True)
            )
        else:
            raise ValueError(f"Unknown roster kind: {kind}")

        async with self._session(f"query_roster:{kind}") as session:
            result = await session.execute(stmt)
            rows = result.all()

        members = []
        for user_id, role, last_sign_in_at in rows:
            members.append(
                RosterMember(
                    user_id=str(user_id),
                    role=role or Role.STUDENT,
                    last_sign_in_at=last_sign_in_at,
                )
            )
        return members

    async def get_viewer(self, viewer_id: str) -> Viewer | None:
        stmt = select(Profile.user_id, Profile.role, Profile.section_id, Profile.department_id).where(
            Profile.user_id == viewer_id
        )
        async with self._session("get_viewer") as session:
            row = (await session.execute(stmt)).first()
        if row is None:
            return None
        try:
            return Viewer(
                user_id=str(row.user_id),
                role=row.role,
                section_id=str(row.section_id) if row.section_id else None,
                department_id=str(row.department_id) if row.department_id else None,
            )
        except ValidationError:
            logger.warning("viewer_profile_invalid", viewer_id=viewer_id, role=row.role)
            return None

    async def find_team_led_by(self, viewer_id: str) -> str | None:
        """Most recently created non-inactive team the viewer leads."""
        stmt = (
            select(Team.id)
            .where(Team.team_lead_id == viewer_id, Team.status != "inactive")
            .order_by(Team.created_at.desc())
            .limit(1)
        )
        async with self._session("find_team_led_by") as session:
            team_id = (await session.execute(stmt)).scalar_one_or_none()
        return str(team_id) if team_id is not None else None


def _order_clause(term: str) -> Any:  # noqa: ANN401
    """``"daily_increase"`` sorts ascending, ``"-daily_increase"`` descending."""
    descending = term.startswith("-")
    name = term.lstrip("-")
    if name not in _RECORD_COLUMNS:
        raise ValueError(f"Cannot order activity records by {name!r}")
    column = getattr(DailyStat, name)
    return column.desc() if descending else column.asc()
