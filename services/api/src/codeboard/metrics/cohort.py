"""Cohort resolution: which users feed each role's tier.

Membership is read from the roster tables, never computed here. A viewer
without the assignment a tier needs gets an empty cohort tagged with the
reason rather than an error.
"""

from __future__ import annotations

import structlog

from codeboard.metrics.errors import CohortUnresolved
from codeboard.metrics.schemas import Cohort, Role, RosterMember
from codeboard.metrics.store import ActivityStore

logger = structlog.get_logger()


class CohortResolver:
    def __init__(self, store: ActivityStore) -> None:
        self._store = store

    async def resolve(self, role: Role, viewer_id: str) -> Cohort:
        """Resolve the cohort for ``role`` as seen by ``viewer_id``."""
        try:
            if role is Role.STUDENT:
                return Cohort(kind="self", key=viewer_id, members=frozenset({viewer_id}))
            if role is Role.TEAM_LEAD:
                return await self._team(viewer_id)
            if role is Role.ADVISOR:
                return await self._section(viewer_id)
            if role is Role.HOD:
                return await self._department(viewer_id)
            if role is Role.ADMIN:
                return await self._system()
        except CohortUnresolved as exc:
            logger.info("cohort_unresolved", role=role.value, viewer_id=viewer_id, reason=exc.reason)
            return Cohort(kind=_KIND_BY_ROLE[role], unresolved=exc.reason)
        raise ValueError(f"Unknown role: {role}")

    async def _team(self, viewer_id: str) -> Cohort:
        team_id = await self._store.find_team_led_by(viewer_id)
        if team_id is None:
            raise CohortUnresolved(Role.TEAM_LEAD.value, viewer_id, "viewer leads no team")
        roster = await self._store.query_roster("team", team_id)
        return _cohort("team", team_id, roster)

    async def _section(self, viewer_id: str) -> Cohort:
        viewer = await self._store.get_viewer(viewer_id)
        if viewer is None or not viewer.section_id:
            raise CohortUnresolved(Role.ADVISOR.value, viewer_id, "viewer has no section")
        roster = await self._store.query_roster("section", viewer.section_id)
        return _cohort("section", viewer.section_id, roster)

    async def _department(self, viewer_id: str) -> Cohort:
        viewer = await self._store.get_viewer(viewer_id)
        if viewer is None or not viewer.department_id:
            raise CohortUnresolved(Role.HOD.value, viewer_id, "viewer has no department")
        roster = await self._store.query_roster("department", viewer.department_id)
        faculty = await self._store.query_roster("faculty", viewer.department_id)
        return _cohort("department", viewer.department_id, roster, faculty=faculty)

    async def _system(self) -> Cohort:
        roster = await self._store.query_roster("active", None)
        return _cohort("system", None, roster)


_KIND_BY_ROLE = {
    Role.STUDENT: "self",
    Role.TEAM_LEAD: "team",
    Role.ADVISOR: "section",
    Role.HOD: "department",
    Role.ADMIN: "system",
}


def _cohort(
    kind: str,
    key: str | None,
    roster: list[RosterMember],
    faculty: list[RosterMember] | None = None,
) -> Cohort:
    # A roster may list a user twice (e.g. rejoined a team); members is a set.
    unique: dict[str, RosterMember] = {}
    for member in roster:
        unique.setdefault(member.user_id, member)
    return Cohort(
        kind=kind,  # type: ignore[arg-type]
        key=key,
        members=frozenset(unique),
        roster=tuple(unique.values()),
        faculty=tuple(faculty or ()),
    )
