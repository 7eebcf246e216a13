"""ORM models for the tables the dashboard reads.

The tables are owned by the institution's document store and populated by
the registration flow and the ingestion process. They use
extend_existing=True since the schema exists before this service starts.
"""

from __future__ import annotations

import datetime as dt
import uuid
from datetime import datetime

from sqlalchemy import (
    Boolean,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
    text,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from codeboard.db.base import Base


# ---------------------------------------------------------------------------
# Organization
# ---------------------------------------------------------------------------


class Department(Base):
    """Maps to the 'departments' table."""

    __tablename__ = "departments"
    __table_args__ = {"extend_existing": True}  # noqa: RUF012

    id: Mapped[str] = mapped_column(UUID(as_uuid=False), primary_key=True, default=lambda: str(uuid.uuid4()))
    code: Mapped[str] = mapped_column(String(16), nullable=False)
    name: Mapped[str] = mapped_column(String(128), nullable=False)
    hod_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=text("NOW()"))


class Section(Base):
    """Maps to the 'sections' table."""

    __tablename__ = "sections"
    __table_args__ = {"extend_existing": True}  # noqa: RUF012

    id: Mapped[str] = mapped_column(UUID(as_uuid=False), primary_key=True, default=lambda: str(uuid.uuid4()))
    code: Mapped[str] = mapped_column(String(16), nullable=False)
    name: Mapped[str] = mapped_column(String(128), nullable=False)
    academic_year: Mapped[str] = mapped_column(String(16), nullable=False)
    department_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False), ForeignKey("departments.id", ondelete="CASCADE"), nullable=False
    )
    advisor_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=text("NOW()"))


# ---------------------------------------------------------------------------
# People
# ---------------------------------------------------------------------------


class Profile(Base):
    """One row per account. ``role`` is one of the five dashboard tiers' roles."""

    __tablename__ = "profiles"
    __table_args__ = {"extend_existing": True}  # noqa: RUF012

    id: Mapped[str] = mapped_column(UUID(as_uuid=False), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    full_name: Mapped[str] = mapped_column(String(128), nullable=False)
    email: Mapped[str] = mapped_column(String(320), nullable=False)
    role: Mapped[str] = mapped_column(String(16), nullable=False, server_default="student")
    roll_number: Mapped[str | None] = mapped_column(String(32), nullable=True)
    department_id: Mapped[str | None] = mapped_column(
        UUID(as_uuid=False), ForeignKey("departments.id", ondelete="SET NULL"), nullable=True
    )
    section_id: Mapped[str | None] = mapped_column(
        UUID(as_uuid=False), ForeignKey("sections.id", ondelete="SET NULL"), nullable=True
    )
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, server_default="true")
    last_sign_in_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=text("NOW()"))


# ---------------------------------------------------------------------------
# Teams
# ---------------------------------------------------------------------------


class Team(Base):
    """Student team led by a ``team_lead`` profile."""

    __tablename__ = "teams"
    __table_args__ = {"extend_existing": True}  # noqa: RUF012

    id: Mapped[str] = mapped_column(UUID(as_uuid=False), primary_key=True, default=lambda: str(uuid.uuid4()))
    name: Mapped[str] = mapped_column(String(128), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    team_lead_id: Mapped[str] = mapped_column(String(64), nullable=False)
    section_id: Mapped[str] = mapped_column(UUID(as_uuid=False), ForeignKey("sections.id"), nullable=False)
    department_id: Mapped[str] = mapped_column(UUID(as_uuid=False), ForeignKey("departments.id"), nullable=False)
    academic_year: Mapped[str] = mapped_column(String(16), nullable=False)
    status: Mapped[str] = mapped_column(String(16), nullable=False, server_default="pending")
    max_members: Mapped[int] = mapped_column(Integer, nullable=False, server_default="6")
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=text("NOW()"))

    members: Mapped[list[TeamMember]] = relationship("TeamMember", back_populates="team")


class TeamMember(Base):
    __tablename__ = "team_members"
    __table_args__ = (
        UniqueConstraint("team_id", "user_id", name="team_members_team_id_user_id_key"),
        {"extend_existing": True},
    )

    id: Mapped[str] = mapped_column(UUID(as_uuid=False), primary_key=True, default=lambda: str(uuid.uuid4()))
    team_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False), ForeignKey("teams.id", ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[str] = mapped_column(String(64), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, server_default="true")
    joined_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=text("NOW()"))

    team: Mapped[Team] = relationship("Team", back_populates="members")


# ---------------------------------------------------------------------------
# Activity
# ---------------------------------------------------------------------------


class DailyStat(Base):
    """Per-user, per-platform, per-day activity written by the ingestion process.

    Rows are append-mostly; the dashboard never writes to this table.
    """

    __tablename__ = "daily_stats"
    __table_args__ = (
        UniqueConstraint("user_id", "platform", "date", name="daily_stats_user_id_platform_date_key"),
        {"extend_existing": True},
    )

    id: Mapped[str] = mapped_column(UUID(as_uuid=False), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    platform: Mapped[str] = mapped_column(String(32), nullable=False)
    date: Mapped[dt.date] = mapped_column(Date, nullable=False, index=True)
    total_solved: Mapped[int | None] = mapped_column(Integer, nullable=True, server_default="0")
    daily_increase: Mapped[int | None] = mapped_column(Integer, nullable=True, server_default="0")
    coding_streak: Mapped[int | None] = mapped_column(Integer, nullable=True, server_default="0")
    rank_in_team: Mapped[int | None] = mapped_column(Integer, nullable=True)
    rank_in_section: Mapped[int | None] = mapped_column(Integer, nullable=True)
    last_activity_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=text("NOW()"))
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=text("NOW()"))
