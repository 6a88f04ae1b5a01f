# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""ORM models for the roster engine.

Tables:
- institutions / courses: the course tree enrollments hang from
- whitelist: allow-list half of an Identity (who may access the platform)
- profiles: durable account half of an Identity (exists once the identity
  provider created an account)
- draft_students: staged student records imported ahead of matching
- course_enrollments: live course memberships, unique on (course_id, email)
- institution_roles: institution-admin grants
"""

from datetime import date, datetime

from sqlalchemy import Date, DateTime, ForeignKey, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from src.infrastructure.database.models.base import Base, JSONList, TimestampMixin, new_id
from src.utils.datetime import utc_now


class Institution(Base):
    """An institution owning courses."""

    __tablename__ = "institutions"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now, nullable=False)

    courses: Mapped[list["Course"]] = relationship(back_populates="institution")


class Course(Base):
    """A course inside an institution."""

    __tablename__ = "courses"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    institution_id: Mapped[str | None] = mapped_column(
        String(36),
        ForeignKey("institutions.id", ondelete="CASCADE"),
        nullable=True,
        index=True,
    )
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now, nullable=False)

    institution: Mapped[Institution | None] = relationship(back_populates="courses")


class ProfileFieldsMixin:
    """Profile fields shared by the allow-list and the durable profile."""

    first_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    last_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    dni: Mapped[str | None] = mapped_column(String(50), nullable=True)
    phone: Mapped[str | None] = mapped_column(String(50), nullable=True)
    birth_date: Mapped[date | None] = mapped_column(Date, nullable=True)


class WhitelistEntry(ProfileFieldsMixin, TimestampMixin, Base):
    """Allow-list entry keyed by normalized email."""

    __tablename__ = "whitelist"

    email: Mapped[str] = mapped_column(String(320), primary_key=True)
    roles: Mapped[list[str]] = mapped_column(JSONList, nullable=False, default=list)
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}


class Profile(ProfileFieldsMixin, TimestampMixin, Base):
    """Durable account profile keyed by the identity provider account id."""

    __tablename__ = "profiles"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    email: Mapped[str] = mapped_column(String(320), nullable=False, unique=True)
    roles: Mapped[list[str]] = mapped_column(JSONList, nullable=False, default=list)
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}


class DraftStudent(TimestampMixin, Base):
    """Staged student record, not yet a live account.

    ``email`` keeps the raw imported value; ``email_key`` is its normalized
    form and is the only column used for lookups.
    """

    __tablename__ = "draft_students"
    __table_args__ = (
        UniqueConstraint("course_id", "email", name="uq_draft_students_course_email"),
        Index("ix_draft_students_email_key", "email_key"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    course_id: Mapped[str] = mapped_column(String(36), nullable=False)
    email: Mapped[str] = mapped_column(String(320), nullable=False)
    email_key: Mapped[str] = mapped_column(String(320), nullable=False)

    first_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    last_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    dni: Mapped[str | None] = mapped_column(String(50), nullable=True)
    phone: Mapped[str | None] = mapped_column(String(50), nullable=True)
    birth_date: Mapped[str | None] = mapped_column(String(32), nullable=True)
    address: Mapped[str | None] = mapped_column(String(255), nullable=True)
    city: Mapped[str | None] = mapped_column(String(120), nullable=True)
    country: Mapped[str | None] = mapped_column(String(120), nullable=True)
    file_number: Mapped[str | None] = mapped_column(String(50), nullable=True)
    career: Mapped[str | None] = mapped_column(String(255), nullable=True)
    year: Mapped[str | None] = mapped_column(String(20), nullable=True)
    shift: Mapped[str | None] = mapped_column(String(50), nullable=True)
    commission: Mapped[str | None] = mapped_column(String(50), nullable=True)
    status: Mapped[str | None] = mapped_column(String(50), nullable=True)
    observations: Mapped[str | None] = mapped_column(Text, nullable=True)


class CourseEnrollment(Base):
    """Live membership of one email in one course under one role."""

    __tablename__ = "course_enrollments"
    __table_args__ = (
        UniqueConstraint("course_id", "email", name="uq_course_enrollments_course_email"),
        Index("ix_course_enrollments_email", "email"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    course_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("courses.id", ondelete="CASCADE"),
        nullable=False,
    )
    email: Mapped[str] = mapped_column(String(320), nullable=False)
    role: Mapped[str] = mapped_column(String(50), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now, nullable=False)


class InstitutionRole(Base):
    """Institution-scoped administrative grant."""

    __tablename__ = "institution_roles"
    __table_args__ = (
        UniqueConstraint("institution_id", "email", "role", name="uq_institution_roles_grant"),
        Index("ix_institution_roles_email", "email"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    institution_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("institutions.id", ondelete="CASCADE"),
        nullable=False,
    )
    email: Mapped[str] = mapped_column(String(320), nullable=False)
    role: Mapped[str] = mapped_column(String(50), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now, nullable=False)
