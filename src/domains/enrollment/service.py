# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Enrollment ledger for course memberships.

This module provides the EnrollmentLedger class for:
- Idempotent enrollment inserts (a duplicate is success)
- Role-scoped removal
- Membership queries used by the permission gate and the draft matcher

Emails are stored normalized; every lookup normalizes its input.
"""

import logging
from collections.abc import Iterable

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from src.infrastructure.database.conflicts import insert_ignoring_conflict
from src.infrastructure.database.models import CourseEnrollment
from src.utils.email import normalize_email, normalize_emails

logger = logging.getLogger(__name__)


class EnrollmentLedger:
    """Source of truth for who is in a course as what.

    Attributes:
        _sessionmaker: Factory for per-step sessions.
    """

    def __init__(self, sessionmaker: async_sessionmaker[AsyncSession]) -> None:
        """Initialize the ledger.

        Args:
            sessionmaker: Session factory; each call runs its own unit of work.
        """
        self._sessionmaker = sessionmaker

    async def add(self, course_id: str, email: str, role: str) -> bool:
        """Insert an enrollment row.

        Args:
            course_id: Course identifier.
            email: Email (normalized before storing).
            role: Enrollment role.

        Returns:
            True if inserted, False if (course_id, email) was already enrolled.

        Raises:
            sqlalchemy.exc.SQLAlchemyError: For non-conflict storage failures.
        """
        key = normalize_email(email)
        async with self._sessionmaker() as session:
            inserted = await insert_ignoring_conflict(
                session,
                CourseEnrollment(course_id=course_id, email=key, role=role),
            )

        if inserted:
            logger.info("Enrolled: course=%s, email=%s, role=%s", course_id, key, role)
        else:
            existing = await self.role_in_course(course_id, key)
            if existing != role:
                logger.warning(
                    "Enrollment kept with another role: course=%s, email=%s, requested=%s, existing=%s",
                    course_id,
                    key,
                    role,
                    existing,
                )
            else:
                logger.debug("Already enrolled: course=%s, email=%s", course_id, key)
        return inserted

    async def remove(self, course_id: str, email: str, roles: Iterable[str]) -> int:
        """Delete the enrollment for (course_id, email) if its role is in ``roles``.

        Args:
            course_id: Course identifier.
            email: Email to remove.
            roles: Roles this removal may touch.

        Returns:
            Number of rows deleted.
        """
        key = normalize_email(email)
        allowed = list(roles)
        async with self._sessionmaker() as session:
            result = await session.execute(
                delete(CourseEnrollment).where(
                    CourseEnrollment.course_id == course_id,
                    CourseEnrollment.email == key,
                    CourseEnrollment.role.in_(allowed),
                )
            )
            await session.commit()

        deleted = result.rowcount or 0
        logger.info(
            "Enrollment removed: course=%s, email=%s, roles=%s, deleted=%d",
            course_id,
            key,
            ",".join(allowed),
            deleted,
        )
        return deleted

    async def role_in_course(self, course_id: str, email: str) -> str | None:
        """Role held by ``email`` in the course, or None."""
        async with self._sessionmaker() as session:
            return await session.scalar(
                select(CourseEnrollment.role).where(
                    CourseEnrollment.course_id == course_id,
                    CourseEnrollment.email == normalize_email(email),
                )
            )

    async def enrolled_emails(self, course_id: str, emails: Iterable[str]) -> set[str]:
        """Subset of ``emails`` (normalized) already enrolled in the course."""
        keys = normalize_emails(emails)
        if not keys:
            return set()

        async with self._sessionmaker() as session:
            result = await session.execute(
                select(CourseEnrollment.email).where(
                    CourseEnrollment.course_id == course_id,
                    CourseEnrollment.email.in_(keys),
                )
            )
            return set(result.scalars().all())

    async def list_members(
        self,
        course_id: str,
        roles: Iterable[str] | None = None,
    ) -> list[CourseEnrollment]:
        """List enrollment rows of a course, optionally filtered by role."""
        stmt = select(CourseEnrollment).where(CourseEnrollment.course_id == course_id)
        if roles is not None:
            stmt = stmt.where(CourseEnrollment.role.in_(list(roles)))
        stmt = stmt.order_by(CourseEnrollment.created_at, CourseEnrollment.email)

        async with self._sessionmaker() as session:
            result = await session.execute(stmt)
            return list(result.scalars().all())

    async def count(self, course_id: str, email: str) -> int:
        """Number of rows for (course_id, email); at most one."""
        async with self._sessionmaker() as session:
            total = await session.scalar(
                select(func.count())
                .select_from(CourseEnrollment)
                .where(
                    CourseEnrollment.course_id == course_id,
                    CourseEnrollment.email == normalize_email(email),
                )
            )
        return total or 0
