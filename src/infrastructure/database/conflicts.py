# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Unique-constraint conflict detection.

A duplicate insert on a roster table means "already there", which every
write path treats as success. All of them go through this module so the
rule lives in one place.

Example:
    inserted = await insert_ignoring_conflict(session, CourseEnrollment(...))
    if not inserted:
        logger.debug("Enrollment already present")
"""

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from src.infrastructure.database.models import Base

# PostgreSQL SQLSTATE for unique_violation
UNIQUE_VIOLATION = "23505"

_UNIQUE_MESSAGES = (
    "unique constraint failed",  # SQLite
    "duplicate key value violates unique constraint",  # PostgreSQL
    "unique_violation",
)


def _sqlstate(error: BaseException) -> str | None:
    """Extract the SQLSTATE from a DBAPI error across drivers."""
    orig = getattr(error, "orig", None) or error
    for attr in ("sqlstate", "pgcode", "code"):
        value = getattr(orig, attr, None)
        if isinstance(value, str) and value:
            return value
    cause = getattr(orig, "__cause__", None)
    if cause is not None and cause is not orig:
        value = getattr(cause, "sqlstate", None)
        if isinstance(value, str) and value:
            return value
    return None


def is_conflict(error: BaseException) -> bool:
    """Tell whether an error is a unique-constraint violation.

    Args:
        error: Exception raised by a write.

    Returns:
        True for unique violations, False for anything else (including
        foreign-key and not-null violations).
    """
    if not isinstance(error, IntegrityError):
        return False

    if _sqlstate(error) == UNIQUE_VIOLATION:
        return True

    message = str(getattr(error, "orig", error)).lower()
    return any(marker in message for marker in _UNIQUE_MESSAGES)


async def insert_ignoring_conflict(session: AsyncSession, row: Base) -> bool:
    """Insert a row and commit, absorbing unique-constraint conflicts.

    On conflict the session is rolled back and stays usable.

    Args:
        session: Session owning the unit of work.
        row: New ORM instance.

    Returns:
        True if the row was inserted, False if it already existed.

    Raises:
        IntegrityError: For integrity errors other than unique violations.
        SQLAlchemyError: For any other storage failure.
    """
    session.add(row)
    try:
        await session.commit()
    except IntegrityError as e:
        await session.rollback()
        if is_conflict(e):
            return False
        raise
    return True
