# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Draft record store.

Staging area for students imported from pastes before they are matched to
a course. Rows are upserted on (course_id, raw email); the normalized
``email_key`` column is derived on every write and is the only lookup key.
"""

import logging
from collections.abc import Iterable

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from src.infrastructure.database.conflicts import insert_ignoring_conflict
from src.infrastructure.database.models import DraftStudent
from src.models.roster import DraftStudentIn, FailedRow, SaveDraftsResult
from src.utils.datetime import utc_now
from src.utils.email import normalize_email

logger = logging.getLogger(__name__)

DRAFT_FIELDS = (
    "first_name",
    "last_name",
    "dni",
    "phone",
    "birth_date",
    "address",
    "city",
    "country",
    "file_number",
    "career",
    "year",
    "shift",
    "commission",
    "status",
    "observations",
)


def _apply(draft: DraftStudent, row: DraftStudentIn) -> None:
    for name in DRAFT_FIELDS:
        setattr(draft, name, getattr(row, name))
    draft.email_key = normalize_email(row.email)


class DraftStore:
    """Draft record persistence.

    Attributes:
        _sessionmaker: Factory for per-row sessions.
    """

    def __init__(self, sessionmaker: async_sessionmaker[AsyncSession]) -> None:
        self._sessionmaker = sessionmaker

    async def save(self, course_id: str, rows: Iterable[DraftStudentIn]) -> SaveDraftsResult:
        """Upsert draft rows for a course.

        An existing draft with the same (course_id, email) is overwritten
        and its ``created_at`` refreshed, so it wins recency tie-breaks.
        Rows without a usable email fail individually.

        Args:
            course_id: Originating course hint.
            rows: Draft rows.

        Returns:
            Count of saved rows and per-row failures.
        """
        result = SaveDraftsResult()

        for row in rows:
            raw = (row.email or "").strip()
            if not normalize_email(raw):
                result.failed.append(FailedRow(email=raw, error="Missing email"))
                continue

            try:
                await self._upsert(course_id, raw, row)
            except SQLAlchemyError as e:
                logger.warning("Draft save failed: course=%s, email=%s, error=%s", course_id, raw, str(e))
                result.failed.append(FailedRow(email=raw, error="Storage error"))
                continue
            result.saved += 1

        logger.info(
            "Drafts saved: course=%s, saved=%d, failed=%d",
            course_id,
            result.saved,
            len(result.failed),
        )
        return result

    async def _upsert(self, course_id: str, raw_email: str, row: DraftStudentIn) -> None:
        async with self._sessionmaker() as session:
            draft = await self._get(session, course_id, raw_email)
            if draft is None:
                draft = DraftStudent(course_id=course_id, email=raw_email)
                _apply(draft, row)
                if await insert_ignoring_conflict(session, draft):
                    return
                draft = await self._get(session, course_id, raw_email)
                if draft is None:
                    return

            _apply(draft, row)
            draft.created_at = utc_now()
            await session.commit()

    async def find_by_email_keys(self, keys: Iterable[str]) -> list[DraftStudent]:
        """All drafts, from any course, whose normalized email is in ``keys``."""
        wanted = [key for key in keys if key]
        if not wanted:
            return []

        async with self._sessionmaker() as session:
            result = await session.execute(
                select(DraftStudent).where(DraftStudent.email_key.in_(wanted))
            )
            return list(result.scalars().all())

    async def _get(self, session: AsyncSession, course_id: str, raw_email: str) -> DraftStudent | None:
        result = await session.execute(
            select(DraftStudent)
            .where(DraftStudent.course_id == course_id, DraftStudent.email == raw_email)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()
