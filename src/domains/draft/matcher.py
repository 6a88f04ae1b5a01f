# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Draft matcher.

Given a target course and candidate emails, picks exactly one draft per
normalized email, searching drafts of every course:

1. prefer a draft whose course_id is the target course;
2. on a tie, prefer the later created_at.

Enrollment status is always checked against the target course, whatever
draft supplied the demographic data.
"""

import logging
from collections.abc import Iterable
from datetime import datetime, timezone

from src.domains.draft.service import DraftStore
from src.domains.enrollment.service import EnrollmentLedger
from src.infrastructure.database.models import DraftStudent
from src.models.roster import DraftCheckResult, DraftMatch
from src.utils.datetime import ensure_utc
from src.utils.email import normalize_emails

logger = logging.getLogger(__name__)


def _rank(draft: DraftStudent, course_id: str) -> tuple[bool, datetime]:
    created = ensure_utc(draft.created_at) or datetime.min.replace(tzinfo=timezone.utc)
    return (draft.course_id == course_id, created)


def pick_best(drafts: Iterable[DraftStudent], course_id: str) -> dict[str, DraftStudent]:
    """Reduce drafts to one per email key using the course/recency tie-break."""
    best: dict[str, DraftStudent] = {}
    for draft in drafts:
        current = best.get(draft.email_key)
        if current is None or _rank(draft, course_id) > _rank(current, course_id):
            best[draft.email_key] = draft
    return best


class DraftMatcher:
    """Matches candidate emails against staged drafts."""

    def __init__(self, drafts: DraftStore, ledger: EnrollmentLedger) -> None:
        self._drafts = drafts
        self._ledger = ledger

    async def match(self, course_id: str, emails: Iterable[str]) -> DraftCheckResult:
        """Find the best draft for each candidate email.

        Args:
            course_id: Target course.
            emails: Raw candidate emails.

        Returns:
            Matches keyed by normalized email (with ``is_enrolled`` for the
            target course) and the emails without any draft, both in input
            order.
        """
        keys = normalize_emails(emails)
        if not keys:
            return DraftCheckResult()

        best = pick_best(await self._drafts.find_by_email_keys(keys), course_id)
        enrolled = await self._ledger.enrolled_emails(course_id, list(best)) if best else set()

        found: list[DraftMatch] = []
        not_found: list[str] = []
        for key in keys:
            draft = best.get(key)
            if draft is None:
                not_found.append(key)
                continue
            match = DraftMatch.model_validate(draft)
            found.append(match.model_copy(update={"email": key, "is_enrolled": key in enrolled}))

        logger.debug(
            "Drafts matched: course=%s, candidates=%d, found=%d",
            course_id,
            len(keys),
            len(found),
        )
        return DraftCheckResult(found=found, not_found=not_found)
