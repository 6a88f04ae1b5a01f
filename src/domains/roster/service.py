# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Roster service: every enroll/remove entry point.

This module provides the RosterService that handles:
- Student, teacher and nodocente enrollment and removal
- Batch enrollment with per-row isolation and cancellation
- Draft staging and draft matching
- Course member listing and scope lookup

Every entry point asks the permission gate first; nothing is written when
the gate refuses.

Example:
    >>> service = RosterService(sessionmaker, identity_provider, settings.roster)
    >>> result = await service.batch_enroll(course_id, rows, principal)
    >>> for row in result.failed:
    ...     print(row.email, row.error)
"""

import asyncio
import logging
from collections.abc import Iterable, Sequence

from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from src.core.config.settings import RosterSettings
from src.core.exceptions import InvalidRowError, RosterError, UpstreamError
from src.domains.draft.matcher import DraftMatcher
from src.domains.draft.service import DraftStore
from src.domains.enrollment.service import EnrollmentLedger
from src.domains.identity.roles import DOCENTE, ESTUDIANTE, NODOCENTE
from src.domains.identity.service import IdentityStore
from src.domains.permission.service import (
    STAFF_MANAGERS,
    STUDENT_MANAGERS,
    AccessScope,
    PermissionGate,
)
from src.domains.roster.reconciler import ReconcileOutcome, RosterReconciler
from src.infrastructure.database.models import CourseEnrollment
from src.infrastructure.identity_provider import IdentityProvider, Principal
from src.models.roster import (
    BatchEnrollResult,
    DraftCheckResult,
    DraftMatch,
    DraftStudentIn,
    FailedRow,
    ProfileFields,
    SaveDraftsResult,
    StudentRow,
)
from src.utils.datetime import parse_date
from src.utils.email import normalize_email

logger = logging.getLogger(__name__)

_PROFILE_KEYS = ("first_name", "last_name", "dni", "phone", "birth_date")


def _profile_from_row(row: StudentRow) -> ProfileFields:
    try:
        return ProfileFields.from_row(row)
    except ValidationError as e:
        fields = ", ".join(str(err["loc"][0]) for err in e.errors() if err.get("loc"))
        raise InvalidRowError(f"Invalid profile fields: {fields}", {"email": row.email or ""}) from e


def _fill_from_draft(row: StudentRow, draft: DraftMatch) -> StudentRow:
    """Fill the row's empty profile fields from the matched draft."""
    updates: dict[str, str] = {}
    for name in _PROFILE_KEYS:
        if getattr(row, name):
            continue
        value = getattr(draft, name)
        if not value:
            continue
        if name == "birth_date":
            try:
                parse_date(value)
            except ValueError:
                continue
        updates[name] = value
    return row.model_copy(update=updates) if updates else row


class RosterService:
    """Entry points for roster operations.

    Attributes:
        identities: Identity store.
        ledger: Enrollment ledger.
        drafts: Draft record store.
        matcher: Draft matcher.
        gate: Permission gate.
        reconciler: Roster reconciler.
    """

    def __init__(
        self,
        sessionmaker: async_sessionmaker[AsyncSession],
        identity_provider: IdentityProvider,
        settings: RosterSettings,
    ) -> None:
        """Initialize the service and its collaborators.

        Args:
            sessionmaker: Session factory shared by all stores.
            identity_provider: Identity provider collaborator.
            settings: Roster settings.
        """
        self._settings = settings
        self._identity_provider = identity_provider
        self.identities = IdentityStore(sessionmaker)
        self.ledger = EnrollmentLedger(sessionmaker)
        self.drafts = DraftStore(sessionmaker)
        self.matcher = DraftMatcher(self.drafts, self.ledger)
        self.gate = PermissionGate(sessionmaker, self.identities, self.ledger, settings)
        self.reconciler = RosterReconciler(self.identities, self.ledger, identity_provider, settings)

    # =========================================================================
    # Access
    # =========================================================================

    async def get_access(self, course_id: str, principal: Principal) -> AccessScope:
        """Resolve the caller's scope on a course."""
        return await self.gate.authorize(course_id, principal.email)

    async def list_course_members(
        self,
        course_id: str,
        principal: Principal,
        roles: Iterable[str] | None = None,
    ) -> list[CourseEnrollment]:
        """List enrollment rows of a course."""
        await self.gate.require(course_id, principal.email, STUDENT_MANAGERS)
        return await self.ledger.list_members(course_id, roles)

    # =========================================================================
    # Single enroll / remove
    # =========================================================================

    async def enroll_student(
        self,
        course_id: str,
        email: str,
        principal: Principal,
        profile: StudentRow | None = None,
    ) -> ReconcileOutcome:
        """Enroll one student.

        Raises:
            CourseNotFoundError: If the course does not exist.
            AuthorizationError: If the caller has no scope on the course.
            InvalidRowError: If the email or profile fields are unusable.
            UpstreamError: If account creation fails.
            StorageError: If a storage step fails.
        """
        return await self._enroll(course_id, email, ESTUDIANTE, principal, profile, STUDENT_MANAGERS)

    async def enroll_teacher(self, course_id: str, email: str, principal: Principal) -> ReconcileOutcome:
        """Enroll a teacher. Institution or platform admins only."""
        return await self._enroll(course_id, email, DOCENTE, principal, None, STAFF_MANAGERS)

    async def enroll_nodocente(self, course_id: str, email: str, principal: Principal) -> ReconcileOutcome:
        """Enroll non-teaching staff. Institution or platform admins only."""
        return await self._enroll(course_id, email, NODOCENTE, principal, None, STAFF_MANAGERS)

    async def remove_student(self, course_id: str, email: str, principal: Principal) -> int:
        """Remove a student enrollment (any student role)."""
        access = await self.gate.require(course_id, principal.email, STUDENT_MANAGERS)
        return await self.reconciler.remove(access, course_id, email, self._settings.student_roles)

    async def remove_teacher(self, course_id: str, email: str, principal: Principal) -> int:
        """Remove a teacher enrollment. Never touches other roles."""
        access = await self.gate.require(course_id, principal.email, STAFF_MANAGERS)
        return await self.reconciler.remove(access, course_id, email, self._settings.teacher_roles)

    async def remove_nodocente(self, course_id: str, email: str, principal: Principal) -> int:
        """Remove a nodocente enrollment. Never touches other roles."""
        access = await self.gate.require(course_id, principal.email, STAFF_MANAGERS)
        return await self.reconciler.remove(access, course_id, email, [NODOCENTE])

    async def _enroll(
        self,
        course_id: str,
        email: str,
        role: str,
        principal: Principal,
        row: StudentRow | None,
        allowed: frozenset[AccessScope],
    ) -> ReconcileOutcome:
        access = await self.gate.require(course_id, principal.email, allowed)
        profile = _profile_from_row(row) if row is not None else None
        accounts = await self._load_accounts()
        outcome = await self.reconciler.reconcile(access, course_id, email, role, profile, accounts)
        logger.info(
            "Enroll: course=%s, email=%s, role=%s, new=%s, by=%s",
            course_id,
            outcome.email,
            role,
            outcome.enrolled,
            access.principal_email,
        )
        return outcome

    # =========================================================================
    # Batch
    # =========================================================================

    async def batch_enroll(
        self,
        course_id: str,
        rows: Sequence[StudentRow],
        principal: Principal,
        cancel_event: asyncio.Event | None = None,
        use_drafts: bool = True,
    ) -> BatchEnrollResult:
        """Enroll many students, isolating failures per row.

        Rows run sequentially. A failed row is recorded and the batch goes
        on. When ``cancel_event`` is set, rows already processed stay
        committed and the remaining rows are counted as skipped.

        Args:
            course_id: Target course.
            rows: Student rows as pasted or imported.
            principal: Acting principal.
            cancel_event: Optional cooperative cancellation signal.
            use_drafts: Fill missing profile fields from matching drafts.

        Returns:
            BatchEnrollResult; inspect ``failed``.

        Raises:
            CourseNotFoundError: If the course does not exist.
            AuthorizationError: If the caller has no scope on the course.
        """
        access = await self.gate.require(course_id, principal.email, STUDENT_MANAGERS)
        result = BatchEnrollResult()

        accounts = await self._load_accounts()
        drafts: dict[str, DraftMatch] = {}
        if use_drafts:
            matched = await self.matcher.match(course_id, [row.email or "" for row in rows])
            drafts = {normalize_email(draft.email): draft for draft in matched.found}

        for index, row in enumerate(rows):
            if cancel_event is not None and cancel_event.is_set():
                result.cancelled = True
                result.skipped = len(rows) - index
                logger.info("Batch cancelled: course=%s, processed=%d, skipped=%d", course_id, index, result.skipped)
                break

            key = normalize_email(row.email)
            try:
                if key in drafts:
                    row = _fill_from_draft(row, drafts[key])
                profile = _profile_from_row(row)
                outcome = await self.reconciler.reconcile(access, course_id, row.email, ESTUDIANTE, profile, accounts)
                result.success.append(outcome.email)
            except RosterError as e:
                logger.warning("Batch row failed: course=%s, email=%s, error=%s", course_id, key, str(e))
                result.failed.append(FailedRow(email=key or (row.email or ""), error=e.message))
            except Exception as e:
                logger.exception("Batch row crashed: course=%s, email=%s", course_id, key)
                result.failed.append(FailedRow(email=key or (row.email or ""), error=str(e)))

        logger.info(
            "Batch enrollment: course=%s, enrolled=%d, failed=%d, by=%s",
            course_id,
            len(result.success),
            len(result.failed),
            access.principal_email,
        )
        return result

    async def _load_accounts(self) -> dict[str, str] | None:
        """Index durable accounts by normalized email.

        An unreachable provider yields None: existing profiles are still
        synced but no account gets created.
        """
        try:
            accounts = await self._identity_provider.list_accounts()
        except UpstreamError as e:
            logger.error("Account listing failed, continuing without it: %s", str(e))
            return None
        return {normalize_email(account.email): account.account_id for account in accounts}

    # =========================================================================
    # Drafts
    # =========================================================================

    async def check_drafts(self, course_id: str, emails: Iterable[str], principal: Principal) -> DraftCheckResult:
        """Match candidate emails against staged drafts."""
        await self.gate.require(course_id, principal.email, STUDENT_MANAGERS)
        return await self.matcher.match(course_id, emails)

    async def save_drafts(
        self,
        course_id: str,
        rows: Iterable[DraftStudentIn],
        principal: Principal,
    ) -> SaveDraftsResult:
        """Stage draft rows for a course."""
        await self.gate.require(course_id, principal.email, STUDENT_MANAGERS)
        return await self.drafts.save(course_id, rows)
