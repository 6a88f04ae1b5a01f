# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Unit tests for roster reconciliation through the RosterService."""

import asyncio
from datetime import date

import pytest

from src.core.config.settings import RosterSettings
from src.core.exceptions import (
    AuthorizationError,
    CourseNotFoundError,
    InvalidRowError,
    UpstreamError,
)
from src.domains.identity import ALUMNO, DOCENTE, ESTUDIANTE, NODOCENTE, RoleSet
from src.domains.roster import RosterService
from src.infrastructure.identity_provider import Principal
from src.models.roster import DraftStudentIn, StudentRow


@pytest.fixture
def provisioning_roster(sessionmaker, identity_provider) -> RosterService:
    """Roster service that creates accounts for unknown emails."""
    return RosterService(sessionmaker, identity_provider, RosterSettings(provision_accounts=True))


class TestEnrollStudent:
    """Tests for single student enrollment."""

    @pytest.mark.asyncio
    async def test_creates_identity_and_enrollment(self, roster, courses, platform_admin) -> None:
        outcome = await roster.enroll_student(
            courses["course_a"],
            " Ana@X.com",
            platform_admin,
            StudentRow(email="Ana@X.com", first_name="Ana", birth_date="01/02/2000"),
        )

        identity = await roster.identities.get("ana@x.com")

        assert outcome.email == "ana@x.com"
        assert outcome.identity_created is True
        assert outcome.enrolled is True
        assert outcome.profile_synced is False
        assert identity.roles == RoleSet([ESTUDIANTE])
        assert identity.birth_date == date(2000, 2, 1)
        assert await roster.ledger.role_in_course(courses["course_a"], "ana@x.com") == ESTUDIANTE

    @pytest.mark.asyncio
    async def test_reconcile_is_idempotent(self, roster, courses, platform_admin) -> None:
        """Test a second reconcile changes nothing."""
        await roster.enroll_student(courses["course_a"], "ana@x.com", platform_admin)
        again = await roster.enroll_student(courses["course_a"], "ANA@x.com", platform_admin)

        assert again.identity_created is False
        assert again.enrolled is False
        assert await roster.ledger.count(courses["course_a"], "ana@x.com") == 1
        assert await roster.identities.roles_of("ana@x.com") == RoleSet([ESTUDIANTE])

    @pytest.mark.asyncio
    async def test_concurrent_double_enroll(self, roster, courses, platform_admin) -> None:
        """Test two simultaneous enrolls end in exactly one row."""
        first, second = await asyncio.gather(
            roster.enroll_student(courses["course_a"], "ana@x.com", platform_admin),
            roster.enroll_student(courses["course_a"], "ana@x.com", platform_admin),
        )

        assert sorted([first.enrolled, second.enrolled]) == [False, True]
        assert await roster.ledger.count(courses["course_a"], "ana@x.com") == 1

    @pytest.mark.asyncio
    async def test_remove_then_reconcile(self, roster, courses, platform_admin) -> None:
        await roster.enroll_student(courses["course_a"], "ana@x.com", platform_admin)

        removed = await roster.remove_student(courses["course_a"], "ana@x.com", platform_admin)
        after_remove = await roster.ledger.count(courses["course_a"], "ana@x.com")
        outcome = await roster.enroll_student(courses["course_a"], "ana@x.com", platform_admin)

        assert removed == 1
        assert after_remove == 0
        assert outcome.enrolled is True
        assert ESTUDIANTE in await roster.identities.roles_of("ana@x.com")

    @pytest.mark.asyncio
    async def test_remove_student_covers_alumno_rows(self, roster, courses, platform_admin) -> None:
        await roster.ledger.add(courses["course_a"], "old@x.com", ALUMNO)

        assert await roster.remove_student(courses["course_a"], "old@x.com", platform_admin) == 1

    @pytest.mark.asyncio
    async def test_unknown_role_existing_row_is_kept(self, roster, courses, platform_admin) -> None:
        """Test enrolling a teacher as student keeps the teacher row."""
        await roster.enroll_teacher(courses["course_a"], "profe@x.com", platform_admin)
        outcome = await roster.enroll_student(courses["course_a"], "profe@x.com", platform_admin)

        assert outcome.enrolled is False
        assert await roster.ledger.role_in_course(courses["course_a"], "profe@x.com") == DOCENTE
        assert await roster.identities.roles_of("profe@x.com") == RoleSet([DOCENTE, ESTUDIANTE])

    @pytest.mark.asyncio
    async def test_invalid_email(self, roster, courses, platform_admin) -> None:
        with pytest.raises(InvalidRowError):
            await roster.enroll_student(courses["course_a"], "   ", platform_admin)

    @pytest.mark.asyncio
    async def test_unknown_course(self, roster, courses, platform_admin) -> None:
        with pytest.raises(CourseNotFoundError):
            await roster.enroll_student("missing-course", "ana@x.com", platform_admin)

    @pytest.mark.asyncio
    async def test_unauthorized_writes_nothing(self, roster, courses, stranger, identity_provider) -> None:
        """Test a refused caller leaves no trace."""
        identity_provider.accounts["ana@x.com"] = "acct-9"

        with pytest.raises(AuthorizationError):
            await roster.enroll_student(courses["course_a"], "ana@x.com", stranger)

        assert await roster.identities.get("ana@x.com") is None
        assert await roster.ledger.count(courses["course_a"], "ana@x.com") == 0

    @pytest.mark.asyncio
    async def test_teacher_can_enroll_students(self, roster, courses, platform_admin) -> None:
        await roster.enroll_teacher(courses["course_a"], "profe@x.com", platform_admin)
        teacher = Principal(email="profe@x.com")

        outcome = await roster.enroll_student(courses["course_a"], "ana@x.com", teacher)

        assert outcome.enrolled is True
        with pytest.raises(AuthorizationError):
            await roster.enroll_teacher(courses["course_a"], "other@x.com", teacher)


class TestStaffRemoval:
    """Tests for role-scoped removal."""

    @pytest.mark.asyncio
    async def test_remove_teacher_leaves_nodocente(self, roster, courses, platform_admin) -> None:
        await roster.enroll_nodocente(courses["course_a"], "staff@x.com", platform_admin)

        removed = await roster.remove_teacher(courses["course_a"], "staff@x.com", platform_admin)

        assert removed == 0
        assert await roster.ledger.role_in_course(courses["course_a"], "staff@x.com") == NODOCENTE

    @pytest.mark.asyncio
    async def test_remove_nodocente(self, roster, courses, platform_admin) -> None:
        await roster.enroll_nodocente(courses["course_a"], "staff@x.com", platform_admin)

        assert await roster.remove_nodocente(courses["course_a"], "staff@x.com", platform_admin) == 1
        assert NODOCENTE in await roster.identities.roles_of("staff@x.com")

    @pytest.mark.asyncio
    async def test_list_members_by_role(self, roster, courses, platform_admin) -> None:
        await roster.enroll_teacher(courses["course_a"], "profe@x.com", platform_admin)
        await roster.enroll_student(courses["course_a"], "ana@x.com", platform_admin)

        teachers = await roster.list_course_members(courses["course_a"], platform_admin, [DOCENTE])
        everyone = await roster.list_course_members(courses["course_a"], platform_admin)

        assert [member.email for member in teachers] == ["profe@x.com"]
        assert {member.email for member in everyone} == {"profe@x.com", "ana@x.com"}


class TestBatchEnroll:
    """Tests for batch enrollment."""

    @pytest.mark.asyncio
    async def test_malformed_row_fails_alone(self, roster, courses, platform_admin) -> None:
        rows = [
            StudentRow(email="ana@x.com"),
            StudentRow(email="", first_name="No Email"),
            StudentRow(email="bad@x.com", birth_date="not a date"),
            StudentRow(email="Beto@X.com"),
        ]

        result = await roster.batch_enroll(courses["course_a"], rows, platform_admin)

        assert result.success == ["ana@x.com", "beto@x.com"]
        assert [failure.email for failure in result.failed] == ["", "bad@x.com"]
        assert result.cancelled is False
        assert await roster.ledger.count(courses["course_a"], "bad@x.com") == 0

    @pytest.mark.asyncio
    async def test_cancel_before_start(self, roster, courses, platform_admin) -> None:
        cancel = asyncio.Event()
        cancel.set()

        result = await roster.batch_enroll(
            courses["course_a"],
            [StudentRow(email="ana@x.com"), StudentRow(email="beto@x.com")],
            platform_admin,
            cancel_event=cancel,
        )

        assert result.cancelled is True
        assert result.skipped == 2
        assert result.success == []
        assert await roster.identities.get("ana@x.com") is None

    @pytest.mark.asyncio
    async def test_cancel_mid_batch_keeps_processed_rows(
        self, roster, courses, platform_admin, monkeypatch
    ) -> None:
        """Test rows before the cancellation stay committed."""
        cancel = asyncio.Event()
        reconcile = roster.reconciler.reconcile

        async def reconcile_then_cancel(*args, **kwargs):
            outcome = await reconcile(*args, **kwargs)
            cancel.set()
            return outcome

        monkeypatch.setattr(roster.reconciler, "reconcile", reconcile_then_cancel)

        result = await roster.batch_enroll(
            courses["course_a"],
            [StudentRow(email=f"s{i}@x.com") for i in range(3)],
            platform_admin,
            cancel_event=cancel,
        )

        assert result.success == ["s0@x.com"]
        assert result.cancelled is True
        assert result.skipped == 2
        assert await roster.ledger.count(courses["course_a"], "s0@x.com") == 1
        assert await roster.ledger.count(courses["course_a"], "s1@x.com") == 0

    @pytest.mark.asyncio
    async def test_unauthorized_batch_writes_nothing(self, roster, courses, stranger) -> None:
        with pytest.raises(AuthorizationError):
            await roster.batch_enroll(courses["course_a"], [StudentRow(email="ana@x.com")], stranger)

        assert await roster.identities.get("ana@x.com") is None

    @pytest.mark.asyncio
    async def test_draft_from_other_course_fills_profile(self, roster, courses, platform_admin) -> None:
        """Test a draft staged in course A enriches an enrollment into course B."""
        await roster.save_drafts(
            courses["course_a"],
            [DraftStudentIn(email="Ana@X.com", first_name="Ana", last_name="Lopez", dni="30111222")],
            platform_admin,
        )

        result = await roster.batch_enroll(
            courses["course_b"],
            [StudentRow(email="ana@x.com", last_name="López")],
            platform_admin,
        )
        identity = await roster.identities.get("ana@x.com")
        check = await roster.check_drafts(courses["course_b"], ["ana@x.com"], platform_admin)

        assert result.success == ["ana@x.com"]
        assert identity.first_name == "Ana"
        assert identity.last_name == "López"
        assert identity.dni == "30111222"
        assert check.found[0].course_id == courses["course_a"]
        assert check.found[0].is_enrolled is True
        assert await roster.ledger.count(courses["course_a"], "ana@x.com") == 0

    @pytest.mark.asyncio
    async def test_drafts_ignored_when_disabled(self, roster, courses, platform_admin) -> None:
        await roster.save_drafts(courses["course_a"], [DraftStudentIn(email="ana@x.com", first_name="Ana")], platform_admin)

        await roster.batch_enroll(
            courses["course_a"], [StudentRow(email="ana@x.com")], platform_admin, use_drafts=False
        )

        assert (await roster.identities.get("ana@x.com")).first_name is None


class TestAccountProvisioning:
    """Tests for identity provider interaction."""

    @pytest.mark.asyncio
    async def test_existing_account_gets_profile(self, roster, courses, platform_admin, identity_provider) -> None:
        identity_provider.accounts["ana@x.com"] = "acct-ana"

        outcome = await roster.enroll_student(courses["course_a"], "ana@x.com", platform_admin)
        identity = await roster.identities.get("ana@x.com")

        assert outcome.profile_synced is True
        assert outcome.account_created is False
        assert identity.account_id == "acct-ana"
        assert identity_provider.created == []

    @pytest.mark.asyncio
    async def test_provisioning_creates_account(
        self, provisioning_roster, courses, platform_admin, identity_provider
    ) -> None:
        outcome = await provisioning_roster.enroll_student(courses["course_a"], "ana@x.com", platform_admin)
        identity = await provisioning_roster.identities.get("ana@x.com")

        assert outcome.account_created is True
        assert identity_provider.created == ["ana@x.com"]
        assert identity.has_account

    @pytest.mark.asyncio
    async def test_repeated_email_in_batch_creates_one_account(
        self, provisioning_roster, courses, platform_admin, identity_provider
    ) -> None:
        """Test the same email twice in one batch provisions a single account."""
        result = await provisioning_roster.batch_enroll(
            courses["course_a"],
            [StudentRow(email="ana@x.com"), StudentRow(email=" ANA@x.com")],
            platform_admin,
        )

        assert result.failed == []
        assert result.success == ["ana@x.com", "ana@x.com"]
        assert identity_provider.created == ["ana@x.com"]
        assert await provisioning_roster.ledger.count(courses["course_a"], "ana@x.com") == 1

    @pytest.mark.asyncio
    async def test_profiled_identity_missing_from_listing_is_not_recreated(
        self, provisioning_roster, courses, platform_admin, identity_provider
    ) -> None:
        """Test a local profile wins over a stale account listing."""
        await provisioning_roster.identities.ensure_role("ana@x.com", ESTUDIANTE)
        await provisioning_roster.identities.sync_profile("ana@x.com", ESTUDIANTE, account_id="acct-ana")

        outcome = await provisioning_roster.enroll_student(courses["course_a"], "ana@x.com", platform_admin)

        assert outcome.account_created is False
        assert outcome.profile_synced is True
        assert identity_provider.created == []

    @pytest.mark.asyncio
    async def test_creation_failure_fails_that_row(
        self, provisioning_roster, courses, platform_admin, identity_provider
    ) -> None:
        identity_provider.fail_create.add("bad@x.com")

        result = await provisioning_roster.batch_enroll(
            courses["course_a"],
            [StudentRow(email="bad@x.com"), StudentRow(email="ok@x.com")],
            platform_admin,
        )

        assert result.success == ["ok@x.com"]
        assert [failure.email for failure in result.failed] == ["bad@x.com"]
        assert await provisioning_roster.ledger.count(courses["course_a"], "bad@x.com") == 0

    @pytest.mark.asyncio
    async def test_creation_failure_raises_for_single_enroll(
        self, provisioning_roster, courses, platform_admin, identity_provider
    ) -> None:
        identity_provider.fail_create.add("bad@x.com")

        with pytest.raises(UpstreamError):
            await provisioning_roster.enroll_student(courses["course_a"], "bad@x.com", platform_admin)

    @pytest.mark.asyncio
    async def test_listing_failure_is_tolerated(
        self, provisioning_roster, courses, platform_admin, identity_provider
    ) -> None:
        """Test an unreachable provider still enrolls, without creating accounts."""
        identity_provider.fail_listing = True

        outcome = await provisioning_roster.enroll_student(courses["course_a"], "ana@x.com", platform_admin)

        assert outcome.enrolled is True
        assert outcome.account_created is False
        assert identity_provider.created == []
