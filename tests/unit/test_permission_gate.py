# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Unit tests for the permission gate."""

import pytest

from src.core.exceptions import AuthorizationError, CourseNotFoundError
from src.domains.identity import ADMIN_INSTITUCION, DOCENTE, ESTUDIANTE, NODOCENTE, SUPERVISOR
from src.domains.permission import STAFF_MANAGERS, AccessScope, ElevatedAccess
from src.infrastructure.database.models import InstitutionRole


async def _grant_institution_admin(sessionmaker, institution_id: str, email: str) -> None:
    async with sessionmaker() as session:
        session.add(InstitutionRole(institution_id=institution_id, email=email, role=ADMIN_INSTITUCION))
        await session.commit()


class TestAuthorize:
    """Tests for scope resolution."""

    @pytest.mark.asyncio
    async def test_platform_admin(self, roster, courses, platform_admin) -> None:
        scope = await roster.gate.authorize(courses["course_a"], platform_admin.email)

        assert scope == AccessScope.PLATFORM_ADMIN

    @pytest.mark.asyncio
    async def test_supervisor_counts_as_platform_admin(self, roster, courses) -> None:
        await roster.identities.ensure_role("sup@x.com", SUPERVISOR)

        assert await roster.gate.authorize(courses["course_a"], "sup@x.com") == AccessScope.PLATFORM_ADMIN

    @pytest.mark.asyncio
    async def test_teacher_enrollment(self, roster, courses) -> None:
        await roster.ledger.add(courses["course_a"], "profe@x.com", DOCENTE)

        assert await roster.gate.authorize(courses["course_a"], "Profe@X.com") == AccessScope.TEACHER
        assert await roster.gate.authorize(courses["course_b"], "profe@x.com") == AccessScope.NONE

    @pytest.mark.asyncio
    async def test_nodocente_enrollment(self, roster, courses) -> None:
        await roster.ledger.add(courses["course_a"], "staff@x.com", NODOCENTE)

        assert await roster.gate.authorize(courses["course_a"], "staff@x.com") == AccessScope.NODOCENTE

    @pytest.mark.asyncio
    async def test_student_enrollment_grants_nothing(self, roster, courses) -> None:
        await roster.ledger.add(courses["course_a"], "ana@x.com", ESTUDIANTE)

        assert await roster.gate.authorize(courses["course_a"], "ana@x.com") == AccessScope.NONE

    @pytest.mark.asyncio
    async def test_institution_grant_covers_its_courses_only(self, roster, sessionmaker, courses) -> None:
        await _grant_institution_admin(sessionmaker, courses["institution"], "dir@x.com")

        assert await roster.gate.authorize(courses["course_b"], "dir@x.com") == AccessScope.INSTITUTION_ADMIN
        assert await roster.gate.authorize(courses["course_other"], "dir@x.com") == AccessScope.NONE

    @pytest.mark.asyncio
    async def test_course_role_wins_over_institution_grant(self, roster, sessionmaker, courses) -> None:
        await _grant_institution_admin(sessionmaker, courses["institution"], "dir@x.com")
        await roster.ledger.add(courses["course_a"], "dir@x.com", DOCENTE)

        assert await roster.gate.authorize(courses["course_a"], "dir@x.com") == AccessScope.TEACHER

    @pytest.mark.asyncio
    async def test_stranger_and_anonymous(self, roster, courses, stranger) -> None:
        assert await roster.gate.authorize(courses["course_a"], stranger.email) == AccessScope.NONE
        assert await roster.gate.authorize(courses["course_a"], None) == AccessScope.NONE

    @pytest.mark.asyncio
    async def test_unknown_course(self, roster, courses, platform_admin) -> None:
        with pytest.raises(CourseNotFoundError):
            await roster.gate.authorize("no-such-course", platform_admin.email)


class TestRequire:
    """Tests for capability issuance."""

    @pytest.mark.asyncio
    async def test_issues_course_bound_access(self, roster, courses, platform_admin) -> None:
        access = await roster.gate.require(courses["course_a"], platform_admin.email)

        assert access.scope == AccessScope.PLATFORM_ADMIN
        assert access.course_id == courses["course_a"]
        access.check_course(courses["course_a"])
        with pytest.raises(AuthorizationError):
            access.check_course(courses["course_b"])

    @pytest.mark.asyncio
    async def test_teacher_cannot_manage_staff(self, roster, courses) -> None:
        await roster.ledger.add(courses["course_a"], "profe@x.com", DOCENTE)

        with pytest.raises(AuthorizationError):
            await roster.gate.require(courses["course_a"], "profe@x.com", STAFF_MANAGERS)

    @pytest.mark.asyncio
    async def test_none_is_refused(self, roster, courses, stranger) -> None:
        with pytest.raises(AuthorizationError):
            await roster.gate.require(courses["course_a"], stranger.email)

    @pytest.mark.asyncio
    async def test_require_platform_admin(self, roster, courses, platform_admin, stranger) -> None:
        access = await roster.gate.require_platform_admin(platform_admin.email, courses["institution"])

        assert access.institution_id == courses["institution"]
        with pytest.raises(AuthorizationError):
            await roster.gate.require_platform_admin(stranger.email, courses["institution"])

    def test_access_cannot_be_forged(self) -> None:
        with pytest.raises(AuthorizationError):
            ElevatedAccess(principal_email="me@x.com", scope=AccessScope.PLATFORM_ADMIN, course_id="c")
