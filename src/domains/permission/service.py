# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Permission gate for roster operations.

Resolves the scope an acting principal holds on a course, first match wins:

1. platform-admin role on the identity       -> platform-admin
2. supervisor role on the identity           -> platform-admin
3. teacher-role enrollment in the course     -> teacher
4. nodocente enrollment in the course        -> nodocente
5. admin grant on the course's institution   -> institution-admin
6. otherwise                                 -> none

Mutations never take a raw principal. The gate hands out an
ElevatedAccess capability bound to one course (or institution) after a
successful check, and the reconciler refuses to write without it.

Example:
    >>> gate = PermissionGate(sessionmaker, identities, ledger, settings.roster)
    >>> access = await gate.require(course_id, principal.email, STUDENT_MANAGERS)
    >>> await reconciler.reconcile(access, course_id, email, ESTUDIANTE)
"""

import logging
from dataclasses import dataclass, field
from enum import Enum

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from src.core.config.settings import RosterSettings
from src.core.exceptions import AuthorizationError, CourseNotFoundError
from src.domains.enrollment.service import EnrollmentLedger
from src.domains.identity.roles import ADMIN_INSTITUCION, ADMIN_PLATAFORMA, NODOCENTE, SUPERVISOR
from src.domains.identity.service import IdentityStore
from src.infrastructure.database.models import Course, InstitutionRole
from src.utils.email import normalize_email

logger = logging.getLogger(__name__)


class AccessScope(str, Enum):
    """Scope a principal holds on a course."""

    NONE = "none"
    TEACHER = "teacher"
    NODOCENTE = "nodocente"
    INSTITUTION_ADMIN = "institution-admin"
    PLATFORM_ADMIN = "platform-admin"


# Who may enroll/remove students, run batches and manage drafts
STUDENT_MANAGERS = frozenset(
    {
        AccessScope.TEACHER,
        AccessScope.NODOCENTE,
        AccessScope.INSTITUTION_ADMIN,
        AccessScope.PLATFORM_ADMIN,
    }
)

# Who may enroll/remove teachers and nodocentes
STAFF_MANAGERS = frozenset({AccessScope.INSTITUTION_ADMIN, AccessScope.PLATFORM_ADMIN})

_GATE_TOKEN = object()


@dataclass(frozen=True)
class ElevatedAccess:
    """Capability proving a gate check passed.

    Only PermissionGate can create one.

    Attributes:
        principal_email: Normalized email of the acting principal.
        scope: Scope granted by the gate.
        course_id: Course the capability is bound to, if any.
        institution_id: Institution the capability is bound to, if any.
    """

    principal_email: str
    scope: AccessScope
    course_id: str | None = None
    institution_id: str | None = None
    _token: object = field(default=None, repr=False, compare=False)

    def __post_init__(self) -> None:
        if self._token is not _GATE_TOKEN:
            raise AuthorizationError("ElevatedAccess can only be issued by the permission gate")

    def check_course(self, course_id: str) -> None:
        """Refuse use of the capability outside its course.

        Raises:
            AuthorizationError: If bound to another course.
        """
        if self.course_id != course_id:
            raise AuthorizationError(
                "Access was granted for another course",
                {"granted": self.course_id, "requested": course_id},
            )


class PermissionGate:
    """Resolves and enforces principal scopes.

    Attributes:
        _sessionmaker: Factory for read sessions.
        _identities: Identity store (platform roles).
        _ledger: Enrollment ledger (course roles).
        _teacher_roles: Enrollment roles treated as teaching staff.
    """

    def __init__(
        self,
        sessionmaker: async_sessionmaker[AsyncSession],
        identities: IdentityStore,
        ledger: EnrollmentLedger,
        settings: RosterSettings,
    ) -> None:
        self._sessionmaker = sessionmaker
        self._identities = identities
        self._ledger = ledger
        self._teacher_roles = frozenset(settings.teacher_roles)

    async def authorize(self, course_id: str, principal_email: str | None) -> AccessScope:
        """Resolve the principal's scope on a course.

        Args:
            course_id: Course identifier.
            principal_email: Acting principal's email; None is anonymous.

        Returns:
            The first matching scope, or AccessScope.NONE.

        Raises:
            CourseNotFoundError: If the course does not exist.
        """
        course = await self._get_course(course_id)
        email = normalize_email(principal_email)
        if not email:
            return AccessScope.NONE

        roles = await self._identities.roles_of(email)
        if ADMIN_PLATAFORMA in roles:
            return AccessScope.PLATFORM_ADMIN
        if SUPERVISOR in roles:
            return AccessScope.PLATFORM_ADMIN

        course_role = await self._ledger.role_in_course(course_id, email)
        if course_role in self._teacher_roles:
            return AccessScope.TEACHER
        if course_role == NODOCENTE:
            return AccessScope.NODOCENTE

        if course.institution_id and await self._has_institution_grant(course.institution_id, email):
            return AccessScope.INSTITUTION_ADMIN

        return AccessScope.NONE

    async def require(
        self,
        course_id: str,
        principal_email: str | None,
        allowed: frozenset[AccessScope] = STUDENT_MANAGERS,
    ) -> ElevatedAccess:
        """Authorize and hand out a course-bound capability.

        Raises:
            CourseNotFoundError: If the course does not exist.
            AuthorizationError: If the scope is none or not in ``allowed``.
        """
        scope = await self.authorize(course_id, principal_email)
        if scope not in allowed:
            logger.warning(
                "Access denied: course=%s, principal=%s, scope=%s",
                course_id,
                principal_email,
                scope.value,
            )
            raise AuthorizationError(
                "Not allowed to manage this course",
                {"course_id": course_id, "scope": scope.value},
            )
        return ElevatedAccess(
            principal_email=normalize_email(principal_email),
            scope=scope,
            course_id=course_id,
            _token=_GATE_TOKEN,
        )

    async def require_platform_admin(self, principal_email: str | None, institution_id: str) -> ElevatedAccess:
        """Check for platform-admin scope on institution administration.

        Raises:
            AuthorizationError: If the principal is not a platform admin.
        """
        email = normalize_email(principal_email)
        roles = await self._identities.roles_of(email) if email else None
        if not roles or not roles.intersects((ADMIN_PLATAFORMA, SUPERVISOR)):
            logger.warning("Platform admin required: principal=%s", principal_email)
            raise AuthorizationError("Platform administrator role required")
        return ElevatedAccess(
            principal_email=email,
            scope=AccessScope.PLATFORM_ADMIN,
            institution_id=institution_id,
            _token=_GATE_TOKEN,
        )

    async def _get_course(self, course_id: str) -> Course:
        async with self._sessionmaker() as session:
            course = await session.get(Course, course_id)
        if course is None:
            raise CourseNotFoundError(f"Course {course_id} not found", {"course_id": course_id})
        return course

    async def _has_institution_grant(self, institution_id: str, email: str) -> bool:
        async with self._sessionmaker() as session:
            grant = await session.scalar(
                select(InstitutionRole.id).where(
                    InstitutionRole.institution_id == institution_id,
                    InstitutionRole.email == email,
                    InstitutionRole.role == ADMIN_INSTITUCION,
                )
            )
        return grant is not None
