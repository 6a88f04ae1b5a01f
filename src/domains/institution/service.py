# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Institution administration service.

This module provides the InstitutionAdminService that handles:
- Institution admin assignment (identity role + institution grant)
- Institution admin removal with platform-wide role pruning

Both operations require the platform-admin scope.

Example:
    >>> service = InstitutionAdminService(sessionmaker, identities, gate)
    >>> await service.assign_admin(institution_id, "ana@x.com", principal)
"""

import logging

from sqlalchemy import delete
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from src.core.exceptions import InstitutionNotFoundError, InvalidRowError, StorageError
from src.domains.identity.roles import ADMIN_INSTITUCION
from src.domains.identity.service import IdentityStore
from src.domains.permission.service import PermissionGate
from src.infrastructure.database.conflicts import insert_ignoring_conflict
from src.infrastructure.database.models import Institution, InstitutionRole
from src.infrastructure.identity_provider import Principal
from src.utils.email import normalize_email

logger = logging.getLogger(__name__)


class InstitutionAdminService:
    """Institution-admin grants.

    Attributes:
        _sessionmaker: Factory for per-step sessions.
        _identities: Identity store.
        _gate: Permission gate.
    """

    def __init__(
        self,
        sessionmaker: async_sessionmaker[AsyncSession],
        identities: IdentityStore,
        gate: PermissionGate,
    ) -> None:
        self._sessionmaker = sessionmaker
        self._identities = identities
        self._gate = gate

    async def assign_admin(self, institution_id: str, email: str, principal: Principal) -> bool:
        """Make ``email`` an admin of the institution.

        Args:
            institution_id: Institution identifier.
            email: Raw email of the new admin.
            principal: Acting principal.

        Returns:
            True if a new grant was inserted, False if it already existed.

        Raises:
            AuthorizationError: If the caller is not a platform admin.
            InstitutionNotFoundError: If the institution does not exist.
            InvalidRowError: If the email is unusable.
            StorageError: If a storage step fails.
        """
        access = await self._gate.require_platform_admin(principal.email, institution_id)
        await self._get_institution(institution_id)
        key = self._require_email(email)

        try:
            await self._identities.ensure_role(key, ADMIN_INSTITUCION)
            await self._identities.sync_profile(key, ADMIN_INSTITUCION)
            async with self._sessionmaker() as session:
                inserted = await insert_ignoring_conflict(
                    session,
                    InstitutionRole(institution_id=institution_id, email=key, role=ADMIN_INSTITUCION),
                )
        except SQLAlchemyError as e:
            logger.error("Institution admin assignment failed: email=%s, error=%s", key, str(e))
            raise StorageError("Could not assign institution admin", {"email": key}) from e

        logger.info(
            "Institution admin assigned: email=%s, institution=%s, new=%s, by=%s",
            key,
            institution_id,
            inserted,
            access.principal_email,
        )
        return inserted

    async def remove_admin(self, institution_id: str, email: str, principal: Principal) -> bool:
        """Revoke the institution grant and prune the role if nothing else needs it.

        Remaining grants are counted across every institution before the
        role is stripped from the identity.

        Returns:
            True if the role was pruned from the identity.

        Raises:
            AuthorizationError: If the caller is not a platform admin.
            InstitutionNotFoundError: If the institution does not exist.
            InvalidRowError: If the email is unusable.
            StorageError: If a storage step fails.
        """
        access = await self._gate.require_platform_admin(principal.email, institution_id)
        await self._get_institution(institution_id)
        key = self._require_email(email)

        try:
            async with self._sessionmaker() as session:
                result = await session.execute(
                    delete(InstitutionRole).where(
                        InstitutionRole.institution_id == institution_id,
                        InstitutionRole.email == key,
                        InstitutionRole.role == ADMIN_INSTITUCION,
                    )
                )
                await session.commit()
            pruned = await self._identities.prune_role_if_unused(key, ADMIN_INSTITUCION)
        except SQLAlchemyError as e:
            logger.error("Institution admin removal failed: email=%s, error=%s", key, str(e))
            raise StorageError("Could not remove institution admin", {"email": key}) from e

        logger.info(
            "Institution admin removed: email=%s, institution=%s, deleted=%d, pruned=%s, by=%s",
            key,
            institution_id,
            result.rowcount or 0,
            pruned,
            access.principal_email,
        )
        return pruned

    async def _get_institution(self, institution_id: str) -> Institution:
        async with self._sessionmaker() as session:
            institution = await session.get(Institution, institution_id)
        if institution is None:
            raise InstitutionNotFoundError(
                f"Institution {institution_id} not found",
                {"institution_id": institution_id},
            )
        return institution

    @staticmethod
    def _require_email(email: str) -> str:
        key = normalize_email(email)
        if not key or "@" not in key:
            raise InvalidRowError("Missing or invalid email", {"email": email})
        return key
