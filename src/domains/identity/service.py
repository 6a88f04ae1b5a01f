# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Identity store: the allow-list + profile pair for one email.

This module provides the IdentityStore that handles:
- Identity lookup with effective roles
- Additive role assignment with merge-without-blanking of profile fields
- Durable profile upsert once an account exists
- Explicit pruning of administrative roles

Every method runs its own unit of work. Identity rows are never deleted.
Allow-list entries and profiles carry a version column, so concurrent role
merges on one email never overwrite each other.

Example:
    >>> store = IdentityStore(sessionmaker)
    >>> await store.ensure_role("ana@x.com", ESTUDIANTE, fields)
    >>> identity = await store.get("ana@x.com")
"""

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import date
from typing import TypeVar

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm.exc import StaleDataError

from src.core.exceptions import StorageError
from src.domains.identity.roles import ADMINISTRATIVE_ROLES, RoleSet
from src.infrastructure.database.conflicts import insert_ignoring_conflict
from src.infrastructure.database.models import (
    CourseEnrollment,
    InstitutionRole,
    Profile,
    WhitelistEntry,
)
from src.models.roster import ProfileFields
from src.utils.email import normalize_email

logger = logging.getLogger(__name__)

T = TypeVar("T")

_MERGE_ATTEMPTS = 5


@dataclass
class Identity:
    """Merged view of the allow-list entry and the durable profile.

    Attributes:
        email: Normalized email.
        roles: Effective roles (the profile's once an account exists).
        account_id: Identity provider account id, if a profile exists.
        first_name, last_name, dni, phone, birth_date: Profile fields.
    """

    email: str
    roles: RoleSet = field(default_factory=RoleSet)
    account_id: str | None = None
    first_name: str | None = None
    last_name: str | None = None
    dni: str | None = None
    phone: str | None = None
    birth_date: date | None = None

    @property
    def has_account(self) -> bool:
        return self.account_id is not None


def _merge_fields(row: WhitelistEntry | Profile, fields: ProfileFields | None) -> bool:
    """Overwrite only with non-empty values. Returns whether anything changed."""
    if fields is None:
        return False
    changed = False
    for name, value in fields.non_empty().items():
        if getattr(row, name) != value:
            setattr(row, name, value)
            changed = True
    return changed


def _add_role(row: WhitelistEntry | Profile, role: str) -> bool:
    roles = RoleSet(row.roles)
    if role in roles:
        return False
    row.roles = roles.add(role).to_list()
    return True


class IdentityStore:
    """Allow-list and profile persistence.

    Attributes:
        _sessionmaker: Factory for per-step sessions.
    """

    def __init__(self, sessionmaker: async_sessionmaker[AsyncSession]) -> None:
        self._sessionmaker = sessionmaker

    async def get(self, email: str) -> Identity | None:
        """Look up an identity by email.

        Args:
            email: Raw or normalized email.

        Returns:
            Identity, or None if the email is neither allow-listed nor profiled.
        """
        key = normalize_email(email)
        if not key:
            return None

        async with self._sessionmaker() as session:
            entry = await session.get(WhitelistEntry, key)
            profile = await self._get_profile(session, key)

        if entry is None and profile is None:
            return None

        source = profile if profile is not None else entry
        return Identity(
            email=key,
            roles=RoleSet(source.roles),
            account_id=profile.id if profile is not None else None,
            first_name=source.first_name,
            last_name=source.last_name,
            dni=source.dni,
            phone=source.phone,
            birth_date=source.birth_date,
        )

    async def roles_of(self, email: str) -> RoleSet:
        """Effective roles of an email (empty for unknown emails)."""
        identity = await self.get(email)
        return identity.roles if identity else RoleSet()

    async def ensure_role(self, email: str, role: str, fields: ProfileFields | None = None) -> bool:
        """Make sure the allow-list entry exists and holds ``role``.

        Creates the entry with ``{role}`` if absent. Otherwise adds the
        role when missing and merges non-empty profile fields. A create
        that loses a race to a concurrent insert re-reads and merges, and
        a merge that loses a race to a concurrent update starts over.

        Args:
            email: Normalized email.
            role: Role to hold.
            fields: Optional profile fields.

        Returns:
            True if the entry was created.

        Raises:
            StorageError: If the entry kept changing underneath every attempt.
        """
        return await self._retry_stale(email, lambda: self._ensure_role_once(email, role, fields))

    async def _ensure_role_once(self, email: str, role: str, fields: ProfileFields | None) -> bool:
        async with self._sessionmaker() as session:
            entry = await session.get(WhitelistEntry, email)
            if entry is None:
                values = fields.non_empty() if fields else {}
                created = WhitelistEntry(email=email, roles=[role], **values)
                if await insert_ignoring_conflict(session, created):
                    logger.info("Identity created: email=%s, role=%s", email, role)
                    return True

                entry = await session.get(WhitelistEntry, email, populate_existing=True)
                if entry is None:
                    raise StorageError("Allow-list entry vanished after conflict", {"email": email})

            role_added = _add_role(entry, role)
            fields_changed = _merge_fields(entry, fields)
            if role_added or fields_changed:
                await session.commit()
                logger.info(
                    "Identity updated: email=%s, role=%s, role_added=%s, fields_changed=%s",
                    email,
                    role,
                    role_added,
                    fields_changed,
                )
        return False

    async def sync_profile(
        self,
        email: str,
        role: str,
        fields: ProfileFields | None = None,
        account_id: str | None = None,
    ) -> bool:
        """Reflect the merged state on the durable profile.

        Updates the profile for ``email`` if one exists. With an
        ``account_id`` and no profile yet, creates the profile from the
        allow-list entry. Without either, does nothing: the allow-list
        entry is ready for the account when it appears.

        Returns:
            True if a profile exists after the call.

        Raises:
            StorageError: If the profile kept changing underneath every attempt.
        """
        return await self._retry_stale(email, lambda: self._sync_profile_once(email, role, fields, account_id))

    async def _sync_profile_once(
        self,
        email: str,
        role: str,
        fields: ProfileFields | None,
        account_id: str | None,
    ) -> bool:
        async with self._sessionmaker() as session:
            profile = await self._get_profile(session, email)
            if profile is None and account_id is not None:
                entry = await session.get(WhitelistEntry, email)
                roles = RoleSet(entry.roles if entry else []).add(role)
                seed = ProfileFields.model_validate(
                    {
                        "first_name": entry.first_name if entry else None,
                        "last_name": entry.last_name if entry else None,
                        "dni": entry.dni if entry else None,
                        "phone": entry.phone if entry else None,
                        "birth_date": entry.birth_date if entry else None,
                    }
                )
                created = Profile(id=account_id, email=email, roles=roles.to_list(), **seed.non_empty())
                _merge_fields(created, fields)
                if await insert_ignoring_conflict(session, created):
                    logger.info("Profile created: email=%s, account=%s", email, account_id)
                    return True
                profile = await self._get_profile(session, email)

            if profile is None:
                return False

            if _add_role(profile, role) | _merge_fields(profile, fields):
                await session.commit()
                logger.debug("Profile synced: email=%s, role=%s", email, role)
        return True

    async def remove_role(self, email: str, role: str) -> None:
        """Strip a role from both the allow-list entry and the profile.

        Raises:
            StorageError: If the identity kept changing underneath every attempt.
        """
        await self._retry_stale(email, lambda: self._remove_role_once(email, role))
        logger.info("Role removed from identity: email=%s, role=%s", email, role)

    async def _remove_role_once(self, email: str, role: str) -> None:
        async with self._sessionmaker() as session:
            entry = await session.get(WhitelistEntry, email)
            profile = await self._get_profile(session, email)
            for row in (entry, profile):
                if row is not None and role in RoleSet(row.roles):
                    row.roles = RoleSet(row.roles).remove(role).to_list()
            await session.commit()

    async def _retry_stale(self, email: str, attempt: Callable[[], Awaitable[T]]) -> T:
        """Run a read-modify-write until no concurrent update interleaves.

        Each attempt runs in a fresh session. A versioned row updated by
        someone else since it was read makes the flush raise
        StaleDataError; the attempt is discarded and re-read.
        """
        for number in range(1, _MERGE_ATTEMPTS + 1):
            try:
                return await attempt()
            except StaleDataError:
                logger.debug("Identity changed concurrently: email=%s, attempt=%d", email, number)
        raise StorageError(
            "Identity kept changing concurrently",
            {"email": email, "attempts": _MERGE_ATTEMPTS},
        )

    async def count_role_grants(self, email: str, role: str) -> int:
        """Count every live grant of ``role`` for ``email`` platform-wide.

        Counts institution grants and course enrollments alike.
        """
        async with self._sessionmaker() as session:
            grants = await session.scalar(
                select(func.count())
                .select_from(InstitutionRole)
                .where(InstitutionRole.email == email, InstitutionRole.role == role)
            )
            enrollments = await session.scalar(
                select(func.count())
                .select_from(CourseEnrollment)
                .where(CourseEnrollment.email == email, CourseEnrollment.role == role)
            )
        return (grants or 0) + (enrollments or 0)

    async def prune_role_if_unused(self, email: str, role: str) -> bool:
        """Remove an administrative role once no grant anywhere needs it.

        Args:
            email: Normalized email.
            role: Administrative role tag.

        Returns:
            True if the role was pruned.

        Raises:
            ValueError: If ``role`` is not an administrative role.
        """
        if role not in ADMINISTRATIVE_ROLES:
            raise ValueError(f"Only administrative roles can be pruned, got {role!r}")

        remaining = await self.count_role_grants(email, role)
        if remaining > 0:
            logger.debug("Role kept: email=%s, role=%s, remaining=%d", email, role, remaining)
            return False

        await self.remove_role(email, role)
        return True

    async def _get_profile(self, session: AsyncSession, email: str) -> Profile | None:
        result = await session.execute(select(Profile).where(Profile.email == email))
        return result.scalar_one_or_none()
