# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Roster reconciler.

Brings Identity and Enrollment state into agreement with one
(course, email, role) assertion. Each step is idempotent and runs in its
own unit of work; nothing is rolled back across steps:

1. normalize the email
2. allow-list entry exists and holds the role (fields merged, never blanked)
3. durable profile reflects the merged data when an account exists
   (optionally creating the account through the identity provider)
4. enrollment row exists; a duplicate insert is success

State per (course, email) only moves forward:
Unknown -> Allow-listed -> Profiled -> Enrolled.
"""

import logging
from collections.abc import Iterable, MutableMapping
from dataclasses import dataclass

from sqlalchemy.exc import SQLAlchemyError

from src.core.config.settings import RosterSettings
from src.core.exceptions import InvalidRowError, StorageError
from src.domains.enrollment.service import EnrollmentLedger
from src.domains.identity.service import IdentityStore
from src.domains.permission.service import ElevatedAccess
from src.infrastructure.identity_provider import IdentityProvider
from src.models.roster import ProfileFields
from src.utils.email import normalize_email

logger = logging.getLogger(__name__)


@dataclass
class ReconcileOutcome:
    """What a reconcile call did.

    Attributes:
        email: Normalized email.
        role: Role asserted.
        identity_created: The allow-list entry was created by this call.
        profile_synced: A durable profile exists and reflects the merged data.
        account_created: The identity provider created an account.
        enrolled: A new enrollment row was inserted (False: already enrolled).
    """

    email: str
    role: str
    identity_created: bool = False
    profile_synced: bool = False
    account_created: bool = False
    enrolled: bool = False


class RosterReconciler:
    """Idempotent identity + enrollment merge."""

    def __init__(
        self,
        identities: IdentityStore,
        ledger: EnrollmentLedger,
        identity_provider: IdentityProvider,
        settings: RosterSettings,
    ) -> None:
        self._identities = identities
        self._ledger = ledger
        self._identity_provider = identity_provider
        self._settings = settings

    async def reconcile(
        self,
        access: ElevatedAccess,
        course_id: str,
        email: str | None,
        role: str,
        profile: ProfileFields | None = None,
        accounts: MutableMapping[str, str] | None = None,
    ) -> ReconcileOutcome:
        """Reconcile one (course, email, role).

        Args:
            access: Capability from the permission gate, bound to the course.
            course_id: Target course.
            email: Raw email.
            role: Enrollment role.
            profile: Optional validated profile fields.
            accounts: Known durable accounts, normalized email -> account id.
                When omitted, only existing profiles are updated. Accounts
                created by this call are recorded in it, so a batch sharing
                one index never creates the same account twice.

        Returns:
            ReconcileOutcome.

        Raises:
            AuthorizationError: If ``access`` is bound to another course.
            InvalidRowError: If the email normalizes to nothing or role is blank.
            UpstreamError: If account creation fails.
            StorageError: If a storage step fails for a reason other than a conflict.
        """
        access.check_course(course_id)

        key = normalize_email(email)
        if not key or "@" not in key:
            raise InvalidRowError("Missing or invalid email", {"email": email or ""})
        if not role or not role.strip():
            raise InvalidRowError("Missing role", {"email": key})

        outcome = ReconcileOutcome(email=key, role=role)

        try:
            outcome.identity_created = await self._identities.ensure_role(key, role, profile)
        except SQLAlchemyError as e:
            logger.error("Identity step failed: email=%s, error=%s", key, str(e))
            raise StorageError("Could not update identity", {"email": key}) from e

        account_id = accounts.get(key) if accounts is not None else None
        if account_id is None and accounts is not None and self._settings.provision_accounts:
            account_id = await self._profiled_account(key)
            if account_id is None:
                account_id = await self._identity_provider.create_account(key, self._account_metadata(role, profile))
                outcome.account_created = True
                logger.info("Account created: email=%s, account=%s", key, account_id)
            accounts[key] = account_id

        try:
            outcome.profile_synced = await self._identities.sync_profile(key, role, profile, account_id)
        except SQLAlchemyError as e:
            logger.error("Profile step failed: email=%s, error=%s", key, str(e))
            raise StorageError("Could not update profile", {"email": key}) from e

        try:
            outcome.enrolled = await self._ledger.add(course_id, key, role)
        except SQLAlchemyError as e:
            logger.error("Enrollment step failed: course=%s, email=%s, error=%s", course_id, key, str(e))
            raise StorageError("Could not enroll", {"email": key, "course_id": course_id}) from e

        return outcome

    async def remove(
        self,
        access: ElevatedAccess,
        course_id: str,
        email: str | None,
        roles: Iterable[str],
    ) -> int:
        """Delete the enrollment scoped by course, email and role.

        Identity roles are left untouched.

        Raises:
            AuthorizationError: If ``access`` is bound to another course.
            InvalidRowError: If the email normalizes to nothing.
            StorageError: If the delete fails.
        """
        access.check_course(course_id)

        key = normalize_email(email)
        if not key:
            raise InvalidRowError("Missing email", {"email": email or ""})

        try:
            return await self._ledger.remove(course_id, key, roles)
        except SQLAlchemyError as e:
            logger.error("Removal failed: course=%s, email=%s, error=%s", course_id, key, str(e))
            raise StorageError("Could not remove enrollment", {"email": key}) from e

    async def _profiled_account(self, key: str) -> str | None:
        """Account id of an identity that already has a durable profile."""
        try:
            identity = await self._identities.get(key)
        except SQLAlchemyError as e:
            logger.error("Identity lookup failed: email=%s, error=%s", key, str(e))
            raise StorageError("Could not read identity", {"email": key}) from e
        if identity is not None and identity.has_account:
            return identity.account_id
        return None

    @staticmethod
    def _account_metadata(role: str, profile: ProfileFields | None) -> dict:
        metadata: dict = {"role": role}
        if profile is not None:
            metadata.update(
                {key: str(value) for key, value in profile.non_empty().items()}
            )
        return metadata
