# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Identity provider collaborator.

The roster engine never authenticates anyone itself. It asks the identity
provider who the caller is, which durable accounts exist, and (when
account provisioning is enabled) to create an account for a reconciled
email.

HostedAuthAdminClient talks to a GoTrue-compatible auth service:
- GET  /user                 resolve the bearer token's principal
- GET  /admin/users          list accounts (paged)
- POST /admin/users          create an account

Example:
    >>> provider = HostedAuthAdminClient(settings.identity_provider)
    >>> principal = await provider.get_current_principal(token)
    >>> accounts = await provider.list_accounts()
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any

import httpx

from src.core.config.settings import IdentityProviderSettings
from src.core.exceptions import UpstreamError
from src.utils.email import normalize_email

logger = logging.getLogger(__name__)

SERVICE_NAME = "identity_provider"


@dataclass(frozen=True)
class Principal:
    """The authenticated caller.

    Attributes:
        email: Normalized email of the caller.
        account_id: Identity provider account id, when known.
    """

    email: str
    account_id: str | None = None


@dataclass(frozen=True)
class Account:
    """A durable account known to the identity provider.

    Attributes:
        email: Normalized account email.
        account_id: Identity provider account id.
    """

    email: str
    account_id: str


class IdentityProvider(ABC):
    """Abstract identity provider used by the roster engine."""

    @abstractmethod
    async def get_current_principal(self, token: str | None) -> Principal | None:
        """Resolve the caller behind an access token.

        Args:
            token: Bearer token from the request, if any.

        Returns:
            Principal, or None for an anonymous or invalid token.
        """
        ...

    @abstractmethod
    async def create_account(self, email: str, metadata: dict[str, Any] | None = None) -> str:
        """Create a durable account.

        Args:
            email: Normalized email.
            metadata: User metadata stored with the account.

        Returns:
            The new account id.

        Raises:
            UpstreamError: If the provider rejects the request.
        """
        ...

    @abstractmethod
    async def list_accounts(self) -> list[Account]:
        """List every durable account.

        Raises:
            UpstreamError: If the provider cannot be reached.
        """
        ...

    async def close(self) -> None:
        """Release held resources."""


class HostedAuthAdminClient(IdentityProvider):
    """httpx client for a GoTrue-compatible admin API.

    Attributes:
        _settings: Identity provider configuration.
        _client: Shared async HTTP client.
    """

    def __init__(
        self,
        settings: IdentityProviderSettings,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            settings: Identity provider configuration.
            client: Optional preconfigured HTTP client (tests use a MockTransport).
        """
        self._settings = settings
        key = settings.service_role_key.get_secret_value()
        self._client = client or httpx.AsyncClient(
            base_url=settings.base_url,
            headers={"apikey": key},
            timeout=settings.timeout,
        )

    def _admin_headers(self) -> dict[str, str]:
        key = self._settings.service_role_key.get_secret_value()
        return {"apikey": key, "Authorization": f"Bearer {key}"}

    async def close(self) -> None:
        """Close the HTTP client."""
        await self._client.aclose()

    async def get_current_principal(self, token: str | None) -> Principal | None:
        if not token:
            return None

        try:
            response = await self._client.get(
                "/user",
                headers={"Authorization": f"Bearer {token}"},
            )
        except httpx.HTTPError as e:
            logger.error("Principal lookup failed: %s", str(e))
            raise UpstreamError("Principal lookup failed", SERVICE_NAME) from e

        if response.status_code in (401, 403):
            return None
        if response.status_code != 200:
            raise UpstreamError(
                "Principal lookup failed",
                SERVICE_NAME,
                status_code=response.status_code,
            )

        data = response.json()
        email = normalize_email(data.get("email"))
        if not email:
            return None
        return Principal(email=email, account_id=data.get("id"))

    async def create_account(self, email: str, metadata: dict[str, Any] | None = None) -> str:
        payload = {
            "email": email,
            "email_confirm": True,
            "user_metadata": metadata or {},
        }

        try:
            response = await self._client.post(
                "/admin/users",
                json=payload,
                headers=self._admin_headers(),
            )
        except httpx.HTTPError as e:
            logger.error("Account creation failed: email=%s, error=%s", email, str(e))
            raise UpstreamError("Account creation failed", SERVICE_NAME, details={"email": email}) from e

        if response.status_code not in (200, 201):
            logger.error(
                "Account creation rejected: email=%s, status=%d",
                email,
                response.status_code,
            )
            raise UpstreamError(
                "Account creation rejected",
                SERVICE_NAME,
                status_code=response.status_code,
                details={"email": email, "body": response.text[:200]},
            )

        account_id = response.json().get("id")
        if not account_id:
            raise UpstreamError("Account creation returned no id", SERVICE_NAME, details={"email": email})

        logger.info("Account created: email=%s, account=%s", email, account_id)
        return account_id

    async def list_accounts(self) -> list[Account]:
        accounts: list[Account] = []
        page = 1
        per_page = self._settings.page_size

        while True:
            try:
                response = await self._client.get(
                    "/admin/users",
                    params={"page": page, "per_page": per_page},
                    headers=self._admin_headers(),
                )
                response.raise_for_status()
            except httpx.HTTPStatusError as e:
                raise UpstreamError(
                    "Account listing failed",
                    SERVICE_NAME,
                    status_code=e.response.status_code,
                ) from e
            except httpx.HTTPError as e:
                raise UpstreamError("Account listing failed", SERVICE_NAME) from e

            users = response.json().get("users", [])
            for user in users:
                email = normalize_email(user.get("email"))
                if email and user.get("id"):
                    accounts.append(Account(email=email, account_id=user["id"]))

            if len(users) < per_page:
                break
            page += 1

        logger.debug("Listed accounts: count=%d, pages=%d", len(accounts), page)
        return accounts
