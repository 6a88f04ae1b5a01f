# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Unit tests for the hosted auth admin client."""

import json

import httpx
import pytest

from src.core.config.settings import IdentityProviderSettings
from src.core.exceptions import UpstreamError
from src.infrastructure.identity_provider import HostedAuthAdminClient

BASE_URL = "https://auth.example.test/auth/v1"


def _client(handler) -> HostedAuthAdminClient:
    settings = IdentityProviderSettings(base_url=BASE_URL, service_role_key="service-key", page_size=2)
    http = httpx.AsyncClient(base_url=BASE_URL, transport=httpx.MockTransport(handler))
    return HostedAuthAdminClient(settings, client=http)


class TestGetCurrentPrincipal:
    """Tests for token resolution."""

    @pytest.mark.asyncio
    async def test_valid_token(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.path == "/auth/v1/user"
            assert request.headers["Authorization"] == "Bearer user-token"
            return httpx.Response(200, json={"id": "acct-1", "email": " Ana@X.com"})

        principal = await _client(handler).get_current_principal("user-token")

        assert principal.email == "ana@x.com"
        assert principal.account_id == "acct-1"

    @pytest.mark.asyncio
    async def test_rejected_token_is_anonymous(self) -> None:
        client = _client(lambda request: httpx.Response(401, json={"msg": "invalid JWT"}))

        assert await client.get_current_principal("expired") is None
        assert await client.get_current_principal(None) is None

    @pytest.mark.asyncio
    async def test_server_error_raises(self) -> None:
        client = _client(lambda request: httpx.Response(500))

        with pytest.raises(UpstreamError) as exc_info:
            await client.get_current_principal("user-token")

        assert exc_info.value.status_code == 500


class TestCreateAccount:
    """Tests for account creation."""

    @pytest.mark.asyncio
    async def test_creates_with_metadata(self) -> None:
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["body"] = json.loads(request.content)
            seen["auth"] = request.headers["Authorization"]
            return httpx.Response(200, json={"id": "acct-new"})

        account_id = await _client(handler).create_account("ana@x.com", {"role": "estudiante"})

        assert account_id == "acct-new"
        assert seen["auth"] == "Bearer service-key"
        assert seen["body"]["email_confirm"] is True
        assert seen["body"]["user_metadata"] == {"role": "estudiante"}

    @pytest.mark.asyncio
    async def test_rejection_raises(self) -> None:
        client = _client(lambda request: httpx.Response(422, json={"msg": "already registered"}))

        with pytest.raises(UpstreamError) as exc_info:
            await client.create_account("ana@x.com")

        assert exc_info.value.status_code == 422
        assert exc_info.value.details["email"] == "ana@x.com"


class TestListAccounts:
    """Tests for paged account listing."""

    @pytest.mark.asyncio
    async def test_reads_every_page(self) -> None:
        pages = {
            "1": [{"id": "1", "email": "A@x.com"}, {"id": "2", "email": "b@x.com"}],
            "2": [{"id": "3", "email": "c@x.com"}],
        }

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"users": pages[request.url.params["page"]]})

        accounts = await _client(handler).list_accounts()

        assert [(account.email, account.account_id) for account in accounts] == [
            ("a@x.com", "1"),
            ("b@x.com", "2"),
            ("c@x.com", "3"),
        ]

    @pytest.mark.asyncio
    async def test_failure_raises(self) -> None:
        client = _client(lambda request: httpx.Response(503))

        with pytest.raises(UpstreamError):
            await client.list_accounts()
