# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Pytest configuration and shared fixtures.

This module provides fixtures used across all test types:
- A file-backed SQLite database per test (aiosqlite)
- Seeded institutions and courses
- Fake identity provider and extraction collaborators
- Roster services wired to the test database
"""

from collections.abc import AsyncIterator
from typing import Any

import pytest
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from src.core.config.settings import ExtractionSettings, RosterSettings
from src.core.exceptions import UpstreamError
from src.domains.identity import ADMIN_PLATAFORMA
from src.domains.institution import InstitutionAdminService
from src.domains.roster import RosterService
from src.infrastructure.database.connection import build_engine, build_sessionmaker, create_schema
from src.infrastructure.database.models import Course, Institution
from src.infrastructure.extraction import TextExtractionService
from src.infrastructure.identity_provider import Account, IdentityProvider, Principal


# =============================================================================
# Fake collaborators
# =============================================================================


class FakeIdentityProvider(IdentityProvider):
    """In-memory identity provider.

    Attributes:
        tokens: Bearer token -> email.
        accounts: Email -> account id.
        created: Emails for which create_account was called.
        fail_create: Emails whose account creation fails.
        fail_listing: Make list_accounts fail.
    """

    def __init__(self) -> None:
        self.tokens: dict[str, str] = {}
        self.accounts: dict[str, str] = {}
        self.created: list[str] = []
        self.fail_create: set[str] = set()
        self.fail_listing = False

    async def get_current_principal(self, token: str | None) -> Principal | None:
        email = self.tokens.get(token or "")
        return Principal(email=email) if email else None

    async def create_account(self, email: str, metadata: dict[str, Any] | None = None) -> str:
        if email in self.fail_create:
            raise UpstreamError("Account creation rejected", "identity_provider", status_code=422)
        if email in self.accounts:
            raise UpstreamError("Email already registered", "identity_provider", status_code=422)
        account_id = f"acct-{len(self.accounts) + 1}"
        self.accounts[email] = account_id
        self.created.append(email)
        return account_id

    async def list_accounts(self) -> list[Account]:
        if self.fail_listing:
            raise UpstreamError("Account listing failed", "identity_provider", status_code=500)
        return [Account(email=email, account_id=account_id) for email, account_id in self.accounts.items()]


class FakeExtractionService(TextExtractionService):
    """Extraction service answering from a scripted list.

    Each call pops the next response; an exception instance is raised.
    """

    def __init__(self, responses: list[Any] | None = None) -> None:
        self.responses = list(responses or [])
        self.calls: list[str] = []

    async def extract_candidates(self, raw_text: str) -> list[dict[str, Any]]:
        self.calls.append(raw_text)
        response = self.responses.pop(0) if self.responses else []
        if isinstance(response, Exception):
            raise response
        return response


# =============================================================================
# Database Fixtures
# =============================================================================


@pytest.fixture
async def engine(tmp_path) -> AsyncIterator[AsyncEngine]:
    """Create a fresh SQLite database with the roster schema."""
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'roster.db'}")
    await create_schema(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def sessionmaker(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Sessionmaker bound to the test database."""
    return build_sessionmaker(engine)


@pytest.fixture
async def courses(sessionmaker: async_sessionmaker[AsyncSession]) -> dict[str, str]:
    """Seed two institutions and three courses.

    Returns:
        Ids keyed by name: institution, other_institution, course_a,
        course_b (both in institution), course_other (other institution).
    """
    ids = {
        "institution": "inst-1",
        "other_institution": "inst-2",
        "course_a": "course-a",
        "course_b": "course-b",
        "course_other": "course-other",
    }
    async with sessionmaker() as session:
        session.add_all(
            [
                Institution(id=ids["institution"], name="Instituto Uno"),
                Institution(id=ids["other_institution"], name="Instituto Dos"),
            ]
        )
        await session.flush()
        session.add_all(
            [
                Course(id=ids["course_a"], institution_id=ids["institution"], title="Course A"),
                Course(id=ids["course_b"], institution_id=ids["institution"], title="Course B"),
                Course(id=ids["course_other"], institution_id=ids["other_institution"], title="Other"),
            ]
        )
        await session.commit()
    return ids


# =============================================================================
# Service Fixtures
# =============================================================================


@pytest.fixture
def identity_provider() -> FakeIdentityProvider:
    """Fake identity provider."""
    return FakeIdentityProvider()


@pytest.fixture
def make_extractor() -> type[FakeExtractionService]:
    """Factory for scripted extraction services."""
    return FakeExtractionService


@pytest.fixture
def roster_settings() -> RosterSettings:
    """Default roster settings."""
    return RosterSettings()


@pytest.fixture
def extraction_settings() -> ExtractionSettings:
    """Extraction settings with small chunks."""
    return ExtractionSettings(chunk_lines=2)


@pytest.fixture
def roster(
    sessionmaker: async_sessionmaker[AsyncSession],
    identity_provider: FakeIdentityProvider,
    roster_settings: RosterSettings,
) -> RosterService:
    """Roster service wired to the test database."""
    return RosterService(sessionmaker, identity_provider, roster_settings)


@pytest.fixture
def institutions(sessionmaker: async_sessionmaker[AsyncSession], roster: RosterService) -> InstitutionAdminService:
    """Institution admin service sharing the roster's stores."""
    return InstitutionAdminService(sessionmaker, roster.identities, roster.gate)


@pytest.fixture
async def platform_admin(roster: RosterService, courses: dict[str, str]) -> Principal:
    """A principal holding the platform-admin role."""
    await roster.identities.ensure_role("admin@plataforma.test", ADMIN_PLATAFORMA)
    return Principal(email="admin@plataforma.test")


@pytest.fixture
def stranger() -> Principal:
    """A principal with no roles, enrollments or grants."""
    return Principal(email="nobody@example.com")


# =============================================================================
# Marker Configuration
# =============================================================================


def pytest_configure(config: pytest.Config) -> None:
    """Configure custom pytest markers."""
    config.addinivalue_line(
        "markers", "unit: mark test as a unit test"
    )
    config.addinivalue_line(
        "markers", "integration: mark test as an integration test"
    )
