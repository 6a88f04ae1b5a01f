# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""FastAPI dependencies for dependency injection.

This module provides dependency functions for:
- Database sessionmaker
- Identity provider and extraction collaborators
- The authenticated principal
- Roster, institution and import services

Usage:
    @router.post("/courses/{course_id}/students")
    async def enroll(
        principal: Principal = Depends(require_principal),
        service: RosterService = Depends(get_roster_service),
    ):
        ...
"""

from typing import Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from src.core.config import Settings, get_settings
from src.core.exceptions import UpstreamError
from src.domains.institution import InstitutionAdminService
from src.domains.roster import RosterService
from src.domains.roster_import import ImportService
from src.infrastructure.database.connection import (
    DatabaseError,
    close_database,
    create_schema,
    get_engine,
    get_sessionmaker,
    init_database,
)
from src.infrastructure.extraction import LiteLLMExtractionService, TextExtractionService
from src.infrastructure.identity_provider import (
    HostedAuthAdminClient,
    IdentityProvider,
    Principal,
)
from src.utils.logging import bind_context, clear_context


# Collaborators created at startup
_identity_provider: Optional[IdentityProvider] = None
_extraction_service: Optional[TextExtractionService] = None

_bearer = HTTPBearer(auto_error=False)


async def init_services(settings: Settings) -> None:
    """Initialize the database and collaborators.

    Should be called at application startup. SQLite databases get their
    schema created in place; PostgreSQL relies on Alembic migrations.

    Args:
        settings: Application settings.
    """
    global _identity_provider, _extraction_service

    await init_database(settings)
    if settings.db.is_sqlite:
        await create_schema(get_engine())

    _identity_provider = HostedAuthAdminClient(settings.identity_provider)
    _extraction_service = LiteLLMExtractionService(settings.extraction)


async def close_services() -> None:
    """Close collaborators and database connections.

    Should be called at application shutdown.
    """
    global _identity_provider, _extraction_service

    if _identity_provider is not None:
        await _identity_provider.close()
        _identity_provider = None
    _extraction_service = None

    await close_database()


def get_db_sessionmaker() -> async_sessionmaker[AsyncSession]:
    """Get the sessionmaker shared by roster services.

    Raises:
        HTTPException: If the database is not initialized.
    """
    try:
        return get_sessionmaker()
    except DatabaseError:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Database not initialized",
        )


def get_identity_provider() -> IdentityProvider:
    """Get the identity provider collaborator.

    Raises:
        HTTPException: If not initialized.
    """
    if _identity_provider is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Identity provider not initialized",
        )
    return _identity_provider


def get_extraction_service() -> TextExtractionService:
    """Get the text extraction collaborator.

    Raises:
        HTTPException: If not initialized.
    """
    if _extraction_service is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Extraction service not initialized",
        )
    return _extraction_service


async def require_principal(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(_bearer),
    identity_provider: IdentityProvider = Depends(get_identity_provider),
) -> Principal:
    """Resolve the authenticated caller from the bearer token.

    Returns:
        Principal.

    Raises:
        HTTPException: 401 if not authenticated, 502 if the provider fails.
    """
    clear_context()
    token = credentials.credentials if credentials else None
    try:
        principal = await identity_provider.get_current_principal(token)
    except UpstreamError as e:
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=e.message,
        )

    if principal is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )

    bind_context(principal=principal.email)
    return principal


def get_roster_service(
    sessionmaker: async_sessionmaker[AsyncSession] = Depends(get_db_sessionmaker),
    identity_provider: IdentityProvider = Depends(get_identity_provider),
) -> RosterService:
    """Build the roster service for a request."""
    return RosterService(sessionmaker, identity_provider, get_settings().roster)


def get_institution_service(
    sessionmaker: async_sessionmaker[AsyncSession] = Depends(get_db_sessionmaker),
    roster: RosterService = Depends(get_roster_service),
) -> InstitutionAdminService:
    """Build the institution admin service, sharing the roster's stores."""
    return InstitutionAdminService(sessionmaker, roster.identities, roster.gate)


def get_import_service(
    extractor: TextExtractionService = Depends(get_extraction_service),
) -> ImportService:
    """Build the extraction import service."""
    return ImportService(extractor, get_settings().extraction)
