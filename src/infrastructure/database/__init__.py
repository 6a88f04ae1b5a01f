# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Database infrastructure for the relational store.

This package provides SQLAlchemy async connections, the ORM models and
the unique-conflict helper shared by every roster write path.

Example:
    from src.infrastructure.database import init_database, get_sessionmaker

    await init_database(settings)
    sessions = get_sessionmaker()
    async with sessions() as session:
        ...
"""

from src.infrastructure.database.conflicts import (
    UNIQUE_VIOLATION,
    insert_ignoring_conflict,
    is_conflict,
)
from src.infrastructure.database.connection import (
    DatabaseError,
    build_engine,
    build_sessionmaker,
    check_database_connection,
    close_database,
    create_schema,
    get_engine,
    get_sessionmaker,
    init_database,
)

__all__ = [
    "DatabaseError",
    "build_engine",
    "build_sessionmaker",
    "check_database_connection",
    "close_database",
    "create_schema",
    "get_engine",
    "get_sessionmaker",
    "init_database",
    "UNIQUE_VIOLATION",
    "insert_ignoring_conflict",
    "is_conflict",
]
