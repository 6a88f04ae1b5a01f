# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""SQLAlchemy ORM models."""

from src.infrastructure.database.models.base import Base, TimestampMixin
from src.infrastructure.database.models.roster import (
    Course,
    CourseEnrollment,
    DraftStudent,
    Institution,
    InstitutionRole,
    Profile,
    WhitelistEntry,
)

__all__ = [
    "Base",
    "TimestampMixin",
    "Course",
    "CourseEnrollment",
    "DraftStudent",
    "Institution",
    "InstitutionRole",
    "Profile",
    "WhitelistEntry",
]
