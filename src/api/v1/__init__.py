# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""API v1 routes package.

Modules:
    roster: Course enrollment, draft, institution admin and import endpoints.
"""

from fastapi import APIRouter

from src.api.v1 import roster

# Create the main v1 router
router = APIRouter(prefix="/api/v1")

# Include domain routers
router.include_router(roster.router, tags=["Roster"])

__all__ = ["router"]
