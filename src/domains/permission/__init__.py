# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Permission domain package.

Scope resolution for course and institution operations, and the
capability object handed out after a successful check.
"""

from src.domains.permission.service import (
    STAFF_MANAGERS,
    STUDENT_MANAGERS,
    AccessScope,
    ElevatedAccess,
    PermissionGate,
)

__all__ = [
    "STAFF_MANAGERS",
    "STUDENT_MANAGERS",
    "AccessScope",
    "ElevatedAccess",
    "PermissionGate",
]
