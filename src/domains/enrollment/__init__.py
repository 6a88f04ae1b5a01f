# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Enrollment domain package.

This package provides the per-course membership ledger:
- Idempotent enrollment
- Role-scoped removal
- Membership queries
"""

from src.domains.enrollment.service import EnrollmentLedger

__all__ = [
    "EnrollmentLedger",
]
