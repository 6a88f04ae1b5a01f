# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Roster domain package.

This package provides roster reconciliation:
- The idempotent identity + enrollment merge
- Enroll/remove entry points for students, teachers and nodocentes
- Batch enrollment with per-row failures and cancellation
- Draft staging and matching behind the permission gate
"""

from src.domains.roster.reconciler import ReconcileOutcome, RosterReconciler
from src.domains.roster.service import RosterService

__all__ = [
    "ReconcileOutcome",
    "RosterReconciler",
    "RosterService",
]
