# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Domain services layer for the roster engine.

This package contains domain services that encapsulate business logic.
Each domain module owns one concern and runs its own units of work.

Domains:
    identity: Allow-list entries, profiles and role sets.
    enrollment: Course membership ledger.
    draft: Staged student records and draft matching.
    permission: Scope resolution and access capabilities.
    roster: Reconciler and the enroll/remove entry points.
    roster_import: Paste parsers and chunked text extraction.
    institution: Institution-admin grants.
"""
