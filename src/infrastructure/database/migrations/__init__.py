# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Database migrations package.

Alembic migrations for the roster tables (allow-list, profiles, drafts,
enrollments, institution grants).
"""
