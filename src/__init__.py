"""Roster Reconciliation Backend.

Keeps the access allow-list, durable user profiles and per-course
enrollments consistent across manual enrollment, bulk imports and
staged draft records.

Copyright (C) 2025 Global Digital Labs (gdlabs.io)
SPDX-License-Identifier: LGPL-3.0-or-later
"""

__version__ = "1.0.0"
