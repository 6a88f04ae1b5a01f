# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Draft domain package.

Staged student records and the matcher that picks one draft per email.
"""

from src.domains.draft.matcher import DraftMatcher, pick_best
from src.domains.draft.service import DraftStore

__all__ = [
    "DraftMatcher",
    "DraftStore",
    "pick_best",
]
