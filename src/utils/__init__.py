# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Utility functions and helpers for the roster engine.

This package contains cross-cutting utilities:
- logging: Structured logging with structlog
- datetime: Timezone-aware datetime operations
- email: Email normalization used for every identity comparison
"""

from src.utils.datetime import ensure_utc, parse_date, utc_now
from src.utils.email import find_email, looks_like_email, normalize_email, normalize_emails
from src.utils.logging import bind_context, clear_context, get_logger, setup_logging

__all__ = [
    # Logging
    "setup_logging",
    "get_logger",
    "bind_context",
    "clear_context",
    # Datetime
    "utc_now",
    "ensure_utc",
    "parse_date",
    # Email
    "normalize_email",
    "normalize_emails",
    "looks_like_email",
    "find_email",
]
