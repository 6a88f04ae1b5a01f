# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Email normalization utilities.

Every identity comparison in the roster engine goes through
normalize_email(). Raw values are kept for storage and display, but
never used as comparison keys.

Example:
    >>> normalize_email("  Ana@X.com\\u0007")
    'ana@x.com'
"""

import re
from collections.abc import Iterable

_NON_PRINTABLE = re.compile(r"[^\x20-\x7E]")
_WHITESPACE = re.compile(r"\s+")
_EMAIL_IN_TEXT = re.compile(r"[\w.+-]+@[\w.-]+\.\w+")


def normalize_email(raw: str | None) -> str:
    """Canonicalize an email for comparison.

    Removes characters outside printable ASCII, removes all whitespace
    and lower-cases the remainder. Total: None becomes "".

    Args:
        raw: Email as typed, pasted or imported.

    Returns:
        Normalized email (possibly empty).
    """
    if raw is None:
        return ""
    value = _NON_PRINTABLE.sub("", str(raw))
    value = _WHITESPACE.sub("", value)
    return value.lower()


def normalize_emails(raws: Iterable[str | None]) -> list[str]:
    """Normalize and de-duplicate emails, preserving first-seen order.

    Empty results are dropped.
    """
    seen: set[str] = set()
    result: list[str] = []
    for raw in raws:
        email = normalize_email(raw)
        if email and email not in seen:
            seen.add(email)
            result.append(email)
    return result


def looks_like_email(value: str) -> bool:
    """Cheap plausibility check used to filter pasted input."""
    return "@" in value


def find_email(text: str) -> str | None:
    """Return the first email-looking token inside free text, if any."""
    match = _EMAIL_IN_TEXT.search(text or "")
    return match.group(0) if match else None
