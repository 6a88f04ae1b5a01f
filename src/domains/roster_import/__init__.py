# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Roster import package: paste parsers and chunked extraction."""

from src.domains.roster_import.parsers import (
    parse_email_list,
    parse_name_list,
    parse_table_paste,
)
from src.domains.roster_import.service import ImportService, chunk_lines, clean_candidate

__all__ = [
    "ImportService",
    "chunk_lines",
    "clean_candidate",
    "parse_email_list",
    "parse_name_list",
    "parse_table_paste",
]
