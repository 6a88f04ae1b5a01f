# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Text extraction collaborator package."""

from src.infrastructure.extraction.client import (
    LiteLLMExtractionService,
    TextExtractionService,
    parse_extraction_payload,
)

__all__ = [
    "LiteLLMExtractionService",
    "TextExtractionService",
    "parse_extraction_payload",
]
