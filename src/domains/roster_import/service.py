# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Chunked extraction of draft rows from free text.

Long pastes are sent to the extraction service in chunks of
``chunk_lines`` lines. A failing chunk is logged and skipped; the rest
still run. Extracted rows are untrusted: each is validated, its email
normalized, and rows without a usable email dropped.
"""

import asyncio
import logging
from typing import Any

from pydantic import ValidationError

from src.core.config.settings import ExtractionSettings
from src.core.exceptions import UpstreamError
from src.infrastructure.extraction import TextExtractionService
from src.models.roster import DraftStudentIn, ExtractDraftsResult
from src.utils.email import normalize_email

logger = logging.getLogger(__name__)


def chunk_lines(text: str, size: int) -> list[str]:
    """Split text into chunks of at most ``size`` lines."""
    lines = text.split("\n")
    return ["\n".join(lines[i : i + size]) for i in range(0, len(lines), max(size, 1))]


def clean_candidate(candidate: dict[str, Any]) -> DraftStudentIn | None:
    """Validate one extracted row; None when unusable."""
    try:
        row = DraftStudentIn.model_validate(candidate)
    except ValidationError:
        return None
    email = normalize_email(row.email)
    if not email or "@" not in email:
        return None
    return row.model_copy(update={"email": email})


class ImportService:
    """Turns pasted text into draft rows through the extraction service."""

    def __init__(self, extractor: TextExtractionService, settings: ExtractionSettings) -> None:
        self._extractor = extractor
        self._chunk_lines = settings.chunk_lines

    async def extract_drafts(self, text: str, cancel_event: asyncio.Event | None = None) -> ExtractDraftsResult:
        """Extract draft rows chunk by chunk.

        Args:
            text: Pasted text.
            cancel_event: Stops before the next chunk when set; rows already
                extracted are kept.

        Returns:
            Rows (deduplicated by email, first seen wins) and chunk counters.
        """
        result = ExtractDraftsResult()
        seen: set[str] = set()

        for chunk in chunk_lines(text, self._chunk_lines):
            if cancel_event is not None and cancel_event.is_set():
                result.cancelled = True
                logger.info("Extraction cancelled after %d chunks", result.chunks)
                break
            if not chunk.strip():
                continue

            result.chunks += 1
            try:
                candidates = await self._extractor.extract_candidates(chunk)
            except UpstreamError as e:
                result.failed_chunks += 1
                logger.error("Extraction chunk failed: chunk=%d, error=%s", result.chunks, str(e))
                continue

            for candidate in candidates:
                row = clean_candidate(candidate)
                if row is None or row.email in seen:
                    continue
                seen.add(row.email)
                result.rows.append(row)

        logger.info(
            "Extraction finished: chunks=%d, failed=%d, rows=%d",
            result.chunks,
            result.failed_chunks,
            len(result.rows),
        )
        return result
