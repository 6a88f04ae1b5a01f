# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Text extraction collaborator.

Turns pasted free text (class lists, spreadsheet dumps, emails) into
candidate student rows. Output is best-effort and untrusted: callers
validate and normalize every row.

LiteLLMExtractionService asks a chat model for a JSON object of the form
{"students": [{"first_name", "last_name", "email", "dni", ...}]}.
"""

import json
import logging
from abc import ABC, abstractmethod
from typing import Any

import litellm
from litellm import acompletion

from src.core.config.settings import ExtractionSettings
from src.core.exceptions import UpstreamError

logger = logging.getLogger(__name__)

SERVICE_NAME = "extraction"

EXTRACTION_PROMPT = """You extract student records from pasted text.
Return a JSON object {"students": [...]} where each student has the keys
first_name, last_name, email, dni, phone, birth_date, career, observations.
Use null for anything missing. Do not invent emails. Return only JSON."""


class TextExtractionService(ABC):
    """Abstract extractor of candidate rows from free text."""

    @abstractmethod
    async def extract_candidates(self, raw_text: str) -> list[dict[str, Any]]:
        """Extract candidate rows.

        Args:
            raw_text: Text as pasted by the user.

        Returns:
            Candidate rows; may be empty or contain malformed entries.

        Raises:
            UpstreamError: If the service fails or answers garbage.
        """
        ...


class LiteLLMExtractionService(TextExtractionService):
    """Extraction through any LiteLLM-supported chat model."""

    def __init__(self, settings: ExtractionSettings) -> None:
        """Initialize the service.

        Args:
            settings: Extraction configuration.
        """
        self._settings = settings
        litellm.drop_params = True

    def _provider_params(self) -> dict[str, Any]:
        params: dict[str, Any] = {}
        if self._settings.api_key:
            params["api_key"] = self._settings.api_key.get_secret_value()
        if self._settings.api_base:
            params["api_base"] = self._settings.api_base
        return params

    async def extract_candidates(self, raw_text: str) -> list[dict[str, Any]]:
        if not raw_text.strip():
            return []

        try:
            response = await acompletion(
                model=self._settings.model,
                messages=[
                    {"role": "system", "content": EXTRACTION_PROMPT},
                    {"role": "user", "content": raw_text},
                ],
                temperature=0,
                response_format={"type": "json_object"},
                timeout=self._settings.timeout,
                **self._provider_params(),
            )
        except Exception as e:
            logger.error(
                "Extraction failed: model=%s, text_length=%d, error=%s",
                self._settings.model,
                len(raw_text),
                str(e),
            )
            raise UpstreamError(f"Extraction failed: {e}", SERVICE_NAME) from e

        content = response.choices[0].message.content or ""
        return parse_extraction_payload(content)


def parse_extraction_payload(content: str) -> list[dict[str, Any]]:
    """Decode the model's JSON answer into a list of row dicts.

    Accepts either {"students": [...]} or a bare list. Non-dict entries
    are dropped.

    Raises:
        UpstreamError: If the answer is not JSON.
    """
    text = content.strip()
    if text.startswith("```"):
        text = text.strip("`")
        if text.startswith("json"):
            text = text[4:]

    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise UpstreamError("Extraction returned invalid JSON", SERVICE_NAME) from e

    if isinstance(data, dict):
        data = data.get("students", [])
    if not isinstance(data, list):
        return []
    return [row for row in data if isinstance(row, dict)]
