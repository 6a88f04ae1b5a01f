# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Pydantic models for API requests and responses."""

from src.models.roster import (
    AccessResponse,
    BatchEnrollRequest,
    BatchEnrollResult,
    DraftCheckRequest,
    DraftCheckResult,
    DraftMatch,
    DraftStudentIn,
    EnrollRequest,
    ExtractDraftsRequest,
    ExtractDraftsResult,
    FailedRow,
    EmailRequest,
    MemberResponse,
    OperationResult,
    ParsePasteRequest,
    ParsePasteResponse,
    ParsedStudent,
    ProfileFields,
    SaveDraftsRequest,
    SaveDraftsResult,
    StudentRow,
)

__all__ = [
    "AccessResponse",
    "BatchEnrollRequest",
    "BatchEnrollResult",
    "DraftCheckRequest",
    "DraftCheckResult",
    "DraftMatch",
    "DraftStudentIn",
    "EnrollRequest",
    "ExtractDraftsRequest",
    "ExtractDraftsResult",
    "FailedRow",
    "EmailRequest",
    "MemberResponse",
    "OperationResult",
    "ParsePasteRequest",
    "ParsePasteResponse",
    "ParsedStudent",
    "ProfileFields",
    "SaveDraftsRequest",
    "SaveDraftsResult",
    "StudentRow",
]
