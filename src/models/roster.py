# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Roster request/response models.

Row models keep every field as loose optional text: rows come from
pastes and extraction and are validated one at a time by the services,
so one bad row never rejects a whole request.
"""

from datetime import date, datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from src.utils.datetime import parse_date


class StudentRow(BaseModel):
    """One student as supplied to an enroll or batch-enroll call."""

    model_config = ConfigDict(extra="ignore", str_strip_whitespace=True)

    email: str | None = Field(default=None, description="Email as typed or pasted")
    first_name: str | None = None
    last_name: str | None = None
    dni: str | None = None
    phone: str | None = None
    birth_date: str | None = Field(default=None, description="ISO or dd/mm/yyyy")

    @field_validator("email", "first_name", "last_name", "dni", "phone", "birth_date", mode="before")
    @classmethod
    def coerce_text(cls, value: object) -> object:
        """Accept numbers from spreadsheet pastes as text."""
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return str(value)
        return value


class ProfileFields(BaseModel):
    """Validated profile fields merged into an Identity.

    Empty strings are dropped to None so they never overwrite stored data.
    """

    model_config = ConfigDict(str_strip_whitespace=True)

    first_name: str | None = None
    last_name: str | None = None
    dni: str | None = None
    phone: str | None = None
    birth_date: date | None = None

    @field_validator("first_name", "last_name", "dni", "phone", mode="before")
    @classmethod
    def blank_to_none(cls, value: object) -> object:
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @field_validator("birth_date", mode="before")
    @classmethod
    def parse_birth_date(cls, value: object) -> object:
        if value is None or isinstance(value, date):
            return value
        return parse_date(str(value))

    @classmethod
    def from_row(cls, row: StudentRow) -> "ProfileFields":
        """Build validated fields from a loose row.

        Raises:
            pydantic.ValidationError: If the birth date cannot be parsed.
        """
        return cls.model_validate(row.model_dump(exclude={"email"}))

    def non_empty(self) -> dict[str, object]:
        """Fields carrying a value, for merge-without-blanking."""
        return {key: value for key, value in self.model_dump().items() if value is not None}


class DraftStudentIn(StudentRow):
    """A draft student record to stage for later matching."""

    address: str | None = None
    city: str | None = None
    country: str | None = None
    file_number: str | None = None
    career: str | None = None
    year: str | None = None
    shift: str | None = None
    commission: str | None = None
    status: str | None = None
    observations: str | None = None

    @field_validator(
        "address",
        "city",
        "country",
        "file_number",
        "career",
        "year",
        "shift",
        "commission",
        "status",
        "observations",
        mode="before",
    )
    @classmethod
    def coerce_draft_text(cls, value: object) -> object:
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return str(value)
        return value


class DraftMatch(BaseModel):
    """A draft record selected for a candidate email."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    course_id: str
    email: str
    first_name: str | None = None
    last_name: str | None = None
    dni: str | None = None
    phone: str | None = None
    birth_date: str | None = None
    address: str | None = None
    city: str | None = None
    country: str | None = None
    file_number: str | None = None
    career: str | None = None
    year: str | None = None
    shift: str | None = None
    commission: str | None = None
    status: str | None = None
    observations: str | None = None
    created_at: datetime
    is_enrolled: bool = False


class DraftCheckResult(BaseModel):
    """Draft matcher output: one match per found email, the rest not found."""

    model_config = ConfigDict(populate_by_name=True)

    found: list[DraftMatch] = Field(default_factory=list)
    not_found: list[str] = Field(default_factory=list, alias="notFound")


class FailedRow(BaseModel):
    """Per-row failure inside a batch call."""

    email: str
    error: str


class BatchEnrollResult(BaseModel):
    """Batch envelope. Callers must inspect ``failed``.

    Attributes:
        success: Normalized emails reconciled successfully.
        failed: Rows that failed, with reasons.
        cancelled: Whether the batch was stopped before the end.
        skipped: Rows not processed because of cancellation.
    """

    success: list[str] = Field(default_factory=list)
    failed: list[FailedRow] = Field(default_factory=list)
    cancelled: bool = False
    skipped: int = 0


class SaveDraftsResult(BaseModel):
    """Outcome of staging draft rows."""

    saved: int = 0
    failed: list[FailedRow] = Field(default_factory=list)


class EnrollRequest(StudentRow):
    """Single enroll request."""

    email: str = Field(..., min_length=1)


class BatchEnrollRequest(BaseModel):
    """Batch enroll request."""

    rows: list[StudentRow] = Field(default_factory=list)


class SaveDraftsRequest(BaseModel):
    """Draft staging request."""

    rows: list[DraftStudentIn] = Field(default_factory=list)


class DraftCheckRequest(BaseModel):
    """Draft matching request."""

    emails: list[str] = Field(default_factory=list)


class EmailRequest(BaseModel):
    """Request naming one person by email (staff enrollment, institution admins)."""

    email: str = Field(..., min_length=1)


class MemberResponse(BaseModel):
    """One enrollment row."""

    model_config = ConfigDict(from_attributes=True)

    course_id: str
    email: str
    role: str
    created_at: datetime


class AccessResponse(BaseModel):
    """Caller's resolved scope on a course."""

    course_id: str
    scope: str


class OperationResult(BaseModel):
    """Result of a single roster mutation."""

    success: bool = True
    email: str
    detail: str | None = None


class ParsedStudent(DraftStudentIn):
    """A student parsed out of pasted text, with the text it came from."""

    original: str = ""


class ExtractDraftsRequest(BaseModel):
    """Free text to run through extraction."""

    text: str = Field(..., min_length=1)


class ExtractDraftsResult(BaseModel):
    """Rows extracted from free text, ready to stage as drafts."""

    rows: list[DraftStudentIn] = Field(default_factory=list)
    chunks: int = 0
    failed_chunks: int = 0
    cancelled: bool = False


class ParsePasteRequest(BaseModel):
    """Pasted text and the shape it is in."""

    text: str
    kind: Literal["emails", "names", "table"] = "emails"


class ParsePasteResponse(BaseModel):
    """Parsed paste: emails for email lists, rows otherwise."""

    emails: list[str] = Field(default_factory=list)
    rows: list[ParsedStudent] = Field(default_factory=list)
