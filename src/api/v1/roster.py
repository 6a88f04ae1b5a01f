# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Roster API endpoints.

Course endpoints:
- GET /courses/{course_id}/access - Caller's scope on the course
- GET /courses/{course_id}/members - List enrollments
- POST /courses/{course_id}/students - Enroll a student
- DELETE /courses/{course_id}/students/{email} - Remove a student
- POST /courses/{course_id}/students/batch - Batch enroll students
- POST /courses/{course_id}/teachers - Enroll a teacher
- DELETE /courses/{course_id}/teachers/{email} - Remove a teacher
- POST /courses/{course_id}/nodocentes - Enroll non-teaching staff
- DELETE /courses/{course_id}/nodocentes/{email} - Remove non-teaching staff

Draft endpoints:
- POST /courses/{course_id}/drafts - Stage draft students
- POST /courses/{course_id}/drafts/check - Match emails against drafts
- POST /courses/{course_id}/drafts/extract - Extract drafts from free text

Institution endpoints:
- POST /institutions/{institution_id}/admins - Assign an institution admin
- DELETE /institutions/{institution_id}/admins/{email} - Remove an institution admin

Import endpoints:
- POST /imports/parse - Parse a pasted list without touching storage

Batch calls answer 200 even when rows fail; clients must read ``failed``.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query, status

from src.api.dependencies import (
    get_import_service,
    get_institution_service,
    get_roster_service,
    require_principal,
)
from src.core.exceptions import (
    AuthorizationError,
    InvalidRowError,
    NotFoundError,
    RosterError,
    UpstreamError,
)
from src.domains.institution import InstitutionAdminService
from src.domains.permission import STUDENT_MANAGERS
from src.domains.roster import ReconcileOutcome, RosterService
from src.domains.roster_import import (
    ImportService,
    parse_email_list,
    parse_name_list,
    parse_table_paste,
)
from src.infrastructure.identity_provider import Principal
from src.models.roster import (
    AccessResponse,
    BatchEnrollRequest,
    BatchEnrollResult,
    DraftCheckRequest,
    DraftCheckResult,
    EmailRequest,
    EnrollRequest,
    ExtractDraftsRequest,
    ExtractDraftsResult,
    MemberResponse,
    OperationResult,
    ParsePasteRequest,
    ParsePasteResponse,
    SaveDraftsRequest,
    SaveDraftsResult,
)
from src.utils.email import normalize_email
from src.utils.logging import bind_context, get_logger

logger = get_logger(__name__)

router = APIRouter()


def _to_http(error: RosterError) -> HTTPException:
    """Map a roster error to its HTTP status."""
    if isinstance(error, AuthorizationError):
        code = status.HTTP_403_FORBIDDEN
    elif isinstance(error, NotFoundError):
        code = status.HTTP_404_NOT_FOUND
    elif isinstance(error, InvalidRowError):
        code = status.HTTP_422_UNPROCESSABLE_ENTITY
    elif isinstance(error, UpstreamError):
        code = status.HTTP_502_BAD_GATEWAY
    else:
        code = status.HTTP_500_INTERNAL_SERVER_ERROR
    return HTTPException(status_code=code, detail=error.message)


def _enrolled(outcome: ReconcileOutcome) -> OperationResult:
    return OperationResult(
        email=outcome.email,
        detail="enrolled" if outcome.enrolled else "already enrolled",
    )


def _removed(email: str, deleted: int) -> OperationResult:
    return OperationResult(
        email=normalize_email(email),
        detail="removed" if deleted else "not enrolled",
    )


# =============================================================================
# Access and members
# =============================================================================


@router.get(
    "/courses/{course_id}/access",
    response_model=AccessResponse,
    summary="Resolve access",
    description="Resolve the caller's scope on a course.",
)
async def get_access(
    course_id: str,
    principal: Principal = Depends(require_principal),
    service: RosterService = Depends(get_roster_service),
) -> AccessResponse:
    """Return the caller's scope (none when they have no access)."""
    bind_context(course_id=course_id)
    try:
        scope = await service.get_access(course_id, principal)
    except RosterError as e:
        raise _to_http(e) from e
    return AccessResponse(course_id=course_id, scope=scope.value)


@router.get(
    "/courses/{course_id}/members",
    response_model=list[MemberResponse],
    summary="List members",
    description="List enrollments of a course, optionally filtered by role.",
)
async def list_members(
    course_id: str,
    role: Annotated[list[str] | None, Query(description="Filter by role")] = None,
    principal: Principal = Depends(require_principal),
    service: RosterService = Depends(get_roster_service),
) -> list[MemberResponse]:
    """List course members."""
    bind_context(course_id=course_id)
    try:
        members = await service.list_course_members(course_id, principal, role)
    except RosterError as e:
        raise _to_http(e) from e
    return [MemberResponse.model_validate(member) for member in members]


# =============================================================================
# Students
# =============================================================================


@router.post(
    "/courses/{course_id}/students",
    response_model=OperationResult,
    summary="Enroll student",
    description="Enroll one student. Re-enrolling is a no-op.",
)
async def enroll_student(
    course_id: str,
    data: EnrollRequest,
    principal: Principal = Depends(require_principal),
    service: RosterService = Depends(get_roster_service),
) -> OperationResult:
    """Enroll a student, creating the identity if needed."""
    bind_context(course_id=course_id)
    try:
        outcome = await service.enroll_student(course_id, data.email, principal, profile=data)
    except RosterError as e:
        raise _to_http(e) from e
    return _enrolled(outcome)


@router.delete(
    "/courses/{course_id}/students/{email}",
    response_model=OperationResult,
    summary="Remove student",
)
async def remove_student(
    course_id: str,
    email: str,
    principal: Principal = Depends(require_principal),
    service: RosterService = Depends(get_roster_service),
) -> OperationResult:
    """Remove a student enrollment. The identity keeps its roles."""
    bind_context(course_id=course_id)
    try:
        deleted = await service.remove_student(course_id, email, principal)
    except RosterError as e:
        raise _to_http(e) from e
    return _removed(email, deleted)


@router.post(
    "/courses/{course_id}/students/batch",
    response_model=BatchEnrollResult,
    summary="Batch enroll students",
    description="Enroll many students. Per-row failures are listed in 'failed'.",
)
async def batch_enroll(
    course_id: str,
    data: BatchEnrollRequest,
    use_drafts: Annotated[bool, Query(description="Fill missing fields from drafts")] = True,
    principal: Principal = Depends(require_principal),
    service: RosterService = Depends(get_roster_service),
) -> BatchEnrollResult:
    """Batch enroll students."""
    bind_context(course_id=course_id)
    logger.info("Batch enroll requested", rows=len(data.rows), use_drafts=use_drafts)
    try:
        return await service.batch_enroll(course_id, data.rows, principal, use_drafts=use_drafts)
    except RosterError as e:
        raise _to_http(e) from e


# =============================================================================
# Staff
# =============================================================================


@router.post(
    "/courses/{course_id}/teachers",
    response_model=OperationResult,
    summary="Enroll teacher",
    description="Requires institution admin or platform admin scope.",
)
async def enroll_teacher(
    course_id: str,
    data: EmailRequest,
    principal: Principal = Depends(require_principal),
    service: RosterService = Depends(get_roster_service),
) -> OperationResult:
    """Enroll a teacher."""
    bind_context(course_id=course_id)
    try:
        outcome = await service.enroll_teacher(course_id, data.email, principal)
    except RosterError as e:
        raise _to_http(e) from e
    return _enrolled(outcome)


@router.delete(
    "/courses/{course_id}/teachers/{email}",
    response_model=OperationResult,
    summary="Remove teacher",
)
async def remove_teacher(
    course_id: str,
    email: str,
    principal: Principal = Depends(require_principal),
    service: RosterService = Depends(get_roster_service),
) -> OperationResult:
    """Remove a teacher enrollment."""
    bind_context(course_id=course_id)
    try:
        deleted = await service.remove_teacher(course_id, email, principal)
    except RosterError as e:
        raise _to_http(e) from e
    return _removed(email, deleted)


@router.post(
    "/courses/{course_id}/nodocentes",
    response_model=OperationResult,
    summary="Enroll non-teaching staff",
    description="Requires institution admin or platform admin scope.",
)
async def enroll_nodocente(
    course_id: str,
    data: EmailRequest,
    principal: Principal = Depends(require_principal),
    service: RosterService = Depends(get_roster_service),
) -> OperationResult:
    """Enroll non-teaching staff."""
    bind_context(course_id=course_id)
    try:
        outcome = await service.enroll_nodocente(course_id, data.email, principal)
    except RosterError as e:
        raise _to_http(e) from e
    return _enrolled(outcome)


@router.delete(
    "/courses/{course_id}/nodocentes/{email}",
    response_model=OperationResult,
    summary="Remove non-teaching staff",
)
async def remove_nodocente(
    course_id: str,
    email: str,
    principal: Principal = Depends(require_principal),
    service: RosterService = Depends(get_roster_service),
) -> OperationResult:
    """Remove a nodocente enrollment."""
    bind_context(course_id=course_id)
    try:
        deleted = await service.remove_nodocente(course_id, email, principal)
    except RosterError as e:
        raise _to_http(e) from e
    return _removed(email, deleted)


# =============================================================================
# Drafts
# =============================================================================


@router.post(
    "/courses/{course_id}/drafts",
    response_model=SaveDraftsResult,
    summary="Stage drafts",
    description="Upsert draft students keyed on course and email.",
)
async def save_drafts(
    course_id: str,
    data: SaveDraftsRequest,
    principal: Principal = Depends(require_principal),
    service: RosterService = Depends(get_roster_service),
) -> SaveDraftsResult:
    """Stage draft students."""
    bind_context(course_id=course_id)
    try:
        return await service.save_drafts(course_id, data.rows, principal)
    except RosterError as e:
        raise _to_http(e) from e


@router.post(
    "/courses/{course_id}/drafts/check",
    response_model=DraftCheckResult,
    summary="Match drafts",
    description="Find the best draft per email, searching drafts of every course.",
)
async def check_drafts(
    course_id: str,
    data: DraftCheckRequest,
    principal: Principal = Depends(require_principal),
    service: RosterService = Depends(get_roster_service),
) -> DraftCheckResult:
    """Match candidate emails against drafts."""
    bind_context(course_id=course_id)
    try:
        return await service.check_drafts(course_id, data.emails, principal)
    except RosterError as e:
        raise _to_http(e) from e


@router.post(
    "/courses/{course_id}/drafts/extract",
    response_model=ExtractDraftsResult,
    summary="Extract drafts",
    description="Extract draft students from free text, optionally staging them.",
)
async def extract_drafts(
    course_id: str,
    data: ExtractDraftsRequest,
    save: Annotated[bool, Query(description="Stage extracted rows as drafts")] = False,
    principal: Principal = Depends(require_principal),
    service: RosterService = Depends(get_roster_service),
    importer: ImportService = Depends(get_import_service),
) -> ExtractDraftsResult:
    """Run chunked extraction and optionally save the rows."""
    bind_context(course_id=course_id)
    try:
        await service.gate.require(course_id, principal.email, STUDENT_MANAGERS)
        result = await importer.extract_drafts(data.text)
        if save and result.rows:
            await service.save_drafts(course_id, result.rows, principal)
    except RosterError as e:
        raise _to_http(e) from e
    return result


# =============================================================================
# Institutions
# =============================================================================


@router.post(
    "/institutions/{institution_id}/admins",
    response_model=OperationResult,
    summary="Assign institution admin",
    description="Requires platform admin scope.",
)
async def assign_institution_admin(
    institution_id: str,
    data: EmailRequest,
    principal: Principal = Depends(require_principal),
    service: InstitutionAdminService = Depends(get_institution_service),
) -> OperationResult:
    """Grant institution admin."""
    bind_context(institution_id=institution_id)
    try:
        inserted = await service.assign_admin(institution_id, data.email, principal)
    except RosterError as e:
        raise _to_http(e) from e
    return OperationResult(
        email=normalize_email(data.email),
        detail="assigned" if inserted else "already assigned",
    )


@router.delete(
    "/institutions/{institution_id}/admins/{email}",
    response_model=OperationResult,
    summary="Remove institution admin",
    description="Requires platform admin scope.",
)
async def remove_institution_admin(
    institution_id: str,
    email: str,
    principal: Principal = Depends(require_principal),
    service: InstitutionAdminService = Depends(get_institution_service),
) -> OperationResult:
    """Revoke institution admin; the role is pruned when no grant remains."""
    bind_context(institution_id=institution_id)
    try:
        pruned = await service.remove_admin(institution_id, email, principal)
    except RosterError as e:
        raise _to_http(e) from e
    return OperationResult(
        email=normalize_email(email),
        detail="removed, role pruned" if pruned else "removed",
    )


# =============================================================================
# Imports
# =============================================================================


@router.post(
    "/imports/parse",
    response_model=ParsePasteResponse,
    summary="Parse pasted list",
)
async def parse_paste(
    data: ParsePasteRequest,
    principal: Principal = Depends(require_principal),
) -> ParsePasteResponse:
    """Parse an email list, a name list or a table paste."""
    if data.kind == "emails":
        return ParsePasteResponse(emails=parse_email_list(data.text))
    if data.kind == "names":
        rows = parse_name_list(data.text)
    else:
        rows = parse_table_paste(data.text)
    return ParsePasteResponse(
        emails=[normalize_email(row.email) for row in rows if row.email],
        rows=rows,
    )
