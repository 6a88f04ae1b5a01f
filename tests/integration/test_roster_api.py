# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Integration tests for Roster API endpoints."""

from datetime import datetime, timezone
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from src.api.dependencies import (
    get_identity_provider,
    get_import_service,
    get_institution_service,
    get_roster_service,
    require_principal,
)
from src.api.v1 import router as v1_router
from src.core.exceptions import (
    AuthorizationError,
    CourseNotFoundError,
    InvalidRowError,
    UpstreamError,
)
from src.domains.permission import AccessScope
from src.domains.roster import ReconcileOutcome
from src.infrastructure.identity_provider import Principal
from src.models.roster import BatchEnrollResult, ExtractDraftsResult, FailedRow


@pytest.fixture
def roster_service():
    """Mock roster service."""
    service = MagicMock()
    service.gate = MagicMock()
    service.gate.require = AsyncMock()
    return service


@pytest.fixture
def institution_service():
    """Mock institution admin service."""
    return MagicMock()


@pytest.fixture
def import_service():
    """Mock import service."""
    return MagicMock()


@pytest.fixture
def app(roster_service, institution_service, import_service):
    """Create test FastAPI app with an authenticated caller."""
    app = FastAPI()
    app.include_router(v1_router)
    app.dependency_overrides[require_principal] = lambda: Principal(email="profe@x.com")
    app.dependency_overrides[get_roster_service] = lambda: roster_service
    app.dependency_overrides[get_institution_service] = lambda: institution_service
    app.dependency_overrides[get_import_service] = lambda: import_service
    return app


@pytest.fixture
def client(app):
    """Create test client."""
    return TestClient(app)


class TestRosterAPIRouting:
    """Tests for roster API routing."""

    def test_routes_registered(self, app):
        """Test that roster routes are registered."""
        routes = [route.path for route in app.routes]

        assert "/api/v1/courses/{course_id}/access" in routes
        assert "/api/v1/courses/{course_id}/members" in routes
        assert "/api/v1/courses/{course_id}/students" in routes
        assert "/api/v1/courses/{course_id}/students/{email}" in routes
        assert "/api/v1/courses/{course_id}/students/batch" in routes
        assert "/api/v1/courses/{course_id}/teachers" in routes
        assert "/api/v1/courses/{course_id}/nodocentes/{email}" in routes
        assert "/api/v1/courses/{course_id}/drafts/check" in routes
        assert "/api/v1/courses/{course_id}/drafts/extract" in routes
        assert "/api/v1/institutions/{institution_id}/admins" in routes
        assert "/api/v1/imports/parse" in routes


class TestAuthentication:
    """Tests for principal resolution."""

    def test_missing_token_is_401(self):
        """Test an unresolved token is rejected before any service runs."""
        provider = MagicMock()
        provider.get_current_principal = AsyncMock(return_value=None)
        app = FastAPI()
        app.include_router(v1_router)
        app.dependency_overrides[get_identity_provider] = lambda: provider
        app.dependency_overrides[get_roster_service] = MagicMock

        response = TestClient(app).get("/api/v1/courses/course-a/access")

        assert response.status_code == 401

    def test_provider_failure_is_502(self):
        provider = MagicMock()
        provider.get_current_principal = AsyncMock(side_effect=UpstreamError("down", "identity_provider"))
        app = FastAPI()
        app.include_router(v1_router)
        app.dependency_overrides[get_identity_provider] = lambda: provider
        app.dependency_overrides[get_roster_service] = MagicMock

        response = TestClient(app).get(
            "/api/v1/courses/course-a/access",
            headers={"Authorization": "Bearer token"},
        )

        assert response.status_code == 502


class TestStudentEndpoints:
    """Tests for student endpoints."""

    def test_enroll_student(self, client, roster_service):
        roster_service.enroll_student = AsyncMock(
            return_value=ReconcileOutcome(email="ana@x.com", role="estudiante", enrolled=True)
        )

        response = client.post(
            "/api/v1/courses/course-a/students",
            json={"email": "Ana@X.com", "first_name": "Ana"},
        )

        assert response.status_code == 200
        assert response.json() == {"success": True, "email": "ana@x.com", "detail": "enrolled"}
        args = roster_service.enroll_student.call_args
        assert args.args[0] == "course-a"
        assert args.kwargs["profile"].first_name == "Ana"

    @pytest.mark.parametrize(
        "error, expected",
        [
            (AuthorizationError("Not allowed to manage this course"), 403),
            (CourseNotFoundError("Course course-a not found"), 404),
            (InvalidRowError("Missing or invalid email"), 422),
            (UpstreamError("Account creation rejected", "identity_provider", 422), 502),
        ],
    )
    def test_error_mapping(self, client, roster_service, error, expected):
        roster_service.enroll_student = AsyncMock(side_effect=error)

        response = client.post("/api/v1/courses/course-a/students", json={"email": "ana@x.com"})

        assert response.status_code == expected
        assert response.json()["detail"] == error.message

    def test_remove_student(self, client, roster_service):
        roster_service.remove_student = AsyncMock(return_value=0)

        response = client.delete("/api/v1/courses/course-a/students/Ana@X.com")

        assert response.status_code == 200
        assert response.json()["detail"] == "not enrolled"

    def test_batch_reports_failures_with_200(self, client, roster_service):
        roster_service.batch_enroll = AsyncMock(
            return_value=BatchEnrollResult(
                success=["ana@x.com"],
                failed=[FailedRow(email="", error="Missing or invalid email")],
            )
        )

        response = client.post(
            "/api/v1/courses/course-a/students/batch",
            json={"rows": [{"email": "ana@x.com"}, {"first_name": "Sin Email"}]},
        )

        assert response.status_code == 200
        body = response.json()
        assert body["success"] == ["ana@x.com"]
        assert body["failed"][0]["error"] == "Missing or invalid email"
        assert roster_service.batch_enroll.call_args.kwargs["use_drafts"] is True


class TestAccessAndMembers:
    """Tests for access and member listing."""

    def test_access(self, client, roster_service):
        roster_service.get_access = AsyncMock(return_value=AccessScope.NONE)

        response = client.get("/api/v1/courses/course-a/access")

        assert response.status_code == 200
        assert response.json() == {"course_id": "course-a", "scope": "none"}

    def test_members_filtered_by_role(self, client, roster_service):
        roster_service.list_course_members = AsyncMock(
            return_value=[
                SimpleNamespace(
                    course_id="course-a",
                    email="profe@x.com",
                    role="docente",
                    created_at=datetime(2025, 3, 1, tzinfo=timezone.utc),
                )
            ]
        )

        response = client.get("/api/v1/courses/course-a/members?role=docente")

        assert response.status_code == 200
        assert response.json()[0]["email"] == "profe@x.com"
        assert roster_service.list_course_members.call_args.args[2] == ["docente"]


class TestDraftEndpoints:
    """Tests for draft endpoints."""

    def test_extract_checks_access_before_extracting(self, client, roster_service, import_service):
        roster_service.gate.require = AsyncMock(side_effect=AuthorizationError("Not allowed to manage this course"))
        import_service.extract_drafts = AsyncMock()

        response = client.post("/api/v1/courses/course-a/drafts/extract", json={"text": "Ana ana@x.com"})

        assert response.status_code == 403
        import_service.extract_drafts.assert_not_called()

    def test_extract_and_save(self, client, roster_service, import_service):
        import_service.extract_drafts = AsyncMock(
            return_value=ExtractDraftsResult(rows=[{"email": "ana@x.com"}], chunks=1)
        )
        roster_service.save_drafts = AsyncMock()

        response = client.post(
            "/api/v1/courses/course-a/drafts/extract?save=true",
            json={"text": "Ana ana@x.com"},
        )

        assert response.status_code == 200
        assert response.json()["rows"][0]["email"] == "ana@x.com"
        roster_service.save_drafts.assert_awaited_once()


class TestInstitutionEndpoints:
    """Tests for institution admin endpoints."""

    def test_assign_requires_platform_admin(self, client, institution_service):
        institution_service.assign_admin = AsyncMock(
            side_effect=AuthorizationError("Platform administrator role required")
        )

        response = client.post("/api/v1/institutions/inst-1/admins", json={"email": "dir@x.com"})

        assert response.status_code == 403

    def test_remove_reports_prune(self, client, institution_service):
        institution_service.remove_admin = AsyncMock(return_value=True)

        response = client.delete("/api/v1/institutions/inst-1/admins/dir@x.com")

        assert response.status_code == 200
        assert response.json()["detail"] == "removed, role pruned"


class TestImportEndpoints:
    """Tests for paste parsing."""

    def test_parse_emails(self, client):
        response = client.post(
            "/api/v1/imports/parse",
            json={"kind": "emails", "text": "Ana@X.com, beto@x.com\nnot-an-email"},
        )

        assert response.status_code == 200
        assert response.json()["emails"] == ["ana@x.com", "beto@x.com"]
