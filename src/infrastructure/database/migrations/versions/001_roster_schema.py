# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Initial roster schema.

Revision ID: 001_roster_schema
Revises: None
Create Date: 2025-11-03

This migration creates all roster tables based on the SQLAlchemy models
in src/infrastructure/database/models/roster.py.
"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

revision: str = "001_roster_schema"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
    ]


def _profile_fields() -> list[sa.Column]:
    return [
        sa.Column("first_name", sa.String(255), nullable=True),
        sa.Column("last_name", sa.String(255), nullable=True),
        sa.Column("dni", sa.String(50), nullable=True),
        sa.Column("phone", sa.String(50), nullable=True),
        sa.Column("birth_date", sa.Date, nullable=True),
    ]


def upgrade() -> None:
    """Create roster tables."""
    # ==========================================================================
    # 1. institutions / courses
    # ==========================================================================
    op.create_table(
        "institutions",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
    )

    op.create_table(
        "courses",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column(
            "institution_id",
            sa.String(36),
            sa.ForeignKey("institutions.id", ondelete="CASCADE"),
            nullable=True,
        ),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
    )
    op.create_index("ix_courses_institution_id", "courses", ["institution_id"])

    # ==========================================================================
    # 2. whitelist / profiles (Identity)
    # ==========================================================================
    op.create_table(
        "whitelist",
        sa.Column("email", sa.String(320), primary_key=True),
        sa.Column("roles", postgresql.JSONB, nullable=False, server_default="[]"),
        sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
        *_profile_fields(),
        *_timestamps(),
    )

    op.create_table(
        "profiles",
        sa.Column("id", sa.String(64), primary_key=True),
        sa.Column("email", sa.String(320), nullable=False, unique=True),
        sa.Column("roles", postgresql.JSONB, nullable=False, server_default="[]"),
        sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
        *_profile_fields(),
        *_timestamps(),
    )

    # ==========================================================================
    # 3. draft_students
    # ==========================================================================
    op.create_table(
        "draft_students",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("course_id", sa.String(36), nullable=False),
        sa.Column("email", sa.String(320), nullable=False),
        sa.Column("email_key", sa.String(320), nullable=False),
        sa.Column("first_name", sa.String(255), nullable=True),
        sa.Column("last_name", sa.String(255), nullable=True),
        sa.Column("dni", sa.String(50), nullable=True),
        sa.Column("phone", sa.String(50), nullable=True),
        sa.Column("birth_date", sa.String(32), nullable=True),
        sa.Column("address", sa.String(255), nullable=True),
        sa.Column("city", sa.String(120), nullable=True),
        sa.Column("country", sa.String(120), nullable=True),
        sa.Column("file_number", sa.String(50), nullable=True),
        sa.Column("career", sa.String(255), nullable=True),
        sa.Column("year", sa.String(20), nullable=True),
        sa.Column("shift", sa.String(50), nullable=True),
        sa.Column("commission", sa.String(50), nullable=True),
        sa.Column("status", sa.String(50), nullable=True),
        sa.Column("observations", sa.Text, nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("course_id", "email", name="uq_draft_students_course_email"),
    )
    op.create_index("ix_draft_students_email_key", "draft_students", ["email_key"])

    # ==========================================================================
    # 4. course_enrollments
    # ==========================================================================
    op.create_table(
        "course_enrollments",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column(
            "course_id",
            sa.String(36),
            sa.ForeignKey("courses.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("email", sa.String(320), nullable=False),
        sa.Column("role", sa.String(50), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.UniqueConstraint("course_id", "email", name="uq_course_enrollments_course_email"),
    )
    op.create_index("ix_course_enrollments_email", "course_enrollments", ["email"])

    # ==========================================================================
    # 5. institution_roles
    # ==========================================================================
    op.create_table(
        "institution_roles",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column(
            "institution_id",
            sa.String(36),
            sa.ForeignKey("institutions.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("email", sa.String(320), nullable=False),
        sa.Column("role", sa.String(50), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.UniqueConstraint("institution_id", "email", "role", name="uq_institution_roles_grant"),
    )
    op.create_index("ix_institution_roles_email", "institution_roles", ["email"])


def downgrade() -> None:
    """Drop roster tables."""
    op.drop_table("institution_roles")
    op.drop_table("course_enrollments")
    op.drop_table("draft_students")
    op.drop_table("profiles")
    op.drop_table("whitelist")
    op.drop_table("courses")
    op.drop_table("institutions")
