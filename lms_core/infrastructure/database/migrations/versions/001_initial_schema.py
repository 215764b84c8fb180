# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Initial grading core schema.

Revision ID: 001_initial_schema
Revises: None
Create Date: 2025-01-15

Creates the exams, exam_subscriptions, grades and activity_logs tables.
"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

revision: str = "001_initial_schema"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

JSON_TYPE = sa.JSON().with_variant(postgresql.JSONB(), "postgresql")


def _actor_and_timestamp_columns() -> list[sa.Column]:
    return [
        sa.Column("created_by", sa.String(64), nullable=True),
        sa.Column("updated_by", sa.String(64), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    ]


def upgrade() -> None:
    """Create grading core tables."""
    # ==========================================================================
    # 1. exams table
    # ==========================================================================
    op.create_table(
        "exams",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("tenant_id", sa.String(64), nullable=False),
        sa.Column("course_id", sa.String(64), nullable=False),
        sa.Column("professor_id", sa.String(64), nullable=False),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("description", sa.Text, nullable=True),
        sa.Column("date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("location", sa.String(255), nullable=True),
        sa.Column("max_points", sa.Float, nullable=False),
        sa.Column("passing_points", sa.Float, nullable=False),
        sa.Column("type", sa.String(20), nullable=False, server_default="finishing"),
        sa.Column("subscription_deadline", sa.DateTime(timezone=True), nullable=False),
        sa.Column("is_active", sa.Boolean, nullable=False, server_default=sa.true()),
        *_actor_and_timestamp_columns(),
        sa.CheckConstraint("max_points >= 0", name="ck_exams_max_points_non_negative"),
        sa.CheckConstraint("passing_points >= 0", name="ck_exams_passing_points_non_negative"),
        sa.CheckConstraint("passing_points <= max_points", name="ck_exams_passing_le_max"),
        sa.CheckConstraint("type IN ('preliminary', 'finishing')", name="ck_exams_type"),
    )
    op.create_index("ix_exams_tenant_id", "exams", ["tenant_id"])
    op.create_index("ix_exams_tenant_course", "exams", ["tenant_id", "course_id"])

    # ==========================================================================
    # 2. exam_subscriptions table
    # ==========================================================================
    op.create_table(
        "exam_subscriptions",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("tenant_id", sa.String(64), nullable=False),
        sa.Column("exam_id", sa.String(36), sa.ForeignKey("exams.id"), nullable=False),
        sa.Column("student_id", sa.String(64), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="subscribed"),
        sa.Column("points", sa.Float, nullable=True),
        sa.Column("grade", sa.Integer, nullable=True),
        sa.Column("graded_by", sa.String(64), nullable=True),
        sa.Column("graded_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("comment", sa.Text, nullable=True),
        *_actor_and_timestamp_columns(),
        sa.UniqueConstraint(
            "tenant_id",
            "exam_id",
            "student_id",
            name="uq_exam_subscriptions_tenant_exam_student",
        ),
        sa.CheckConstraint(
            "status IN ('subscribed', 'graded', 'passed', 'failed')",
            name="ck_exam_subscriptions_status",
        ),
        sa.CheckConstraint(
            "status = 'subscribed' OR points IS NOT NULL",
            name="ck_exam_subscriptions_graded_has_points",
        ),
    )
    op.create_index("ix_exam_subscriptions_tenant_id", "exam_subscriptions", ["tenant_id"])
    op.create_index("ix_exam_subscriptions_exam_id", "exam_subscriptions", ["exam_id"])
    op.create_index("ix_exam_subscriptions_student_id", "exam_subscriptions", ["student_id"])

    # ==========================================================================
    # 3. grades table
    # ==========================================================================
    op.create_table(
        "grades",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("tenant_id", sa.String(64), nullable=False),
        sa.Column("student_id", sa.String(64), nullable=False),
        sa.Column("course_id", sa.String(64), nullable=False),
        sa.Column("professor_id", sa.String(64), nullable=False),
        sa.Column("value", sa.Integer, nullable=False),
        sa.Column("attempt", sa.Integer, nullable=False, server_default="1"),
        sa.Column("comment", sa.Text, nullable=True),
        sa.Column("date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("history", JSON_TYPE, nullable=False),
        *_actor_and_timestamp_columns(),
        sa.UniqueConstraint(
            "tenant_id",
            "student_id",
            "course_id",
            "attempt",
            name="uq_grades_tenant_student_course_attempt",
        ),
    )
    op.create_index("ix_grades_tenant_id", "grades", ["tenant_id"])
    op.create_index("ix_grades_student_id", "grades", ["student_id"])
    op.create_index("ix_grades_course_id", "grades", ["course_id"])

    # ==========================================================================
    # 4. activity_logs table
    # ==========================================================================
    op.create_table(
        "activity_logs",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("tenant_id", sa.String(64), nullable=False),
        sa.Column("user_id", sa.String(64), nullable=False),
        sa.Column("action", sa.String(100), nullable=False),
        sa.Column("entity_type", sa.String(50), nullable=False),
        sa.Column("entity_id", sa.String(64), nullable=False),
        sa.Column("changes", JSON_TYPE, nullable=True),
        sa.Column("metadata", JSON_TYPE, nullable=True),
        sa.Column("severity", sa.String(20), nullable=False, server_default="low"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_activity_logs_tenant_id", "activity_logs", ["tenant_id"])
    op.create_index("ix_activity_logs_created_at", "activity_logs", ["created_at"])
    op.create_index("ix_activity_logs_tenant_created", "activity_logs", ["tenant_id", "created_at"])
    op.create_index(
        "ix_activity_logs_tenant_user_created",
        "activity_logs",
        ["tenant_id", "user_id", "created_at"],
    )
    op.create_index(
        "ix_activity_logs_tenant_action_created",
        "activity_logs",
        ["tenant_id", "action", "created_at"],
    )
    op.create_index(
        "ix_activity_logs_tenant_entity",
        "activity_logs",
        ["tenant_id", "entity_type", "entity_id"],
    )


def downgrade() -> None:
    """Drop grading core tables."""
    op.drop_table("activity_logs")
    op.drop_table("grades")
    op.drop_table("exam_subscriptions")
    op.drop_table("exams")
