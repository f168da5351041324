"""add job check-ins, tasks and job events

Revision ID: 8b02d6e41f9a
Revises: 3f1c2a9d8e47
Create Date: 2026-09-14 09:40:03.118742
"""

from __future__ import annotations

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

revision: str = "8b02d6e41f9a"
down_revision: Union[str, Sequence[str], None] = "3f1c2a9d8e47"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

JSONType = sa.JSON().with_variant(postgresql.JSONB(astext_type=sa.Text()), "postgresql")


def upgrade() -> None:
    op.create_table(
        "job_check_ins",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("company_id", sa.Integer(), nullable=False),
        sa.Column("job_id", sa.Integer(), sa.ForeignKey("jobs.id", ondelete="CASCADE"), nullable=False),
        sa.Column("employee_id", sa.Integer(), sa.ForeignKey("employees.id", ondelete="CASCADE"), nullable=False),
        sa.Column("type", sa.String(length=20), nullable=False),
        sa.Column("latitude", sa.Float(), nullable=False),
        sa.Column("longitude", sa.Float(), nullable=False),
        sa.Column("location_accuracy", sa.Float(), nullable=True),
        sa.Column("captured_address", sa.Text(), nullable=True),
        sa.Column("distance_from_job_site", sa.Float(), nullable=True),
        sa.Column("is_within_range", sa.Boolean(), nullable=False),
        sa.Column("device_type", sa.String(length=100), nullable=True),
        sa.Column("device_model", sa.String(length=255), nullable=True),
        sa.Column("user_agent", sa.Text(), nullable=True),
        sa.Column("checked_at", sa.DateTime(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        # One check-in and one check-out per employee per job.
        sa.UniqueConstraint("job_id", "employee_id", "type", name="uq_job_check_ins_once"),
    )
    op.create_index(op.f("ix_job_check_ins_id"), "job_check_ins", ["id"], unique=False)
    op.create_index(op.f("ix_job_check_ins_company_id"), "job_check_ins", ["company_id"], unique=False)
    op.create_index(op.f("ix_job_check_ins_job_id"), "job_check_ins", ["job_id"], unique=False)
    op.create_index(op.f("ix_job_check_ins_employee_id"), "job_check_ins", ["employee_id"], unique=False)
    op.create_index(op.f("ix_job_check_ins_checked_at"), "job_check_ins", ["checked_at"], unique=False)

    op.create_table(
        "job_tasks",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("job_id", sa.Integer(), sa.ForeignKey("jobs.id", ondelete="CASCADE"), nullable=False),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("status", sa.String(length=50), nullable=False),
        sa.Column("sort_order", sa.Integer(), nullable=False),
        sa.Column("completed_by", sa.Integer(), sa.ForeignKey("employees.id", ondelete="SET NULL"), nullable=True),
        sa.Column("completed_at", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index(op.f("ix_job_tasks_id"), "job_tasks", ["id"], unique=False)
    op.create_index(op.f("ix_job_tasks_job_id"), "job_tasks", ["job_id"], unique=False)

    op.create_table(
        "job_events",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("company_id", sa.Integer(), nullable=False),
        sa.Column("job_id", sa.Integer(), sa.ForeignKey("jobs.id", ondelete="CASCADE"), nullable=False),
        sa.Column("actor_id", sa.Integer(), sa.ForeignKey("employees.id", ondelete="SET NULL"), nullable=True),
        sa.Column("type", sa.String(length=100), nullable=False),
        sa.Column("message", sa.Text(), nullable=True),
        sa.Column("meta", JSONType, nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index(op.f("ix_job_events_id"), "job_events", ["id"], unique=False)
    op.create_index(op.f("ix_job_events_company_id"), "job_events", ["company_id"], unique=False)
    op.create_index(op.f("ix_job_events_job_id"), "job_events", ["job_id"], unique=False)


def downgrade() -> None:
    op.drop_table("job_events")
    op.drop_table("job_tasks")
    op.drop_table("job_check_ins")
