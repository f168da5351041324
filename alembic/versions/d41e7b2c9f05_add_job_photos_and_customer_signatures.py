"""add job photos and customer signatures

Revision ID: d41e7b2c9f05
Revises: 95488ac353c6
Create Date: 2026-10-18 09:12:41.508233
"""

from __future__ import annotations

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

revision: str = "d41e7b2c9f05"
down_revision: Union[str, Sequence[str], None] = "95488ac353c6"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "job_photos",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("company_id", sa.Integer(), nullable=False),
        sa.Column("job_id", sa.Integer(), sa.ForeignKey("jobs.id", ondelete="CASCADE"), nullable=False),
        sa.Column("task_id", sa.Integer(), sa.ForeignKey("job_tasks.id", ondelete="CASCADE"), nullable=True),
        sa.Column("employee_id", sa.Integer(), sa.ForeignKey("employees.id", ondelete="CASCADE"), nullable=False),
        sa.Column("file_name", sa.String(length=255), nullable=False),
        sa.Column("original_name", sa.String(length=255), nullable=False),
        sa.Column("storage_key", sa.String(length=500), nullable=False),
        sa.Column("mime_type", sa.String(length=100), nullable=False),
        sa.Column("size_bytes", sa.Integer(), nullable=False),
        sa.Column("latitude", sa.Float(), nullable=True),
        sa.Column("longitude", sa.Float(), nullable=True),
        sa.Column("location_accuracy", sa.Float(), nullable=True),
        sa.Column("captured_address", sa.Text(), nullable=True),
        sa.Column("distance_from_job_site", sa.Float(), nullable=True),
        sa.Column("device_type", sa.String(length=100), nullable=True),
        sa.Column("device_model", sa.String(length=255), nullable=True),
        sa.Column("user_agent", sa.Text(), nullable=True),
        sa.Column("verification_status", sa.String(length=50), nullable=False),
        sa.Column("caption", sa.Text(), nullable=True),
        sa.Column("captured_at", sa.DateTime(), nullable=False),
        sa.Column("uploaded_at", sa.DateTime(), nullable=False),
    )
    op.create_index(op.f("ix_job_photos_id"), "job_photos", ["id"], unique=False)
    op.create_index(op.f("ix_job_photos_company_id"), "job_photos", ["company_id"], unique=False)
    op.create_index(op.f("ix_job_photos_job_id"), "job_photos", ["job_id"], unique=False)
    op.create_index(op.f("ix_job_photos_task_id"), "job_photos", ["task_id"], unique=False)
    op.create_index(op.f("ix_job_photos_employee_id"), "job_photos", ["employee_id"], unique=False)
    op.create_index(op.f("ix_job_photos_captured_at"), "job_photos", ["captured_at"], unique=False)

    op.create_table(
        "customer_signatures",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("company_id", sa.Integer(), nullable=False),
        sa.Column("job_id", sa.Integer(), sa.ForeignKey("jobs.id", ondelete="CASCADE"), nullable=False),
        sa.Column("customer_id", sa.Integer(), sa.ForeignKey("customers.id", ondelete="SET NULL"), nullable=True),
        sa.Column("employee_id", sa.Integer(), sa.ForeignKey("employees.id", ondelete="CASCADE"), nullable=False),
        sa.Column("signature_data", sa.Text(), nullable=False),
        sa.Column("signer_name", sa.String(length=255), nullable=False),
        sa.Column("signer_email", sa.String(length=255), nullable=True),
        sa.Column("rating", sa.SmallInteger(), nullable=True),
        sa.Column("feedback", sa.Text(), nullable=True),
        sa.Column("latitude", sa.Float(), nullable=True),
        sa.Column("longitude", sa.Float(), nullable=True),
        sa.Column("signed_address", sa.Text(), nullable=True),
        sa.Column("device_type", sa.String(length=100), nullable=True),
        sa.Column("ip_address", sa.String(length=50), nullable=True),
        sa.Column("signed_at", sa.DateTime(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.UniqueConstraint("job_id", name="uq_customer_signatures_job"),
    )
    op.create_index(op.f("ix_customer_signatures_id"), "customer_signatures", ["id"], unique=False)
    op.create_index(op.f("ix_customer_signatures_company_id"), "customer_signatures", ["company_id"], unique=False)


def downgrade() -> None:
    op.drop_table("customer_signatures")
    op.drop_table("job_photos")
