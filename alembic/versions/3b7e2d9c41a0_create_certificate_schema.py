"""create certificate schema

Revision ID: 3b7e2d9c41a0
Revises:
Create Date: 2026-10-19 00:00:00.000000

"""

from collections.abc import Sequence

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "3b7e2d9c41a0"
down_revision: str | Sequence[str] | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.String(length=64), primary_key=True),
        sa.Column("name", sa.String(length=255), nullable=False, server_default=""),
    )
    op.create_table(
        "courses",
        sa.Column("id", sa.String(length=64), primary_key=True),
        sa.Column("slug", sa.String(length=255), nullable=False, unique=True),
        sa.Column("title", sa.String(length=500), nullable=False),
    )
    op.create_table(
        "course_batches",
        sa.Column("id", sa.String(length=64), primary_key=True),
        sa.Column(
            "course_id", sa.String(length=64), sa.ForeignKey("courses.id"), nullable=False
        ),
        sa.Column("label", sa.String(length=255), nullable=False),
        sa.Column("instructor_name", sa.String(length=255), nullable=True),
    )
    op.create_table(
        "batch_participants",
        sa.Column(
            "batch_id",
            sa.String(length=64),
            sa.ForeignKey("course_batches.id"),
            primary_key=True,
        ),
        sa.Column("user_id", sa.String(length=64), primary_key=True),
        sa.Column(
            "completion_status",
            sa.String(length=16),
            nullable=False,
            server_default="enrolled",
        ),
        sa.Column(
            "certificate_issued",
            sa.Boolean(),
            nullable=False,
            server_default=sa.false(),
        ),
        sa.Column("participant_name", sa.String(length=255), nullable=True),
        sa.Column("completed_at", sa.BigInteger(), nullable=True),
    )
    op.create_table(
        "certificates",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("certificate_number", sa.String(length=64), nullable=False),
        sa.Column("verification_code", sa.String(length=32), nullable=False),
        sa.Column("verification_hash", sa.String(length=64), nullable=False),
        sa.Column("user_id", sa.String(length=64), nullable=False),
        sa.Column("course_id", sa.String(length=64), nullable=False),
        sa.Column("batch_id", sa.String(length=64), nullable=True),
        sa.Column("issued_at", sa.BigInteger(), nullable=False),
        sa.Column("completed_at", sa.BigInteger(), nullable=True),
        sa.Column("issued_by", sa.String(length=64), nullable=True),
        sa.Column(
            "status", sa.String(length=16), nullable=False, server_default="active"
        ),
        sa.Column("revoked_reason", sa.Text(), nullable=True),
        sa.Column("revoked_at", sa.BigInteger(), nullable=True),
        sa.Column("revoked_by", sa.String(length=64), nullable=True),
        sa.Column("metadata_json", sa.Text(), nullable=False, server_default="{}"),
        sa.UniqueConstraint("certificate_number", name="uq_certificates_number"),
        sa.UniqueConstraint("verification_code", name="uq_certificates_code"),
    )
    op.create_index(
        "uq_certificates_active_pair",
        "certificates",
        ["user_id", "course_id"],
        unique=True,
        postgresql_where=sa.text("status = 'active'"),
    )
    op.create_index("ix_certificates_user_id", "certificates", ["user_id"])
    op.create_table(
        "verification_attempts",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "certificate_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("certificates.id"),
            nullable=True,
        ),
        sa.Column("submitted_code", sa.String(length=128), nullable=False),
        sa.Column("attempted_at", sa.BigInteger(), nullable=False),
        sa.Column("caller_context", sa.Text(), nullable=False, server_default=""),
        sa.Column("outcome", sa.String(length=16), nullable=False),
    )
    op.create_index(
        "ix_verification_attempts_certificate_id",
        "verification_attempts",
        ["certificate_id"],
    )


def downgrade() -> None:
    op.drop_index(
        "ix_verification_attempts_certificate_id", table_name="verification_attempts"
    )
    op.drop_table("verification_attempts")
    op.drop_index("ix_certificates_user_id", table_name="certificates")
    op.drop_index("uq_certificates_active_pair", table_name="certificates")
    op.drop_table("certificates")
    op.drop_table("batch_participants")
    op.drop_table("course_batches")
    op.drop_table("courses")
    op.drop_table("users")
