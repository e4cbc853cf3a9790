"""SQLAlchemy table definitions.

These map to the frozen dataclass domain models in certservice/models/.
Repos convert between rows and dataclasses; nothing outside
certservice/repos/pg_* touches a row object.

The uniqueness guarantees of the engine live here:
  uq_certificates_number       certificate_number, forever
  uq_certificates_code         verification_code, forever
  uq_certificates_active_pair  (user_id, course_id) WHERE status = 'active'
"""

from __future__ import annotations

import uuid

from sqlalchemy import (
    BigInteger,
    Boolean,
    ForeignKey,
    Index,
    String,
    Text,
    UniqueConstraint,
    text,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from certservice.db.engine import Base

# --- Directory (owned by the user/course services, read here) ---


class UserRow(Base):
    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False, default="")


class CourseRow(Base):
    __tablename__ = "courses"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    slug: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    title: Mapped[str] = mapped_column(String(500), nullable=False)


# --- Roster ---


class CourseBatchRow(Base):
    __tablename__ = "course_batches"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    course_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("courses.id"), nullable=False
    )
    label: Mapped[str] = mapped_column(String(255), nullable=False)
    instructor_name: Mapped[str | None] = mapped_column(String(255), nullable=True)


class BatchParticipantRow(Base):
    __tablename__ = "batch_participants"

    batch_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("course_batches.id"), primary_key=True
    )
    user_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    completion_status: Mapped[str] = mapped_column(
        String(16), nullable=False, default="enrolled"
    )  # enrolled|completed|dropped
    certificate_issued: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False
    )
    participant_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    completed_at: Mapped[int | None] = mapped_column(BigInteger, nullable=True)


# --- Certificates ---


class CertificateRow(Base):
    __tablename__ = "certificates"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    certificate_number: Mapped[str] = mapped_column(String(64), nullable=False)
    verification_code: Mapped[str] = mapped_column(String(32), nullable=False)
    verification_hash: Mapped[str] = mapped_column(String(64), nullable=False)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False)
    course_id: Mapped[str] = mapped_column(String(64), nullable=False)
    batch_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    issued_at: Mapped[int] = mapped_column(BigInteger, nullable=False)
    completed_at: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    issued_by: Mapped[str | None] = mapped_column(String(64), nullable=True)
    status: Mapped[str] = mapped_column(
        String(16), nullable=False, default="active"
    )  # active|revoked
    revoked_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    revoked_at: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    revoked_by: Mapped[str | None] = mapped_column(String(64), nullable=True)
    metadata_json: Mapped[str] = mapped_column(Text, nullable=False, default="{}")

    __table_args__ = (
        UniqueConstraint("certificate_number", name="uq_certificates_number"),
        UniqueConstraint("verification_code", name="uq_certificates_code"),
        Index(
            "uq_certificates_active_pair",
            "user_id",
            "course_id",
            unique=True,
            postgresql_where=text("status = 'active'"),
        ),
        Index("ix_certificates_user_id", "user_id"),
    )


class VerificationAttemptRow(Base):
    """Append-only. Repos only ever INSERT and SELECT."""

    __tablename__ = "verification_attempts"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    certificate_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("certificates.id"), nullable=True
    )
    submitted_code: Mapped[str] = mapped_column(String(128), nullable=False)
    attempted_at: Mapped[int] = mapped_column(BigInteger, nullable=False)
    caller_context: Mapped[str] = mapped_column(Text, nullable=False, default="")
    outcome: Mapped[str] = mapped_column(
        String(16), nullable=False
    )  # verified|not_found

    __table_args__ = (
        Index("ix_verification_attempts_certificate_id", "certificate_id"),
    )
