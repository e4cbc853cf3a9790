"""PostgreSQL implementation of CertificateRepo."""

from __future__ import annotations

import json
from uuid import UUID

from sqlalchemy import exists, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from certservice.db.tables import CertificateRow
from certservice.models.certificate import (
    ACTIVE,
    Certificate,
    CertificateState,
    CertificateStatus,
    Revoked,
)
from certservice.repos.certificate_repo import UniqueField, UniqueViolation

_CONSTRAINT_FIELDS: dict[str, UniqueField] = {
    "uq_certificates_number": "certificate_number",
    "uq_certificates_code": "verification_code",
    "uq_certificates_active_pair": "active_pair",
}


class PgCertificateRepo:
    """Satisfies the CertificateRepo Protocol using PostgreSQL."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def add(self, cert: Certificate) -> None:
        row = CertificateRow(
            id=cert.id,
            certificate_number=cert.certificate_number,
            verification_code=cert.verification_code,
            verification_hash=cert.verification_hash,
            user_id=cert.user_id,
            course_id=cert.course_id,
            batch_id=cert.batch_id,
            issued_at=cert.issued_at,
            completed_at=cert.completed_at,
            issued_by=cert.issued_by,
            status=cert.status,
            metadata_json=json.dumps(cert.metadata, default=str),
        )
        # SAVEPOINT: a unique violation rolls back this insert only, and
        # the request transaction stays usable for the next candidate.
        try:
            async with self._session.begin_nested():
                self._session.add(row)
                await self._session.flush()
        except IntegrityError as exc:
            raise UniqueViolation(_violated_field(exc)) from exc

    async def get(self, certificate_id: UUID) -> Certificate | None:
        stmt = select(CertificateRow).where(CertificateRow.id == certificate_id)
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        return _row_to_certificate(row) if row is not None else None

    async def get_active_by_code(self, code: str) -> Certificate | None:
        stmt = (
            select(CertificateRow)
            .where(CertificateRow.verification_code == code)
            .where(CertificateRow.status == "active")
        )
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        return _row_to_certificate(row) if row is not None else None

    async def get_active_for(self, user_id: str, course_id: str) -> Certificate | None:
        stmt = (
            select(CertificateRow)
            .where(CertificateRow.user_id == user_id)
            .where(CertificateRow.course_id == course_id)
            .where(CertificateRow.status == "active")
        )
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        return _row_to_certificate(row) if row is not None else None

    async def number_exists(self, certificate_number: str) -> bool:
        stmt = select(
            exists().where(CertificateRow.certificate_number == certificate_number)
        )
        return bool((await self._session.execute(stmt)).scalar())

    async def code_exists(self, verification_code: str) -> bool:
        stmt = select(
            exists().where(CertificateRow.verification_code == verification_code)
        )
        return bool((await self._session.execute(stmt)).scalar())

    async def mark_revoked(
        self, certificate_id: UUID, revocation: Revoked
    ) -> Certificate | None:
        """Conditionally revoke. Returns None unless the row was active."""
        stmt = (
            update(CertificateRow)
            .where(CertificateRow.id == certificate_id)
            .where(CertificateRow.status == "active")
            .values(
                status="revoked",
                revoked_reason=revocation.reason,
                revoked_at=revocation.revoked_at,
                revoked_by=revocation.revoked_by,
            )
            .execution_options(synchronize_session=False)
        )
        result = await self._session.execute(stmt)
        if result.rowcount == 0:
            return None  # missing, or a concurrent revoke won the race
        self._session.expire_all()
        return await self.get(certificate_id)

    async def search(
        self,
        *,
        user_id: str | None = None,
        course_id: str | None = None,
        status: CertificateStatus | None = None,
    ) -> list[Certificate]:
        stmt = select(CertificateRow)
        if user_id is not None:
            stmt = stmt.where(CertificateRow.user_id == user_id)
        if course_id is not None:
            stmt = stmt.where(CertificateRow.course_id == course_id)
        if status is not None:
            stmt = stmt.where(CertificateRow.status == status)
        stmt = stmt.order_by(CertificateRow.issued_at.desc())
        rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_certificate(r) for r in rows]


def _violated_field(exc: IntegrityError) -> UniqueField:
    # asyncpg exposes constraint_name on the driver error; fall back to
    # scanning the message for the constraint names declared in tables.py
    constraint = getattr(getattr(exc.orig, "__cause__", None), "constraint_name", None)
    if constraint in _CONSTRAINT_FIELDS:
        return _CONSTRAINT_FIELDS[constraint]
    message = str(exc.orig)
    for name, field in _CONSTRAINT_FIELDS.items():
        if name in message:
            return field
    raise exc


def _row_to_certificate(row: CertificateRow) -> Certificate:
    if row.status == "revoked":
        state: CertificateState = Revoked(
            reason=row.revoked_reason or "",
            revoked_at=row.revoked_at or 0,
            revoked_by=row.revoked_by,
        )
    else:
        state = ACTIVE
    return Certificate(
        id=row.id,
        certificate_number=row.certificate_number,
        verification_code=row.verification_code,
        user_id=row.user_id,
        course_id=row.course_id,
        issued_at=row.issued_at,
        batch_id=row.batch_id,
        completed_at=row.completed_at,
        issued_by=row.issued_by,
        state=state,
        metadata=json.loads(row.metadata_json or "{}"),
        verification_hash=row.verification_hash,
    )
