"""PostgreSQL implementation of VerificationAttemptRepo."""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from certservice.db.tables import VerificationAttemptRow
from certservice.models.verification import VerificationAttempt


class PgVerificationAttemptRepo:
    """Insert-and-select only; the table is never updated."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def append(self, attempt: VerificationAttempt) -> None:
        self._session.add(
            VerificationAttemptRow(
                id=attempt.id,
                certificate_id=attempt.certificate_id,
                submitted_code=attempt.submitted_code,
                attempted_at=attempt.attempted_at,
                caller_context=attempt.caller_context,
                outcome=attempt.outcome,
            )
        )
        await self._session.flush()

    async def list_for_certificate(
        self, certificate_id: UUID
    ) -> list[VerificationAttempt]:
        stmt = (
            select(VerificationAttemptRow)
            .where(VerificationAttemptRow.certificate_id == certificate_id)
            .order_by(VerificationAttemptRow.attempted_at)
        )
        rows = (await self._session.execute(stmt)).scalars().all()
        return [
            VerificationAttempt(
                id=r.id,
                submitted_code=r.submitted_code,
                attempted_at=r.attempted_at,
                caller_context=r.caller_context,
                outcome=r.outcome,  # type: ignore[arg-type]
                certificate_id=r.certificate_id,
            )
            for r in rows
        ]

    async def count(self) -> int:
        stmt = select(func.count()).select_from(VerificationAttemptRow)
        return int((await self._session.execute(stmt)).scalar_one())
