"""PostgreSQL implementation of RosterRepo."""

from __future__ import annotations

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from certservice.db.tables import BatchParticipantRow, CourseBatchRow
from certservice.models.batch import BatchParticipant, CourseBatch
from certservice.repos.roster_repo import RosterUpdateError


class PgRosterRepo:
    """Satisfies the RosterRepo Protocol using PostgreSQL."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get_batch(self, batch_id: str) -> CourseBatch | None:
        stmt = select(CourseBatchRow).where(CourseBatchRow.id == batch_id)
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        if row is None:
            return None
        return CourseBatch(
            id=row.id,
            course_id=row.course_id,
            label=row.label,
            instructor_name=row.instructor_name,
        )

    async def list_participants(self, batch_id: str) -> list[BatchParticipant]:
        stmt = (
            select(BatchParticipantRow)
            .where(BatchParticipantRow.batch_id == batch_id)
            .order_by(BatchParticipantRow.user_id)
        )
        rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_participant(r) for r in rows]

    async def get_participant(
        self, batch_id: str, user_id: str
    ) -> BatchParticipant | None:
        stmt = (
            select(BatchParticipantRow)
            .where(BatchParticipantRow.batch_id == batch_id)
            .where(BatchParticipantRow.user_id == user_id)
        )
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        return _row_to_participant(row) if row is not None else None

    async def mark_certificate_issued(self, batch_id: str, user_id: str) -> bool:
        """Flip certificate_issued false -> true. Returns False if already set."""
        stmt = (
            update(BatchParticipantRow)
            .where(BatchParticipantRow.batch_id == batch_id)
            .where(BatchParticipantRow.user_id == user_id)
            .where(BatchParticipantRow.certificate_issued.is_(False))
            .values(certificate_issued=True)
        )
        try:
            async with self._session.begin_nested():
                result = await self._session.execute(stmt)
        except SQLAlchemyError as exc:
            raise RosterUpdateError(str(exc)) from exc
        return result.rowcount > 0


def _row_to_participant(row: BatchParticipantRow) -> BatchParticipant:
    return BatchParticipant(
        batch_id=row.batch_id,
        user_id=row.user_id,
        completion_status=row.completion_status,  # type: ignore[arg-type]
        certificate_issued=row.certificate_issued,
        participant_name=row.participant_name,
        completed_at=row.completed_at,
    )
