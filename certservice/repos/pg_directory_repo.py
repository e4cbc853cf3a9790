"""PostgreSQL implementation of DirectoryRepo (read-only)."""

from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from certservice.db.tables import CourseRow, UserRow


class PgDirectoryRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def subject_name(self, user_id: str) -> str | None:
        stmt = select(UserRow.name).where(UserRow.id == user_id)
        return (await self._session.execute(stmt)).scalar_one_or_none()

    async def course_title(self, course_id: str) -> str | None:
        stmt = select(CourseRow.title).where(CourseRow.id == course_id)
        return (await self._session.execute(stmt)).scalar_one_or_none()
