from __future__ import annotations

from typing import Protocol


class DirectoryRepo(Protocol):
    """Display names owned by the user and course services."""

    async def subject_name(self, user_id: str) -> str | None: ...
    async def course_title(self, course_id: str) -> str | None: ...


class InMemoryDirectoryRepo:
    def __init__(self) -> None:
        self._subjects: dict[str, str] = {}
        self._courses: dict[str, str] = {}

    def add_subject(self, user_id: str, name: str) -> None:
        self._subjects[user_id] = name

    def add_course(self, course_id: str, title: str) -> None:
        self._courses[course_id] = title

    async def subject_name(self, user_id: str) -> str | None:
        return self._subjects.get(user_id)

    async def course_title(self, course_id: str) -> str | None:
        return self._courses.get(course_id)
