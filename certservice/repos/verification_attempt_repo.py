from __future__ import annotations

from typing import Protocol
from uuid import UUID

from certservice.models.verification import VerificationAttempt


class VerificationAttemptRepo(Protocol):
    """Append-only audit log. There is deliberately no update or delete."""

    async def append(self, attempt: VerificationAttempt) -> None: ...
    async def list_for_certificate(
        self, certificate_id: UUID
    ) -> list[VerificationAttempt]: ...
    async def count(self) -> int: ...


class InMemoryVerificationAttemptRepo:
    def __init__(self) -> None:
        self._entries: list[VerificationAttempt] = []

    async def append(self, attempt: VerificationAttempt) -> None:
        self._entries.append(attempt)

    async def list_for_certificate(
        self, certificate_id: UUID
    ) -> list[VerificationAttempt]:
        found = [a for a in self._entries if a.certificate_id == certificate_id]
        return sorted(found, key=lambda a: a.attempted_at)

    async def count(self) -> int:
        return len(self._entries)
