from __future__ import annotations

from dataclasses import replace
from typing import Protocol

from certservice.models.batch import BatchParticipant, CourseBatch


class RosterUpdateError(Exception):
    """The roster refused or failed the certificate_issued flag write."""


class RosterRepo(Protocol):
    async def get_batch(self, batch_id: str) -> CourseBatch | None: ...
    async def list_participants(self, batch_id: str) -> list[BatchParticipant]: ...
    async def get_participant(
        self, batch_id: str, user_id: str
    ) -> BatchParticipant | None: ...
    async def mark_certificate_issued(self, batch_id: str, user_id: str) -> bool: ...


class InMemoryRosterRepo:
    def __init__(self) -> None:
        self._batches: dict[str, CourseBatch] = {}
        self._participants: dict[tuple[str, str], BatchParticipant] = {}

    # --- seeding (the roster owner's side; not part of RosterRepo) ---

    def add_batch(self, batch: CourseBatch) -> None:
        if batch.id in self._batches:
            raise ValueError("batch already exists")
        self._batches[batch.id] = batch

    def add_participant(self, participant: BatchParticipant) -> None:
        if participant.batch_id not in self._batches:
            raise KeyError("batch not found")
        key = (participant.batch_id, participant.user_id)
        if key in self._participants:
            raise ValueError("participant already exists")
        self._participants[key] = participant

    # --- RosterRepo ---

    async def get_batch(self, batch_id: str) -> CourseBatch | None:
        return self._batches.get(batch_id)

    async def list_participants(self, batch_id: str) -> list[BatchParticipant]:
        return [p for p in self._participants.values() if p.batch_id == batch_id]

    async def get_participant(
        self, batch_id: str, user_id: str
    ) -> BatchParticipant | None:
        return self._participants.get((batch_id, user_id))

    async def mark_certificate_issued(self, batch_id: str, user_id: str) -> bool:
        """Flip certificate_issued false -> true. Returns False if already set."""
        key = (batch_id, user_id)
        p = self._participants.get(key)
        if p is None:
            raise RosterUpdateError(f"participant {user_id} not in batch {batch_id}")
        if p.certificate_issued:
            return False
        self._participants[key] = replace(p, certificate_issued=True)
        return True
