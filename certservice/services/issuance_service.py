"""Certificate issuance: single, per-participant and whole-batch.

All three paths funnel through `IssuanceService._issue`, which is the
only code that writes new certificates.  The "at most one active
certificate per (user, course)" rule is decided by the store's
active-pair index, not by the pre-check: two concurrent calls may both
pass `get_active_for`, but only one insert survives and the other is
translated into AlreadyIssued.

Bulk issuance collects per-participant outcomes as data.  It raises
only for whole-batch preconditions (UnknownBatch), before any write.
Participants are processed one at a time, so a cancelled run leaves
some participants issued and the rest untouched.
"""

from __future__ import annotations

import datetime
import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Literal

from certservice.core.metrics import BATCH_SKIPS, CERTIFICATES_ISSUED, CODE_COLLISIONS
from certservice.models.batch import BatchParticipant, CourseBatch
from certservice.models.certificate import Certificate
from certservice.repos.certificate_repo import CertificateRepo, UniqueViolation
from certservice.repos.roster_repo import RosterRepo, RosterUpdateError
from certservice.services.code_generator import CodeGenerator
from certservice.services.errors import (
    AlreadyIssued,
    GenerationExhausted,
    ParticipantNotCompleted,
    ParticipantNotFound,
    UnknownBatch,
)

logger = logging.getLogger(__name__)

Clock = Callable[[], int]
IssueMode = Literal["single", "participant", "batch"]
SkipReason = Literal["not_completed", "already_issued", "generation_exhausted"]


def utc_now() -> int:
    return int(datetime.datetime.now(datetime.UTC).timestamp())


@dataclass(frozen=True, slots=True)
class SkippedParticipant:
    user_id: str
    reason: SkipReason


@dataclass(frozen=True, slots=True)
class UnsyncedParticipant:
    """Certificate persisted but the roster flag write failed (issued_but_flag_unsynced)."""

    user_id: str
    certificate_id: Any


@dataclass(frozen=True, slots=True)
class BatchIssuanceResult:
    batch_id: str
    issued: tuple[Certificate, ...] = ()
    skipped: tuple[SkippedParticipant, ...] = ()
    unsynced: tuple[UnsyncedParticipant, ...] = ()

    @property
    def issued_count(self) -> int:
        return len(self.issued)


@dataclass(frozen=True, slots=True)
class ParticipantIssuance:
    certificate: Certificate
    flag_synced: bool


class IssuanceService:
    def __init__(
        self,
        certificates: CertificateRepo,
        roster: RosterRepo,
        generator: CodeGenerator,
        *,
        clock: Clock = utc_now,
    ) -> None:
        self._certs = certificates
        self._roster = roster
        self._generator = generator
        self._clock = clock

    # ------------------------------------------------------------------
    # Single issuance
    # ------------------------------------------------------------------

    async def issue_certificate(
        self,
        user_id: str,
        course_id: str,
        batch_id: str | None = None,
        *,
        issued_by: str | None = None,
        completed_at: int | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> Certificate:
        """Issue one certificate. Raises AlreadyIssued or GenerationExhausted."""
        return await self._issue(
            user_id,
            course_id,
            batch_id,
            issued_by=issued_by,
            completed_at=completed_at,
            metadata=metadata,
            mode="single",
        )

    async def _issue(
        self,
        user_id: str,
        course_id: str,
        batch_id: str | None,
        *,
        issued_by: str | None,
        completed_at: int | None,
        metadata: dict[str, Any] | None,
        mode: IssueMode,
    ) -> Certificate:
        existing = await self._certs.get_active_for(user_id, course_id)
        if existing is not None:
            logger.info(
                "Issuance refused: active certificate=%s exists user=%s course=%s",
                existing.id,
                user_id,
                course_id,
            )
            raise AlreadyIssued(user_id, course_id, existing.id)

        attempts = self._generator.max_attempts
        for _ in range(attempts):
            codes = await self._generator.generate(course_id, batch_id)
            cert = Certificate.new(
                codes=codes,
                user_id=user_id,
                course_id=course_id,
                batch_id=batch_id,
                issued_at=self._clock(),
                completed_at=completed_at,
                issued_by=issued_by,
                metadata=metadata,
            )
            try:
                await self._certs.add(cert)
            except UniqueViolation as exc:
                if exc.field == "active_pair":
                    winner = await self._certs.get_active_for(user_id, course_id)
                    logger.info(
                        "Concurrent issuance lost user=%s course=%s", user_id, course_id
                    )
                    raise AlreadyIssued(
                        user_id, course_id, winner.id if winner else None
                    ) from None
                # A pair that passed the pre-check was taken before our insert
                CODE_COLLISIONS.labels(field=exc.field).inc()
                logger.warning("Code pair lost insert race on %s, regenerating", exc.field)
                continue

            CERTIFICATES_ISSUED.labels(mode=mode).inc()
            logger.info(
                "Issued certificate=%s number=%s user=%s course=%s",
                cert.id,
                cert.certificate_number,
                user_id,
                course_id,
                extra={"certificate_id": str(cert.id), "batch_id": batch_id},
            )
            return cert

        raise GenerationExhausted(attempts)

    # ------------------------------------------------------------------
    # Roster-driven issuance
    # ------------------------------------------------------------------

    async def issue_for_participant(
        self, batch_id: str, user_id: str, *, issued_by: str | None = None
    ) -> ParticipantIssuance:
        """Issue for one completed batch participant and flag the roster row."""
        batch = await self._require_batch(batch_id)
        participant = await self._roster.get_participant(batch_id, user_id)
        if participant is None:
            raise ParticipantNotFound(batch_id, user_id)
        if participant.completion_status != "completed":
            raise ParticipantNotCompleted(
                batch_id, user_id, participant.completion_status
            )

        try:
            cert = await self._issue_from_roster(batch, participant, issued_by, "participant")
        except AlreadyIssued:
            await self._sync_flag(batch_id, user_id)
            raise

        synced = await self._sync_flag(batch_id, user_id)
        return ParticipantIssuance(certificate=cert, flag_synced=synced)

    async def issue_for_batch(
        self, batch_id: str, *, issued_by: str | None = None
    ) -> BatchIssuanceResult:
        """Issue certificates to every completed, not-yet-issued participant."""
        batch = await self._require_batch(batch_id)
        participants = await self._roster.list_participants(batch_id)

        issued: list[Certificate] = []
        skipped: list[SkippedParticipant] = []
        unsynced: list[UnsyncedParticipant] = []

        def skip(p: BatchParticipant, reason: SkipReason) -> None:
            BATCH_SKIPS.labels(reason=reason).inc()
            skipped.append(SkippedParticipant(user_id=p.user_id, reason=reason))

        for p in participants:
            if p.completion_status != "completed":
                skip(p, "not_completed")
                continue
            if p.certificate_issued:
                skip(p, "already_issued")
                continue

            try:
                cert = await self._issue_from_roster(batch, p, issued_by, "batch")
            except AlreadyIssued:
                # Certificate from an earlier run whose flag write failed
                skip(p, "already_issued")
                await self._sync_flag(batch_id, p.user_id)
                continue
            except GenerationExhausted:
                logger.error(
                    "Generation exhausted for user=%s in batch=%s",
                    p.user_id,
                    batch_id,
                )
                skip(p, "generation_exhausted")
                continue

            issued.append(cert)
            if not await self._sync_flag(batch_id, p.user_id):
                unsynced.append(
                    UnsyncedParticipant(user_id=p.user_id, certificate_id=cert.id)
                )

        logger.info(
            "Batch issuance batch=%s issued=%d skipped=%d unsynced=%d",
            batch_id,
            len(issued),
            len(skipped),
            len(unsynced),
            extra={"batch_id": batch_id},
        )
        return BatchIssuanceResult(
            batch_id=batch_id,
            issued=tuple(issued),
            skipped=tuple(skipped),
            unsynced=tuple(unsynced),
        )

    async def _require_batch(self, batch_id: str) -> CourseBatch:
        batch = await self._roster.get_batch(batch_id)
        if batch is None:
            logger.warning("Unknown batch=%s", batch_id)
            raise UnknownBatch(batch_id)
        return batch

    async def _issue_from_roster(
        self,
        batch: CourseBatch,
        participant: BatchParticipant,
        issued_by: str | None,
        mode: IssueMode,
    ) -> Certificate:
        return await self._issue(
            participant.user_id,
            batch.course_id,
            batch.id,
            issued_by=issued_by,
            completed_at=participant.completed_at,
            metadata={"issued_via": mode, "batch_label": batch.label},
            mode=mode,
        )

    async def _sync_flag(self, batch_id: str, user_id: str) -> bool:
        """Set the roster's certificate_issued flag. False if the write failed."""
        try:
            await self._roster.mark_certificate_issued(batch_id, user_id)
        except RosterUpdateError:
            logger.exception(
                "issued_but_flag_unsynced batch=%s user=%s", batch_id, user_id
            )
            return False
        return True
