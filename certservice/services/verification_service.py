"""Public certificate verification.

`verify` is the only operation anonymous callers can reach.  It answers
exactly one question: does this code belong to an active certificate?
Unknown, malformed and revoked codes all produce the same not_found
result, so a caller cannot tell "never existed" from "revoked".

Every call appends exactly one VerificationAttempt, whatever the
outcome.  The audit write happens before the result is returned; if it
fails, the call fails.
"""

from __future__ import annotations

import logging

from certservice.core.logging import redact_code
from certservice.core.metrics import VERIFICATIONS
from certservice.models.certificate import Certificate
from certservice.models.verification import (
    PublicCertificateView,
    VerificationAttempt,
    VerificationResult,
)
from certservice.repos.certificate_repo import CertificateRepo
from certservice.repos.directory_repo import DirectoryRepo
from certservice.repos.roster_repo import RosterRepo
from certservice.repos.verification_attempt_repo import VerificationAttemptRepo
from certservice.services.code_generator import is_well_formed, normalize_code
from certservice.services.issuance_service import Clock, utc_now

logger = logging.getLogger(__name__)

MAX_SUBMITTED_CODE_LENGTH = 128
UNKNOWN_SUBJECT = "Unknown recipient"


class VerificationService:
    def __init__(
        self,
        certificates: CertificateRepo,
        attempts: VerificationAttemptRepo,
        directory: DirectoryRepo,
        roster: RosterRepo,
        *,
        clock: Clock = utc_now,
    ) -> None:
        self._certs = certificates
        self._attempts = attempts
        self._directory = directory
        self._roster = roster
        self._clock = clock

    async def verify(self, submitted_code: str, caller_context: str) -> VerificationResult:
        code = normalize_code(submitted_code or "")

        cert: Certificate | None = None
        # Malformed input never reaches the store
        if is_well_formed(code):
            cert = await self._certs.get_active_by_code(code)

        outcome = "verified" if cert is not None else "not_found"
        await self._attempts.append(
            VerificationAttempt.new(
                submitted_code=code[:MAX_SUBMITTED_CODE_LENGTH],
                attempted_at=self._clock(),
                caller_context=caller_context,
                outcome=outcome,
                certificate_id=cert.id if cert is not None else None,
            )
        )

        VERIFICATIONS.labels(outcome=outcome).inc()
        logger.info(
            "Verification code=%s outcome=%s",
            redact_code(code),
            outcome,
            extra={
                "outcome": outcome,
                "certificate_id": str(cert.id) if cert is not None else None,
            },
        )

        if cert is None:
            return VerificationResult(outcome="not_found")
        return VerificationResult(outcome="verified", certificate=await self._public_view(cert))

    async def _public_view(self, cert: Certificate) -> PublicCertificateView:
        subject = await self._directory.subject_name(cert.user_id)
        course_title = await self._directory.course_title(cert.course_id)

        batch_label: str | None = None
        if cert.batch_id is not None:
            batch = await self._roster.get_batch(cert.batch_id)
            batch_label = batch.label if batch is not None else None
            if subject is None:
                participant = await self._roster.get_participant(
                    cert.batch_id, cert.user_id
                )
                if participant is not None:
                    subject = participant.participant_name

        return PublicCertificateView(
            certificate_number=cert.certificate_number,
            verification_code=cert.verification_code,
            subject_name=subject or UNKNOWN_SUBJECT,
            course_title=course_title or cert.course_id,
            issued_at=cert.issued_at,
            batch_label=batch_label,
            completed_at=cert.completed_at,
        )
