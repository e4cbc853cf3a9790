from __future__ import annotations

from dataclasses import dataclass
from typing import Literal
from uuid import UUID, uuid4

VerificationOutcome = Literal["verified", "not_found"]


@dataclass(frozen=True, slots=True)
class VerificationAttempt:
    """Audit entry. Appended once per verify() call, never changed."""

    id: UUID
    submitted_code: str
    attempted_at: int
    caller_context: str
    outcome: VerificationOutcome
    certificate_id: UUID | None = None

    @staticmethod
    def new(
        *,
        submitted_code: str,
        attempted_at: int,
        caller_context: str,
        outcome: VerificationOutcome,
        certificate_id: UUID | None = None,
    ) -> VerificationAttempt:
        return VerificationAttempt(
            id=uuid4(),
            submitted_code=submitted_code,
            attempted_at=attempted_at,
            caller_context=caller_context,
            outcome=outcome,
            certificate_id=certificate_id,
        )


@dataclass(frozen=True, slots=True)
class PublicCertificateView:
    """What an anonymous verifier is allowed to see.

    No internal id, no revocation data, no other participants.
    """

    certificate_number: str
    verification_code: str
    subject_name: str
    course_title: str
    issued_at: int
    batch_label: str | None = None
    completed_at: int | None = None


@dataclass(frozen=True, slots=True)
class VerificationResult:
    outcome: VerificationOutcome
    certificate: PublicCertificateView | None = None

    @property
    def verified(self) -> bool:
        return self.outcome == "verified"
