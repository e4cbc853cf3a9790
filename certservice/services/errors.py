"""Domain errors raised by the certificate engine.

Routers translate these into HTTP statuses; nothing below the router
layer knows about HTTP.  Per-participant failures during bulk issuance
are never raised; they are reported in BatchIssuanceResult.
"""

from __future__ import annotations

from uuid import UUID


class CertificateError(Exception):
    """Base class for every certificate engine error."""


class AlreadyIssued(CertificateError):
    """An active certificate already exists for (user_id, course_id)."""

    def __init__(
        self, user_id: str, course_id: str, existing_id: UUID | None = None
    ) -> None:
        super().__init__(f"active certificate exists for user={user_id} course={course_id}")
        self.user_id = user_id
        self.course_id = course_id
        self.existing_id = existing_id


class GenerationExhausted(CertificateError):
    """No collision-free code pair within the attempt budget."""

    def __init__(self, attempts: int) -> None:
        super().__init__(f"no unique code pair after {attempts} attempts")
        self.attempts = attempts


class CertificateNotFound(CertificateError):
    def __init__(self, certificate_id: UUID) -> None:
        super().__init__(f"certificate {certificate_id} not found")
        self.certificate_id = certificate_id


class AlreadyRevoked(CertificateError):
    def __init__(self, certificate_id: UUID) -> None:
        super().__init__(f"certificate {certificate_id} is already revoked")
        self.certificate_id = certificate_id


class InvalidRevocationReason(CertificateError, ValueError):
    pass


class UnknownBatch(CertificateError):
    def __init__(self, batch_id: str) -> None:
        super().__init__(f"batch {batch_id} not found")
        self.batch_id = batch_id


class ParticipantNotFound(CertificateError):
    def __init__(self, batch_id: str, user_id: str) -> None:
        super().__init__(f"user {user_id} is not a participant of batch {batch_id}")
        self.batch_id = batch_id
        self.user_id = user_id


class ParticipantNotCompleted(CertificateError):
    def __init__(self, batch_id: str, user_id: str, completion_status: str) -> None:
        super().__init__(
            f"user {user_id} in batch {batch_id} has status {completion_status}"
        )
        self.batch_id = batch_id
        self.user_id = user_id
        self.completion_status = completion_status
