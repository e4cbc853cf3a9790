from __future__ import annotations

import hashlib
from dataclasses import dataclass, field, replace
from typing import Any, Literal
from uuid import UUID, uuid4

from certservice.services.errors import AlreadyRevoked

CertificateStatus = Literal["active", "revoked"]


@dataclass(frozen=True, slots=True)
class Active:
    """State of a certificate that verifies publicly."""

    status: Literal["active"] = "active"


@dataclass(frozen=True, slots=True)
class Revoked:
    """Terminal state. Carries the revocation record."""

    reason: str
    revoked_at: int
    revoked_by: str | None = None
    status: Literal["revoked"] = "revoked"


CertificateState = Active | Revoked

ACTIVE = Active()


@dataclass(frozen=True, slots=True)
class CodePair:
    certificate_number: str
    verification_code: str


@dataclass(frozen=True, slots=True)
class Certificate:
    """Issued completion credential.

    Every field except `state` is fixed at creation.  `state` moves from
    Active to Revoked exactly once through `revoke()`; there is no path
    back.
    """

    id: UUID
    certificate_number: str
    verification_code: str
    user_id: str
    course_id: str
    issued_at: int
    batch_id: str | None = None
    completed_at: int | None = None
    issued_by: str | None = None
    state: CertificateState = ACTIVE
    metadata: dict[str, Any] = field(default_factory=dict)
    verification_hash: str = ""

    @staticmethod
    def new(
        *,
        codes: CodePair,
        user_id: str,
        course_id: str,
        issued_at: int,
        batch_id: str | None = None,
        completed_at: int | None = None,
        issued_by: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> Certificate:
        cert = Certificate(
            id=uuid4(),
            certificate_number=codes.certificate_number,
            verification_code=codes.verification_code,
            user_id=user_id,
            course_id=course_id,
            issued_at=issued_at,
            batch_id=batch_id,
            completed_at=completed_at,
            issued_by=issued_by,
            metadata=dict(metadata or {}),
        )
        return replace(cert, verification_hash=cert.compute_fingerprint())

    @property
    def status(self) -> CertificateStatus:
        return self.state.status

    @property
    def is_active(self) -> bool:
        return isinstance(self.state, Active)

    @property
    def revocation(self) -> Revoked | None:
        return self.state if isinstance(self.state, Revoked) else None

    def revoke(
        self, *, reason: str, revoked_at: int, revoked_by: str | None = None
    ) -> Certificate:
        """Return the revoked copy of this certificate.

        Raises AlreadyRevoked when called on a revoked certificate.
        """
        if isinstance(self.state, Revoked):
            raise AlreadyRevoked(self.id)
        return replace(
            self,
            state=Revoked(reason=reason, revoked_at=revoked_at, revoked_by=revoked_by),
        )

    def compute_fingerprint(self) -> str:
        """SHA-256 over the immutable identity fields."""
        material = "|".join(
            (
                str(self.id),
                self.certificate_number,
                self.verification_code,
                self.user_id,
                self.course_id,
                self.batch_id or "",
                str(self.issued_at),
            )
        )
        return hashlib.sha256(material.encode("utf-8")).hexdigest()

    def fingerprint_matches(self) -> bool:
        return self.verification_hash == self.compute_fingerprint()

    def verification_url(self, base_url: str) -> str:
        """The string a QR encoder renders for this certificate."""
        return f"{base_url.rstrip('/')}/verify?code={self.verification_code}"
