from __future__ import annotations

import logging
from uuid import UUID

from certservice.core.metrics import CERTIFICATE_REVOCATIONS
from certservice.models.certificate import Certificate, Revoked
from certservice.repos.certificate_repo import CertificateRepo
from certservice.services.errors import (
    AlreadyRevoked,
    CertificateNotFound,
    InvalidRevocationReason,
)
from certservice.services.issuance_service import Clock, utc_now

logger = logging.getLogger(__name__)

MAX_REASON_LENGTH = 500


class RevocationService:
    def __init__(self, certificates: CertificateRepo, *, clock: Clock = utc_now) -> None:
        self._certs = certificates
        self._clock = clock

    async def revoke(
        self, certificate_id: UUID, reason: str, *, revoked_by: str | None = None
    ) -> Certificate:
        """Move an active certificate to Revoked.

        The store write is conditional on the row still being active, so
        of two concurrent revocations exactly one succeeds and the other
        gets AlreadyRevoked.
        """
        reason = (reason or "").strip()
        if not reason:
            raise InvalidRevocationReason("revocation reason must not be empty")
        if len(reason) > MAX_REASON_LENGTH:
            raise InvalidRevocationReason(
                f"revocation reason exceeds {MAX_REASON_LENGTH} characters"
            )

        cert = await self._certs.get(certificate_id)
        if cert is None:
            raise CertificateNotFound(certificate_id)

        if not cert.is_active:
            raise AlreadyRevoked(certificate_id)

        revocation = Revoked(
            reason=reason, revoked_at=self._clock(), revoked_by=revoked_by
        )
        stored = await self._certs.mark_revoked(certificate_id, revocation)
        if stored is None:
            raise AlreadyRevoked(certificate_id)

        CERTIFICATE_REVOCATIONS.inc()
        logger.info(
            "Revoked certificate=%s by=%s reason=%r",
            certificate_id,
            revoked_by,
            reason,
            extra={"certificate_id": str(certificate_id)},
        )
        return stored
