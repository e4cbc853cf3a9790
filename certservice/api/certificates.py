"""Certificate issuance, revocation and admin read endpoints.

- POST /v1/certificates                         issue one certificate
- GET  /v1/certificates                         list, filterable
- GET  /v1/certificates/me                      caller's own active certificates
- GET  /v1/certificates/{id}                    detail
- POST /v1/certificates/{id}/revoke             revoke (terminal)
- GET  /v1/certificates/{id}/verifications      verification audit trail

Everything except /me requires an operator role (admin or operator).
"""

from __future__ import annotations

import logging
from typing import Annotated, Any
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, Field

from certservice.api.dependencies import require_operator, require_user
from certservice.api.providers import Stores
from certservice.core.config import SETTINGS
from certservice.models.certificate import Certificate, CertificateStatus
from certservice.models.principal import Principal
from certservice.models.verification import VerificationAttempt
from certservice.services.errors import (
    AlreadyIssued,
    AlreadyRevoked,
    CertificateNotFound,
    GenerationExhausted,
    InvalidRevocationReason,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/certificates", tags=["certificates"])


class CertificateIssueIn(BaseModel):
    user_id: str = Field(min_length=1, max_length=64)
    course_id: str = Field(min_length=1, max_length=64)
    batch_id: str | None = Field(default=None, max_length=64)
    completed_at: int | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)


class RevokeIn(BaseModel):
    reason: str = Field(max_length=500)


class CertificateOut(BaseModel):
    id: UUID
    certificate_number: str
    verification_code: str
    verification_url: str
    verification_hash: str
    user_id: str
    course_id: str
    batch_id: str | None
    issued_at: int
    completed_at: int | None
    issued_by: str | None
    status: CertificateStatus
    revocation_reason: str | None = None
    revoked_at: int | None = None
    revoked_by: str | None = None
    metadata: dict[str, Any]

    @staticmethod
    def from_certificate(cert: Certificate) -> CertificateOut:
        revocation = cert.revocation
        return CertificateOut(
            id=cert.id,
            certificate_number=cert.certificate_number,
            verification_code=cert.verification_code,
            verification_url=cert.verification_url(SETTINGS.verify_base_url),
            verification_hash=cert.verification_hash,
            user_id=cert.user_id,
            course_id=cert.course_id,
            batch_id=cert.batch_id,
            issued_at=cert.issued_at,
            completed_at=cert.completed_at,
            issued_by=cert.issued_by,
            status=cert.status,
            revocation_reason=revocation.reason if revocation else None,
            revoked_at=revocation.revoked_at if revocation else None,
            revoked_by=revocation.revoked_by if revocation else None,
            metadata=cert.metadata,
        )


class VerificationAttemptOut(BaseModel):
    id: UUID
    submitted_code: str
    attempted_at: int
    caller_context: str
    outcome: str

    @staticmethod
    def from_attempt(attempt: VerificationAttempt) -> VerificationAttemptOut:
        return VerificationAttemptOut(
            id=attempt.id,
            submitted_code=attempt.submitted_code,
            attempted_at=attempt.attempted_at,
            caller_context=attempt.caller_context,
            outcome=attempt.outcome,
        )


def already_issued_error(exc: AlreadyIssued) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_409_CONFLICT,
        detail={
            "error": "already_issued",
            "message": str(exc),
            "existing_certificate_id": (
                str(exc.existing_id) if exc.existing_id is not None else None
            ),
        },
    )


def exhausted_error(exc: GenerationExhausted) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        detail={"error": "generation_exhausted", "message": str(exc)},
        headers={"Retry-After": "1"},
    )


@router.post("", response_model=CertificateOut, status_code=status.HTTP_201_CREATED)
async def issue_certificate(
    body: CertificateIssueIn,
    stores: Stores,
    principal: Annotated[Principal, Depends(require_operator)],
) -> CertificateOut:
    metadata = {"manually_issued": True, **body.metadata}
    try:
        cert = await stores.issuance().issue_certificate(
            body.user_id,
            body.course_id,
            body.batch_id,
            issued_by=principal.user_id,
            completed_at=body.completed_at,
            metadata=metadata,
        )
    except AlreadyIssued as exc:
        raise already_issued_error(exc) from None
    except GenerationExhausted as exc:
        raise exhausted_error(exc) from None
    return CertificateOut.from_certificate(cert)


@router.get("", response_model=list[CertificateOut])
async def list_certificates(
    stores: Stores,
    _principal: Annotated[Principal, Depends(require_operator)],
    user_id: Annotated[str | None, Query(max_length=64)] = None,
    course_id: Annotated[str | None, Query(max_length=64)] = None,
    status_filter: Annotated[CertificateStatus | None, Query(alias="status")] = None,
) -> list[CertificateOut]:
    certs = await stores.certificates.search(
        user_id=user_id, course_id=course_id, status=status_filter
    )
    return [CertificateOut.from_certificate(c) for c in certs]


@router.get("/me", response_model=list[CertificateOut])
async def list_my_certificates(
    stores: Stores,
    principal: Annotated[Principal, Depends(require_user)],
) -> list[CertificateOut]:
    certs = await stores.certificates.search(user_id=principal.user_id, status="active")
    return [CertificateOut.from_certificate(c) for c in certs]


@router.get("/{certificate_id}", response_model=CertificateOut)
async def get_certificate(
    certificate_id: UUID,
    stores: Stores,
    _principal: Annotated[Principal, Depends(require_operator)],
) -> CertificateOut:
    cert = await stores.certificates.get(certificate_id)
    if cert is None:
        raise HTTPException(status_code=404, detail="certificate not found")
    return CertificateOut.from_certificate(cert)


@router.post("/{certificate_id}/revoke", response_model=CertificateOut)
async def revoke_certificate(
    certificate_id: UUID,
    body: RevokeIn,
    stores: Stores,
    principal: Annotated[Principal, Depends(require_operator)],
) -> CertificateOut:
    try:
        cert = await stores.revocation().revoke(
            certificate_id, body.reason, revoked_by=principal.user_id
        )
    except InvalidRevocationReason as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from None
    except CertificateNotFound:
        raise HTTPException(status_code=404, detail="certificate not found") from None
    except AlreadyRevoked:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail={"error": "already_revoked", "message": "certificate is already revoked"},
        ) from None
    return CertificateOut.from_certificate(cert)


@router.get(
    "/{certificate_id}/verifications", response_model=list[VerificationAttemptOut]
)
async def list_verification_attempts(
    certificate_id: UUID,
    stores: Stores,
    _principal: Annotated[Principal, Depends(require_operator)],
) -> list[VerificationAttemptOut]:
    if await stores.certificates.get(certificate_id) is None:
        raise HTTPException(status_code=404, detail="certificate not found")
    attempts = await stores.attempts.list_for_certificate(certificate_id)
    return [VerificationAttemptOut.from_attempt(a) for a in attempts]
