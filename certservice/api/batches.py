"""Roster-driven issuance endpoints.

- POST /v1/batches/{batch_id}/certificates
    Issue to every completed participant not yet flagged.  Always 200
    once the batch exists; per-participant problems are in the body.
- POST /v1/batches/{batch_id}/participants/{user_id}/certificate
    Issue to one completed participant.
"""

from __future__ import annotations

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel

from certservice.api.certificates import (
    CertificateOut,
    already_issued_error,
    exhausted_error,
)
from certservice.api.dependencies import require_operator
from certservice.api.providers import Stores
from certservice.models.principal import Principal
from certservice.services.errors import (
    AlreadyIssued,
    GenerationExhausted,
    ParticipantNotCompleted,
    ParticipantNotFound,
    UnknownBatch,
)
from certservice.services.issuance_service import BatchIssuanceResult

router = APIRouter(prefix="/v1/batches", tags=["batches"])


class SkippedOut(BaseModel):
    user_id: str
    reason: str


class UnsyncedOut(BaseModel):
    user_id: str
    certificate_id: UUID


class BatchIssuanceOut(BaseModel):
    batch_id: str
    issued_count: int
    issued: list[CertificateOut]
    skipped: list[SkippedOut]
    unsynced: list[UnsyncedOut]

    @staticmethod
    def from_result(result: BatchIssuanceResult) -> BatchIssuanceOut:
        return BatchIssuanceOut(
            batch_id=result.batch_id,
            issued_count=result.issued_count,
            issued=[CertificateOut.from_certificate(c) for c in result.issued],
            skipped=[SkippedOut(user_id=s.user_id, reason=s.reason) for s in result.skipped],
            unsynced=[
                UnsyncedOut(user_id=u.user_id, certificate_id=u.certificate_id)
                for u in result.unsynced
            ],
        )


class ParticipantIssuanceOut(BaseModel):
    certificate: CertificateOut
    flag_synced: bool


@router.post("/{batch_id}/certificates", response_model=BatchIssuanceOut)
async def issue_batch_certificates(
    batch_id: str,
    stores: Stores,
    principal: Annotated[Principal, Depends(require_operator)],
) -> BatchIssuanceOut:
    try:
        result = await stores.issuance().issue_for_batch(
            batch_id, issued_by=principal.user_id
        )
    except UnknownBatch:
        raise HTTPException(status_code=404, detail="batch not found") from None
    return BatchIssuanceOut.from_result(result)


@router.post(
    "/{batch_id}/participants/{user_id}/certificate",
    response_model=ParticipantIssuanceOut,
    status_code=status.HTTP_201_CREATED,
)
async def issue_participant_certificate(
    batch_id: str,
    user_id: str,
    stores: Stores,
    principal: Annotated[Principal, Depends(require_operator)],
) -> ParticipantIssuanceOut:
    try:
        issued = await stores.issuance().issue_for_participant(
            batch_id, user_id, issued_by=principal.user_id
        )
    except UnknownBatch:
        raise HTTPException(status_code=404, detail="batch not found") from None
    except ParticipantNotFound:
        raise HTTPException(status_code=404, detail="participant not found") from None
    except ParticipantNotCompleted as exc:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail={
                "error": "not_completed",
                "completion_status": exc.completion_status,
            },
        ) from None
    except AlreadyIssued as exc:
        raise already_issued_error(exc) from None
    except GenerationExhausted as exc:
        raise exhausted_error(exc) from None
    return ParticipantIssuanceOut(
        certificate=CertificateOut.from_certificate(issued.certificate),
        flag_synced=issued.flag_synced,
    )
