"""Public certificate verification.

GET /v1/verify?code=...  No authentication, rate limited per client IP.

Always 200 for a well-formed request: `verified` says whether the code
belongs to an active certificate.  Unknown and revoked codes give the
same body, and the response never carries internal ids.
"""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel

from certservice.api.dependencies import caller_context
from certservice.api.providers import Stores
from certservice.api.ratelimit import VERIFY_RATE_LIMIT, require_rate_limit

router = APIRouter(prefix="/v1", tags=["verify"])


class PublicCertificateOut(BaseModel):
    certificate_number: str
    verification_code: str
    subject_name: str
    course_title: str
    batch_label: str | None
    issued_at: int
    completed_at: int | None


class VerifyOut(BaseModel):
    verified: bool
    certificate: PublicCertificateOut | None = None


@router.get(
    "/verify",
    response_model=VerifyOut,
    dependencies=[Depends(require_rate_limit(VERIFY_RATE_LIMIT))],
)
async def verify_certificate(
    code: Annotated[str, Query()],
    stores: Stores,
    context: Annotated[str, Depends(caller_context)],
) -> VerifyOut:
    result = await stores.verification().verify(code, context)
    if result.certificate is None:
        return VerifyOut(verified=False)

    view = result.certificate
    return VerifyOut(
        verified=True,
        certificate=PublicCertificateOut(
            certificate_number=view.certificate_number,
            verification_code=view.verification_code,
            subject_name=view.subject_name,
            course_title=view.course_title,
            batch_label=view.batch_label,
            issued_at=view.issued_at,
            completed_at=view.completed_at,
        ),
    )
