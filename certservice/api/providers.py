"""Repository and service wiring for the routers.

Same conditional pattern as db/engine.py and api/ratelimit.py, decided
once at import time:

  DATABASE_URL set    each request gets a session-scoped set of Pg*
                      repositories; the session commits when the
                      request succeeds and rolls back otherwise.
  DATABASE_URL unset  every request shares the module-level in-memory
                      repositories below (dev and tests).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Annotated

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from certservice.core.config import SETTINGS
from certservice.db.engine import async_session_factory, get_async_session
from certservice.repos.certificate_repo import CertificateRepo, InMemoryCertificateRepo
from certservice.repos.directory_repo import DirectoryRepo, InMemoryDirectoryRepo
from certservice.repos.pg_certificate_repo import PgCertificateRepo
from certservice.repos.pg_directory_repo import PgDirectoryRepo
from certservice.repos.pg_roster_repo import PgRosterRepo
from certservice.repos.pg_verification_attempt_repo import PgVerificationAttemptRepo
from certservice.repos.roster_repo import InMemoryRosterRepo, RosterRepo
from certservice.repos.verification_attempt_repo import (
    InMemoryVerificationAttemptRepo,
    VerificationAttemptRepo,
)
from certservice.services.code_generator import CodeGenerator
from certservice.services.issuance_service import IssuanceService
from certservice.services.revocation_service import RevocationService
from certservice.services.verification_service import VerificationService

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class CertificateStores:
    certificates: CertificateRepo
    roster: RosterRepo
    attempts: VerificationAttemptRepo
    directory: DirectoryRepo

    def issuance(self) -> IssuanceService:
        generator = CodeGenerator(
            self.certificates,
            code_length=SETTINGS.verification_code_length,
            max_attempts=SETTINGS.code_generation_max_attempts,
        )
        return IssuanceService(self.certificates, self.roster, generator)

    def revocation(self) -> RevocationService:
        return RevocationService(self.certificates)

    def verification(self) -> VerificationService:
        return VerificationService(
            self.certificates,
            self.attempts,
            self.directory,
            self.roster,
        )


# In-memory singletons (used when DATABASE_URL is unset; tests seed them)
certificate_repo = InMemoryCertificateRepo()
roster_repo = InMemoryRosterRepo()
attempt_repo = InMemoryVerificationAttemptRepo()
directory_repo = InMemoryDirectoryRepo()

_IN_MEMORY = CertificateStores(
    certificates=certificate_repo,
    roster=roster_repo,
    attempts=attempt_repo,
    directory=directory_repo,
)


if async_session_factory is not None:

    async def get_stores(
        session: Annotated[AsyncSession, Depends(get_async_session)],
    ) -> CertificateStores:
        return CertificateStores(
            certificates=PgCertificateRepo(session),
            roster=PgRosterRepo(session),
            attempts=PgVerificationAttemptRepo(session),
            directory=PgDirectoryRepo(session),
        )

else:

    async def get_stores() -> CertificateStores:
        return _IN_MEMORY


Stores = Annotated[CertificateStores, Depends(get_stores)]
