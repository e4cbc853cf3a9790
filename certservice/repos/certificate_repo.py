from __future__ import annotations

import threading
from dataclasses import replace
from typing import Literal, Protocol
from uuid import UUID

from certservice.models.certificate import Certificate, CertificateStatus, Revoked

UniqueField = Literal["certificate_number", "verification_code", "active_pair"]


class UniqueViolation(Exception):
    """A write hit one of the certificate uniqueness indices."""

    def __init__(self, field: UniqueField) -> None:
        super().__init__(f"unique violation on {field}")
        self.field = field


class CertificateRepo(Protocol):
    async def add(self, cert: Certificate) -> None: ...
    async def get(self, certificate_id: UUID) -> Certificate | None: ...
    async def get_active_by_code(self, code: str) -> Certificate | None: ...
    async def get_active_for(self, user_id: str, course_id: str) -> Certificate | None: ...
    async def number_exists(self, certificate_number: str) -> bool: ...
    async def code_exists(self, verification_code: str) -> bool: ...
    async def mark_revoked(
        self, certificate_id: UUID, revocation: Revoked
    ) -> Certificate | None: ...
    async def search(
        self,
        *,
        user_id: str | None = None,
        course_id: str | None = None,
        status: CertificateStatus | None = None,
    ) -> list[Certificate]: ...


class InMemoryCertificateRepo:
    """Dict-backed store with the same uniqueness indices as the tables.

    Numbers and codes stay indexed after revocation, so they are never
    handed out twice.  The active-pair index only holds active rows.
    Check-and-write sections contain no await, and the lock keeps them
    atomic when TestClient drives the app from another thread.
    """

    def __init__(self) -> None:
        self._by_id: dict[UUID, Certificate] = {}
        self._by_number: dict[str, UUID] = {}
        self._by_code: dict[str, UUID] = {}
        self._active_pair: dict[tuple[str, str], UUID] = {}
        self._lock = threading.Lock()

    async def add(self, cert: Certificate) -> None:
        with self._lock:
            if cert.certificate_number in self._by_number:
                raise UniqueViolation("certificate_number")
            if cert.verification_code in self._by_code:
                raise UniqueViolation("verification_code")
            pair = (cert.user_id, cert.course_id)
            if cert.is_active and pair in self._active_pair:
                raise UniqueViolation("active_pair")

            self._by_id[cert.id] = cert
            self._by_number[cert.certificate_number] = cert.id
            self._by_code[cert.verification_code] = cert.id
            if cert.is_active:
                self._active_pair[pair] = cert.id

    async def get(self, certificate_id: UUID) -> Certificate | None:
        return self._by_id.get(certificate_id)

    async def get_active_by_code(self, code: str) -> Certificate | None:
        cert_id = self._by_code.get(code)
        if cert_id is None:
            return None
        cert = self._by_id[cert_id]
        return cert if cert.is_active else None

    async def get_active_for(self, user_id: str, course_id: str) -> Certificate | None:
        cert_id = self._active_pair.get((user_id, course_id))
        return self._by_id[cert_id] if cert_id is not None else None

    async def number_exists(self, certificate_number: str) -> bool:
        return certificate_number in self._by_number

    async def code_exists(self, verification_code: str) -> bool:
        return verification_code in self._by_code

    async def mark_revoked(
        self, certificate_id: UUID, revocation: Revoked
    ) -> Certificate | None:
        """Conditionally revoke. Returns None unless the row was active."""
        with self._lock:
            cert = self._by_id.get(certificate_id)
            if cert is None or not cert.is_active:
                return None
            updated = replace(cert, state=revocation)
            self._by_id[certificate_id] = updated
            self._active_pair.pop((cert.user_id, cert.course_id), None)
            return updated

    async def search(
        self,
        *,
        user_id: str | None = None,
        course_id: str | None = None,
        status: CertificateStatus | None = None,
    ) -> list[Certificate]:
        found = [
            c
            for c in self._by_id.values()
            if (user_id is None or c.user_id == user_id)
            and (course_id is None or c.course_id == course_id)
            and (status is None or c.status == status)
        ]
        return sorted(found, key=lambda c: c.issued_at, reverse=True)
