"""Certificate number and verification code generation.

certificate_number  CERT-2026-INTR-7KQ2M9XA   human-readable, course-derived prefix
verification_code   7KQ2M9XAPL4D              public lookup key

Both are drawn with `secrets` from a 32-symbol alphabet without the look-alikes
0/O and 1/I.  At the default length of 12 the code carries 60 bits, so
guessing a live code through the rate-limited /v1/verify endpoint is not
a practical attack.  The course/batch context only shapes the readable
prefix; it never feeds the random part.

Every candidate is checked against the store before it is returned.  The
store's unique indices remain the final guard: a candidate can still lose
a race at insert time, and the issuance service then asks for a new pair.
"""

from __future__ import annotations

import datetime
import logging
import re
import secrets
from collections.abc import Callable

from certservice.core.config import (
    MAX_VERIFICATION_CODE_LENGTH,
    MIN_VERIFICATION_CODE_LENGTH,
    SETTINGS,
)
from certservice.core.logging import redact_code
from certservice.core.metrics import CODE_COLLISIONS
from certservice.models.certificate import CodePair
from certservice.repos.certificate_repo import CertificateRepo
from certservice.services.errors import GenerationExhausted

logger = logging.getLogger(__name__)

ALPHABET = "23456789ABCDEFGHJKLMNPQRSTUVWXYZ"
NUMBER_SUFFIX_LENGTH = 8

_NON_ALNUM = re.compile(r"[^A-Z0-9]")
_SEPARATORS = re.compile(r"[\s\-]")

RandomString = Callable[[int], str]


def random_string(length: int) -> str:
    return "".join(secrets.choice(ALPHABET) for _ in range(length))


def normalize_code(raw: str) -> str:
    """Canonical form used for storage and lookup: no separators, upper case."""
    return _SEPARATORS.sub("", raw).upper()


def is_well_formed(code: str) -> bool:
    """Any length a deployment could have issued; the store decides the rest."""
    return (
        MIN_VERIFICATION_CODE_LENGTH <= len(code) <= MAX_VERIFICATION_CODE_LENGTH
        and all(ch in ALPHABET for ch in code)
    )


def _readable_prefix(identifier: str, width: int = 4) -> str:
    cleaned = _NON_ALNUM.sub("", identifier.upper())
    return cleaned[:width] or "GEN"


class CodeGenerator:
    def __init__(
        self,
        repo: CertificateRepo,
        *,
        code_length: int = SETTINGS.verification_code_length,
        max_attempts: int = SETTINGS.code_generation_max_attempts,
        random_source: RandomString = random_string,
    ) -> None:
        if code_length < MIN_VERIFICATION_CODE_LENGTH:
            raise ValueError(
                f"verification codes shorter than {MIN_VERIFICATION_CODE_LENGTH} "
                "characters are guessable"
            )
        if code_length > MAX_VERIFICATION_CODE_LENGTH:
            raise ValueError(
                f"verification codes longer than {MAX_VERIFICATION_CODE_LENGTH} "
                "characters do not fit the store"
            )
        if max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        self._repo = repo
        self._code_length = code_length
        self._max_attempts = max_attempts
        self._random = random_source

    @property
    def code_length(self) -> int:
        return self._code_length

    @property
    def max_attempts(self) -> int:
        return self._max_attempts

    def candidate(self, course_id: str, batch_id: str | None = None) -> CodePair:
        year = datetime.datetime.now(datetime.UTC).year
        segments = ["CERT", str(year), _readable_prefix(course_id)]
        if batch_id:
            segments.append(_readable_prefix(batch_id))
        segments.append(self._random(NUMBER_SUFFIX_LENGTH))
        return CodePair(
            certificate_number="-".join(segments),
            verification_code=self._random(self._code_length),
        )

    async def generate(self, course_id: str, batch_id: str | None = None) -> CodePair:
        """Return a code pair not present in the store.

        Raises GenerationExhausted after max_attempts colliding candidates.
        """
        for attempt in range(1, self._max_attempts + 1):
            pair = self.candidate(course_id, batch_id)

            if await self._repo.number_exists(pair.certificate_number):
                CODE_COLLISIONS.labels(field="certificate_number").inc()
                logger.warning(
                    "Certificate number collision attempt=%d number=%s",
                    attempt,
                    pair.certificate_number,
                )
                continue

            if await self._repo.code_exists(pair.verification_code):
                CODE_COLLISIONS.labels(field="verification_code").inc()
                logger.warning(
                    "Verification code collision attempt=%d code=%s",
                    attempt,
                    redact_code(pair.verification_code),
                )
                continue

            return pair

        logger.error(
            "Code generation exhausted after %d attempts course=%s",
            self._max_attempts,
            course_id,
        )
        raise GenerationExhausted(self._max_attempts)
