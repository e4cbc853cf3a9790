from __future__ import annotations

import pytest

from certservice.models.certificate import Active, Certificate, CodePair, Revoked
from certservice.services.errors import AlreadyRevoked


def _cert() -> Certificate:
    return Certificate.new(
        codes=CodePair("CERT-2026-C1-AAAAAAAA", "ABCDEFGHJKLM"),
        user_id="u1",
        course_id="C1",
        issued_at=1_700_000_000,
        batch_id="B1",
    )


def test_new_certificate_is_active() -> None:
    cert = _cert()
    assert cert.status == "active"
    assert cert.is_active is True
    assert isinstance(cert.state, Active)
    assert cert.revocation is None


def test_new_certificate_carries_a_matching_fingerprint() -> None:
    cert = _cert()
    assert len(cert.verification_hash) == 64
    assert cert.fingerprint_matches() is True


def test_fingerprint_differs_per_certificate() -> None:
    assert _cert().verification_hash != _cert().verification_hash


def test_revoke_returns_revoked_copy() -> None:
    cert = _cert()
    revoked = cert.revoke(reason="policy violation", revoked_at=1_700_000_100, revoked_by="op")

    assert cert.is_active is True  # original untouched
    assert revoked.status == "revoked"
    assert revoked.revocation == Revoked(
        reason="policy violation", revoked_at=1_700_000_100, revoked_by="op"
    )
    assert revoked.verification_code == cert.verification_code


def test_revoke_twice_raises() -> None:
    revoked = _cert().revoke(reason="r", revoked_at=1)
    with pytest.raises(AlreadyRevoked):
        revoked.revoke(reason="again", revoked_at=2)


def test_revocation_keeps_fingerprint_valid() -> None:
    revoked = _cert().revoke(reason="r", revoked_at=1)
    assert revoked.fingerprint_matches() is True


def test_verification_url() -> None:
    cert = _cert()
    assert (
        cert.verification_url("https://certs.example.org/")
        == "https://certs.example.org/verify?code=ABCDEFGHJKLM"
    )


def test_certificate_is_frozen() -> None:
    cert = _cert()
    with pytest.raises(AttributeError):
        cert.user_id = "someone-else"  # type: ignore[misc]
