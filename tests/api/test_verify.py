from __future__ import annotations

from fastapi.testclient import TestClient

from certservice.api import providers
from tests.conftest import auth, seed_batch


def _issue_in_batch(client: TestClient, operator_token: str) -> dict:
    providers.directory_repo.add_subject("u1", "Ada Lovelace")
    providers.directory_repo.add_course("C1", "Introduction to Python")
    seed_batch(participants={"u1": "completed"})
    resp = client.post(
        "/v1/batches/B1/participants/u1/certificate", headers=auth(operator_token)
    )
    return resp.json()["certificate"]


def test_verify_is_public_and_returns_redacted_view(
    client: TestClient, operator_token: str
) -> None:
    cert = _issue_in_batch(client, operator_token)
    resp = client.get("/v1/verify", params={"code": cert["verification_code"]})

    assert resp.status_code == 200
    body = resp.json()
    assert body["verified"] is True
    assert body["certificate"] == {
        "certificate_number": cert["certificate_number"],
        "verification_code": cert["verification_code"],
        "subject_name": "Ada Lovelace",
        "course_title": "Introduction to Python",
        "batch_label": "Spring Cohort",
        "issued_at": cert["issued_at"],
        "completed_at": 1_700_000_000,
    }


def test_verify_miss_has_no_certificate(client: TestClient) -> None:
    resp = client.get("/v1/verify", params={"code": "ZZZZZZZZZZZZ"})
    assert resp.status_code == 200
    assert resp.json() == {"verified": False, "certificate": None}


def test_verify_revoked_is_indistinguishable_from_unknown(
    client: TestClient, operator_token: str
) -> None:
    cert = _issue_in_batch(client, operator_token)
    client.post(
        f"/v1/certificates/{cert['id']}/revoke",
        json={"reason": "policy violation"},
        headers=auth(operator_token),
    )
    revoked = client.get("/v1/verify", params={"code": cert["verification_code"]})
    unknown = client.get("/v1/verify", params={"code": "ZZZZZZZZZZZZ"})
    assert revoked.status_code == unknown.status_code == 200
    assert revoked.json() == unknown.json()


def test_verify_response_never_contains_internal_ids(
    client: TestClient, operator_token: str
) -> None:
    cert = _issue_in_batch(client, operator_token)
    hit = client.get("/v1/verify", params={"code": cert["verification_code"]})
    assert cert["id"] not in hit.text
    assert "u1" not in hit.text
    assert "revoked" not in hit.text


def test_verify_requires_code_parameter(client: TestClient) -> None:
    assert client.get("/v1/verify").status_code == 422


def test_verify_audits_every_call(client: TestClient, operator_token: str) -> None:
    cert = _issue_in_batch(client, operator_token)
    codes = [cert["verification_code"], "", "nope", "ZZZZZZZZZZZZ", "a" * 300]
    for code in codes:
        client.get("/v1/verify", params={"code": code})
    assert len(providers.attempt_repo._entries) == len(codes)


def test_verify_sets_rate_limit_headers(client: TestClient) -> None:
    resp = client.get("/v1/verify", params={"code": "ZZZZZZZZZZZZ"})
    assert "x-ratelimit-limit" in resp.headers
    assert "x-ratelimit-remaining" in resp.headers
