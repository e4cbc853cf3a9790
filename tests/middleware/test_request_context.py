from __future__ import annotations

import uuid

from fastapi.testclient import TestClient

from certservice.api import providers


def test_request_id_generated_when_not_provided(client: TestClient) -> None:
    resp = client.get("/health")
    req_id = resp.headers.get("x-request-id")
    assert req_id is not None
    uuid.UUID(req_id)  # raises ValueError if invalid


def test_request_id_echoed_when_provided(client: TestClient) -> None:
    resp = client.get("/health", headers={"X-Request-ID": "my-custom-request-id-123"})
    assert resp.headers.get("x-request-id") == "my-custom-request-id-123"


def test_oversized_request_id_is_replaced(client: TestClient) -> None:
    resp = client.get("/health", headers={"X-Request-ID": "x" * 500})
    uuid.UUID(resp.headers["x-request-id"])


def test_request_id_present_on_error_responses(client: TestClient) -> None:
    resp = client.get("/v1/certificates")  # No auth token -> 401
    assert resp.status_code == 401
    assert resp.headers.get("x-request-id") is not None


def test_request_id_recorded_in_verification_caller_context(
    client: TestClient,
) -> None:
    client.get(
        "/v1/verify",
        params={"code": "ZZZZZZZZZZZZ"},
        headers={"X-Request-ID": "rid-42", "User-Agent": "pytest-agent"},
    )
    (attempt,) = providers.attempt_repo._entries
    assert "rid=rid-42" in attempt.caller_context
    assert "ua=pytest-agent" in attempt.caller_context
    assert attempt.caller_context.startswith("ip=")
