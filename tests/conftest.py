from __future__ import annotations

import sys
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from certservice.api import providers
from certservice.api.ratelimit import get_rate_limiter
from certservice.main import app
from certservice.models.batch import BatchParticipant, CompletionStatus, CourseBatch
from certservice.services import token_service

# Ensure repo root is on sys.path so `import certservice` works under pytest.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))


@pytest.fixture(autouse=True)
def reset_certificate_state() -> None:
    """Clear the in-memory stores the routers share between tests."""
    certs = providers.certificate_repo
    certs._by_id.clear()
    certs._by_number.clear()
    certs._by_code.clear()
    certs._active_pair.clear()
    providers.roster_repo._batches.clear()
    providers.roster_repo._participants.clear()
    providers.attempt_repo._entries.clear()
    providers.directory_repo._subjects.clear()
    providers.directory_repo._courses.clear()


@pytest.fixture(autouse=True)
def reset_rate_limiter() -> None:
    """Clear rate limit buckets between tests so limits don't bleed."""
    limiter = get_rate_limiter()
    if hasattr(limiter, "_buckets"):
        limiter._buckets.clear()  # type: ignore[union-attr]


@pytest.fixture
def client() -> TestClient:
    return TestClient(app)


def mint_token(
    username: str = "test-user",
    roles: list[str] | None = None,
) -> str:
    """Create a valid ES256 JWT for testing."""
    return token_service.create_access_token(sub=username, roles=roles)


def auth(token: str | None) -> dict[str, str]:
    if token is None:
        return {}
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def token() -> str:
    """Token with default role (user)."""
    return mint_token()


@pytest.fixture
def operator_token() -> str:
    return mint_token(username="test-operator", roles=["operator"])


@pytest.fixture
def admin_token() -> str:
    return mint_token(username="test-admin", roles=["admin"])


# ---------------------------------------------------------------------------
# Roster seeding (the shared in-memory roster the routers read)
# ---------------------------------------------------------------------------


def seed_batch(
    batch_id: str = "B1",
    course_id: str = "C1",
    label: str = "Spring Cohort",
    participants: dict[str, CompletionStatus] | None = None,
) -> CourseBatch:
    batch = CourseBatch(id=batch_id, course_id=course_id, label=label)
    providers.roster_repo.add_batch(batch)
    for user_id, completion in (participants or {}).items():
        providers.roster_repo.add_participant(
            BatchParticipant(
                batch_id=batch_id,
                user_id=user_id,
                completion_status=completion,
                completed_at=1_700_000_000 if completion == "completed" else None,
            )
        )
    return batch
