"""Demo: issue, verify and revoke through the HTTP API using TestClient.

Run with:
    python scripts/demo_issue_flow.py
"""

from __future__ import annotations

from fastapi.testclient import TestClient

from certservice.api import providers
from certservice.main import app
from certservice.models.batch import BatchParticipant, CourseBatch
from certservice.services import token_service

COURSE_ID = "intro-python"
BATCH_ID = "spring-cohort"


def main() -> None:
    client = TestClient(app)
    operator = {
        "Authorization": "Bearer "
        + token_service.create_access_token(sub="demo-operator", roles=["operator"])
    }

    # ── Seed roster and directory ───────────────────────────────────
    providers.directory_repo.add_course(COURSE_ID, "Introduction to Python")
    providers.directory_repo.add_subject("ada", "Ada Lovelace")
    providers.roster_repo.add_batch(
        CourseBatch(id=BATCH_ID, course_id=COURSE_ID, label="Spring Cohort")
    )
    for user_id, completion in (("ada", "completed"), ("bob", "completed"), ("cy", "enrolled")):
        providers.roster_repo.add_participant(
            BatchParticipant(
                batch_id=BATCH_ID,
                user_id=user_id,
                completion_status=completion,
                completed_at=1_760_000_000 if completion == "completed" else None,
            )
        )

    # ── Step 1: bulk issuance ───────────────────────────────────────
    r = client.post(f"/v1/batches/{BATCH_ID}/certificates", headers=operator)
    body = r.json()
    print(
        f"1. POST /v1/batches/{BATCH_ID}/certificates → {r.status_code}  "
        f"issued={body['issued_count']} skipped={[s['user_id'] for s in body['skipped']]}"
    )
    ada = next(c for c in body["issued"] if c["user_id"] == "ada")
    print(f"   number={ada['certificate_number']}  url={ada['verification_url']}")

    # ── Step 2: second run is idempotent ────────────────────────────
    r = client.post(f"/v1/batches/{BATCH_ID}/certificates", headers=operator)
    print(f"2. POST again (idempotent)  → {r.status_code}  issued={r.json()['issued_count']}")

    # ── Step 3: public verify ───────────────────────────────────────
    r = client.get("/v1/verify", params={"code": ada["verification_code"]})
    print(f"3. GET  /v1/verify          → {r.status_code}  {r.json()}")

    # ── Step 4: revoke ──────────────────────────────────────────────
    r = client.post(
        f"/v1/certificates/{ada['id']}/revoke",
        json={"reason": "issued in error"},
        headers=operator,
    )
    print(f"4. POST .../revoke          → {r.status_code}  status={r.json()['status']}")

    # ── Step 5: verify after revocation ─────────────────────────────
    r = client.get("/v1/verify", params={"code": ada["verification_code"]})
    print(f"5. GET  /v1/verify          → {r.status_code}  {r.json()}")

    # ── Step 6: audit trail ─────────────────────────────────────────
    r = client.get(f"/v1/certificates/{ada['id']}/verifications", headers=operator)
    print(f"6. GET  .../verifications   → {r.status_code}  {[a['outcome'] for a in r.json()]}")

    print("\nAll steps completed.")


if __name__ == "__main__":
    main()
