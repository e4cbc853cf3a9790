"""Issuance: single, per-participant and bulk.

Services are built over fresh in-memory repositories per test and driven
with asyncio.run, so nothing here touches the router singletons.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field

import pytest

from certservice.models.batch import BatchParticipant, CourseBatch
from certservice.models.certificate import Certificate, CodePair
from certservice.repos.certificate_repo import InMemoryCertificateRepo, UniqueViolation
from certservice.repos.roster_repo import InMemoryRosterRepo, RosterUpdateError
from certservice.services.code_generator import CodeGenerator
from certservice.services.errors import (
    AlreadyIssued,
    GenerationExhausted,
    ParticipantNotCompleted,
    ParticipantNotFound,
    UnknownBatch,
)
from certservice.services.issuance_service import IssuanceService


@dataclass
class Env:
    certs: InMemoryCertificateRepo = field(default_factory=InMemoryCertificateRepo)
    roster: InMemoryRosterRepo = field(default_factory=InMemoryRosterRepo)

    def service(self, **generator_kwargs) -> IssuanceService:
        generator = CodeGenerator(self.certs, **generator_kwargs)
        return IssuanceService(self.certs, self.roster, generator, clock=lambda: 1_700_000_000)

    def seed(self, batch_id: str = "B1", course_id: str = "C1", **participants: str) -> None:
        self.roster.add_batch(CourseBatch(id=batch_id, course_id=course_id, label="Cohort"))
        for user_id, completion in participants.items():
            self.roster.add_participant(
                BatchParticipant(
                    batch_id=batch_id,
                    user_id=user_id,
                    completion_status=completion,  # type: ignore[arg-type]
                    completed_at=1_699_000_000 if completion == "completed" else None,
                )
            )


@pytest.fixture
def env() -> Env:
    return Env()


# ---- single issuance ----


def test_issue_certificate_persists_active_certificate(env: Env) -> None:
    cert = asyncio.run(
        env.service().issue_certificate("u1", "C1", issued_by="op", metadata={"note": "x"})
    )
    assert cert.is_active
    assert cert.issued_at == 1_700_000_000
    assert cert.issued_by == "op"
    assert cert.metadata == {"note": "x"}
    assert asyncio.run(env.certs.get(cert.id)) == cert


def test_second_issuance_for_same_pair_is_rejected(env: Env) -> None:
    svc = env.service()
    first = asyncio.run(svc.issue_certificate("u1", "C1"))
    with pytest.raises(AlreadyIssued) as exc_info:
        asyncio.run(svc.issue_certificate("u1", "C1"))
    assert exc_info.value.existing_id == first.id


def test_same_user_can_hold_certificates_for_different_courses(env: Env) -> None:
    svc = env.service()
    a = asyncio.run(svc.issue_certificate("u1", "C1"))
    b = asyncio.run(svc.issue_certificate("u1", "C2"))
    assert a.verification_code != b.verification_code


def test_reissue_after_revocation_gets_fresh_codes(env: Env) -> None:
    svc = env.service()
    first = asyncio.run(svc.issue_certificate("u1", "C1"))
    revoked = first.revoke(reason="error", revoked_at=1)
    assert asyncio.run(env.certs.mark_revoked(first.id, revoked.revocation)) is not None

    second = asyncio.run(svc.issue_certificate("u1", "C1"))
    assert second.id != first.id
    assert second.verification_code != first.verification_code
    assert second.certificate_number != first.certificate_number


def test_generation_exhausted_is_signalled(env: Env) -> None:
    taken = "AAAAAAAAAAAA"
    asyncio.run(
        env.certs.add(
            Certificate.new(
                codes=CodePair("CERT-2000-C1-X", taken),
                user_id="other",
                course_id="C1",
                issued_at=1,
            )
        )
    )
    svc = env.service(max_attempts=2, random_source=lambda n: "2" * n if n == 8 else taken)
    with pytest.raises(GenerationExhausted):
        asyncio.run(svc.issue_certificate("u1", "C1"))
    assert asyncio.run(env.certs.get_active_for("u1", "C1")) is None


class _RacingRepo(InMemoryCertificateRepo):
    """Yields to the event loop before every read, so concurrent issuers
    all pass the pre-check and meet at the insert."""

    async def get_active_for(self, user_id: str, course_id: str):
        await asyncio.sleep(0)
        return await super().get_active_for(user_id, course_id)

    async def number_exists(self, certificate_number: str) -> bool:
        await asyncio.sleep(0)
        return await super().number_exists(certificate_number)


@pytest.mark.parametrize("n", [2, 10, 50])
def test_concurrent_issuance_has_exactly_one_winner(n: int) -> None:
    env = Env(certs=_RacingRepo())
    svc = env.service()

    async def fire():
        return await asyncio.gather(
            *(svc.issue_certificate("u1", "C1") for _ in range(n)),
            return_exceptions=True,
        )

    results = asyncio.run(fire())
    winners = [r for r in results if isinstance(r, Certificate)]
    losers = [r for r in results if isinstance(r, AlreadyIssued)]
    assert len(winners) == 1
    assert len(losers) == n - 1
    assert all(e.existing_id == winners[0].id for e in losers)
    assert len(asyncio.run(env.certs.search(user_id="u1", status="active"))) == 1


class _StealingRepo(InMemoryCertificateRepo):
    """First insert loses a code race to a writer between check and insert."""

    def __init__(self) -> None:
        super().__init__()
        self.stolen = False

    async def add(self, cert: Certificate) -> None:
        if not self.stolen:
            self.stolen = True
            raise UniqueViolation("verification_code")
        await super().add(cert)


def test_insert_time_code_collision_regenerates() -> None:
    env = Env(certs=_StealingRepo())
    cert = asyncio.run(env.service().issue_certificate("u1", "C1"))
    assert cert.is_active
    assert asyncio.run(env.certs.get(cert.id)) is not None


# ---- per-participant issuance ----


def test_issue_for_participant_sets_flag(env: Env) -> None:
    env.seed(u1="completed")
    issued = asyncio.run(env.service().issue_for_participant("B1", "u1", issued_by="op"))
    assert issued.flag_synced is True
    assert issued.certificate.batch_id == "B1"
    assert issued.certificate.course_id == "C1"
    assert issued.certificate.completed_at == 1_699_000_000
    participant = asyncio.run(env.roster.get_participant("B1", "u1"))
    assert participant is not None and participant.certificate_issued is True


def test_issue_for_participant_requires_completion(env: Env) -> None:
    env.seed(u1="enrolled")
    with pytest.raises(ParticipantNotCompleted) as exc_info:
        asyncio.run(env.service().issue_for_participant("B1", "u1"))
    assert exc_info.value.completion_status == "enrolled"


def test_issue_for_participant_unknown_participant(env: Env) -> None:
    env.seed()
    with pytest.raises(ParticipantNotFound):
        asyncio.run(env.service().issue_for_participant("B1", "ghost"))


def test_issue_for_participant_unknown_batch(env: Env) -> None:
    with pytest.raises(UnknownBatch):
        asyncio.run(env.service().issue_for_participant("nope", "u1"))


# ---- bulk issuance ----


def test_bulk_issuance_respects_completion_gating(env: Env) -> None:
    env.seed(
        c1="completed",
        c2="completed",
        c3="completed",
        e1="enrolled",
        e2="enrolled",
        d1="dropped",
    )
    result = asyncio.run(env.service().issue_for_batch("B1"))

    assert result.issued_count == 3
    assert {c.user_id for c in result.issued} == {"c1", "c2", "c3"}
    assert {(s.user_id, s.reason) for s in result.skipped} == {
        ("e1", "not_completed"),
        ("e2", "not_completed"),
        ("d1", "not_completed"),
    }
    assert result.unsynced == ()


def test_bulk_issuance_is_idempotent(env: Env) -> None:
    env.seed(c1="completed", c2="completed", e1="enrolled")
    svc = env.service()
    asyncio.run(svc.issue_for_batch("B1"))
    again = asyncio.run(svc.issue_for_batch("B1"))

    assert again.issued_count == 0
    reasons = {s.user_id: s.reason for s in again.skipped}
    assert reasons == {"c1": "already_issued", "c2": "already_issued", "e1": "not_completed"}
    assert len(asyncio.run(env.certs.search(course_id="C1"))) == 2


def test_bulk_issuance_unknown_batch_writes_nothing(env: Env) -> None:
    with pytest.raises(UnknownBatch):
        asyncio.run(env.service().issue_for_batch("missing"))
    assert asyncio.run(env.certs.search()) == []


def test_bulk_skips_participant_with_existing_certificate_and_resyncs_flag(
    env: Env,
) -> None:
    env.seed(c1="completed")
    svc = env.service()
    asyncio.run(svc.issue_certificate("c1", "C1"))  # issued outside the roster flow

    result = asyncio.run(svc.issue_for_batch("B1"))
    assert result.issued_count == 0
    assert [(s.user_id, s.reason) for s in result.skipped] == [("c1", "already_issued")]
    participant = asyncio.run(env.roster.get_participant("B1", "c1"))
    assert participant is not None and participant.certificate_issued is True


class _FailingRoster(InMemoryRosterRepo):
    async def mark_certificate_issued(self, batch_id: str, user_id: str) -> bool:
        raise RosterUpdateError("roster unavailable")


def test_flag_write_failure_is_reported_as_unsynced() -> None:
    env = Env(roster=_FailingRoster())
    env.seed(c1="completed", c2="completed")

    result = asyncio.run(env.service().issue_for_batch("B1"))

    assert result.issued_count == 2
    assert {u.user_id for u in result.unsynced} == {"c1", "c2"}
    # Certificates stay persisted
    for u in result.unsynced:
        assert asyncio.run(env.certs.get(u.certificate_id)) is not None

    # A retry does not issue duplicates
    retry = asyncio.run(env.service().issue_for_batch("B1"))
    assert retry.issued_count == 0
    assert {s.reason for s in retry.skipped} == {"already_issued"}


class _StallingRoster(InMemoryRosterRepo):
    """Flag writes park until released, so a run can be cancelled mid-batch."""

    def __init__(self) -> None:
        super().__init__()
        self.stall = True
        self.reached = asyncio.Event()
        self.release = asyncio.Event()

    async def mark_certificate_issued(self, batch_id: str, user_id: str) -> bool:
        if self.stall:
            self.reached.set()
            await self.release.wait()
        return await super().mark_certificate_issued(batch_id, user_id)


def test_cancelled_bulk_run_leaves_rest_untouched_and_rerun_completes() -> None:
    roster = _StallingRoster()
    env = Env(roster=roster)
    env.seed(c1="completed", c2="completed", c3="completed")
    svc = env.service()

    async def cancel_after_first() -> None:
        task = asyncio.create_task(svc.issue_for_batch("B1"))
        await roster.reached.wait()
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

    asyncio.run(cancel_after_first())

    # The first participant's certificate is whole; its flag is still pending.
    persisted = asyncio.run(env.certs.search(course_id="C1"))
    assert [c.user_id for c in persisted] == ["c1"]
    assert persisted[0].is_active
    assert persisted[0].fingerprint_matches()
    c1 = asyncio.run(roster.get_participant("B1", "c1"))
    assert c1 is not None and c1.certificate_issued is False
    for user_id in ("c2", "c3"):
        assert asyncio.run(env.certs.get_active_for(user_id, "C1")) is None
        p = asyncio.run(roster.get_participant("B1", user_id))
        assert p is not None and p.certificate_issued is False

    roster.stall = False
    rerun = asyncio.run(svc.issue_for_batch("B1"))

    assert {c.user_id for c in rerun.issued} == {"c2", "c3"}
    assert [(s.user_id, s.reason) for s in rerun.skipped] == [("c1", "already_issued")]
    after = asyncio.run(env.certs.search(course_id="C1"))
    assert sorted(c.user_id for c in after) == ["c1", "c2", "c3"]
    assert persisted[0] in after
    for p in asyncio.run(roster.list_participants("B1")):
        assert p.certificate_issued is True


def test_exhaustion_for_one_participant_does_not_abort_batch(env: Env) -> None:
    env.seed(c1="completed", c2="completed")
    svc = env.service(max_attempts=1)

    calls = {"n": 0}
    original = svc._generator.generate

    async def flaky_generate(course_id, batch_id=None):
        calls["n"] += 1
        if calls["n"] == 1:
            raise GenerationExhausted(1)
        return await original(course_id, batch_id)

    svc._generator.generate = flaky_generate  # type: ignore[method-assign]

    result = asyncio.run(svc.issue_for_batch("B1"))
    assert result.issued_count == 1
    assert [s.reason for s in result.skipped] == ["generation_exhausted"]
