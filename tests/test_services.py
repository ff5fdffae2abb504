import time

import pytest
from fastapi import HTTPException
from sqlalchemy.exc import OperationalError

from satflow.engine.errors import PersistenceError
from satflow.engine.flow import Phase
from satflow.engine.orchestrator import SessionOrchestrator
from satflow.engine.report import build_final_report
from satflow.engine.store import TestSession
from satflow.engine.structure import ModuleRef
from satflow.models.db.attempt import Attempt, AttemptStatus
from satflow.services import attempt_service, quota_service
from satflow.services.attempt_service import SqlAttemptSink
from satflow.services.quota_service import SqlQuotaService
from satflow.services.session_service import SessionRegistry


def _finished_session(questions, structure) -> TestSession:
    session = TestSession.from_questions("attempt-7", questions, structure)
    session.set_answer(ModuleRef(0, 0), "rw1", "A")
    session.set_answer(ModuleRef(1, 1), "m4", "a")
    for index, (ref, _) in enumerate(session.items()):
        session.finalize_module(ref, 0, 10 + index)
    return session


def test_sink_stores_completed_attempt(session_factory, questions, structure) -> None:
    session = _finished_session(questions, structure)
    report = build_final_report(session)

    SqlAttemptSink(session_factory, user_id="u1").save_attempt(
        "attempt-7", report.answers, report, report.total_time_spent
    )

    db = session_factory()
    try:
        attempt = attempt_service.get_attempt(db, "attempt-7")
        assert attempt.is_completed
        assert attempt.user_id == "u1"
        assert attempt.answers == {"rw1": "A", "m4": "a"}
        assert attempt.score == 25
        assert attempt.correct_answers == 2
        assert attempt.total_questions == 8
        assert attempt.composite_score == 700
        assert attempt.time_spent_seconds == 46
        assert attempt.completed_at is not None
        feedback = attempt.feedback
        assert feedback["bySection"]["math"] == {"correct": 1, "total": 4}
        assert feedback["scaled"] == {"reading_writing": 350, "math": 350}
        assert len(feedback["modules"]) == 4
    finally:
        db.close()


def test_sink_wraps_database_errors(questions, structure) -> None:
    class BrokenSession:
        def get(self, *args):
            raise OperationalError("select", {}, Exception("disk I/O error"))

        def rollback(self) -> None:
            pass

        def close(self) -> None:
            pass

    report = build_final_report(_finished_session(questions, structure))
    with pytest.raises(PersistenceError):
        SqlAttemptSink(BrokenSession).save_attempt("a", {}, report, 0)


def test_attempt_lifecycle_helpers(session_factory) -> None:
    db = session_factory()
    try:
        attempt = attempt_service.get_or_create_attempt(db, "a1", "u1")
        assert attempt.status == AttemptStatus.IN_PROGRESS.value
        assert attempt_service.get_or_create_attempt(db, "a1") is attempt
        attempt_service.get_or_create_attempt(db, "a2", "u1")

        abandoned = attempt_service.abandon_attempt(db, "a1")
        assert abandoned.status == AttemptStatus.ABANDONED.value
        assert attempt_service.abandon_attempt(db, "missing") is None

        assert len(attempt_service.get_attempts_by_user(db, "u1")) == 2
        in_progress = attempt_service.get_attempts_by_user(
            db, "u1", status=AttemptStatus.IN_PROGRESS.value
        )
        assert [a.id for a in in_progress] == ["a2"]
    finally:
        db.close()


def test_attempt_json_columns_tolerate_bad_data() -> None:
    attempt = Attempt(id="x", answers_json="{broken", feedback_json=None)
    assert attempt.answers == {}
    assert attempt.feedback == {}


def test_quota_decrements_and_floors_at_zero(session_factory) -> None:
    db = session_factory()
    try:
        quota_service.get_or_create_profile(db, "u1", tests_remaining=10)
        assert quota_service.consume_questions(db, "u1", 8) == 2
        assert quota_service.consume_questions(db, "u1", 8) == 0
        assert quota_service.consume_questions(db, "nobody", 1) is None
    finally:
        db.close()


def test_quota_service_collaborator(session_factory) -> None:
    db = session_factory()
    try:
        quota_service.get_or_create_profile(db, "u2", tests_remaining=20)
    finally:
        db.close()

    SqlQuotaService(session_factory, "u2").consume(8)
    SqlQuotaService(session_factory, "ghost").consume(8)

    db = session_factory()
    try:
        assert quota_service.get_or_create_profile(db, "u2").tests_remaining == 12
    finally:
        db.close()


def test_registry_creates_and_evicts(session_factory, questions, structure, clock) -> None:
    registry = SessionRegistry(session_factory, limit=1, clock=clock, poll_interval=None)
    first = registry.create(questions, attempt_id="s1", user_id="u1", structure=structure)
    assert isinstance(first, SessionOrchestrator)
    assert registry.get("s1") is first

    with pytest.raises(KeyError):
        registry.create(questions, attempt_id="s1", structure=structure)

    second = registry.create(questions, structure=structure)
    assert len(registry) == 1
    assert registry.get("s1") is None
    assert first.abandoned
    assert registry.get(second.test_id) is second

    db = session_factory()
    try:
        assert attempt_service.get_attempt(db, "s1").user_id == "u1"
        assert attempt_service.get_attempt(db, "s1").status == AttemptStatus.ABANDONED.value
    finally:
        db.close()


def _run_to_completion(orchestrator, clock) -> None:
    orchestrator.begin()
    while orchestrator.phase is not Phase.COMPLETE:
        if orchestrator.phase is Phase.BREAK:
            orchestrator.continue_after_break()
        orchestrator.begin_module()
        clock.advance(5)
        orchestrator.open_review()
        orchestrator.submit_module()


def test_registry_evicts_finished_before_running(
    session_factory, questions, structure, clock
) -> None:
    registry = SessionRegistry(session_factory, limit=2, clock=clock, poll_interval=None)
    active = registry.create(questions, attempt_id="active", structure=structure)
    active.begin()
    active.begin_module()
    done = registry.create(questions, attempt_id="done", structure=structure)
    _run_to_completion(done, clock)
    assert done.persisted is True

    registry.create(questions, attempt_id="third", structure=structure)

    assert registry.get("active") is active
    assert not active.abandoned
    assert registry.get("done") is None
    assert len(registry) == 2
    db = session_factory()
    try:
        assert attempt_service.get_attempt(db, "done").is_completed
        assert attempt_service.get_attempt(db, "active").status == AttemptStatus.IN_PROGRESS.value
    finally:
        db.close()


def test_registry_evicts_least_recently_used(
    session_factory, questions, structure, clock
) -> None:
    registry = SessionRegistry(session_factory, limit=2, clock=clock, poll_interval=None)
    first = registry.create(questions, attempt_id="first", structure=structure)
    second = registry.create(questions, attempt_id="second", structure=structure)
    assert registry.get("first") is first

    registry.create(questions, attempt_id="third", structure=structure)

    assert registry.get("first") is first
    assert registry.get("second") is None
    assert second.abandoned


def test_registry_abandon_closes_attempt(session_factory, questions, structure, clock) -> None:
    registry = SessionRegistry(session_factory, clock=clock, poll_interval=None)
    orchestrator = registry.create(questions, attempt_id="gone", structure=structure)
    orchestrator.begin()

    assert registry.abandon("gone") is orchestrator
    assert orchestrator.abandoned
    assert registry.get("gone") is None
    assert registry.abandon("gone") is None

    db = session_factory()
    try:
        assert attempt_service.get_attempt(db, "gone").status == AttemptStatus.ABANDONED.value
    finally:
        db.close()


def test_registry_refuses_closed_attempt_ids(
    session_factory, questions, structure, clock
) -> None:
    registry = SessionRegistry(session_factory, clock=clock, poll_interval=None)
    done = registry.create(questions, attempt_id="once", structure=structure)
    _run_to_completion(done, clock)
    registry.discard("once")

    with pytest.raises(HTTPException) as excinfo:
        registry.create(questions, attempt_id="once", structure=structure)
    assert excinfo.value.status_code == 409
    assert registry.get("once") is None

    db = session_factory()
    try:
        attempt = attempt_service.get_attempt(db, "once")
        assert attempt.is_completed
        assert attempt_service.abandon_attempt(db, "once").is_completed
    finally:
        db.close()


def test_registry_refuses_other_users_attempt(
    session_factory, questions, structure, clock
) -> None:
    registry = SessionRegistry(session_factory, clock=clock, poll_interval=None)
    registry.create(questions, attempt_id="mine", user_id="u1", structure=structure)
    registry.discard("mine")
    with pytest.raises(HTTPException) as excinfo:
        registry.create(questions, attempt_id="mine", user_id="u2", structure=structure)
    assert excinfo.value.status_code == 400


def test_registry_sessions_poll_their_timer(
    session_factory, questions, structure, clock
) -> None:
    registry = SessionRegistry(session_factory, clock=clock, poll_interval=0.01)
    orchestrator = registry.create(questions, attempt_id="timed", structure=structure)
    orchestrator.begin()
    orchestrator.begin_module()

    clock.advance(31)
    deadline = time.monotonic() + 2
    while orchestrator.phase is not Phase.REVIEW and time.monotonic() < deadline:
        time.sleep(0.01)
    assert orchestrator.phase is Phase.REVIEW

    registry.abandon("timed")
