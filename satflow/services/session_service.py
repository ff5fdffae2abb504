"""In-memory registry of running test sessions."""
import logging
import threading
import uuid
from collections import OrderedDict
from typing import Sequence

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from satflow.config import SESSION_REGISTRY_LIMIT, TIMER_POLL_INTERVAL_SECONDS
from satflow.engine.flow import Phase
from satflow.engine.orchestrator import SessionOrchestrator
from satflow.engine.questions import Question
from satflow.engine.structure import SAT_TEST_STRUCTURE, TestStructure
from satflow.engine.timer import Clock
from satflow.services.attempt_service import (
    SqlAttemptSink,
    abandon_attempt,
    open_attempt,
)
from satflow.services.quota_service import SqlQuotaService

logger = logging.getLogger(__name__)


def is_finished(orchestrator: SessionOrchestrator) -> bool:
    """True once a session has nothing left to lose when dropped."""
    if orchestrator.abandoned:
        return True
    return orchestrator.phase is Phase.COMPLETE and bool(orchestrator.persisted)


class SessionRegistry:
    """
    Orchestrators keyed by attempt id.

    Past ``limit`` entries, finished sessions are dropped first, then the
    least recently used running one, which is abandoned. Every session polls
    its countdown from a background runner every ``poll_interval`` seconds;
    ``None`` leaves expiry to the reads and writes that poll on their own.
    """

    def __init__(
        self,
        session_factory: sessionmaker,
        limit: int = SESSION_REGISTRY_LIMIT,
        clock: Clock | None = None,
        poll_interval: float | None = TIMER_POLL_INTERVAL_SECONDS,
    ) -> None:
        self._session_factory = session_factory
        self._limit = limit
        self._clock = clock
        self._poll_interval = poll_interval
        self._sessions: "OrderedDict[str, SessionOrchestrator]" = OrderedDict()
        self._lock = threading.Lock()

    def create(
        self,
        questions: Sequence[Question],
        attempt_id: str | None = None,
        user_id: str | None = None,
        structure: TestStructure = SAT_TEST_STRUCTURE,
    ) -> SessionOrchestrator:
        """Build a session and open its attempt record."""
        attempt_id = attempt_id or uuid.uuid4().hex
        quota = SqlQuotaService(self._session_factory, user_id) if user_id else None
        orchestrator = SessionOrchestrator.create(
            attempt_id,
            questions,
            structure,
            sink=SqlAttemptSink(self._session_factory, user_id),
            quota=quota,
            clock=self._clock,
        )

        db = self._session_factory()
        try:
            open_attempt(db, attempt_id, user_id)
        finally:
            db.close()

        with self._lock:
            if attempt_id in self._sessions:
                raise KeyError(attempt_id)
            self._sessions[attempt_id] = orchestrator
            evicted = self._evict()

        for evicted_id, session in evicted:
            self._close(session)
            logger.info(f"Evicted session {evicted_id} from registry")

        if self._poll_interval:
            orchestrator.start_timer_runner(self._poll_interval)
        return orchestrator

    def _evict(self) -> list[tuple[str, SessionOrchestrator]]:
        evicted = []
        overflow = len(self._sessions) - self._limit
        if overflow <= 0:
            return evicted
        for attempt_id, session in list(self._sessions.items()):
            if overflow <= 0:
                break
            if is_finished(session):
                evicted.append((attempt_id, self._sessions.pop(attempt_id)))
                overflow -= 1
        while overflow > 0:
            evicted.append(self._sessions.popitem(last=False))
            overflow -= 1
        return evicted

    def get(self, attempt_id: str) -> SessionOrchestrator | None:
        with self._lock:
            orchestrator = self._sessions.get(attempt_id)
            if orchestrator is not None:
                self._sessions.move_to_end(attempt_id)
            return orchestrator

    def discard(self, attempt_id: str) -> None:
        with self._lock:
            self._sessions.pop(attempt_id, None)

    def abandon(self, attempt_id: str) -> SessionOrchestrator | None:
        """Drop a session and close its attempt record as abandoned."""
        with self._lock:
            orchestrator = self._sessions.pop(attempt_id, None)
        if orchestrator is not None:
            self._close(orchestrator)
        return orchestrator

    def _close(self, orchestrator: SessionOrchestrator) -> None:
        orchestrator.abandon()
        db = self._session_factory()
        try:
            abandon_attempt(db, orchestrator.test_id)
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"Could not mark attempt {orchestrator.test_id} abandoned: {e}")
        finally:
            db.close()

    def __len__(self) -> int:
        return len(self._sessions)
