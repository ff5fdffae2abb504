"""
Session orchestrator: the one component that drives the flow state.

It wires the state machine to the module store, the module timer and the
scoring engine, and hands the final report to the persistence and quota
collaborators. Every public operation runs under one reentrant lock so that
timer expiry and learner events are applied one at a time.
"""

from __future__ import annotations

import logging
import threading
from typing import Sequence

from satflow.config import BREAK_DURATION_SECONDS, TIMER_POLL_INTERVAL_SECONDS
from satflow.engine.errors import InvalidTransitionError, PersistenceError
from satflow.engine.flow import (
    INITIAL_FLOW_STATE,
    BreakState,
    CompleteState,
    FlowState,
    Phase,
    ReviewState,
    TestState,
    Trigger,
    accepted_triggers,
    current_position,
    next_state,
)
from satflow.engine.interfaces import PersistenceSink, QuotaCollaborator
from satflow.engine.questions import Question
from satflow.engine.report import FinalReport, build_final_report
from satflow.engine.scoring import calculate_score, round_half_up
from satflow.engine.store import ModuleData, TestSession
from satflow.engine.structure import (
    SAT_TEST_STRUCTURE,
    ModuleRef,
    TestStructure,
    module_directions,
)
from satflow.engine.timer import Clock, ModuleTimer, TimerRunner

logger = logging.getLogger(__name__)

TIME_UP_NOTICE = "Time's up! Moving to the review screen."
PERSISTENCE_FAILED_NOTICE = (
    "Failed to save your results. Your score is shown below; please try again."
)


class SessionOrchestrator:
    """Coordinates one learner's pass through a test."""

    def __init__(
        self,
        session: TestSession,
        sink: PersistenceSink | None = None,
        quota: QuotaCollaborator | None = None,
        clock: Clock | None = None,
        break_duration_seconds: int = BREAK_DURATION_SECONDS,
    ) -> None:
        self.session = session
        self.structure: TestStructure = session.structure.validate()
        self._sink = sink
        self._quota = quota
        self._timer = ModuleTimer(clock)
        self._runner: TimerRunner | None = None
        self._lock = threading.RLock()
        self._state: FlowState = INITIAL_FLOW_STATE
        self.break_duration_seconds = break_duration_seconds
        self.notices: list[str] = []
        self.final_report: FinalReport | None = None
        self.persisted: bool | None = None
        self.persistence_error: str | None = None
        self.abandoned = False

    @classmethod
    def create(
        cls,
        test_id: str,
        questions: Sequence[Question],
        structure: TestStructure = SAT_TEST_STRUCTURE,
        **kwargs,
    ) -> "SessionOrchestrator":
        """Build a session from generated questions; raises ConfigurationError."""
        session = TestSession.from_questions(test_id, questions, structure)
        return cls(session, **kwargs)

    # Read side

    @property
    def state(self) -> FlowState:
        return self._state

    @property
    def phase(self) -> Phase:
        return self._state.phase

    @property
    def test_id(self) -> str:
        return self.session.test_id

    def current_module(self) -> ModuleData | None:
        ref = self._state.module_ref
        if ref is None or self.phase not in (Phase.TEST, Phase.REVIEW):
            return None
        return self.session.module(ref)

    def remaining_seconds(self) -> int | None:
        with self._lock:
            if not self._timer.is_active:
                return None
            return self._timer.remaining_seconds()

    def is_paused(self) -> bool:
        return self._timer.is_paused

    def pop_notices(self) -> list[str]:
        with self._lock:
            notices, self.notices = self.notices, []
            return notices

    # Transitions

    def _transition(self, trigger: Trigger) -> FlowState:
        if self.abandoned:
            raise InvalidTransitionError("abandoned", trigger.value)
        previous = self._state
        self._state = next_state(previous, trigger, self.structure)
        section, module = current_position(self._state, self.structure)
        logger.info(
            f"Session {self.test_id}: {previous.phase.value} -> "
            f"{self._state.phase.value} ({trigger.value}, {section} module {module})"
        )
        return self._state

    def _require(self, state_type: type, action: str) -> None:
        if self.abandoned or not isinstance(self._state, state_type):
            phase = "abandoned" if self.abandoned else self.phase.value
            raise InvalidTransitionError(phase, action)

    def begin(self) -> FlowState:
        with self._lock:
            return self._transition(Trigger.BEGIN)

    def begin_module(self) -> FlowState:
        """Leave the directions screen and start the module countdown."""
        with self._lock:
            state = self._transition(Trigger.BEGIN_MODULE)
            limit = self.structure.module(state.module_ref).time_seconds
            self._timer.start(limit, self._handle_expiry)
            return state

    def open_review(self) -> FlowState:
        with self._lock:
            self._poll()
            # Expiry already moved the module to its review screen.
            if isinstance(self._state, ReviewState) and self._timer.has_expired:
                return self._state
            return self._transition(Trigger.OPEN_REVIEW)

    def return_to_question(self) -> FlowState:
        """Go back from the review screen to the questions of the same module."""
        with self._lock:
            self._poll()
            if self._timer.has_expired:
                raise InvalidTransitionError(
                    self.phase.value, Trigger.RETURN_TO_QUESTION.value
                )
            return self._transition(Trigger.RETURN_TO_QUESTION)

    def submit_module(self) -> FlowState:
        """
        Finalize the module on the review screen and advance.

        The module is scored from its own questions and answers and frozen
        before the flow moves on, so the next module cannot start while this
        one's answers are still being read.
        """
        with self._lock:
            self._require(ReviewState, Trigger.SUBMIT_MODULE.value)
            ref = self._state.module_ref
            module = self.session.module(ref)

            result = calculate_score(module.questions, module.answers)
            time_spent = round_half_up(self._timer.elapsed())
            self._timer.stop()
            self.session.finalize_module(ref, result.score, time_spent)

            state = self._transition(Trigger.SUBMIT_MODULE)
            if isinstance(state, CompleteState):
                self._complete()
            return state

    def continue_after_break(self) -> FlowState:
        with self._lock:
            return self._transition(Trigger.CONTINUE)

    # Module state

    def _require_testing(self, action: str) -> ModuleRef:
        self._poll()
        self._require(TestState, action)
        return self._state.module_ref

    def answer(self, question_id: str, value: str) -> None:
        with self._lock:
            ref = self._require_testing("answer")
            self.session.set_answer(ref, question_id, value)

    def clear_answer(self, question_id: str) -> None:
        with self._lock:
            ref = self._require_testing("clear_answer")
            self.session.clear_answer(ref, question_id)

    def toggle_flag(self, question_id: str) -> bool:
        with self._lock:
            ref = self._require_testing("toggle_flag")
            return self.session.toggle_flag(ref, question_id)

    # Timer

    def pause(self) -> None:
        with self._lock:
            self._poll()
            if self.phase not in (Phase.TEST, Phase.REVIEW):
                raise InvalidTransitionError(self.phase.value, "pause")
            self._timer.pause()

    def resume(self) -> None:
        with self._lock:
            if self.phase not in (Phase.TEST, Phase.REVIEW):
                raise InvalidTransitionError(self.phase.value, "resume")
            self._timer.resume()

    def poll_timer(self) -> bool:
        """Apply timer expiry if the countdown has run out."""
        with self._lock:
            return self._poll()

    def _poll(self) -> bool:
        return self._timer.poll()

    def _handle_expiry(self) -> None:
        ref = self._state.module_ref
        logger.warning(f"Session {self.test_id}: time expired on module {ref}")
        self.notices.append(TIME_UP_NOTICE)
        if isinstance(self._state, TestState):
            self._transition(Trigger.TIME_EXPIRED)

    def start_timer_runner(
        self, interval: float = TIMER_POLL_INTERVAL_SECONDS
    ) -> TimerRunner:
        """Poll the countdown from a background thread."""
        with self._lock:
            if self._runner is None:
                self._runner = TimerRunner(
                    self.poll_timer, interval, name=f"timer-{self.test_id}"
                )
                self._runner.start()
            return self._runner

    def _stop_runner(self) -> None:
        if self._runner is not None:
            self._runner.stop()
            self._runner = None

    def abandon(self) -> None:
        """Drop the session without persisting anything."""
        with self._lock:
            self._timer.stop()
            self._stop_runner()
            self.abandoned = True
            logger.info(f"Session {self.test_id} abandoned in phase {self.phase.value}")

    # Completion

    def _complete(self) -> None:
        self._stop_runner()
        self.final_report = build_final_report(self.session)
        logger.info(
            f"Session {self.test_id} complete: score={self.final_report.result.score} "
            f"composite={self.final_report.composite}"
        )
        self._persist()

    def _persist(self) -> None:
        report = self.final_report
        if self._sink is None:
            logger.warning(f"Session {self.test_id}: no persistence sink configured")
            self.persisted = False
            return
        try:
            self._sink.save_attempt(
                self.test_id, report.answers, report, report.total_time_spent
            )
        except PersistenceError as e:
            logger.error(f"Failed to persist attempt {self.test_id}: {e}")
            self.persisted = False
            self.persistence_error = str(e)
            self.notices.append(PERSISTENCE_FAILED_NOTICE)
            return

        self.persisted = True
        self.persistence_error = None
        self._notify_quota(report.question_count)

    def _notify_quota(self, items: int) -> None:
        if self._quota is None:
            return
        try:
            self._quota.consume(items)
        except Exception as e:
            logger.error(f"Quota update failed for attempt {self.test_id}: {e}")

    def retry_persistence(self) -> bool:
        """Hand the stored report to the sink again after a failure."""
        with self._lock:
            if not isinstance(self._state, CompleteState) or self.final_report is None:
                raise InvalidTransitionError(self.phase.value, "retry_persistence")
            if self.persisted:
                return True
            self._persist()
            return bool(self.persisted)

    # Rendering

    def snapshot(self) -> dict[str, object]:
        """Everything a screen needs to render the current phase."""
        with self._lock:
            self._poll()
            state = self._state
            section, module_number = current_position(state, self.structure)
            view: dict[str, object] = {
                "testId": self.test_id,
                "phase": state.phase.value,
                "currentSection": section,
                "currentModule": module_number,
                "actions": [trigger.value for trigger in accepted_triggers(state)],
                "notices": list(self.notices),
                "abandoned": self.abandoned,
            }

            ref = state.module_ref
            if state.phase is Phase.DIRECTIONS:
                view["directions"] = module_directions(self.structure, ref)
            elif state.phase in (Phase.TEST, Phase.REVIEW):
                module = self.session.module(ref)
                view["module"] = _module_view(module)
                view["timeLimitSeconds"] = self.structure.module(ref).time_seconds
                view["remainingSeconds"] = self.remaining_seconds()
                view["paused"] = self._timer.is_paused
            elif isinstance(state, BreakState):
                view["breakDurationSeconds"] = self.break_duration_seconds
            elif state.phase is Phase.COMPLETE and self.final_report is not None:
                view["result"] = self.final_report.to_dict()
                view["persisted"] = self.persisted
                view["persistenceError"] = self.persistence_error
            return view


def _module_view(module: ModuleData) -> dict[str, object]:
    return {
        "questions": [
            {
                "id": question.id,
                "type": question.type,
                "topic": question.topic,
                "text": question.text,
                "options": list(question.options),
            }
            for question in module.questions
        ],
        "answers": dict(module.answers),
        "flagged": [q.id for q in module.questions if q.id in module.flagged_questions],
        "answered": module.answered_count,
        "unanswered": module.unanswered_count,
        "flaggedCount": module.flagged_count,
    }
