"""
Phase state machine for test delivery.

A flow state is one of six phase dataclasses; phases that concern a module
carry its ModuleRef, phases that do not carry nothing, so a phase can never be
paired with data it should not have. ``next_state`` is the only place new
states are built from old ones.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Union

from satflow.engine.errors import InvalidTransitionError
from satflow.engine.structure import ModuleRef, TestStructure


class Phase(str, Enum):
    START = "start"
    DIRECTIONS = "directions"
    TEST = "test"
    REVIEW = "review"
    BREAK = "break"
    COMPLETE = "complete"


class Trigger(str, Enum):
    BEGIN = "begin"
    BEGIN_MODULE = "begin_module"
    OPEN_REVIEW = "open_review"
    TIME_EXPIRED = "time_expired"
    RETURN_TO_QUESTION = "return_to_question"
    SUBMIT_MODULE = "submit_module"
    CONTINUE = "continue"


@dataclass(frozen=True)
class StartState:
    phase = Phase.START

    @property
    def module_ref(self) -> ModuleRef | None:
        return None


@dataclass(frozen=True)
class DirectionsState:
    ref: ModuleRef
    phase = Phase.DIRECTIONS

    @property
    def module_ref(self) -> ModuleRef | None:
        return self.ref


@dataclass(frozen=True)
class TestState:
    ref: ModuleRef
    phase = Phase.TEST

    @property
    def module_ref(self) -> ModuleRef | None:
        return self.ref


@dataclass(frozen=True)
class ReviewState:
    ref: ModuleRef
    phase = Phase.REVIEW

    @property
    def module_ref(self) -> ModuleRef | None:
        return self.ref


@dataclass(frozen=True)
class BreakState:
    next_ref: ModuleRef
    phase = Phase.BREAK

    @property
    def module_ref(self) -> ModuleRef | None:
        return self.next_ref


@dataclass(frozen=True)
class CompleteState:
    last_ref: ModuleRef
    phase = Phase.COMPLETE

    @property
    def module_ref(self) -> ModuleRef | None:
        return self.last_ref


FlowState = Union[
    StartState, DirectionsState, TestState, ReviewState, BreakState, CompleteState
]

INITIAL_FLOW_STATE: FlowState = StartState()


def current_position(
    state: FlowState, structure: TestStructure
) -> tuple[str, int]:
    """(section name, 1-based module number) the state points at."""
    ref = state.module_ref or structure.first_ref()
    return structure.section_name(ref), ref.module_number


def _after_module(ref: ModuleRef, structure: TestStructure) -> FlowState:
    if not structure.is_last_in_section(ref):
        return DirectionsState(structure.next_in_section(ref))
    if not structure.is_last_section(ref):
        return BreakState(structure.first_of_next_section(ref))
    return CompleteState(ref)


def next_state(
    state: FlowState, trigger: Trigger, structure: TestStructure
) -> FlowState:
    """
    Compute the successor of ``state`` for ``trigger``.

    Raises:
        InvalidTransitionError: the trigger is not accepted in this phase,
            including every trigger once the test is complete.
    """
    if isinstance(state, StartState):
        if trigger is Trigger.BEGIN:
            return DirectionsState(structure.first_ref())

    elif isinstance(state, DirectionsState):
        if trigger is Trigger.BEGIN_MODULE:
            return TestState(state.ref)

    elif isinstance(state, TestState):
        if trigger in (Trigger.OPEN_REVIEW, Trigger.TIME_EXPIRED):
            return ReviewState(state.ref)

    elif isinstance(state, ReviewState):
        if trigger is Trigger.RETURN_TO_QUESTION:
            return TestState(state.ref)
        if trigger is Trigger.SUBMIT_MODULE:
            return _after_module(state.ref, structure)

    elif isinstance(state, BreakState):
        if trigger is Trigger.CONTINUE:
            return DirectionsState(state.next_ref)

    raise InvalidTransitionError(state.phase.value, trigger.value)


def accepted_triggers(state: FlowState) -> tuple[Trigger, ...]:
    """Triggers ``next_state`` accepts in the given phase."""
    return _ACCEPTED[state.phase]


_ACCEPTED: dict[Phase, tuple[Trigger, ...]] = {
    Phase.START: (Trigger.BEGIN,),
    Phase.DIRECTIONS: (Trigger.BEGIN_MODULE,),
    Phase.TEST: (Trigger.OPEN_REVIEW, Trigger.TIME_EXPIRED),
    Phase.REVIEW: (Trigger.RETURN_TO_QUESTION, Trigger.SUBMIT_MODULE),
    Phase.BREAK: (Trigger.CONTINUE,),
    Phase.COMPLETE: (),
}
