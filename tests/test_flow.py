import pytest

from satflow.engine.errors import InvalidTransitionError
from satflow.engine.flow import (
    INITIAL_FLOW_STATE,
    BreakState,
    CompleteState,
    DirectionsState,
    Phase,
    ReviewState,
    StartState,
    TestState,
    Trigger,
    accepted_triggers,
    current_position,
    next_state,
)
from satflow.engine.structure import SAT_TEST_STRUCTURE as S, ModuleRef

RW1, RW2, M1, M2 = ModuleRef(0, 0), ModuleRef(0, 1), ModuleRef(1, 0), ModuleRef(1, 1)

EVERY_STATE = [
    StartState(),
    DirectionsState(RW1),
    TestState(RW2),
    ReviewState(M1),
    BreakState(M1),
    CompleteState(M2),
]


def test_full_walk_through_the_test() -> None:
    state = INITIAL_FLOW_STATE
    phases = [state.phase]
    script = [Trigger.BEGIN]
    for module_index in range(4):
        script += [Trigger.BEGIN_MODULE, Trigger.OPEN_REVIEW, Trigger.SUBMIT_MODULE]
        if module_index == 1:
            script.append(Trigger.CONTINUE)

    for trigger in script:
        state = next_state(state, trigger, S)
        phases.append(state.phase)

    assert [p.value for p in phases] == [
        "start",
        "directions", "test", "review",
        "directions", "test", "review",
        "break",
        "directions", "test", "review",
        "directions", "test", "review",
        "complete",
    ]
    assert state == CompleteState(M2)


def test_start_goes_to_first_module_directions() -> None:
    assert next_state(StartState(), Trigger.BEGIN, S) == DirectionsState(RW1)


def test_timer_expiry_forces_review() -> None:
    assert next_state(TestState(M1), Trigger.TIME_EXPIRED, S) == ReviewState(M1)


def test_return_to_question_keeps_module() -> None:
    assert next_state(ReviewState(RW2), Trigger.RETURN_TO_QUESTION, S) == TestState(RW2)


def test_first_module_of_section_moves_to_second() -> None:
    assert next_state(ReviewState(RW1), Trigger.SUBMIT_MODULE, S) == DirectionsState(RW2)
    assert next_state(ReviewState(M1), Trigger.SUBMIT_MODULE, S) == DirectionsState(M2)


def test_end_of_first_section_goes_to_break() -> None:
    state = next_state(ReviewState(RW2), Trigger.SUBMIT_MODULE, S)
    assert state == BreakState(M1)
    assert next_state(state, Trigger.CONTINUE, S) == DirectionsState(M1)


def test_end_of_last_section_completes() -> None:
    assert next_state(ReviewState(M2), Trigger.SUBMIT_MODULE, S) == CompleteState(M2)


@pytest.mark.parametrize("state", EVERY_STATE)
def test_every_phase_has_one_successor_per_accepted_trigger(state) -> None:
    for trigger in Trigger:
        if trigger in accepted_triggers(state):
            successor = next_state(state, trigger, S)
            assert successor.phase in Phase
        else:
            with pytest.raises(InvalidTransitionError):
                next_state(state, trigger, S)


def test_complete_is_terminal() -> None:
    assert accepted_triggers(CompleteState(M2)) == ()
    for trigger in Trigger:
        with pytest.raises(InvalidTransitionError) as excinfo:
            next_state(CompleteState(M2), trigger, S)
        assert excinfo.value.phase == "complete"


def test_current_position_reports_section_and_module_number() -> None:
    assert current_position(StartState(), S) == ("reading_writing", 1)
    assert current_position(TestState(RW2), S) == ("reading_writing", 2)
    assert current_position(BreakState(M1), S) == ("math", 1)
    assert current_position(CompleteState(M2), S) == ("math", 2)
