"""Test session endpoints."""
from typing import Annotated, Callable

from fastapi import APIRouter, Depends, HTTPException

from satflow.database import SessionLocal
from satflow.engine.errors import (
    ConfigurationError,
    InvalidTransitionError,
    ModuleFinalizedError,
    UnknownQuestionError,
)
from satflow.engine.orchestrator import SessionOrchestrator
from satflow.models import AnswerRequest, FlagRequest, SessionCreate
from satflow.services.session_service import SessionRegistry
from satflow.utils.validation import validate_id

router = APIRouter(prefix="/api/sessions", tags=["sessions"])

_registry: SessionRegistry | None = None


def get_registry() -> SessionRegistry:
    """Dependency returning the process-wide session registry."""
    global _registry
    if _registry is None:
        _registry = SessionRegistry(SessionLocal)
    return _registry


Registry = Annotated[SessionRegistry, Depends(get_registry)]


def _load(registry: SessionRegistry, session_id: str) -> SessionOrchestrator:
    session_id = validate_id("sessionId", session_id)
    orchestrator = registry.get(session_id)
    if orchestrator is None:
        raise HTTPException(status_code=404, detail="Session not found")
    return orchestrator


def _run(
    registry: SessionRegistry,
    session_id: str,
    action: Callable[[SessionOrchestrator], object],
) -> dict[str, object]:
    """Apply an action and map engine errors to HTTP errors."""
    orchestrator = _load(registry, session_id)
    try:
        action(orchestrator)
    except UnknownQuestionError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except (InvalidTransitionError, ModuleFinalizedError) as e:
        raise HTTPException(status_code=409, detail=str(e))
    return orchestrator.snapshot()


@router.post("")
def create_session(payload: SessionCreate, registry: Registry) -> dict[str, object]:
    """Create a session from generated questions."""
    attempt_id = None
    if payload.attemptId is not None:
        attempt_id = validate_id("attemptId", payload.attemptId)
    try:
        kwargs = {}
        structure = payload.to_structure()
        if structure is not None:
            kwargs["structure"] = structure
        orchestrator = registry.create(
            [question.to_question() for question in payload.questions],
            attempt_id=attempt_id,
            user_id=payload.userId,
            **kwargs,
        )
    except ConfigurationError as e:
        raise HTTPException(status_code=422, detail=str(e))
    except KeyError:
        raise HTTPException(status_code=409, detail="Session already exists")
    return orchestrator.snapshot()


@router.get("/{session_id}")
def get_session(session_id: str, registry: Registry) -> dict[str, object]:
    return _load(registry, session_id).snapshot()


@router.post("/{session_id}/begin")
def begin(session_id: str, registry: Registry) -> dict[str, object]:
    return _run(registry, session_id, lambda o: o.begin())


@router.post("/{session_id}/modules/begin")
def begin_module(session_id: str, registry: Registry) -> dict[str, object]:
    return _run(registry, session_id, lambda o: o.begin_module())


@router.post("/{session_id}/answers")
def set_answer(
    session_id: str, payload: AnswerRequest, registry: Registry
) -> dict[str, object]:
    return _run(
        registry, session_id, lambda o: o.answer(payload.questionId, payload.answer)
    )


@router.post("/{session_id}/answers/clear")
def clear_answer(
    session_id: str, payload: FlagRequest, registry: Registry
) -> dict[str, object]:
    return _run(registry, session_id, lambda o: o.clear_answer(payload.questionId))


@router.post("/{session_id}/flags")
def toggle_flag(
    session_id: str, payload: FlagRequest, registry: Registry
) -> dict[str, object]:
    return _run(registry, session_id, lambda o: o.toggle_flag(payload.questionId))


@router.post("/{session_id}/review")
def open_review(session_id: str, registry: Registry) -> dict[str, object]:
    return _run(registry, session_id, lambda o: o.open_review())


@router.post("/{session_id}/review/return")
def return_to_question(session_id: str, registry: Registry) -> dict[str, object]:
    return _run(registry, session_id, lambda o: o.return_to_question())


@router.post("/{session_id}/modules/submit")
def submit_module(session_id: str, registry: Registry) -> dict[str, object]:
    return _run(registry, session_id, lambda o: o.submit_module())


@router.post("/{session_id}/break/continue")
def continue_after_break(session_id: str, registry: Registry) -> dict[str, object]:
    return _run(registry, session_id, lambda o: o.continue_after_break())


@router.post("/{session_id}/pause")
def pause(session_id: str, registry: Registry) -> dict[str, object]:
    return _run(registry, session_id, lambda o: o.pause())


@router.post("/{session_id}/resume")
def resume(session_id: str, registry: Registry) -> dict[str, object]:
    return _run(registry, session_id, lambda o: o.resume())


@router.post("/{session_id}/persist")
def retry_persistence(session_id: str, registry: Registry) -> dict[str, object]:
    """Retry storing a completed attempt after a failed save."""
    return _run(registry, session_id, lambda o: o.retry_persistence())


@router.post("/{session_id}/abandon")
def abandon(session_id: str, registry: Registry) -> dict[str, object]:
    orchestrator = _load(registry, session_id)
    registry.abandon(orchestrator.test_id)
    return {"status": "abandoned", "sessionId": orchestrator.test_id}


@router.get("/{session_id}/result")
def get_result(session_id: str, registry: Registry) -> dict[str, object]:
    """Final report of a completed session."""
    orchestrator = _load(registry, session_id)
    if orchestrator.final_report is None:
        raise HTTPException(status_code=409, detail="Session is not complete")
    if orchestrator.persisted:
        # Handed off; an unsaved report stays live for POST /persist.
        registry.discard(orchestrator.test_id)
    return {
        "persisted": orchestrator.persisted,
        "result": orchestrator.final_report.to_dict(),
    }
