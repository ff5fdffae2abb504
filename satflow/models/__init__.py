"""Pydantic models."""
from satflow.models.sessions import (
    AnswerRequest,
    FlagRequest,
    QuestionPayload,
    SectionPayload,
    SessionCreate,
)

__all__ = [
    "AnswerRequest",
    "FlagRequest",
    "QuestionPayload",
    "SectionPayload",
    "SessionCreate",
]
