"""Session-related Pydantic models."""
from pydantic import BaseModel, Field

from satflow.engine.questions import Question
from satflow.engine.structure import TestStructure, build_structure


class QuestionPayload(BaseModel):
    """A generated question as supplied by the test generator."""

    id: str = Field(..., min_length=1)
    section: str = Field(..., min_length=1)
    topic: str = ""
    correct_answer: str
    type: str = "multiple_choice"
    difficulty: str = "normal"
    text: str = ""
    options: list[str] = Field(default_factory=list)
    explanation: str = ""

    def to_question(self) -> Question:
        return Question.from_dict(self.model_dump())


class ModulePayload(BaseModel):
    questions: int
    timeSeconds: int


class SectionPayload(BaseModel):
    """One row of a custom structure table."""

    name: str = Field(..., min_length=1)
    displayName: str | None = None
    modules: list[ModulePayload]


class SessionCreate(BaseModel):
    """Model for creating a test session."""

    attemptId: str | None = None
    userId: str | None = None
    questions: list[QuestionPayload] = Field(..., min_length=1)
    structure: list[SectionPayload] | None = None

    def to_structure(self) -> TestStructure | None:
        """Build and validate the custom structure, if one was sent."""
        if not self.structure:
            return None
        return build_structure(
            {
                section.name: (
                    section.displayName or section.name,
                    [(m.questions, m.timeSeconds) for m in section.modules],
                )
                for section in self.structure
            }
        )


class AnswerRequest(BaseModel):
    questionId: str = Field(..., min_length=1)
    answer: str


class FlagRequest(BaseModel):
    questionId: str = Field(..., min_length=1)
