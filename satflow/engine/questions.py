from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Mapping


class Section(str, Enum):
    READING_WRITING = "reading_writing"
    MATH = "math"


@dataclass(frozen=True)
class Question:
    id: str
    section: str  # Section value
    topic: str
    correct_answer: str
    type: str = "multiple_choice"  # "multiple_choice" | "grid_in"
    difficulty: str = "normal"
    text: str = ""
    options: tuple[str, ...] = field(default_factory=tuple)
    explanation: str = ""

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Question":
        """Build a question from a generated-test record."""
        options = data.get("options") or ()
        return cls(
            id=str(data["id"]),
            section=str(data["section"]),
            topic=str(data.get("topic") or ""),
            correct_answer=str(data.get("correct_answer") or ""),
            type=str(data.get("type") or "multiple_choice"),
            difficulty=str(data.get("difficulty") or "normal"),
            text=str(data.get("text") or ""),
            options=tuple(str(option) for option in options),
            explanation=str(data.get("explanation") or ""),
        )
