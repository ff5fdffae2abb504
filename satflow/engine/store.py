"""
Per-module working state for one test-taking session.

Each module owns its own answer map and flag set; the session is an arena of
modules keyed by ModuleRef so that whole-test aggregation is a loop instead of
four named fields.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import Iterable, Iterator, Sequence

from satflow.engine.errors import (
    ConfigurationError,
    ModuleFinalizedError,
    UnknownQuestionError,
)
from satflow.engine.questions import Question
from satflow.engine.structure import ModuleRef, TestStructure

logger = logging.getLogger(__name__)


@dataclass
class ModuleData:
    questions: tuple[Question, ...]
    answers: dict[str, str] = field(default_factory=dict)
    flagged_questions: set[str] = field(default_factory=set)
    score: int | None = None
    time_spent: int | None = None

    def __post_init__(self) -> None:
        self.questions = tuple(self.questions)
        self._ids = frozenset(question.id for question in self.questions)

    @property
    def question_ids(self) -> frozenset[str]:
        return self._ids

    @property
    def is_finalized(self) -> bool:
        return self.score is not None

    @property
    def answered_count(self) -> int:
        return len(self.answers)

    @property
    def unanswered_count(self) -> int:
        return len(self.questions) - len(self.answers)

    @property
    def flagged_count(self) -> int:
        return len(self.flagged_questions)

    def unanswered_ids(self) -> list[str]:
        """Unanswered question ids in delivery order."""
        return [q.id for q in self.questions if q.id not in self.answers]


class TestSession:
    """All module state for one attempt."""

    def __init__(
        self,
        test_id: str,
        structure: TestStructure,
        modules: dict[ModuleRef, ModuleData],
    ) -> None:
        self.test_id = test_id
        self.structure = structure
        self._modules = modules

    @classmethod
    def from_questions(
        cls,
        test_id: str,
        questions: Sequence[Question],
        structure: TestStructure,
    ) -> "TestSession":
        """
        Partition a generated question list into the structure's modules.

        Questions are grouped by section tag in their original order. When a
        section holds exactly the number of items the table asks for, the
        table's per-module counts are used; otherwise the first module takes
        the larger half.
        """
        structure.validate()
        seen: set[str] = set()
        for question in questions:
            if question.id in seen:
                raise ConfigurationError(f"Duplicate question id '{question.id}'")
            seen.add(question.id)

        known_sections = {section.name for section in structure.sections}
        stray = sorted({q.section for q in questions} - known_sections)
        if stray:
            raise ConfigurationError(f"Questions tagged with unknown sections: {stray}")

        modules: dict[ModuleRef, ModuleData] = {}
        for section_index, section in enumerate(structure.sections):
            items = [q for q in questions if q.section == section.name]
            counts = [module.questions for module in section.modules]
            if len(items) != sum(counts):
                first = math.ceil(len(items) / 2)
                counts = [first, len(items) - first]

            start = 0
            for module_index, count in enumerate(counts):
                chunk = items[start:start + count]
                start += count
                if not chunk:
                    raise ConfigurationError(
                        f"{section.name} module {module_index + 1} has no questions"
                    )
                modules[ModuleRef(section_index, module_index)] = ModuleData(
                    questions=tuple(chunk)
                )

        logger.info(
            f"Created session {test_id} with {len(questions)} questions "
            f"across {len(modules)} modules"
        )
        return cls(test_id, structure, modules)

    def module(self, ref: ModuleRef) -> ModuleData:
        try:
            return self._modules[ref]
        except KeyError:
            raise ConfigurationError(f"No module at {ref}") from None

    def items(self) -> Iterator[tuple[ModuleRef, ModuleData]]:
        """Modules in delivery order."""
        for ref in self.structure.refs():
            yield ref, self._modules[ref]

    def _writable(self, ref: ModuleRef, question_id: str, action: str) -> ModuleData:
        module = self.module(ref)
        if module.is_finalized:
            logger.error(
                f"Rejected {action} for '{question_id}' on finalized module {ref} "
                f"of session {self.test_id}"
            )
            raise ModuleFinalizedError(f"Module {ref} is already finalized")
        if question_id not in module.question_ids:
            raise UnknownQuestionError(
                f"Question '{question_id}' is not part of module {ref}"
            )
        return module

    def set_answer(self, ref: ModuleRef, question_id: str, value: str) -> None:
        """Insert or overwrite one answer."""
        module = self._writable(ref, question_id, "answer")
        module.answers[question_id] = value

    def clear_answer(self, ref: ModuleRef, question_id: str) -> None:
        """Remove an answer so the question counts as unanswered again."""
        module = self._writable(ref, question_id, "clear")
        module.answers.pop(question_id, None)

    def toggle_flag(self, ref: ModuleRef, question_id: str) -> bool:
        """Flip the review flag. Returns True if the question is now flagged."""
        module = self._writable(ref, question_id, "flag")
        if question_id in module.flagged_questions:
            module.flagged_questions.discard(question_id)
            return False
        module.flagged_questions.add(question_id)
        return True

    def finalize_module(
        self, ref: ModuleRef, score: int, time_spent_seconds: int
    ) -> None:
        """Freeze a module's score and time spent. Allowed once."""
        module = self.module(ref)
        if module.is_finalized:
            logger.error(f"Module {ref} of session {self.test_id} finalized twice")
            raise ModuleFinalizedError(f"Module {ref} is already finalized")
        module.score = score
        module.time_spent = time_spent_seconds
        logger.info(
            f"Finalized module {ref} of session {self.test_id}: "
            f"score={score} time_spent={time_spent_seconds}s"
        )

    def all_questions(self) -> list[Question]:
        return [q for _, module in self.items() for q in module.questions]

    def all_answers(self) -> dict[str, str]:
        merged: dict[str, str] = {}
        for _, module in self.items():
            merged.update(module.answers)
        return merged

    def total_time_spent(self) -> int:
        return sum(module.time_spent or 0 for _, module in self.items())

    def question_count(self) -> int:
        return sum(len(module.questions) for _, module in self.items())


def questions_from_records(records: Iterable[dict]) -> list[Question]:
    return [Question.from_dict(record) for record in records]
