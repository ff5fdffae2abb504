"""Whole-test report built once the last module is finalized."""
from __future__ import annotations

from dataclasses import dataclass, field

from satflow.engine.scoring import (
    ScoreResult,
    Tally,
    calculate_score,
    composite_score,
    scaled_section_score,
)
from satflow.engine.store import TestSession


@dataclass(frozen=True)
class ModuleSummary:
    section: str
    module_number: int
    score: int | None
    time_spent: int | None
    answered: int
    total: int

    def to_dict(self) -> dict[str, object]:
        return {
            "section": self.section,
            "module": self.module_number,
            "score": self.score,
            "timeSpent": self.time_spent,
            "answered": self.answered,
            "total": self.total,
        }


@dataclass(frozen=True)
class FinalReport:
    test_id: str
    result: ScoreResult
    scaled: dict[str, int]
    composite: int
    total_time_spent: int
    answers: dict[str, str]
    modules: list[ModuleSummary] = field(default_factory=list)

    @property
    def question_count(self) -> int:
        return self.result.total

    def to_dict(self) -> dict[str, object]:
        payload = self.result.to_dict()
        payload.update(
            {
                "testId": self.test_id,
                "scaled": dict(self.scaled),
                "composite": self.composite,
                "timeSpent": self.total_time_spent,
                "answers": dict(self.answers),
                "modules": [module.to_dict() for module in self.modules],
            }
        )
        return payload


def build_final_report(session: TestSession) -> FinalReport:
    """Score the concatenation of every module and derive scaled scores."""
    questions = session.all_questions()
    answers = session.all_answers()
    result = calculate_score(questions, answers)

    scaled = {
        section.name: scaled_section_score(
            result.by_section.get(section.name, Tally()).accuracy
        )
        for section in session.structure.sections
    }

    modules = [
        ModuleSummary(
            section=session.structure.section_name(ref),
            module_number=ref.module_number,
            score=module.score,
            time_spent=module.time_spent,
            answered=module.answered_count,
            total=len(module.questions),
        )
        for ref, module in session.items()
    ]

    return FinalReport(
        test_id=session.test_id,
        result=result,
        scaled=scaled,
        composite=composite_score(scaled.values()),
        total_time_spent=session.total_time_spent(),
        answers=answers,
        modules=modules,
    )
