"""
Scoring of submitted answers against the answer key.

Every call recomputes the whole result from the questions and answers it is
given; module finalization and the final test report use the same function
over different question sets.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Iterable, Mapping, Sequence

from satflow.engine.questions import Question

SCALED_MIN = 200
SCALED_MAX = 800

# A missing or blank response is scored as incorrect, even against a blank key.
UNANSWERED_IS_INCORRECT = True


@dataclass(frozen=True)
class Tally:
    correct: int = 0
    total: int = 0

    @property
    def accuracy(self) -> float:
        """Percentage of correct answers in the bucket."""
        if self.total == 0:
            return 0.0
        return (self.correct / self.total) * 100

    def to_dict(self) -> dict[str, int]:
        return {"correct": self.correct, "total": self.total}


@dataclass(frozen=True)
class ScoreResult:
    score: int
    correct: int
    total: int
    by_topic: dict[str, Tally] = field(default_factory=dict)
    by_section: dict[str, Tally] = field(default_factory=dict)

    def to_dict(self) -> dict[str, object]:
        return {
            "score": self.score,
            "correct": self.correct,
            "total": self.total,
            "byTopic": {key: tally.to_dict() for key, tally in self.by_topic.items()},
            "bySection": {
                key: tally.to_dict() for key, tally in self.by_section.items()
            },
        }


def round_half_up(value: float) -> int:
    """Round to nearest integer with .5 going up."""
    return int(math.floor(value + 0.5))


def normalize_answer(value: str | None) -> str:
    return (value or "").strip().lower()


def is_correct(question: Question, answer: str | None) -> bool:
    """Case-insensitive, whitespace-trimmed comparison with the answer key."""
    response = normalize_answer(answer)
    if UNANSWERED_IS_INCORRECT and not response:
        return False
    return response == normalize_answer(question.correct_answer)


def _bump(buckets: dict[str, list[int]], key: str, correct: bool) -> None:
    bucket = buckets.setdefault(key, [0, 0])
    bucket[1] += 1
    if correct:
        bucket[0] += 1


def calculate_score(
    questions: Sequence[Question], answers: Mapping[str, str]
) -> ScoreResult:
    """
    Score answers against questions.

    Args:
        questions: Questions to score, in any order
        answers: Map of question id to the learner's response

    Returns:
        Overall, per-topic and per-section correctness with a 0-100 score.
    """
    correct = 0
    by_topic: dict[str, list[int]] = {}
    by_section: dict[str, list[int]] = {}

    for question in questions:
        hit = is_correct(question, answers.get(question.id))
        if hit:
            correct += 1
        _bump(by_topic, question.topic, hit)
        _bump(by_section, question.section, hit)

    total = len(questions)
    score = round_half_up((correct / total) * 100) if total > 0 else 0

    return ScoreResult(
        score=score,
        correct=correct,
        total=total,
        by_topic={key: Tally(c, t) for key, (c, t) in by_topic.items()},
        by_section={key: Tally(c, t) for key, (c, t) in by_section.items()},
    )


def scaled_section_score(accuracy: float) -> int:
    """Map a section accuracy percentage linearly onto 200-800."""
    accuracy = min(max(accuracy, 0.0), 100.0)
    return round_half_up(SCALED_MIN + (accuracy / 100) * (SCALED_MAX - SCALED_MIN))


def section_scaled_scores(result: ScoreResult) -> dict[str, int]:
    """Scaled score for every section bucket of a result."""
    return {
        section: scaled_section_score(tally.accuracy)
        for section, tally in result.by_section.items()
    }


def composite_score(section_scores: Iterable[int]) -> int:
    """Sum of section scaled scores (400-1600 for two sections)."""
    return sum(section_scores)
