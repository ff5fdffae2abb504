"""
Finished test attempt records.
"""

from __future__ import annotations

import enum
import json
from datetime import datetime, timezone
from typing import Any

import sqlalchemy as sa
from sqlalchemy import String, Text
from sqlalchemy.orm import Mapped, mapped_column

from satflow.database import Base


class AttemptStatus(str, enum.Enum):
    """Status of a test attempt."""

    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    ABANDONED = "abandoned"


class Attempt(Base):
    """
    Test attempt record.
    Stores the merged answers and the final report of one test-taking session.
    """

    __tablename__ = "test_attempts"

    # Opaque attempt id shared with the question supply
    id: Mapped[str] = mapped_column(String(64), primary_key=True, index=True)
    user_id: Mapped[str | None] = mapped_column(String(64), nullable=True, index=True)

    status: Mapped[str] = mapped_column(
        String(20), default=AttemptStatus.IN_PROGRESS.value, nullable=False
    )
    started_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )
    completed_at: Mapped[datetime | None] = mapped_column(
        sa.DateTime(timezone=True), nullable=True
    )

    # Results
    score: Mapped[int] = mapped_column(default=0, nullable=False)
    correct_answers: Mapped[int] = mapped_column(default=0, nullable=False)
    total_questions: Mapped[int] = mapped_column(default=0, nullable=False)
    composite_score: Mapped[int | None] = mapped_column(nullable=True)
    time_spent_seconds: Mapped[int] = mapped_column(default=0, nullable=False)

    answers_json: Mapped[str | None] = mapped_column(Text, nullable=True)
    feedback_json: Mapped[str | None] = mapped_column(Text, nullable=True)

    @property
    def answers(self) -> dict[str, str]:
        """Parse answers from JSON."""
        if not self.answers_json:
            return {}
        try:
            return json.loads(self.answers_json)
        except (json.JSONDecodeError, TypeError):
            return {}

    @answers.setter
    def answers(self, value: dict[str, str]) -> None:
        """Serialize answers to JSON."""
        self.answers_json = json.dumps(value, ensure_ascii=False) if value else None

    @property
    def feedback(self) -> dict[str, Any]:
        """Parse per-topic / per-section feedback from JSON."""
        if not self.feedback_json:
            return {}
        try:
            return json.loads(self.feedback_json)
        except (json.JSONDecodeError, TypeError):
            return {}

    @feedback.setter
    def feedback(self, value: dict[str, Any]) -> None:
        self.feedback_json = json.dumps(value, ensure_ascii=False) if value else None

    @property
    def is_completed(self) -> bool:
        return self.status == AttemptStatus.COMPLETED.value
