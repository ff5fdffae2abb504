"""Collaborators the orchestrator hands results to."""
from __future__ import annotations

from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from satflow.engine.report import FinalReport


class PersistenceSink(Protocol):
    def save_attempt(
        self,
        attempt_id: str,
        answers: dict[str, str],
        report: "FinalReport",
        total_time_spent: int,
    ) -> None:
        """Store a finished attempt. Raises PersistenceError on failure."""
        ...


class QuotaCollaborator(Protocol):
    def consume(self, items: int) -> None:
        """Record that ``items`` questions were used up."""
        ...
