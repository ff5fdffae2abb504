"""Service layer for stored test attempts."""
import logging
from datetime import datetime, timezone

from fastapi import HTTPException
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session as DBSession, sessionmaker

from satflow.engine.errors import PersistenceError
from satflow.engine.report import FinalReport
from satflow.models.db.attempt import Attempt, AttemptStatus

logger = logging.getLogger(__name__)


def get_or_create_attempt(
    db: DBSession,
    attempt_id: str,
    user_id: str | None = None,
) -> Attempt:
    """Get existing attempt or create an in-progress one."""
    attempt = db.get(Attempt, attempt_id)
    if attempt:
        return attempt

    attempt = Attempt(
        id=attempt_id,
        user_id=user_id,
        status=AttemptStatus.IN_PROGRESS.value,
    )
    db.add(attempt)
    db.commit()
    db.refresh(attempt)
    return attempt


def open_attempt(
    db: DBSession,
    attempt_id: str,
    user_id: str | None = None,
) -> Attempt:
    """Get or create an attempt that a new session may run under."""
    attempt = get_or_create_attempt(db, attempt_id, user_id)
    if user_id and attempt.user_id and attempt.user_id != user_id:
        raise HTTPException(status_code=400, detail="Mismatched userId")
    if attempt.status != AttemptStatus.IN_PROGRESS.value:
        raise HTTPException(
            status_code=409, detail=f"Attempt already {attempt.status}"
        )
    return attempt


def complete_attempt(
    db: DBSession,
    attempt_id: str,
    answers: dict[str, str],
    report: FinalReport,
    total_time_spent: int,
    user_id: str | None = None,
) -> Attempt:
    """Write the final report of an attempt."""
    attempt = get_or_create_attempt(db, attempt_id, user_id)
    result = report.result

    attempt.status = AttemptStatus.COMPLETED.value
    attempt.completed_at = datetime.now(timezone.utc)
    attempt.answers = answers
    attempt.score = result.score
    attempt.correct_answers = result.correct
    attempt.total_questions = result.total
    attempt.composite_score = report.composite
    attempt.time_spent_seconds = total_time_spent
    attempt.feedback = {
        "byTopic": {k: v.to_dict() for k, v in result.by_topic.items()},
        "bySection": {k: v.to_dict() for k, v in result.by_section.items()},
        "scaled": dict(report.scaled),
        "modules": [module.to_dict() for module in report.modules],
    }

    db.commit()
    db.refresh(attempt)
    return attempt


def abandon_attempt(db: DBSession, attempt_id: str) -> Attempt | None:
    """Mark an in-progress attempt as abandoned; closed attempts are kept."""
    attempt = db.get(Attempt, attempt_id)
    if not attempt:
        return None
    if attempt.status != AttemptStatus.IN_PROGRESS.value:
        return attempt

    attempt.status = AttemptStatus.ABANDONED.value
    db.commit()
    db.refresh(attempt)
    return attempt


def get_attempt(db: DBSession, attempt_id: str) -> Attempt | None:
    return db.get(Attempt, attempt_id)


def get_attempts_by_user(
    db: DBSession,
    user_id: str,
    status: str | None = None,
    limit: int = 100,
    offset: int = 0,
) -> list[Attempt]:
    """Get attempts for a user, newest first."""
    query = select(Attempt).where(Attempt.user_id == user_id)
    if status:
        query = query.where(Attempt.status == status)
    query = query.order_by(Attempt.started_at.desc()).limit(limit).offset(offset)
    return list(db.execute(query).scalars().all())


class SqlAttemptSink:
    """Persistence sink writing finished attempts through SQLAlchemy."""

    def __init__(self, session_factory: sessionmaker, user_id: str | None = None) -> None:
        self._session_factory = session_factory
        self._user_id = user_id

    def save_attempt(
        self,
        attempt_id: str,
        answers: dict[str, str],
        report: FinalReport,
        total_time_spent: int,
    ) -> None:
        db = self._session_factory()
        try:
            complete_attempt(
                db, attempt_id, answers, report, total_time_spent, self._user_id
            )
        except SQLAlchemyError as e:
            db.rollback()
            raise PersistenceError(f"Could not store attempt {attempt_id}: {e}") from e
        finally:
            db.close()
        logger.info(f"Stored attempt {attempt_id} with score {report.result.score}")
