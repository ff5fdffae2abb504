"""Service layer for the learner's remaining question allowance."""
import logging

from sqlalchemy.orm import Session as DBSession, sessionmaker

from satflow.models.db.profile import Profile

logger = logging.getLogger(__name__)


def get_or_create_profile(
    db: DBSession, user_id: str, tests_remaining: int = 0
) -> Profile:
    profile = db.get(Profile, user_id)
    if profile:
        return profile
    profile = Profile(user_id=user_id, tests_remaining=tests_remaining)
    db.add(profile)
    db.commit()
    db.refresh(profile)
    return profile


def consume_questions(db: DBSession, user_id: str, items: int) -> int | None:
    """
    Decrement the remaining allowance by ``items``, never below zero.
    Returns the new allowance, or None if the user has no profile.
    """
    profile = db.get(Profile, user_id)
    if not profile:
        return None
    profile.tests_remaining = max(0, (profile.tests_remaining or 0) - items)
    db.commit()
    db.refresh(profile)
    return profile.tests_remaining


class SqlQuotaService:
    """Quota collaborator bound to one user."""

    def __init__(self, session_factory: sessionmaker, user_id: str) -> None:
        self._session_factory = session_factory
        self._user_id = user_id

    def consume(self, items: int) -> None:
        db = self._session_factory()
        try:
            remaining = consume_questions(db, self._user_id, items)
        finally:
            db.close()
        if remaining is None:
            logger.warning(f"No profile for user {self._user_id}; quota not updated")
        else:
            logger.info(f"User {self._user_id} used {items} questions, {remaining} left")
