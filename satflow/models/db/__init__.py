"""Database models."""
from satflow.models.db.attempt import Attempt, AttemptStatus
from satflow.models.db.profile import Profile

__all__ = [
    "Attempt",
    "AttemptStatus",
    "Profile",
]
