"""Utility modules."""
from satflow.utils.validation import validate_id

__all__ = ["validate_id"]
