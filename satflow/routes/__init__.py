"""API routes."""
from satflow.routes import sessions

__all__ = ["sessions"]
