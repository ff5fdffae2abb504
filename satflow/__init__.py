"""Timed SAT-style test delivery engine with scoring and attempt storage."""
