"""Application configuration and constants."""
import os
from pathlib import Path


def _parse_int_env(name: str, default: int) -> int:
    """Parse integer from environment variable."""
    raw = os.environ.get(name)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _parse_float_env(name: str, default: float) -> float:
    """Parse float from environment variable."""
    raw = os.environ.get(name)
    if raw is None:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


# Database
DB_DIR = Path(os.environ.get("DB_DIR", Path.cwd() / "data"))
DB_DIR.mkdir(parents=True, exist_ok=True)
DATABASE_URL = os.environ.get(
    "DATABASE_URL", f"sqlite:///{DB_DIR / 'satflow.db'}"
)

# Test flow
BREAK_DURATION_SECONDS = _parse_int_env("BREAK_DURATION_SECONDS", 10 * 60)
TIMER_POLL_INTERVAL_SECONDS = _parse_float_env("TIMER_POLL_INTERVAL_SECONDS", 1.0)

# In-memory sessions kept by the API process
SESSION_REGISTRY_LIMIT = _parse_int_env("SESSION_REGISTRY_LIMIT", 500)
