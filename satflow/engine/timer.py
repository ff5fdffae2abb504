"""Per-module countdown with pause/resume and a one-shot expiry callback."""
from __future__ import annotations

import logging
import threading
import time
from typing import Callable, Protocol

logger = logging.getLogger(__name__)


class Clock(Protocol):
    def now(self) -> float:
        """Seconds from an arbitrary, monotonic origin."""
        ...


class MonotonicClock:
    def now(self) -> float:
        return time.monotonic()


class ModuleTimer:
    """
    Countdown owned by the orchestrator.

    The timer does not run by itself: ``poll()`` checks the clock and fires
    ``on_expire`` once the remaining time reaches zero. A TimerRunner can call
    ``poll()`` from a background thread.
    """

    def __init__(self, clock: Clock | None = None) -> None:
        self._clock = clock or MonotonicClock()
        self._limit = 0.0
        self._remaining_at_resume = 0.0
        self._resumed_at: float | None = None
        self._on_expire: Callable[[], None] | None = None
        self._expired = False
        self._active = False

    @property
    def limit(self) -> float:
        return self._limit

    @property
    def is_active(self) -> bool:
        return self._active

    @property
    def is_paused(self) -> bool:
        return self._active and self._resumed_at is None

    @property
    def has_expired(self) -> bool:
        return self._expired

    def start(self, limit_seconds: float, on_expire: Callable[[], None]) -> None:
        """Start a new countdown, replacing any previous one."""
        if limit_seconds <= 0:
            raise ValueError("limit_seconds must be positive")
        self._limit = float(limit_seconds)
        self._remaining_at_resume = float(limit_seconds)
        self._resumed_at = self._clock.now()
        self._on_expire = on_expire
        self._expired = False
        self._active = True

    def pause(self) -> None:
        if not self._active or self._resumed_at is None:
            return
        self._remaining_at_resume = self.remaining()
        self._resumed_at = None

    def resume(self) -> None:
        if not self._active or self._resumed_at is not None:
            return
        self._resumed_at = self._clock.now()

    def stop(self) -> None:
        """Freeze the countdown and drop the callback."""
        if self._active:
            self._remaining_at_resume = self.remaining()
        self._resumed_at = None
        self._on_expire = None
        self._active = False

    def remaining(self) -> float:
        if self._resumed_at is None:
            return max(0.0, self._remaining_at_resume)
        running = self._clock.now() - self._resumed_at
        return max(0.0, self._remaining_at_resume - running)

    def remaining_seconds(self) -> int:
        """Whole seconds left, rounded up so 0 means expired."""
        remaining = self.remaining()
        whole = int(remaining)
        return whole if whole == remaining else whole + 1

    def elapsed(self) -> float:
        return self._limit - self.remaining()

    def poll(self) -> bool:
        """Fire the expiry callback if the countdown has run out."""
        if not self._active or self._expired or self._resumed_at is None:
            return False
        if self.remaining() > 0:
            return False
        self._expired = True
        callback = self._on_expire
        self._on_expire = None
        if callback is not None:
            callback()
        return True


class TimerRunner:
    """Daemon thread calling ``tick`` at a fixed interval until stopped."""

    def __init__(
        self, tick: Callable[[], object], interval: float = 1.0, name: str = "module_timer"
    ) -> None:
        self._tick = tick
        self._interval = interval
        self._name = name
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    def start(self) -> None:
        if self._thread is not None:
            return

        def _worker() -> None:
            while not self._stop.wait(self._interval):
                try:
                    self._tick()
                except Exception as e:
                    logger.error(f"Timer tick failed: {e}")

        self._thread = threading.Thread(target=_worker, name=self._name, daemon=True)
        self._thread.start()

    def stop(self) -> None:
        # The worker exits at its next wait; callers may hold the lock it needs.
        self._stop.set()

    def join(self, timeout: float | None = None) -> None:
        if self._thread is not None:
            self._thread.join(timeout)

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive() and not self._stop.is_set()
