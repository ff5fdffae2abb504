import threading

import pytest

from satflow.engine.timer import ModuleTimer, TimerRunner


def test_countdown_and_single_expiry(clock) -> None:
    fired = []
    timer = ModuleTimer(clock)
    timer.start(30, lambda: fired.append(True))

    clock.advance(10)
    assert timer.remaining() == 20
    assert timer.poll() is False

    clock.advance(25)
    assert timer.remaining() == 0
    assert timer.poll() is True
    assert timer.poll() is False
    assert fired == [True]
    assert timer.has_expired


def test_pause_keeps_remaining_time(clock) -> None:
    timer = ModuleTimer(clock)
    timer.start(60, lambda: None)
    clock.advance(15)
    timer.pause()
    assert timer.is_paused

    clock.advance(500)
    assert timer.remaining() == 45
    assert timer.poll() is False

    timer.resume()
    clock.advance(5)
    assert timer.remaining() == 40
    assert timer.elapsed() == 20


def test_pause_and_resume_are_idempotent(clock) -> None:
    timer = ModuleTimer(clock)
    timer.start(60, lambda: None)
    timer.resume()
    clock.advance(10)
    timer.pause()
    timer.pause()
    clock.advance(10)
    timer.resume()
    timer.resume()
    clock.advance(10)
    assert timer.remaining() == 40


def test_stop_drops_callback_and_freezes(clock) -> None:
    fired = []
    timer = ModuleTimer(clock)
    timer.start(10, lambda: fired.append(True))
    clock.advance(4)
    timer.stop()
    clock.advance(100)
    assert timer.poll() is False
    assert fired == []
    assert timer.remaining() == 6
    assert timer.elapsed() == 4
    assert not timer.is_active


def test_restart_resets_expiry(clock) -> None:
    fired = []
    timer = ModuleTimer(clock)
    timer.start(5, lambda: fired.append("first"))
    clock.advance(5)
    timer.poll()
    timer.start(5, lambda: fired.append("second"))
    assert not timer.has_expired
    clock.advance(6)
    timer.poll()
    assert fired == ["first", "second"]


def test_remaining_seconds_rounds_up(clock) -> None:
    timer = ModuleTimer(clock)
    timer.start(30, lambda: None)
    clock.advance(0.2)
    assert timer.remaining_seconds() == 30
    clock.advance(30)
    assert timer.remaining_seconds() == 0


def test_start_requires_positive_limit(clock) -> None:
    with pytest.raises(ValueError):
        ModuleTimer(clock).start(0, lambda: None)


def test_runner_ticks_until_stopped() -> None:
    ticked = threading.Event()
    runner = TimerRunner(ticked.set, interval=0.01)
    runner.start()
    assert ticked.wait(timeout=2)
    assert runner.is_running
    runner.stop()
    runner.join(timeout=2)
    assert not runner.is_running
