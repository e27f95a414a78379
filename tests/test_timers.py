"""Tests for the thread-backed timer used by the index service."""

import threading
import time

import pytest

from obs_index.index.timers import ThreadingTimer


SHORT = 0.02
WAIT = 2.0

pytestmark = pytest.mark.slow


@pytest.fixture
def timer():
    timer = ThreadingTimer("test-timer")
    yield timer
    timer.cancel()


def test_fires_once_after_delay(timer):
    fired = threading.Event()
    calls = []

    def callback():
        calls.append(threading.current_thread().name)
        fired.set()

    timer.arm(SHORT, callback)
    assert timer.active

    assert fired.wait(WAIT)
    time.sleep(SHORT)
    assert calls == ["test-timer"]
    assert not timer.active


def test_negative_delay_fires_immediately(timer):
    fired = threading.Event()

    timer.arm(-5, fired.set)

    assert fired.wait(WAIT)


def test_rearm_replaces_pending_callback(timer):
    first = threading.Event()
    second = threading.Event()

    timer.arm(0.2, first.set)
    timer.arm(SHORT, second.set)

    assert second.wait(WAIT)
    time.sleep(0.3)
    assert not first.is_set()


def test_cancel_prevents_callback(timer):
    fired = threading.Event()

    timer.arm(0.1, fired.set)
    timer.cancel()

    assert not timer.active
    assert not fired.wait(0.3)


def test_superseded_run_is_dropped(timer):
    stale = threading.Event()
    current = threading.Event()

    timer.arm(WAIT, current.set)
    outdated_generation = timer._generation
    timer.arm(SHORT, current.set)

    # a thread that already passed Timer.cancel() still reaches _fire
    timer._fire(outdated_generation, stale.set)

    assert not stale.is_set()
    assert timer.active
    assert current.wait(WAIT)


def test_callback_may_rearm_itself(timer):
    runs = []
    done = threading.Event()

    def callback():
        runs.append(len(runs))
        if len(runs) < 3:
            timer.arm(SHORT, callback)
        else:
            done.set()

    timer.arm(SHORT, callback)

    assert done.wait(WAIT)
    assert runs == [0, 1, 2]
