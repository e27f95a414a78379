"""
Single-purpose timers.

Each timer holds at most one pending callback: arming it again cancels the
previous arming.
"""

import threading
from typing import Callable, Optional, Protocol


class Timer(Protocol):
    @property
    def active(self) -> bool: ...

    def arm(self, delay_seconds: float, callback: Callable[[], None]) -> None: ...

    def cancel(self) -> None: ...


class ThreadingTimer:
    """Timer backed by a daemon ``threading.Timer``."""

    def __init__(self, name: str = "obs-index-timer"):
        self.name = name
        self._lock = threading.Lock()
        self._timer: Optional[threading.Timer] = None
        self._generation = 0

    @property
    def active(self) -> bool:
        with self._lock:
            return self._timer is not None

    def arm(self, delay_seconds: float, callback: Callable[[], None]) -> None:
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
            self._generation += 1
            generation = self._generation
            timer = threading.Timer(max(0.0, delay_seconds), self._fire, args=(generation, callback))
            timer.daemon = True
            timer.name = self.name
            self._timer = timer
            timer.start()

    def cancel(self) -> None:
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None
            self._generation += 1

    def _fire(self, generation: int, callback: Callable[[], None]) -> None:
        with self._lock:
            # A newer arm() or cancel() superseded this run
            if generation != self._generation:
                return
            self._timer = None
        callback()
