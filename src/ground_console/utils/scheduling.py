"""
Timer scheduling for launch steps.

Production code uses ThreadingScheduler; anything with the same two
methods can drive a sequence (tests use a manual clock).
"""

from abc import ABC, abstractmethod
from typing import Callable
import logging
import threading

logger = logging.getLogger(__name__)


class ScheduledCall(ABC):
    """Handle of a pending callback."""

    @abstractmethod
    def cancel(self) -> None:
        """Prevent the callback from starting. No effect once it has run."""
        pass


class Scheduler(ABC):
    """Runs callbacks after a delay without blocking the caller."""

    @abstractmethod
    def call_later(self, delay_s: float, callback: Callable[[], None]) -> ScheduledCall:
        pass


class _TimerCall(ScheduledCall):
    def __init__(self, timer: threading.Timer):
        self._timer = timer

    def cancel(self) -> None:
        self._timer.cancel()


class ThreadingScheduler(Scheduler):
    """One daemon threading.Timer per callback."""

    def call_later(self, delay_s: float, callback: Callable[[], None]) -> ScheduledCall:
        timer = threading.Timer(max(0.0, delay_s), callback)
        timer.daemon = True
        timer.start()
        return _TimerCall(timer)
