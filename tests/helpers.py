"""
Shared test helpers: sample records, frame builders and a manual clock.
"""

import time
from dataclasses import replace
from typing import Callable, List, Optional

from ground_console.communication.protocol import (
    FrameBuilder,
    IntegrityPolicy,
    encode_frame,
)
from ground_console.communication.telemetry import TelemetryRecord
from ground_console.utils.scheduling import ScheduledCall, Scheduler

# Neither record encodes to a frame with a 0xAA byte past the marker;
# RECORD_WITH_MARKER does (battery 17.0 % packs to 0x00AA)
RECORD_A = TelemetryRecord(
    timestamp_ms=1000,
    accel_x=0.5,
    accel_y=-0.25,
    accel_z=9.81,
    battery_pct=87.0,
    rssi_dbm=-72.5,
    satellite_count=9,
    mission_time_s=12.5,
    altitude_m=947.0,
)

RECORD_B = TelemetryRecord(
    timestamp_ms=1100,
    accel_x=0.25,
    accel_y=0.5,
    accel_z=9.75,
    battery_pct=86.5,
    rssi_dbm=-73.0,
    satellite_count=10,
    mission_time_s=12.6,
    latitude=32.99,
    longitude=-106.975,
    altitude_m=950.0,
)

RECORD_WITH_MARKER = replace(RECORD_A, battery_pct=17.0)


def telemetry_frame(record: TelemetryRecord, policy: Optional[IntegrityPolicy] = None) -> bytes:
    return encode_frame(FrameBuilder.telemetry(record), policy)


def corrupt_check(frame: bytes, size: int = 2) -> bytes:
    """Replace the trailing check bytes with a wrong value."""
    check = frame[-size:]
    bad = bytes(size) if check != bytes(size) else b"\x01" * size
    return frame[:-size] + bad


def wait_for(predicate: Callable[[], bool], timeout: float = 2.0) -> bool:
    """Poll until predicate() is true or the timeout expires."""
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()


class _ManualCall(ScheduledCall):
    def __init__(self, due_ms: float, callback: Callable[[], None]):
        self.due_ms = due_ms
        self.callback = callback
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class ManualScheduler(Scheduler):
    """Scheduler driven by advance(); nothing runs on its own."""

    def __init__(self):
        self.now_ms = 0.0
        self._calls: List[_ManualCall] = []

    def call_later(self, delay_s: float, callback: Callable[[], None]) -> ScheduledCall:
        call = _ManualCall(self.now_ms + delay_s * 1000.0, callback)
        self._calls.append(call)
        return call

    @property
    def pending(self) -> int:
        return sum(1 for call in self._calls if not call.cancelled)

    def advance(self, ms: float) -> None:
        """Move the clock forward, running due callbacks in due order."""
        target = self.now_ms + ms
        while True:
            due = [c for c in self._calls if not c.cancelled and c.due_ms <= target]
            if not due:
                break
            call = min(due, key=lambda c: c.due_ms)
            self._calls.remove(call)
            self.now_ms = max(self.now_ms, call.due_ms)
            call.callback()
        self.now_ms = target

    def run_all(self) -> None:
        while self.pending:
            latest = max(c.due_ms for c in self._calls if not c.cancelled)
            self.advance(latest - self.now_ms)
