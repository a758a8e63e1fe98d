"""
Telemetry Store

Last-known-good telemetry snapshot consumed by display bindings,
plus the bounded track of recorded positions for the map view.
"""

from collections import deque
from typing import Callable, Deque, Tuple
import logging
import threading

from ..communication.telemetry import PositionFix, TelemetryRecord
from ..utils.observer import Subject, Subscription

logger = logging.getLogger(__name__)

DEFAULT_TRACK_LENGTH = 2000


class TelemetryStore:
    """
    Holds the most recent TelemetryRecord.

    The snapshot is replaced as a whole on every successful decode, so
    readers always see one complete record.
    """

    def __init__(self, track_length: int = DEFAULT_TRACK_LENGTH):
        self._latest = TelemetryRecord()
        self._track: Deque[PositionFix] = deque(maxlen=track_length)
        self._records_received = 0
        self._lock = threading.Lock()
        self._updated: Subject[TelemetryRecord] = Subject("telemetry")

    def latest(self) -> TelemetryRecord:
        """Most recent record, or the all-unset record before the first decode."""
        with self._lock:
            return self._latest

    def update(self, record: TelemetryRecord) -> None:
        """Replace the snapshot and record its position, if any."""
        position = record.position
        with self._lock:
            self._latest = record
            self._records_received += 1
            if position is not None:
                self._track.append(position)
        self._updated.notify(record)

    def positions(self) -> Tuple[PositionFix, ...]:
        """Recorded positions, oldest first."""
        with self._lock:
            return tuple(self._track)

    @property
    def records_received(self) -> int:
        with self._lock:
            return self._records_received

    def clear(self) -> None:
        """Forget the snapshot and the track."""
        with self._lock:
            self._latest = TelemetryRecord()
            self._track.clear()
            self._records_received = 0
        logger.debug("Telemetry store cleared")

    def subscribe(self, callback: Callable[[TelemetryRecord], None], owner: object = None) -> Subscription:
        """Subscribe to snapshot replacements."""
        return self._updated.subscribe(callback, owner=owner)
