"""
Console Log

Append-only, bounded narration of system events shown to the operator.
The oldest entry is evicted once the log is at capacity.
"""

from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Deque, Tuple
import logging
import threading

from ..utils.observer import Subject, Subscription

logger = logging.getLogger(__name__)

DEFAULT_CONSOLE_CAPACITY = 500


@dataclass(frozen=True)
class ConsoleEntry:
    """Represents a single console line."""
    text: str
    timestamp: datetime = field(default_factory=datetime.now)

    def __str__(self):
        return f"> {self.text}"


class ConsoleLog:
    """
    Bounded console log with a single mutation point.

    Writers from any thread serialize through the internal lock,
    readers get tuple snapshots of fully constructed entries. Subscribers
    see entries in log order: appends are held in line until the previous
    entry has been delivered.
    """

    def __init__(self, capacity: int = DEFAULT_CONSOLE_CAPACITY):
        if capacity < 1:
            raise ValueError(f"Console capacity must be positive, got {capacity}")
        self._capacity = capacity
        self._entries: Deque[ConsoleEntry] = deque(maxlen=capacity)
        self._lock = threading.Lock()
        self._notify_lock = threading.RLock()
        self._appended: Subject[ConsoleEntry] = Subject("console")

    @property
    def capacity(self) -> int:
        return self._capacity

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def append(self, text: str) -> ConsoleEntry:
        """
        Append a line, evicting the oldest one when full.

        Args:
            text: Line text

        Returns:
            The appended entry
        """
        with self._notify_lock:
            entry = ConsoleEntry(text=text)
            with self._lock:
                self._entries.append(entry)
            logger.debug(f"console: {text}")
            self._appended.notify(entry)
        return entry

    def entries(self) -> Tuple[ConsoleEntry, ...]:
        """Snapshot of all entries, oldest first."""
        with self._lock:
            return tuple(self._entries)

    def texts(self) -> Tuple[str, ...]:
        """Snapshot of entry texts, oldest first."""
        return tuple(entry.text for entry in self.entries())

    def render(self) -> str:
        """Console contents as displayed, one '> ' prefixed line per entry."""
        return "\n".join(str(entry) for entry in self.entries())

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def subscribe(self, callback: Callable[[ConsoleEntry], None], owner: object = None) -> Subscription:
        """Subscribe to appended entries."""
        return self._appended.subscribe(callback, owner=owner)
