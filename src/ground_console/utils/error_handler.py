"""
Centralized Error Reporter

Every recoverable failure inside the console core goes through here:
it is logged, narrated as exactly one console entry, kept in a bounded
history and handed to subscribers.
"""

from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Callable, Deque, List, Optional, TYPE_CHECKING
import logging
import threading

from .observer import Subject, Subscription

if TYPE_CHECKING:
    from ..models.console_log import ConsoleLog

logger = logging.getLogger(__name__)


class ErrorCategory(Enum):
    """Error categories for filtering."""
    PORT = "port"           # Serial port lifecycle
    FRAME = "frame"         # Byte stream framing and decoding


class ErrorKind(Enum):
    """Error taxonomy of the console core."""
    PORT_BUSY = ("PortBusy", ErrorCategory.PORT)
    PORT_UNAVAILABLE = ("PortUnavailable", ErrorCategory.PORT)
    PORT_DISCONNECTED = ("PortDisconnected", ErrorCategory.PORT)
    MALFORMED_FRAME = ("MalformedFrame", ErrorCategory.FRAME)
    CHECKSUM_MISMATCH = ("ChecksumMismatch", ErrorCategory.FRAME)
    FRAME_TOO_LARGE = ("FrameTooLarge", ErrorCategory.FRAME)

    def __init__(self, label: str, category: ErrorCategory):
        self.label = label
        self.category = category


class ConsoleError(Exception):
    """
    Base class for errors that are narrated to the operator.

    Subclasses set ``kind``. None of them is fatal: the component that
    raised it falls back to a safe prior state.
    """

    kind: ErrorKind = ErrorKind.MALFORMED_FRAME
    recoverable = True


@dataclass(frozen=True)
class ErrorInfo:
    """Container for a reported error."""
    kind: ErrorKind
    message: str
    timestamp: datetime = field(default_factory=datetime.now)
    source: str = ""

    @property
    def category(self) -> ErrorCategory:
        return self.kind.category

    @classmethod
    def from_exception(cls, exc: ConsoleError, source: str = "") -> "ErrorInfo":
        return cls(kind=exc.kind, message=str(exc), source=source)

    def console_text(self) -> str:
        """Text of the console entry for this error."""
        return f"error: {self.kind.label}: {self.message}"

    def __str__(self):
        return f"[{self.category.value}] {self.kind.label}: {self.message}"


@dataclass(frozen=True)
class OperationResult:
    """Structured outcome of an operator command."""
    ok: bool
    error: Optional[ErrorInfo] = None

    @classmethod
    def success(cls) -> "OperationResult":
        return cls(ok=True)

    @classmethod
    def failure(cls, error: ErrorInfo) -> "OperationResult":
        return cls(ok=False, error=error)

    def __bool__(self) -> bool:
        return self.ok


class ErrorReporter:
    """
    Routes errors to the log, the console and subscribers.

    Features:
    - One console entry per error
    - Error history with size limit
    - Filtering history by category
    """

    def __init__(self, console: "ConsoleLog", max_history: int = 100):
        self._console = console
        self._history: Deque[ErrorInfo] = deque(maxlen=max_history)
        self._lock = threading.Lock()
        self._subject: Subject[ErrorInfo] = Subject("errors")

    def report(self, error: ErrorInfo) -> ErrorInfo:
        """
        Report an error.

        Args:
            error: Error information

        Returns:
            The same ErrorInfo, for chaining into an OperationResult
        """
        with self._lock:
            self._history.append(error)

        logger.warning(str(error))
        self._console.append(error.console_text())
        self._subject.notify(error)
        return error

    def report_exception(self, exc: ConsoleError, source: str = "") -> ErrorInfo:
        """Report a ConsoleError raised by a component."""
        return self.report(ErrorInfo.from_exception(exc, source=source))

    def subscribe(self, callback: Callable[[ErrorInfo], None], owner: object = None) -> Subscription:
        """Subscribe to reported errors."""
        return self._subject.subscribe(callback, owner=owner)

    def get_history(self, category: Optional[ErrorCategory] = None,
                    limit: Optional[int] = None) -> List[ErrorInfo]:
        """
        Get error history with optional filtering.

        Args:
            category: Filter by category
            limit: Maximum number of errors to return (newest kept)
        """
        with self._lock:
            errors = list(self._history)

        if category:
            errors = [e for e in errors if e.category == category]

        if limit:
            errors = errors[-limit:]

        return errors

    def clear_history(self):
        """Clear error history."""
        with self._lock:
            self._history.clear()
