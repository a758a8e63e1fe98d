"""
Telemetry Ingest - applies parsed frames to the shared state.

Bytes read from the open port go through the FrameParser; every
result lands in exactly one place:
- telemetry records replace the TelemetryStore snapshot
- device log lines are narrated in the console
- frame errors are reported (logged + one console entry)
"""

from typing import List
import logging
import threading

from ..communication.protocol import FrameParser, ParseResult
from ..models.console_log import ConsoleLog
from ..models.telemetry_store import TelemetryStore
from ..utils.error_handler import ErrorReporter

logger = logging.getLogger(__name__)


class TelemetryIngest:
    """Feeds the parser and distributes its results."""

    def __init__(self, parser: FrameParser, store: TelemetryStore,
                 console: ConsoleLog, reporter: ErrorReporter, echo_records: bool = False):
        self._parser = parser
        self._store = store
        self._console = console
        self._reporter = reporter
        self._echo_records = echo_records
        # Serializes feed() and reset() so close never races a chunk
        self._lock = threading.Lock()

    @property
    def parser(self) -> FrameParser:
        return self._parser

    @property
    def echo_records(self) -> bool:
        return self._echo_records

    def set_echo_records(self, enabled: bool) -> None:
        """Toggle narration of every decoded record in the console."""
        if enabled == self._echo_records:
            return
        self._echo_records = enabled
        self._console.append(
            "Started showing parsed data..." if enabled else "Stopped showing parsed data"
        )

    def feed(self, data: bytes) -> List[ParseResult]:
        """
        Parse a chunk from the port and apply the results.

        Args:
            data: Raw bytes, any chunk boundary

        Returns:
            The parser results, in stream order
        """
        with self._lock:
            results = self._parser.feed(data)

        for result in results:
            if result.record is not None:
                self._store.update(result.record)
                if self._echo_records:
                    self._console.append(result.record.summary())
            elif result.message is not None:
                self._console.append(f"device: {result.message}")
            else:
                self._reporter.report_exception(result.error, source="parser")
        return results

    def reset(self) -> None:
        """Discard a partially received frame."""
        with self._lock:
            self._parser.reset()
