"""
Port Registry - discovery and exclusive ownership of the serial port.

Rules:
- At most one port is open process-wide
- open() and close() never interleave; close() waits for an in-flight open()
- A device unplugged mid-stream is an implicit close(), not a fatal error

One reader thread per open port owns the byte stream and feeds the
TelemetryIngest. It blocks only on the serial read.
"""

from dataclasses import dataclass, replace
from enum import Enum
from typing import Callable, Dict, List, Optional
import logging
import threading

from ..communication.transport_base import (
    DEFAULT_BAUDRATE,
    DEFAULT_READ_TIMEOUT,
    SerialBackend,
    SerialConnection,
    TransportError,
)
from ..models.console_log import ConsoleLog
from ..utils.error_handler import (
    ConsoleError,
    ErrorKind,
    ErrorReporter,
    OperationResult,
)
from ..utils.observer import Subject, Subscription
from .telemetry_ingest import TelemetryIngest

logger = logging.getLogger(__name__)

READ_CHUNK_SIZE = 4096
READER_JOIN_TIMEOUT = 2.0


class PortError(ConsoleError):
    """Base exception for port lifecycle errors."""
    kind = ErrorKind.PORT_UNAVAILABLE


class PortBusy(PortError):
    """Another port is already open."""
    kind = ErrorKind.PORT_BUSY


class PortUnavailable(PortError):
    """The port no longer exists or cannot be opened."""
    kind = ErrorKind.PORT_UNAVAILABLE


class PortDisconnected(PortError):
    """The device went away while streaming."""
    kind = ErrorKind.PORT_DISCONNECTED


class PortState(Enum):
    """Serial port state."""
    CLOSED = "closed"
    OPEN = "open"
    ERROR = "error"


@dataclass(frozen=True)
class Port:
    """A discovered serial port. Replaced, never mutated, on state changes."""
    id: str
    display_name: str
    state: PortState = PortState.CLOSED
    description: str = ""
    hardware_id: str = ""

    @property
    def is_open(self) -> bool:
        return self.state == PortState.OPEN


class PortRegistry:
    """
    Owns the single open serial port.

    Usage:
        registry = PortRegistry(PySerialBackend(), ingest, console, reporter)
        ports = registry.list()
        result = registry.open("COM3")
        if not result:
            print(result.error)
        registry.close()
    """

    def __init__(self, backend: SerialBackend, ingest: TelemetryIngest,
                 console: ConsoleLog, reporter: ErrorReporter,
                 baudrate: int = DEFAULT_BAUDRATE,
                 read_timeout: float = DEFAULT_READ_TIMEOUT,
                 read_size: int = READ_CHUNK_SIZE):
        self._backend = backend
        self._ingest = ingest
        self._console = console
        self._reporter = reporter
        self._baudrate = baudrate
        self._read_timeout = read_timeout
        self._read_size = read_size

        # Serializes open/close/disconnect teardown
        self._op_lock = threading.Lock()
        # Guards the fields below for readers
        self._state_lock = threading.Lock()
        self._ports: Dict[str, Port] = {}
        self._open_port: Optional[Port] = None
        self._connection: Optional[SerialConnection] = None
        self._reader: Optional[threading.Thread] = None
        self._stop_reader: Optional[threading.Event] = None

        self._port_changed: Subject[Port] = Subject("port")

    @property
    def open_port(self) -> Optional[Port]:
        with self._state_lock:
            return self._open_port

    @property
    def is_open(self) -> bool:
        return self.open_port is not None

    def get(self, port_id: str) -> Optional[Port]:
        """Last known state of a discovered port."""
        with self._state_lock:
            return self._ports.get(port_id)

    def subscribe(self, callback: Callable[[Port], None], owner: object = None) -> Subscription:
        """Subscribe to port state changes."""
        return self._port_changed.subscribe(callback, owner=owner)

    def list(self) -> List[Port]:
        """
        Enumerate currently available ports.

        Re-discovery replaces the Port objects; the open port keeps its
        identity and state.
        """
        infos = self._backend.list_ports()
        with self._state_lock:
            ports: Dict[str, Port] = {}
            for info in infos:
                if self._open_port is not None and info.port == self._open_port.id:
                    ports[info.port] = self._open_port
                else:
                    ports[info.port] = Port(
                        id=info.port,
                        display_name=info.display_name,
                        description=info.description,
                        hardware_id=info.hardware_id,
                    )
            if self._open_port is not None and self._open_port.id not in ports:
                ports[self._open_port.id] = self._open_port
            self._ports = ports
            result = list(ports.values())

        logger.debug(f"Discovered {len(result)} ports")
        return result

    def open(self, port_id: str) -> OperationResult:
        """
        Open a port and start streaming its bytes to the ingest.

        Returns:
            OperationResult; failures carry PortBusy or PortUnavailable
        """
        with self._op_lock:
            current = self.open_port
            if current is not None:
                return self._fail(PortBusy(
                    f"{current.id} is already open, close it before opening {port_id}"
                ))

            available = {info.port: info for info in self._backend.list_ports()}
            info = available.get(port_id)
            if info is None:
                with self._state_lock:
                    self._ports.pop(port_id, None)
                return self._fail(PortUnavailable(f"{port_id} no longer exists"))

            port = Port(
                id=info.port,
                display_name=info.display_name,
                description=info.description,
                hardware_id=info.hardware_id,
            )

            try:
                connection = self._backend.open(
                    port_id, baudrate=self._baudrate, timeout=self._read_timeout
                )
            except TransportError as e:
                failed = replace(port, state=PortState.ERROR)
                with self._state_lock:
                    self._ports[port_id] = failed
                self._port_changed.notify(failed)
                return self._fail(PortUnavailable(str(e)))

            opened = replace(port, state=PortState.OPEN)
            self._ingest.reset()
            stop = threading.Event()
            reader = threading.Thread(
                target=self._read_loop,
                args=(connection, stop),
                name=f"serial-reader-{port_id}",
                daemon=True,
            )
            with self._state_lock:
                self._ports[port_id] = opened
                self._open_port = opened
                self._connection = connection
                self._reader = reader
                self._stop_reader = stop

            logger.info(f"Opened {port_id} @ {self._baudrate}")
            self._console.append(f"opened {port_id}")
            self._port_changed.notify(opened)
            reader.start()

        return OperationResult.success()

    def close(self) -> OperationResult:
        """
        Close the open port. Succeeds without effect if none is open.

        Any partially received frame is discarded.
        """
        with self._op_lock:
            self._teardown()
        return OperationResult.success()

    def _fail(self, error: PortError) -> OperationResult:
        return OperationResult.failure(self._reporter.report_exception(error, source="port"))

    def _teardown(self) -> None:
        """Release the open port. Caller holds the op lock."""
        with self._state_lock:
            port = self._open_port
            connection = self._connection
            reader = self._reader
            stop = self._stop_reader
        if port is None:
            return

        stop.set()
        connection.close()
        if reader is not threading.current_thread():
            reader.join(timeout=READER_JOIN_TIMEOUT)
            if reader.is_alive():
                logger.warning(f"Reader for {port.id} did not stop within {READER_JOIN_TIMEOUT}s")

        self._ingest.reset()
        closed = replace(port, state=PortState.CLOSED)
        with self._state_lock:
            self._open_port = None
            self._connection = None
            self._reader = None
            self._stop_reader = None
            if port.id in self._ports:
                self._ports[port.id] = closed

        logger.info(f"Closed {port.id}")
        self._console.append(f"closed {port.id}")
        self._port_changed.notify(closed)

    def _read_loop(self, connection: SerialConnection, stop: threading.Event) -> None:
        """Background thread: read the port and feed the ingest."""
        logger.debug(f"Reader started for {connection.port}")
        while not stop.is_set():
            try:
                data = connection.read(self._read_size)
            except TransportError as e:
                if not stop.is_set():
                    self._handle_disconnect(connection, stop, e)
                break

            if data and not stop.is_set():
                try:
                    self._ingest.feed(data)
                except Exception as e:
                    logger.exception(f"Ingest failed on {connection.port}")
                    self._handle_disconnect(connection, stop, e)
                    break
        logger.debug(f"Reader stopped for {connection.port}")

    def _handle_disconnect(self, connection: SerialConnection, stop: threading.Event,
                           error: Exception) -> None:
        """Implicit close after the link dropped."""
        # close() may already hold the op lock and be waiting for this thread
        while not self._op_lock.acquire(timeout=0.05):
            if stop.is_set():
                return
        try:
            if stop.is_set() or self._connection is not connection:
                return
            self._reporter.report_exception(
                PortDisconnected(f"{connection.port}: {error}"), source="port"
            )
            self._teardown()
        finally:
            self._op_lock.release()
