"""
Serial Transport Base Interface

This module defines the abstract serial capability the console core
depends on: enumerate ports, open one by id, read byte chunks, close.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Dict, List, Optional
import queue
import threading

DEFAULT_BAUDRATE = 115200
DEFAULT_READ_TIMEOUT = 0.1


class TransportError(Exception):
    """Base exception for transport errors."""
    pass


class PortOpenError(TransportError):
    """The OS refused to open the port."""
    pass


class LinkLostError(TransportError):
    """The link dropped while streaming (device unplugged)."""
    pass


@dataclass(frozen=True)
class PortInfo:
    """Information about a discoverable serial port."""
    port: str
    description: str = ""
    hardware_id: str = ""
    manufacturer: str = ""

    @property
    def display_name(self) -> str:
        if self.description and self.description != self.port:
            return f"{self.port} - {self.description}"
        return self.port


class SerialConnection(ABC):
    """An open serial port."""

    @property
    @abstractmethod
    def port(self) -> str:
        pass

    @abstractmethod
    def read(self, size: int) -> bytes:
        """
        Read up to size bytes.

        Blocks for at most the connection's read timeout and returns
        b"" when nothing arrived.

        Raises:
            LinkLostError: If the device went away
        """
        pass

    @abstractmethod
    def close(self) -> None:
        """
        Release the OS handle.

        Safe to call more than once and from another thread than the
        one blocked in read().
        """
        pass


class SerialBackend(ABC):
    """Abstract port discovery and opening."""

    @abstractmethod
    def list_ports(self) -> List[PortInfo]:
        """List currently available ports."""
        pass

    @abstractmethod
    def open(self, port: str, baudrate: int = DEFAULT_BAUDRATE,
             timeout: float = DEFAULT_READ_TIMEOUT) -> SerialConnection:
        """
        Open a port.

        Raises:
            PortOpenError: If the port cannot be opened
        """
        pass


class MockConnection(SerialConnection):
    """In-memory connection fed by MockBackend."""

    def __init__(self, port: str, timeout: float):
        self._port = port
        self._timeout = timeout
        self._rx: "queue.Queue[Optional[bytes]]" = queue.Queue()
        self._closed = threading.Event()
        self._lost = threading.Event()

    @property
    def port(self) -> str:
        return self._port

    @property
    def closed(self) -> bool:
        return self._closed.is_set()

    def inject(self, data: bytes) -> None:
        self._rx.put(data)

    def unplug(self) -> None:
        """Simulate the device disappearing mid-stream."""
        self._lost.set()
        self._rx.put(None)

    def read(self, size: int) -> bytes:
        if self._closed.is_set():
            raise LinkLostError(f"{self._port} is closed")
        try:
            data = self._rx.get(timeout=self._timeout)
        except queue.Empty:
            return b""
        if data is None:
            if self._lost.is_set():
                raise LinkLostError(f"device on {self._port} disconnected")
            return b""
        if len(data) > size:
            # Hand back the rest on the next read, ahead of later injections
            remainder = data[size:]
            with self._rx.mutex:
                self._rx.queue.appendleft(remainder)
            data = data[:size]
        return data

    def close(self) -> None:
        self._closed.set()
        self._rx.put(None)


class MockBackend(SerialBackend):
    """
    Mock serial backend for testing purposes.

    Ports are added and removed by the test; data is injected into
    the open connection.
    """

    def __init__(self, ports: Optional[List[str]] = None):
        self._ports: Dict[str, PortInfo] = {}
        self._connections: Dict[str, MockConnection] = {}
        self.refuse_open: set = set()
        for port in ports or []:
            self.add_port(port)

    def add_port(self, port: str, description: str = "") -> None:
        self._ports[port] = PortInfo(port=port, description=description or f"Mock port {port}")

    def remove_port(self, port: str) -> None:
        self._ports.pop(port, None)

    def connection(self, port: str) -> MockConnection:
        """The most recent connection opened on a port."""
        return self._connections[port]

    def list_ports(self) -> List[PortInfo]:
        return sorted(self._ports.values(), key=lambda p: p.port)

    def open(self, port: str, baudrate: int = DEFAULT_BAUDRATE,
             timeout: float = DEFAULT_READ_TIMEOUT) -> SerialConnection:
        if port not in self._ports or port in self.refuse_open:
            raise PortOpenError(f"could not open {port}")
        connection = MockConnection(port, timeout)
        self._connections[port] = connection
        return connection
