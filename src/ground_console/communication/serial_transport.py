"""
USB Serial Transport Implementation

Implements the serial backend on top of pyserial. Reads block for at
most the configured timeout so the reader thread can notice shutdown.
"""

from typing import List, Optional
import logging
import threading

import serial
import serial.tools.list_ports

from .transport_base import (
    DEFAULT_BAUDRATE,
    DEFAULT_READ_TIMEOUT,
    LinkLostError,
    PortInfo,
    PortOpenError,
    SerialBackend,
    SerialConnection,
)

logger = logging.getLogger(__name__)


class PySerialConnection(SerialConnection):
    """Open pyserial port."""

    def __init__(self, handle: serial.Serial):
        self._serial: Optional[serial.Serial] = handle
        self._port = handle.port
        self._lock = threading.Lock()

    @property
    def port(self) -> str:
        return self._port

    def read(self, size: int) -> bytes:
        handle = self._serial
        if handle is None:
            raise LinkLostError(f"{self._port} is closed")
        try:
            # At least one byte, or whatever is already waiting
            return handle.read(max(1, min(size, handle.in_waiting)))
        except (serial.SerialException, OSError, TypeError, AttributeError) as e:
            # pyserial raises TypeError/AttributeError when the handle is
            # closed underneath a blocked read
            raise LinkLostError(f"read from {self._port} failed: {e}") from e

    def close(self) -> None:
        with self._lock:
            handle, self._serial = self._serial, None
        if handle is None:
            return
        try:
            handle.close()
            logger.info(f"Serial closed: {self._port}")
        except (serial.SerialException, OSError) as e:
            logger.warning(f"Error closing serial port {self._port}: {e}")


class PySerialBackend(SerialBackend):
    """USB serial ports discovered through pyserial."""

    def list_ports(self) -> List[PortInfo]:
        ports = [
            PortInfo(
                port=port.device,
                description=port.description or "",
                hardware_id=port.hwid or "",
                manufacturer=port.manufacturer or "",
            )
            for port in serial.tools.list_ports.comports()
        ]
        ports.sort(key=lambda p: p.port)
        return ports

    def open(self, port: str, baudrate: int = DEFAULT_BAUDRATE,
             timeout: float = DEFAULT_READ_TIMEOUT) -> SerialConnection:
        try:
            handle = serial.Serial(
                port=port,
                baudrate=baudrate,
                bytesize=serial.EIGHTBITS,
                parity=serial.PARITY_NONE,
                stopbits=serial.STOPBITS_ONE,
                timeout=timeout,
                xonxoff=False,
                rtscts=False,
            )
        except (serial.SerialException, ValueError, OSError) as e:
            raise PortOpenError(f"failed to open {port}: {e}") from e

        logger.info(f"Serial connected: {port} @ {baudrate}")
        return PySerialConnection(handle)
