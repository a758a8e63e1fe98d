"""
Communication Package

Serial transport and the telemetry link protocol.

Modules:
    protocol: Frame format, integrity policies and the streaming FrameParser
    telemetry: TelemetryRecord and its payload encoding
    transport_base: Abstract serial backend and the in-memory mock
    serial_transport: pyserial backend
    simulator: Simulated flight computer backend

Example usage:
    from ground_console.communication import FrameParser

    parser = FrameParser()
    for result in parser.feed(chunk):
        if result.record:
            print(f"Battery: {result.record.battery_pct}%")
"""

from .protocol import (
    ChecksumMismatch,
    Crc16CcittPolicy,
    FrameBuilder,
    FrameError,
    FrameParser,
    FrameTooLarge,
    IntegrityPolicy,
    MalformedFrame,
    MessageType,
    ParseResult,
    ProtocolError,
    ProtocolFrame,
    Xor8Policy,
    encode_frame,
    get_integrity_policy,
)
from .telemetry import PositionFix, TelemetryRecord, decode_telemetry, encode_telemetry
from .transport_base import (
    LinkLostError,
    MockBackend,
    PortInfo,
    PortOpenError,
    SerialBackend,
    SerialConnection,
    TransportError,
)
from .simulator import SimulatorBackend

__all__ = [
    # Protocol
    "ChecksumMismatch",
    "Crc16CcittPolicy",
    "FrameBuilder",
    "FrameError",
    "FrameParser",
    "FrameTooLarge",
    "IntegrityPolicy",
    "MalformedFrame",
    "MessageType",
    "ParseResult",
    "ProtocolError",
    "ProtocolFrame",
    "Xor8Policy",
    "encode_frame",
    "get_integrity_policy",
    # Telemetry
    "PositionFix",
    "TelemetryRecord",
    "decode_telemetry",
    "encode_telemetry",
    # Transport
    "LinkLostError",
    "MockBackend",
    "PortInfo",
    "PortOpenError",
    "SerialBackend",
    "SerialConnection",
    "TransportError",
    "SimulatorBackend",
]
