"""
Telemetry Link Binary Protocol

Frame Format:
┌──────┬────────┬───────┬─────────────┬────────────┐
│ 0xAA │ Length │ MsgID │   Payload   │ Check      │
│ 1B   │ 2B     │ 1B    │ Variable    │ policy (2B)│
└──────┴────────┴───────┴─────────────┴────────────┘

- Start byte: 0xAA (fixed)
- Length: 2 bytes, little-endian (payload length only)
- MsgID: 1 byte message type identifier
- Payload: Variable length data
- Check: integrity field over Length+MsgID+Payload. Default is
  CRC-16-CCITT (2 bytes, little-endian); the policy is pluggable.

FrameParser reassembles frames from arbitrary chunks and resynchronizes
after corruption. One corrupted run is reported once: bytes dropped while
hunting for the next valid frame do not raise further errors.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import IntEnum
from functools import reduce
from typing import Dict, List, Optional
import logging
import struct

from ..utils.error_handler import ConsoleError, ErrorKind
from .telemetry import TELEMETRY_PAYLOAD_SIZE, TelemetryRecord, decode_telemetry, encode_telemetry

logger = logging.getLogger(__name__)


class MessageType(IntEnum):
    """Protocol message types."""

    # Telemetry streaming
    TELEMETRY_DATA = 0x32

    # Log messages (from device)
    LOG_MESSAGE = 0x55


class ProtocolError(Exception):
    """Protocol-related errors."""
    pass


class FrameError(ProtocolError, ConsoleError):
    """A frame could not be decoded. The parser has already resynchronized."""
    kind = ErrorKind.MALFORMED_FRAME


class MalformedFrame(FrameError):
    """Unexpected bytes, bad length or undecodable payload."""
    kind = ErrorKind.MALFORMED_FRAME


class ChecksumMismatch(FrameError):
    """Integrity check failed."""
    kind = ErrorKind.CHECKSUM_MISMATCH


class FrameTooLarge(FrameError):
    """Bytes exceeded the parser buffer without forming a frame."""
    kind = ErrorKind.FRAME_TOO_LARGE


# Protocol constants
FRAME_START_BYTE = 0xAA
FRAME_HEADER_SIZE = 4  # Start(1) + Length(2) + MsgID(1)
FRAME_MAX_PAYLOAD = 256
DEFAULT_MAX_BUFFER = 2048


def crc16_ccitt(data: bytes, initial: int = 0xFFFF) -> int:
    """
    Calculate CRC-16-CCITT checksum.

    Args:
        data: Data bytes to calculate CRC over
        initial: Initial CRC value (default 0xFFFF)

    Returns:
        16-bit CRC value
    """
    crc = initial
    for byte in data:
        crc ^= byte << 8
        for _ in range(8):
            if crc & 0x8000:
                crc = (crc << 1) ^ 0x1021
            else:
                crc <<= 1
            crc &= 0xFFFF
    return crc


class IntegrityPolicy(ABC):
    """Integrity check appended to every frame."""

    name: str = ""
    size: int = 0

    @abstractmethod
    def compute(self, body: bytes) -> bytes:
        """Compute the check field for Length+MsgID+Payload."""
        pass

    def verify(self, body: bytes, check: bytes) -> bool:
        return self.compute(body) == check


class Crc16CcittPolicy(IntegrityPolicy):
    """CRC-16-CCITT, stored little-endian."""

    name = "crc16"
    size = 2

    def compute(self, body: bytes) -> bytes:
        return struct.pack("<H", crc16_ccitt(body))


class Xor8Policy(IntegrityPolicy):
    """Single XOR byte over the body."""

    name = "xor8"
    size = 1

    def compute(self, body: bytes) -> bytes:
        return bytes([reduce(lambda acc, b: acc ^ b, body, 0)])


INTEGRITY_POLICIES: Dict[str, type] = {
    Crc16CcittPolicy.name: Crc16CcittPolicy,
    Xor8Policy.name: Xor8Policy,
}


def get_integrity_policy(name: str) -> IntegrityPolicy:
    """
    Create an integrity policy by name.

    Raises:
        ValueError: If the name is unknown
    """
    try:
        return INTEGRITY_POLICIES[name]()
    except KeyError:
        raise ValueError(
            f"Unknown integrity policy '{name}', expected one of {sorted(INTEGRITY_POLICIES)}"
        ) from None


@dataclass(frozen=True)
class ProtocolFrame:
    """Represents a protocol frame."""

    msg_type: MessageType
    payload: bytes

    @property
    def length(self) -> int:
        """Return payload length."""
        return len(self.payload)


def encode_frame(frame: ProtocolFrame, policy: Optional[IntegrityPolicy] = None) -> bytes:
    """
    Encode a protocol frame to bytes.

    Args:
        frame: ProtocolFrame to encode
        policy: Integrity policy (default CRC-16-CCITT)

    Returns:
        Encoded frame bytes

    Raises:
        ProtocolError: If payload exceeds maximum size
    """
    policy = policy or Crc16CcittPolicy()
    if len(frame.payload) > FRAME_MAX_PAYLOAD:
        raise ProtocolError(f"Payload size {len(frame.payload)} exceeds maximum {FRAME_MAX_PAYLOAD}")

    header = struct.pack("<BHB", FRAME_START_BYTE, len(frame.payload), frame.msg_type)
    body = header[1:] + frame.payload
    return header + frame.payload + policy.compute(body)


class FrameBuilder:
    """Helper class to build protocol frames with payloads."""

    @staticmethod
    def telemetry(record: TelemetryRecord) -> ProtocolFrame:
        """Create a TELEMETRY_DATA frame."""
        return ProtocolFrame(msg_type=MessageType.TELEMETRY_DATA, payload=encode_telemetry(record))

    @staticmethod
    def log_message(text: str) -> ProtocolFrame:
        """Create a LOG_MESSAGE frame (UTF-8, truncated to the payload limit)."""
        return ProtocolFrame(
            msg_type=MessageType.LOG_MESSAGE,
            payload=text.encode("utf-8")[:FRAME_MAX_PAYLOAD],
        )


@dataclass(frozen=True)
class ParseResult:
    """One item produced by FrameParser: a record, a device message or an error."""

    record: Optional[TelemetryRecord] = None
    message: Optional[str] = None
    error: Optional[FrameError] = None

    @property
    def ok(self) -> bool:
        return self.error is None


class FrameParser:
    """
    Streaming frame parser.

    Bytes are buffered across feed() calls, so chunk boundaries do not
    matter. Results come back in stream order.

    Usage:
        parser = FrameParser()
        for result in parser.feed(chunk):
            if result.record:
                store.update(result.record)
    """

    def __init__(self, policy: Optional[IntegrityPolicy] = None,
                 max_buffer: int = DEFAULT_MAX_BUFFER):
        self._policy = policy or Crc16CcittPolicy()
        min_buffer = FRAME_HEADER_SIZE + self._policy.size
        if max_buffer < min_buffer:
            raise ValueError(f"Parser buffer must hold at least {min_buffer} bytes")
        self._max_buffer = max_buffer
        self._buffer = bytearray()
        self._resyncing = False
        self.frames_decoded = 0
        self.errors = 0

    @property
    def policy(self) -> IntegrityPolicy:
        return self._policy

    @property
    def resyncing(self) -> bool:
        """True between a reported error and the next valid frame."""
        return self._resyncing

    @property
    def buffered(self) -> int:
        """Number of bytes waiting for the rest of a frame."""
        return len(self._buffer)

    def reset(self) -> None:
        """Discard any partially buffered frame."""
        if self._buffer:
            logger.debug(f"Discarding {len(self._buffer)} buffered bytes")
        self._buffer.clear()
        self._resyncing = False

    def feed(self, data: bytes) -> List[ParseResult]:
        """
        Consume a chunk of bytes.

        Args:
            data: Raw bytes from the link, any length

        Returns:
            Results completed by this chunk, in stream order
        """
        self._buffer.extend(data)
        results = []
        while True:
            result = self._next_result()
            if result is None:
                break
            if result.ok:
                self._resyncing = False
                self.frames_decoded += 1
            elif self._resyncing:
                logger.debug(f"Dropped while resynchronizing: {result.error}")
                continue
            else:
                self._resyncing = True
                self.errors += 1
                logger.debug(f"Frame error: {result.error}")
            results.append(result)
        return results

    def _next_result(self) -> Optional[ParseResult]:
        buf = self._buffer
        if not buf:
            return None

        start = buf.find(FRAME_START_BYTE)
        if start == -1:
            if len(buf) > self._max_buffer:
                dropped = len(buf)
                buf.clear()
                return ParseResult(error=FrameTooLarge(
                    f"{dropped} bytes without a frame marker, buffer limit {self._max_buffer}"
                ))
            return None  # Need more data

        if start > 0:
            del buf[:start]
            return ParseResult(error=MalformedFrame(f"skipped {start} bytes before frame marker"))

        if len(buf) < FRAME_HEADER_SIZE:
            return None  # Need more data

        payload_len, msg_type = struct.unpack_from("<HB", buf, 1)
        frame_size = FRAME_HEADER_SIZE + payload_len + self._policy.size

        if payload_len > FRAME_MAX_PAYLOAD:
            return self._discard_frame(MalformedFrame(
                f"declared payload length {payload_len} exceeds maximum {FRAME_MAX_PAYLOAD}"
            ))
        try:
            msg_type = MessageType(msg_type)
        except ValueError:
            return self._discard_frame(MalformedFrame(f"unknown message type 0x{msg_type:02X}"))
        if msg_type == MessageType.TELEMETRY_DATA and payload_len != TELEMETRY_PAYLOAD_SIZE:
            return self._discard_frame(MalformedFrame(
                f"telemetry payload must be {TELEMETRY_PAYLOAD_SIZE} bytes, header declares {payload_len}"
            ))
        if frame_size > self._max_buffer:
            return self._discard_frame(FrameTooLarge(
                f"frame of {frame_size} bytes exceeds buffer limit {self._max_buffer}"
            ))

        if len(buf) < frame_size:
            return None  # Need more data

        body_end = FRAME_HEADER_SIZE + payload_len
        body = bytes(buf[1:body_end])
        check = bytes(buf[body_end:frame_size])
        if not self._policy.verify(body, check):
            expected = self._policy.compute(body)
            return self._discard_frame(ChecksumMismatch(
                f"{self._policy.name} received 0x{check.hex().upper()}, "
                f"calculated 0x{expected.hex().upper()}"
            ))

        payload = bytes(buf[FRAME_HEADER_SIZE:body_end])
        del buf[:frame_size]
        return self._decode_payload(msg_type, payload)

    def _discard_frame(self, error: FrameError) -> ParseResult:
        """Drop the marker and the bytes up to the next marker candidate."""
        next_start = self._buffer.find(FRAME_START_BYTE, 1)
        if next_start == -1:
            self._buffer.clear()
        else:
            del self._buffer[:next_start]
        return ParseResult(error=error)

    @staticmethod
    def _decode_payload(msg_type: MessageType, payload: bytes) -> ParseResult:
        if msg_type == MessageType.TELEMETRY_DATA:
            try:
                return ParseResult(record=decode_telemetry(payload))
            except ValueError as e:
                return ParseResult(error=MalformedFrame(str(e)))

        return ParseResult(message=payload.decode("utf-8", errors="replace"))
