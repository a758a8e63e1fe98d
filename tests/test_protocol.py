"""
Link Protocol Tests
Tests for frame encoding, integrity policies and the streaming FrameParser
"""

import struct

import pytest

from ground_console.communication.protocol import (
    ChecksumMismatch,
    Crc16CcittPolicy,
    FrameBuilder,
    FrameParser,
    FrameTooLarge,
    MalformedFrame,
    MessageType,
    ProtocolError,
    ProtocolFrame,
    Xor8Policy,
    FRAME_HEADER_SIZE,
    FRAME_MAX_PAYLOAD,
    FRAME_START_BYTE,
    crc16_ccitt,
    encode_frame,
    get_integrity_policy,
)
from ground_console.communication.telemetry import TELEMETRY_PAYLOAD_SIZE
from ground_console.utils.error_handler import ErrorKind

from helpers import RECORD_A, RECORD_B, RECORD_WITH_MARKER, corrupt_check, telemetry_frame


class TestCRC16:
    """Test CRC-16-CCITT calculation."""

    def test_empty_data(self):
        """CRC of empty data should be initial value."""
        assert crc16_ccitt(b"") == 0xFFFF

    def test_known_values(self):
        """'123456789' gives 0x29B1 for CRC-16-CCITT (0xFFFF init)."""
        assert crc16_ccitt(b"123456789") == 0x29B1

    def test_different_data(self):
        """Different data should give different CRC."""
        assert crc16_ccitt(b"data1") != crc16_ccitt(b"data2")


class TestIntegrityPolicies:
    """Test pluggable integrity checks."""

    def test_crc_policy_little_endian(self):
        """CRC is stored little-endian."""
        policy = Crc16CcittPolicy()
        assert policy.compute(b"123456789") == b"\xB1\x29"
        assert policy.size == 2

    def test_xor_policy(self):
        """XOR8 folds every body byte."""
        policy = Xor8Policy()
        assert policy.compute(b"\x01\x02\x04") == b"\x07"
        assert policy.verify(b"\x01\x02\x04", b"\x07")
        assert not policy.verify(b"\x01\x02\x04", b"\x06")

    def test_lookup_by_name(self):
        """Policies are created by name."""
        assert isinstance(get_integrity_policy("crc16"), Crc16CcittPolicy)
        assert isinstance(get_integrity_policy("xor8"), Xor8Policy)

    def test_unknown_policy(self):
        """Unknown names are rejected."""
        with pytest.raises(ValueError):
            get_integrity_policy("md5")


class TestFrameEncoding:
    """Test frame encoding."""

    def test_encode_empty_payload(self):
        """Encode frame with empty payload."""
        frame = ProtocolFrame(msg_type=MessageType.LOG_MESSAGE, payload=b"")
        encoded = encode_frame(frame)

        # Start byte + 2 length + 1 msgtype + 0 payload + 2 CRC = 6 bytes
        assert len(encoded) == 6
        assert encoded[0] == FRAME_START_BYTE
        assert struct.unpack("<H", encoded[1:3])[0] == 0
        assert encoded[3] == MessageType.LOG_MESSAGE

    def test_encode_telemetry_frame(self):
        """Telemetry frames carry the 29 byte payload."""
        encoded = telemetry_frame(RECORD_A)
        assert len(encoded) == FRAME_HEADER_SIZE + 29 + 2
        assert encoded[3] == MessageType.TELEMETRY_DATA
        assert encoded.count(FRAME_START_BYTE) == 1

    def test_encode_with_xor_policy(self):
        """XOR frames end in a single check byte."""
        encoded = telemetry_frame(RECORD_A, Xor8Policy())
        assert len(encoded) == FRAME_HEADER_SIZE + 29 + 1

    def test_payload_too_large(self):
        """Oversized payloads are rejected."""
        frame = ProtocolFrame(msg_type=MessageType.LOG_MESSAGE, payload=b"x" * (FRAME_MAX_PAYLOAD + 1))
        with pytest.raises(ProtocolError):
            encode_frame(frame)

    def test_log_message_truncated(self):
        """Long device messages are cut to the payload limit."""
        frame = FrameBuilder.log_message("y" * 1000)
        assert frame.length == FRAME_MAX_PAYLOAD


class TestFrameParser:
    """Test the streaming parser."""

    def test_single_frame(self):
        """A valid frame yields its record."""
        parser = FrameParser()
        results = parser.feed(telemetry_frame(RECORD_A))

        assert len(results) == 1
        assert results[0].ok
        assert results[0].record == RECORD_A
        assert parser.buffered == 0
        assert parser.frames_decoded == 1

    def test_round_trip_both_policies(self):
        """decode(encode(record)) == record under every policy."""
        for policy in (Crc16CcittPolicy(), Xor8Policy()):
            parser = FrameParser(policy)
            results = parser.feed(telemetry_frame(RECORD_B, policy))
            assert [r.record for r in results] == [RECORD_B]

    def test_frame_split_across_chunks(self):
        """Bytes fed one at a time still produce one record."""
        parser = FrameParser()
        frame = telemetry_frame(RECORD_A)
        results = []
        for i in range(len(frame)):
            results.extend(parser.feed(frame[i:i + 1]))

        assert [r.record for r in results] == [RECORD_A]

    def test_multiple_frames_in_chunk(self):
        """One chunk with two frames yields both, in order."""
        parser = FrameParser()
        results = parser.feed(telemetry_frame(RECORD_A) + telemetry_frame(RECORD_B))
        assert [r.record for r in results] == [RECORD_A, RECORD_B]

    def test_partial_frame_waits(self):
        """An incomplete frame produces nothing until it completes."""
        parser = FrameParser()
        frame = telemetry_frame(RECORD_A)

        assert parser.feed(frame[:10]) == []
        assert parser.buffered == 10
        results = parser.feed(frame[10:])
        assert [r.record for r in results] == [RECORD_A]

    def test_leading_garbage_single_error(self):
        """A run of garbage before a marker is one MalformedFrame."""
        parser = FrameParser()
        results = parser.feed(b"\x01\x02\x03" + telemetry_frame(RECORD_A))

        assert len(results) == 2
        assert isinstance(results[0].error, MalformedFrame)
        assert results[0].error.kind == ErrorKind.MALFORMED_FRAME
        assert results[1].record == RECORD_A

    def test_corrupted_frame_between_valid_frames(self):
        """A corrupted frame never blocks the frame after it."""
        parser = FrameParser()
        stream = (telemetry_frame(RECORD_A)
                  + corrupt_check(telemetry_frame(RECORD_B))
                  + telemetry_frame(RECORD_A))
        results = parser.feed(stream)

        assert len(results) == 3
        assert results[0].record == RECORD_A
        assert isinstance(results[1].error, ChecksumMismatch)
        assert results[2].record == RECORD_A
        assert parser.errors == 1

    def test_corrupted_xor_frame(self):
        """Resync works the same with a one byte check."""
        policy = Xor8Policy()
        parser = FrameParser(policy)
        stream = corrupt_check(telemetry_frame(RECORD_A, policy), size=1) + telemetry_frame(RECORD_B, policy)
        results = parser.feed(stream)

        assert isinstance(results[0].error, ChecksumMismatch)
        assert results[1].record == RECORD_B

    def test_declared_length_over_limit(self):
        """A header declaring an oversized payload is malformed."""
        parser = FrameParser()
        bogus = bytes([FRAME_START_BYTE]) + struct.pack("<HB", FRAME_MAX_PAYLOAD + 1, MessageType.TELEMETRY_DATA)
        results = parser.feed(bogus + telemetry_frame(RECORD_A))

        assert isinstance(results[0].error, MalformedFrame)
        assert results[-1].record == RECORD_A

    def test_frame_larger_than_buffer(self):
        """A frame that cannot fit the buffer is FrameTooLarge."""
        parser = FrameParser(max_buffer=32)
        results = parser.feed(telemetry_frame(RECORD_A))

        assert len(results) >= 1
        assert isinstance(results[0].error, FrameTooLarge)
        assert results[0].error.kind == ErrorKind.FRAME_TOO_LARGE

    def test_buffer_overflow_without_marker(self):
        """Markerless bytes beyond the limit are dropped with one error."""
        parser = FrameParser(max_buffer=64)
        assert parser.feed(b"\x00" * 64) == []

        results = parser.feed(b"\x00")
        assert len(results) == 1
        assert isinstance(results[0].error, FrameTooLarge)
        assert parser.buffered == 0

        results = parser.feed(telemetry_frame(RECORD_A))
        assert [r.record for r in results] == [RECORD_A]

    def test_unknown_message_type(self):
        """Unknown message types are malformed and skipped."""
        parser = FrameParser()
        frame = encode_frame(ProtocolFrame(msg_type=0x7F, payload=b"\x01"))
        results = parser.feed(frame + telemetry_frame(RECORD_A))

        assert isinstance(results[0].error, MalformedFrame)
        assert results[1].record == RECORD_A

    def test_wrong_telemetry_size(self):
        """A telemetry frame with a short payload is malformed."""
        parser = FrameParser()
        frame = encode_frame(ProtocolFrame(msg_type=MessageType.TELEMETRY_DATA, payload=b"\x01\x02"))
        results = parser.feed(frame)

        assert len(results) == 1
        assert isinstance(results[0].error, MalformedFrame)

    def test_marker_inside_corrupted_frame(self):
        """A 0xAA byte inside a corrupted frame does not add a second error."""
        parser = FrameParser()
        corrupted = corrupt_check(telemetry_frame(RECORD_WITH_MARKER))
        assert corrupted.count(FRAME_START_BYTE) > 1

        results = parser.feed(telemetry_frame(RECORD_A) + corrupted + telemetry_frame(RECORD_B))

        assert [r.record for r in results if r.ok] == [RECORD_A, RECORD_B]
        assert [type(r.error) for r in results if not r.ok] == [ChecksumMismatch]
        assert parser.errors == 1
        assert not parser.resyncing

    def test_corrupted_length_does_not_stall(self):
        """A legal but wrong length does not hold back the next frame."""
        parser = FrameParser()
        damaged = bytearray(telemetry_frame(RECORD_A))
        damaged[1] = 200
        results = parser.feed(telemetry_frame(RECORD_A) + bytes(damaged) + telemetry_frame(RECORD_B))

        assert len(results) == 3
        assert results[0].record == RECORD_A
        assert isinstance(results[1].error, MalformedFrame)
        assert results[2].record == RECORD_B
        assert parser.buffered == 0

    def test_header_rejected_before_body(self):
        """Unknown types and wrong telemetry sizes fail on the header alone."""
        parser = FrameParser()
        results = parser.feed(bytes([FRAME_START_BYTE]) + struct.pack("<HB", 40, 0x7F))
        assert isinstance(results[0].error, MalformedFrame)
        assert parser.buffered == 0

        parser = FrameParser()
        header = struct.pack("<HB", TELEMETRY_PAYLOAD_SIZE + 1, MessageType.TELEMETRY_DATA)
        results = parser.feed(bytes([FRAME_START_BYTE]) + header)
        assert isinstance(results[0].error, MalformedFrame)

    def test_one_error_per_corrupted_run(self):
        """Errors are reported again once a valid frame has been decoded."""
        parser = FrameParser()
        bad = corrupt_check(telemetry_frame(RECORD_B))

        results = parser.feed(bad)
        results += parser.feed(b"\x01\x02" + bad)
        assert len(results) == 1
        assert parser.resyncing

        results += parser.feed(telemetry_frame(RECORD_A) + bad)
        assert [r.ok for r in results] == [False, True, False]
        assert parser.errors == 2

    def test_reset_ends_resync(self):
        parser = FrameParser()
        parser.feed(b"\x01")
        parser.feed(bytes([FRAME_START_BYTE]))
        assert parser.resyncing

        parser.reset()
        assert not parser.resyncing
        assert len(parser.feed(b"\x02" + telemetry_frame(RECORD_A))) == 2

    def test_log_message(self):
        """Device log frames decode to text."""
        parser = FrameParser()
        results = parser.feed(encode_frame(FrameBuilder.log_message("phase boost")))

        assert results[0].message == "phase boost"
        assert results[0].record is None

    def test_reset_discards_partial_frame(self):
        """reset() drops a half received frame."""
        parser = FrameParser()
        frame = telemetry_frame(RECORD_A)
        parser.feed(frame[:12])
        parser.reset()

        assert parser.buffered == 0
        results = parser.feed(frame)
        assert [r.record for r in results] == [RECORD_A]

    def test_buffer_must_hold_header(self):
        """A buffer smaller than a header is rejected."""
        with pytest.raises(ValueError):
            FrameParser(max_buffer=3)
