"""
Telemetry Data Structures

This module defines the telemetry record and its payload encoding
inside a TELEMETRY_DATA frame.

Telemetry Payload Structure (29 bytes, little-endian):
- timestamp_ms: 4 bytes (uint32) - device clock in ms
- accel_x/y/z: 3 x 2 bytes (int16) - acceleration in 0.01 m/s^2
- battery: 2 bytes (uint16) - battery charge in 0.1 %
- rssi: 2 bytes (int16) - link signal strength in 0.1 dBm
- satellites: 1 byte (uint8) - GNSS satellites in view
- mission_time: 4 bytes (uint32) - mission clock in ms
- latitude/longitude: 2 x 4 bytes (int32) - degrees x 1e7, INT32_MIN = no fix
- altitude: 2 bytes (int16) - metres above sea level
"""

from dataclasses import dataclass, fields
from typing import Optional
import struct


# Fixed scaling factors agreed with the device protocol.
# Engineering value = raw / divisor.
ACCEL_LSB_PER_MS2 = 100
BATTERY_LSB_PER_PCT = 10
RSSI_LSB_PER_DBM = 10
MISSION_TIME_LSB_PER_S = 1000
COORD_LSB_PER_DEG = 10_000_000
ALTITUDE_LSB_PER_M = 1

# Raw coordinate value meaning "no position fix"
COORD_NO_FIX = -2 ** 31

TELEMETRY_FORMAT = "<" + "".join([
    "I",      # timestamp_ms
    "h",      # accel_x
    "h",      # accel_y
    "h",      # accel_z
    "H",      # battery
    "h",      # rssi
    "B",      # satellites
    "I",      # mission_time
    "i",      # latitude
    "i",      # longitude
    "h",      # altitude
])

TELEMETRY_PAYLOAD_SIZE = struct.calcsize(TELEMETRY_FORMAT)


@dataclass(frozen=True)
class PositionFix:
    """A recorded position for the map view."""
    latitude: float
    longitude: float
    altitude_m: float
    timestamp_ms: int = 0


@dataclass(frozen=True)
class TelemetryRecord:
    """
    One decoded snapshot of device sensor and status fields.

    Every field is None until the first successful decode. Records are
    immutable; the store replaces its snapshot with each new record.
    """

    timestamp_ms: Optional[int] = None
    accel_x: Optional[float] = None
    accel_y: Optional[float] = None
    accel_z: Optional[float] = None
    battery_pct: Optional[float] = None
    rssi_dbm: Optional[float] = None
    satellite_count: Optional[int] = None
    mission_time_s: Optional[float] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    altitude_m: Optional[float] = None

    @property
    def is_empty(self) -> bool:
        """Check if nothing has been decoded into this record."""
        return all(getattr(self, f.name) is None for f in fields(self))

    @property
    def has_fix(self) -> bool:
        return self.latitude is not None and self.longitude is not None

    @property
    def position(self) -> Optional[PositionFix]:
        """Position of this record, or None without a fix."""
        if not self.has_fix:
            return None
        return PositionFix(
            latitude=self.latitude,
            longitude=self.longitude,
            altitude_m=self.altitude_m if self.altitude_m is not None else 0.0,
            timestamp_ms=self.timestamp_ms or 0,
        )

    def summary(self) -> str:
        """One-line text used when echoing parsed records to the console."""
        return (
            f"accel_x={_fmt(self.accel_x)} accel_y={_fmt(self.accel_y)} "
            f"accel_z={_fmt(self.accel_z)} battery={_fmt(self.battery_pct, 1)}% "
            f"rssi={_fmt(self.rssi_dbm, 1)}dBm sats={self.satellite_count}"
        )


def _fmt(value: Optional[float], digits: int = 2) -> str:
    return "-" if value is None else f"{value:.{digits}f}"


def decode_telemetry(payload: bytes) -> TelemetryRecord:
    """
    Decode a TELEMETRY_DATA payload.

    Args:
        payload: Raw payload bytes (exactly TELEMETRY_PAYLOAD_SIZE)

    Returns:
        Decoded TelemetryRecord

    Raises:
        ValueError: If the payload has the wrong size
    """
    if len(payload) != TELEMETRY_PAYLOAD_SIZE:
        raise ValueError(
            f"Telemetry payload must be {TELEMETRY_PAYLOAD_SIZE} bytes, got {len(payload)}"
        )

    (timestamp_ms, accel_x, accel_y, accel_z, battery, rssi, satellites,
     mission_time, latitude, longitude, altitude) = struct.unpack(TELEMETRY_FORMAT, payload)

    has_fix = latitude != COORD_NO_FIX and longitude != COORD_NO_FIX

    return TelemetryRecord(
        timestamp_ms=timestamp_ms,
        accel_x=accel_x / ACCEL_LSB_PER_MS2,
        accel_y=accel_y / ACCEL_LSB_PER_MS2,
        accel_z=accel_z / ACCEL_LSB_PER_MS2,
        battery_pct=battery / BATTERY_LSB_PER_PCT,
        rssi_dbm=rssi / RSSI_LSB_PER_DBM,
        satellite_count=satellites,
        mission_time_s=mission_time / MISSION_TIME_LSB_PER_S,
        latitude=latitude / COORD_LSB_PER_DEG if has_fix else None,
        longitude=longitude / COORD_LSB_PER_DEG if has_fix else None,
        altitude_m=altitude / ALTITUDE_LSB_PER_M,
    )


def encode_telemetry(record: TelemetryRecord) -> bytes:
    """
    Encode a record into a TELEMETRY_DATA payload.

    Used by the simulator and tests. Position may be unset; every
    other field must be present.

    Raises:
        ValueError: If a required field is missing or out of range
    """
    required = ("timestamp_ms", "accel_x", "accel_y", "accel_z", "battery_pct",
                "rssi_dbm", "satellite_count", "mission_time_s", "altitude_m")
    missing = [name for name in required if getattr(record, name) is None]
    if missing:
        raise ValueError(f"Cannot encode record, missing fields: {', '.join(missing)}")

    if record.has_fix:
        latitude = round(record.latitude * COORD_LSB_PER_DEG)
        longitude = round(record.longitude * COORD_LSB_PER_DEG)
    else:
        latitude = longitude = COORD_NO_FIX

    try:
        return struct.pack(
            TELEMETRY_FORMAT,
            record.timestamp_ms,
            round(record.accel_x * ACCEL_LSB_PER_MS2),
            round(record.accel_y * ACCEL_LSB_PER_MS2),
            round(record.accel_z * ACCEL_LSB_PER_MS2),
            round(record.battery_pct * BATTERY_LSB_PER_PCT),
            round(record.rssi_dbm * RSSI_LSB_PER_DBM),
            record.satellite_count,
            round(record.mission_time_s * MISSION_TIME_LSB_PER_S),
            latitude,
            longitude,
            round(record.altitude_m * ALTITUDE_LSB_PER_M),
        )
    except struct.error as e:
        raise ValueError(f"Telemetry value out of range: {e}") from e
