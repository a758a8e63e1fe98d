"""
Flight Simulator Backend

Simulates a flight computer streaming telemetry so the console can be
exercised without hardware.

Implements:
- A deterministic flight profile (pad, boost, coast, descent, landed)
- Telemetry frames at a fixed rate
- Device log messages on phase changes
- Optional line noise to exercise resynchronization
"""

from dataclasses import dataclass
from enum import Enum
from typing import List, Optional
import logging
import math
import random
import threading

from .protocol import FrameBuilder, IntegrityPolicy, encode_frame
from .telemetry import TelemetryRecord
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

SIMULATOR_PORT = "SIM0"

# Launch pad used by the map view's initial position
PAD_LATITUDE = 32.9901482
PAD_LONGITUDE = -106.9750699
PAD_ALTITUDE_M = 947

GRAVITY_MS2 = 9.81


class FlightPhase(Enum):
    PAD = "pad"
    BOOST = "boost"
    COAST = "coast"
    DESCENT = "descent"
    LANDED = "landed"


@dataclass
class FlightProfile:
    """Timing of the simulated flight, in seconds from stream start."""
    pad_duration: float = 10.0
    boost_duration: float = 4.0
    coast_duration: float = 12.0
    descent_duration: float = 60.0
    boost_accel_ms2: float = 45.0
    descent_rate_ms: float = 8.0
    drift_m_per_s: float = 2.0

    def phase_at(self, t: float) -> FlightPhase:
        if t < self.pad_duration:
            return FlightPhase.PAD
        t -= self.pad_duration
        if t < self.boost_duration:
            return FlightPhase.BOOST
        t -= self.boost_duration
        if t < self.coast_duration:
            return FlightPhase.COAST
        t -= self.coast_duration
        if t < self.descent_duration:
            return FlightPhase.DESCENT
        return FlightPhase.LANDED


class FlightSimulator:
    """
    Generates telemetry records for a simulated flight.

    The same seed always yields the same sequence of records.
    """

    def __init__(self, profile: Optional[FlightProfile] = None, rate_hz: float = 10.0, seed: int = 0):
        if rate_hz <= 0:
            raise ValueError(f"Simulator rate must be positive, got {rate_hz}")
        self.profile = profile or FlightProfile()
        self.rate_hz = rate_hz
        self._rng = random.Random(seed)
        self._tick = 0
        self._altitude = 0.0
        self._velocity = 0.0
        self._phase = FlightPhase.PAD

    @property
    def phase(self) -> FlightPhase:
        return self._phase

    @property
    def elapsed_s(self) -> float:
        return self._tick / self.rate_hz

    def next_record(self) -> TelemetryRecord:
        """Advance one tick and return its record."""
        dt = 1.0 / self.rate_hz
        t = self.elapsed_s
        phase = self.profile.phase_at(t)
        self._phase = phase

        if phase == FlightPhase.BOOST:
            accel = self.profile.boost_accel_ms2
        elif phase == FlightPhase.COAST:
            accel = -GRAVITY_MS2
        else:
            accel = 0.0

        if phase in (FlightPhase.BOOST, FlightPhase.COAST):
            self._velocity += accel * dt
            self._altitude = max(0.0, self._altitude + self._velocity * dt)
        elif phase == FlightPhase.DESCENT:
            self._velocity = -self.profile.descent_rate_ms
            self._altitude = max(0.0, self._altitude + self._velocity * dt)
        else:
            self._velocity = 0.0
            if phase == FlightPhase.LANDED:
                self._altitude = 0.0

        flight_t = max(0.0, t - self.profile.pad_duration)
        drift_m = flight_t * self.profile.drift_m_per_s
        noise = self._rng.uniform

        record = TelemetryRecord(
            timestamp_ms=int(t * 1000),
            accel_x=round(noise(-0.3, 0.3), 2),
            accel_y=round(noise(-0.3, 0.3), 2),
            accel_z=round(GRAVITY_MS2 + accel + noise(-0.2, 0.2), 2),
            battery_pct=round(max(0.0, 100.0 - t * 0.05), 1),
            rssi_dbm=round(-55.0 - min(40.0, self._altitude / 100.0) + noise(-1.5, 1.5), 1),
            satellite_count=min(12, 4 + self._tick // max(1, int(self.rate_hz * 2))),
            mission_time_s=round(t, 3),
            latitude=round(PAD_LATITUDE + drift_m / 111_320.0, 7),
            longitude=round(PAD_LONGITUDE + drift_m / (111_320.0 * math.cos(math.radians(PAD_LATITUDE))), 7),
            altitude_m=PAD_ALTITUDE_M + round(self._altitude),
        )
        self._tick += 1
        return record


class SimulatorConnection(SerialConnection):
    """Byte stream of a running FlightSimulator."""

    def __init__(self, port: str, simulator: FlightSimulator,
                 policy: Optional[IntegrityPolicy] = None, noise_every: int = 0):
        self._port = port
        self._simulator = simulator
        self._policy = policy
        self._noise_every = noise_every
        self._pending = bytearray()
        self._frames = 0
        self._closed = threading.Event()
        self._last_phase: Optional[FlightPhase] = None

    @property
    def port(self) -> str:
        return self._port

    def read(self, size: int) -> bytes:
        if self._closed.is_set():
            raise LinkLostError(f"{self._port} is closed")

        if not self._pending:
            # Pace the stream at the simulator rate; close() wakes us up
            if self._closed.wait(1.0 / self._simulator.rate_hz):
                return b""
            self._pending.extend(self._next_chunk())

        data = bytes(self._pending[:size])
        del self._pending[:size]
        return data

    def _next_chunk(self) -> bytes:
        record = self._simulator.next_record()
        chunk = bytearray()

        phase = self._simulator.phase
        if phase != self._last_phase:
            self._last_phase = phase
            chunk += encode_frame(FrameBuilder.log_message(f"phase {phase.value}"), self._policy)

        self._frames += 1
        if self._noise_every and self._frames % self._noise_every == 0:
            chunk += bytes([0x13, 0x37, 0x00])

        chunk += encode_frame(FrameBuilder.telemetry(record), self._policy)
        return bytes(chunk)

    def close(self) -> None:
        self._closed.set()


class SimulatorBackend(SerialBackend):
    """Exposes one simulated flight computer as a serial port."""

    def __init__(self, rate_hz: float = 10.0, policy: Optional[IntegrityPolicy] = None,
                 noise_every: int = 0, seed: int = 0, profile: Optional[FlightProfile] = None):
        self._rate_hz = rate_hz
        self._policy = policy
        self._noise_every = noise_every
        self._seed = seed
        self._profile = profile

    def list_ports(self) -> List[PortInfo]:
        return [PortInfo(port=SIMULATOR_PORT, description="Simulated flight computer",
                         hardware_id="SIM", manufacturer="ground-console")]

    def open(self, port: str, baudrate: int = DEFAULT_BAUDRATE,
             timeout: float = DEFAULT_READ_TIMEOUT) -> SerialConnection:
        if port != SIMULATOR_PORT:
            raise PortOpenError(f"no simulated device on {port}")
        logger.info(f"Simulator streaming on {port} at {self._rate_hz} Hz")
        simulator = FlightSimulator(self._profile, rate_hz=self._rate_hz, seed=self._seed)
        return SimulatorConnection(port, simulator, self._policy, self._noise_every)
