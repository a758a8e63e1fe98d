"""
Ground Station Tests
Tests for the facade wiring: config to components, commands and shutdown
"""

import pytest

from ground_console.communication.protocol import Xor8Policy
from ground_console.communication.simulator import SIMULATOR_PORT, SimulatorBackend
from ground_console.communication.transport_base import MockBackend
from ground_console.config import ConfigError, ConsoleConfig
from ground_console.controllers.ground_station import GroundStation
from ground_console.controllers.launch_sequencer import LaunchMode, LaunchState

from helpers import RECORD_A, ManualScheduler, telemetry_frame, wait_for


@pytest.fixture
def station(backend):
    station = GroundStation(
        ConsoleConfig(read_timeout=0.02),
        backend=backend,
        scheduler=ManualScheduler(),
    )
    yield station
    station.shutdown()


class TestGroundStation:
    """Test the operator facade."""

    def test_initial_entry(self, station):
        assert station.console.texts() == ("Initializing system...",)

    def test_config_applied(self):
        config = ConsoleConfig(console_capacity=7, integrity="xor8", read_timeout=0.02)
        station = GroundStation(config, backend=MockBackend())
        try:
            assert station.console.capacity == 7
            assert isinstance(station.ingest.parser.policy, Xor8Policy)
        finally:
            station.shutdown()

    def test_invalid_config_rejected(self):
        with pytest.raises(ConfigError):
            GroundStation(ConsoleConfig(integrity="md5"), backend=MockBackend())

    def test_simulate_uses_simulator(self):
        station = GroundStation(ConsoleConfig(), simulate=True)
        try:
            assert [p.id for p in station.list_ports()] == [SIMULATOR_PORT]
        finally:
            station.shutdown()

    def test_open_and_stream(self, station, backend):
        assert station.open("COM3")
        backend.connection("COM3").inject(telemetry_frame(RECORD_A))

        assert wait_for(lambda: station.store.latest() == RECORD_A)
        assert station.close()
        assert station.console.texts()[-1] == "closed COM3"

    def test_echo_records(self, station):
        station.set_echo_records(True)
        assert station.ingest.echo_records
        assert station.console.texts()[-1] == "Started showing parsed data..."

    def test_mock_launch(self, station):
        assert station.start_launch(LaunchMode.MOCK)
        assert station.launch_state == LaunchState.RUNNING
        assert station.abort_launch()
        assert station.launch_state == LaunchState.ABORTED

    def test_live_launch_needs_open_port(self, station):
        assert not station.start_launch(LaunchMode.LIVE)
        assert station.console.texts()[-1] == "Open a port before starting a live launch"
        assert station.launch_state == LaunchState.IDLE

    def test_live_launch_with_open_port(self, station):
        station.open("COM3")
        assert station.start_launch(LaunchMode.LIVE)
        assert station.launch.current.mode == LaunchMode.LIVE

    def test_default_mode_from_config(self):
        station = GroundStation(ConsoleConfig(launch_mode="live"), backend=MockBackend(),
                                scheduler=ManualScheduler())
        try:
            assert not station.start_launch()
        finally:
            station.shutdown()

    def test_shutdown_closes_everything(self, station):
        station.open("COM3")
        station.start_launch(LaunchMode.MOCK)
        station.shutdown()

        assert not station.ports.is_open
        assert station.launch_state == LaunchState.ABORTED
        station.shutdown()

    def test_simulator_end_to_end(self):
        """The simulator stream reaches the store through the registry."""
        config = ConsoleConfig(read_timeout=0.02)
        station = GroundStation(config, backend=SimulatorBackend(rate_hz=100))
        try:
            assert station.open(SIMULATOR_PORT)
            assert wait_for(lambda: station.store.records_received >= 3)
            assert "device: phase pad" in station.console.texts()
        finally:
            station.shutdown()
