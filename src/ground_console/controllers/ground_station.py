"""
Ground Station - wires the console core together.

Owns one instance of every core component and exposes the commands
the operator window issues. The window itself only subscribes to the
console log, telemetry store, port registry and launch controller.
"""

from typing import List, Optional
import logging

from ..communication.protocol import FrameParser, get_integrity_policy
from ..communication.simulator import SimulatorBackend
from ..communication.transport_base import SerialBackend
from ..config import ConsoleConfig
from ..models.console_log import ConsoleLog
from ..models.telemetry_store import TelemetryStore
from ..utils.error_handler import ErrorReporter
from ..utils.scheduling import Scheduler
from .launch_sequencer import LaunchController, LaunchMode, LaunchState
from .port_registry import Port, PortRegistry
from .telemetry_ingest import TelemetryIngest

logger = logging.getLogger(__name__)


class GroundStation:
    """
    Operator-facing facade.

    Usage:
        station = GroundStation(load_config(path))
        station.open("COM3")
        station.start_launch()
        ...
        station.shutdown()
    """

    def __init__(self, config: Optional[ConsoleConfig] = None,
                 backend: Optional[SerialBackend] = None,
                 scheduler: Optional[Scheduler] = None,
                 simulate: bool = False):
        self.config = config or ConsoleConfig()
        self.config.validate()

        self.console = ConsoleLog(self.config.console_capacity)
        self.console.append("Initializing system...")
        self.reporter = ErrorReporter(self.console)
        self.store = TelemetryStore(self.config.track_length)

        policy = get_integrity_policy(self.config.integrity)
        self.ingest = TelemetryIngest(
            FrameParser(policy, max_buffer=self.config.parser_max_buffer),
            self.store, self.console, self.reporter,
            echo_records=self.config.echo_records,
        )

        if backend is None:
            backend = self._default_backend(simulate, policy)
        self.ports = PortRegistry(
            backend, self.ingest, self.console, self.reporter,
            baudrate=self.config.baudrate,
            read_timeout=self.config.read_timeout,
            read_size=self.config.read_size,
        )
        self.launch = LaunchController(self.console, self.store, scheduler)
        self._shut_down = False

        logger.info(f"Ground station ready (integrity={policy.name}, mode={self.config.launch_mode})")

    def _default_backend(self, simulate: bool, policy) -> SerialBackend:
        if simulate:
            if not self.config.has_capability("simulator"):
                logger.warning("Simulator requested but the simulator capability is disabled")
            else:
                return SimulatorBackend(rate_hz=self.config.simulator_rate_hz, policy=policy)
        from ..communication.serial_transport import PySerialBackend
        return PySerialBackend()

    # ========================================================================
    # Commands
    # ========================================================================

    def list_ports(self) -> List[Port]:
        return self.ports.list()

    def open(self, port_id: str):
        """Open a port. Returns the registry's OperationResult."""
        return self.ports.open(port_id)

    def close(self):
        return self.ports.close()

    def start_launch(self, mode: Optional[LaunchMode] = None) -> bool:
        """
        Start a launch sequence.

        Args:
            mode: MOCK or LIVE; defaults to the configured mode

        Returns:
            True if a new run started
        """
        mode = mode or self.config.mode
        if mode == LaunchMode.LIVE and not self.ports.is_open:
            self.console.append("Open a port before starting a live launch")
            return False
        return self.launch.start(mode)

    def abort_launch(self) -> bool:
        return self.launch.abort()

    @property
    def launch_state(self) -> LaunchState:
        return self.launch.state

    def set_echo_records(self, enabled: bool) -> None:
        self.ingest.set_echo_records(enabled)

    def shutdown(self) -> None:
        """Abort any run and release the port. Safe to call twice."""
        if self._shut_down:
            return
        self._shut_down = True
        self.launch.shutdown()
        self.ports.close()
        logger.info("Ground station shut down")
