"""
Qt Bridge - re-posts core notifications onto the GUI thread.

Core subjects notify on whatever thread changed the state (serial
reader, launch timers). The bridge lives on the GUI thread and turns
each notification into a Qt signal, so connected slots run there.
"""

import logging

from PyQt6.QtCore import QObject, pyqtSignal

from ..controllers.ground_station import GroundStation
from ..utils.observer import SubscriptionGroup

logger = logging.getLogger(__name__)


class StationBridge(QObject):
    """Signals mirroring a GroundStation's subjects."""

    console_appended = pyqtSignal(object)   # ConsoleEntry
    telemetry_updated = pyqtSignal(object)  # TelemetryRecord
    port_changed = pyqtSignal(object)       # Port
    launch_state_changed = pyqtSignal(object)  # LaunchState
    run_flag_changed = pyqtSignal(bool)
    error_reported = pyqtSignal(object)     # ErrorInfo

    def __init__(self, station: GroundStation, parent=None):
        super().__init__(parent)
        self.station = station
        self._subscriptions = SubscriptionGroup()

        self._subscriptions.add(station.console.subscribe(self.console_appended.emit, owner=self))
        self._subscriptions.add(station.store.subscribe(self.telemetry_updated.emit, owner=self))
        self._subscriptions.add(station.ports.subscribe(self.port_changed.emit, owner=self))
        self._subscriptions.add(station.launch.subscribe_state(self.launch_state_changed.emit, owner=self))
        self._subscriptions.add(station.launch.subscribe_run_flag(self.run_flag_changed.emit, owner=self))
        self._subscriptions.add(station.reporter.subscribe(self.error_reported.emit, owner=self))

    @property
    def attached(self) -> bool:
        return len(self._subscriptions) > 0

    def detach(self) -> None:
        """Release every core subscription."""
        self._subscriptions.cancel_all()
        logger.debug("Station bridge detached")
