"""
Main Window

Status panel, console view and controls for one GroundStation.
Docks hold the optional panels; the console is the central widget.
"""

import logging
from typing import Optional

from PyQt6.QtWidgets import QMainWindow, QDockWidget, QLabel
from PyQt6.QtCore import Qt, QSettings

from ..controllers.ground_station import GroundStation
from ..controllers.launch_sequencer import LaunchState
from ..controllers.port_registry import Port
from .qt_bridge import StationBridge
from .widgets import ConsoleView, ControlPanel, StatusPanel, TrackPanel

logger = logging.getLogger(__name__)

SETTINGS_ORG = "GroundConsole"
SETTINGS_APP = "GroundConsole"
LAST_PORT_KEY = "serial/last_port"


class MainWindow(QMainWindow):
    """Operator window."""

    def __init__(self, station: GroundStation, settings: Optional[QSettings] = None):
        super().__init__()
        self.station = station
        self.settings = settings or QSettings(SETTINGS_ORG, SETTINGS_APP)
        self.bridge = StationBridge(station, self)
        self.track_panel: Optional[TrackPanel] = None

        self._init_ui()
        self._setup_connections()

        self.console_view.load(station.console)
        self.status_panel.show_record(station.store.latest())
        self.status_panel.set_connected(station.ports.is_open)
        self.control_panel.set_echo(station.ingest.echo_records)
        self.control_panel.set_running(station.launch.is_running)
        self.refresh_ports()

        logger.info("Main window initialized")

    def _init_ui(self):
        """Initialize user interface."""
        self.setWindowTitle("Ground Control Console")
        self.resize(1000, 640)

        self.console_view = ConsoleView(self.station.config.console_capacity)
        self.setCentralWidget(self.console_view)

        self.status_panel = StatusPanel()
        self._add_dock("Status", self.status_panel, Qt.DockWidgetArea.LeftDockWidgetArea)

        self.control_panel = ControlPanel()
        self._add_dock("Controls", self.control_panel, Qt.DockWidgetArea.LeftDockWidgetArea)

        if self.station.config.has_capability("map_drawing"):
            self.track_panel = TrackPanel()
            self._add_dock("Track", self.track_panel, Qt.DockWidgetArea.RightDockWidgetArea)

        self.launch_label = QLabel(LaunchState.IDLE.name)
        self.statusBar().addPermanentWidget(self.launch_label)

    def _add_dock(self, title: str, widget, area: Qt.DockWidgetArea) -> QDockWidget:
        dock = QDockWidget(title, self)
        dock.setObjectName(f"{title}Dock")
        dock.setWidget(widget)
        dock.setFeatures(QDockWidget.DockWidgetFeature.NoDockWidgetFeatures)
        self.addDockWidget(area, dock)
        return dock

    def _setup_connections(self):
        """Wire bridge signals and control requests."""
        self.bridge.console_appended.connect(self.console_view.add_entry)
        self.bridge.telemetry_updated.connect(self._on_telemetry)
        self.bridge.port_changed.connect(self._on_port_changed)
        self.bridge.launch_state_changed.connect(self._on_launch_state)
        self.bridge.run_flag_changed.connect(self.control_panel.set_running)

        self.control_panel.refresh_requested.connect(self.refresh_ports)
        self.control_panel.open_requested.connect(self.open_port)
        self.control_panel.close_requested.connect(self.close_port)
        self.control_panel.echo_toggled.connect(self.station.set_echo_records)
        self.control_panel.start_requested.connect(self.start_launch)
        self.control_panel.abort_requested.connect(self.station.abort_launch)

    # ========================================================================
    # Commands
    # ========================================================================

    def refresh_ports(self):
        ports = self.station.list_ports()
        last = self.settings.value(LAST_PORT_KEY, "", type=str)
        self.control_panel.set_ports(ports, selected=last or None)

    def open_port(self, port_id: str):
        result = self.station.open(port_id)
        if result:
            self.settings.setValue(LAST_PORT_KEY, port_id)
            self.statusBar().showMessage(f"Opened {port_id}", 3000)
        else:
            self.statusBar().showMessage(result.error.message, 5000)
            self.refresh_ports()

    def close_port(self):
        self.station.close()

    def start_launch(self):
        if not self.station.start_launch():
            self.statusBar().showMessage("Launch not started", 3000)

    # ========================================================================
    # Notifications (GUI thread)
    # ========================================================================

    def _on_telemetry(self, record):
        self.status_panel.show_record(record)
        if self.track_panel is not None and record.has_fix:
            self.track_panel.show_track(self.station.store.positions())

    def _on_port_changed(self, port: Port):
        is_open = self.station.ports.is_open
        self.status_panel.set_connected(is_open)
        self.control_panel.set_port_open(is_open)

    def _on_launch_state(self, state: LaunchState):
        self.launch_label.setText(state.name)

    def closeEvent(self, event):
        """Handle window close."""
        self.bridge.detach()
        self.station.shutdown()
        event.accept()
