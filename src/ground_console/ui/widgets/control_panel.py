"""
Control Panel Widget

Port selection, open/close, parsed-data echo and launch controls.
The panel only emits requests; the main window forwards them to the
GroundStation.
"""

from typing import List, Optional

from PyQt6.QtWidgets import (
    QWidget, QVBoxLayout, QHBoxLayout, QGroupBox, QComboBox,
    QPushButton, QCheckBox
)
from PyQt6.QtCore import pyqtSignal

from ...controllers.port_registry import Port


class ControlPanel(QWidget):
    """Operator commands."""

    refresh_requested = pyqtSignal()
    open_requested = pyqtSignal(str)   # port id
    close_requested = pyqtSignal()
    echo_toggled = pyqtSignal(bool)
    start_requested = pyqtSignal()
    abort_requested = pyqtSignal()

    def __init__(self, parent=None):
        super().__init__(parent)
        self._init_ui()
        self.set_port_open(False)
        self.set_running(False)

    def _init_ui(self):
        """Initialize UI."""
        layout = QVBoxLayout(self)
        layout.setContentsMargins(4, 4, 4, 4)

        # Serial port
        port_group = QGroupBox("Serial Port")
        port_layout = QVBoxLayout(port_group)

        row = QHBoxLayout()
        self.port_combo = QComboBox()
        self.port_combo.setMinimumWidth(160)
        row.addWidget(self.port_combo, 1)
        self.refresh_btn = QPushButton("Refresh")
        self.refresh_btn.clicked.connect(self.refresh_requested.emit)
        row.addWidget(self.refresh_btn)
        port_layout.addLayout(row)

        row = QHBoxLayout()
        self.open_btn = QPushButton("Open")
        self.open_btn.clicked.connect(self._on_open_clicked)
        row.addWidget(self.open_btn)
        self.close_btn = QPushButton("Close")
        self.close_btn.clicked.connect(self.close_requested.emit)
        row.addWidget(self.close_btn)
        port_layout.addLayout(row)

        self.echo_cb = QCheckBox("Show parsed data")
        self.echo_cb.toggled.connect(self.echo_toggled.emit)
        port_layout.addWidget(self.echo_cb)

        layout.addWidget(port_group)

        # Launch
        launch_group = QGroupBox("Launch")
        launch_layout = QHBoxLayout(launch_group)
        self.start_btn = QPushButton("Start Launch")
        self.start_btn.clicked.connect(self.start_requested.emit)
        launch_layout.addWidget(self.start_btn)
        self.abort_btn = QPushButton("Abort")
        self.abort_btn.setStyleSheet("color: #ef4444; font-weight: bold;")
        self.abort_btn.clicked.connect(self.abort_requested.emit)
        launch_layout.addWidget(self.abort_btn)
        layout.addWidget(launch_group)

        layout.addStretch()

    def _on_open_clicked(self):
        port_id = self.selected_port()
        if port_id:
            self.open_requested.emit(port_id)

    def set_ports(self, ports: List[Port], selected: Optional[str] = None):
        """Refill the port list, keeping the selection when possible."""
        current = selected or self.selected_port()
        self.port_combo.blockSignals(True)
        self.port_combo.clear()
        for port in ports:
            self.port_combo.addItem(port.display_name, port.id)
        index = self.port_combo.findData(current) if current else -1
        if index >= 0:
            self.port_combo.setCurrentIndex(index)
        self.port_combo.blockSignals(False)

    def selected_port(self) -> Optional[str]:
        return self.port_combo.currentData()

    def set_port_open(self, is_open: bool):
        self.open_btn.setEnabled(not is_open)
        self.close_btn.setEnabled(is_open)
        self.port_combo.setEnabled(not is_open)
        self.refresh_btn.setEnabled(not is_open)

    def set_echo(self, enabled: bool):
        self.echo_cb.blockSignals(True)
        self.echo_cb.setChecked(enabled)
        self.echo_cb.blockSignals(False)

    def set_running(self, running: bool):
        self.start_btn.setEnabled(not running)
        self.abort_btn.setEnabled(running)
