"""
Status Panel Widget

Mission clock, satellite count, connection state, signal strength and
battery level, read from the latest TelemetryRecord.
"""

from typing import Optional

from PyQt6.QtWidgets import QWidget, QGridLayout, QLabel
from PyQt6.QtCore import Qt

from ...communication.telemetry import TelemetryRecord

PLACEHOLDER = "--"

COLOR_CONNECTED = "#22c55e"
COLOR_DISCONNECTED = "#6b7280"


def format_mission_clock(seconds: Optional[float]) -> str:
    """Seconds since mission start as HH:MM:SS."""
    if seconds is None:
        return "00:00:00"
    total = max(0, int(seconds))
    hours, rest = divmod(total, 3600)
    minutes, secs = divmod(rest, 60)
    return f"{hours:02d}:{minutes:02d}:{secs:02d}"


def _format_value(value: Optional[float], fmt: str, unit: str) -> str:
    if value is None:
        return PLACEHOLDER
    return f"{value:{fmt}} {unit}".rstrip()


class StatusPanel(QWidget):
    """Grid of labelled status values."""

    def __init__(self, parent=None):
        super().__init__(parent)
        self._connected = False
        self._init_ui()
        self.show_record(TelemetryRecord())
        self.set_connected(False)

    def _init_ui(self):
        """Initialize UI."""
        layout = QGridLayout(self)
        layout.setContentsMargins(8, 8, 8, 8)
        layout.setHorizontalSpacing(16)

        self.clock_label = self._add_row(layout, 0, "Mission Clock")
        self.satellites_label = self._add_row(layout, 1, "Satellites")
        self.status_label = self._add_row(layout, 2, "Status")
        self.signal_label = self._add_row(layout, 3, "Signal")
        self.battery_label = self._add_row(layout, 4, "Battery")

        layout.setRowStretch(5, 1)

    @staticmethod
    def _add_row(layout: QGridLayout, row: int, title: str) -> QLabel:
        caption = QLabel(f"{title}:")
        caption.setStyleSheet("color: #9ca3af;")
        value = QLabel(PLACEHOLDER)
        value.setAlignment(Qt.AlignmentFlag.AlignRight | Qt.AlignmentFlag.AlignVCenter)
        value.setStyleSheet("font-weight: bold;")
        layout.addWidget(caption, row, 0)
        layout.addWidget(value, row, 1)
        return value

    @property
    def connected(self) -> bool:
        return self._connected

    def set_connected(self, connected: bool):
        """Update the connection indicator."""
        self._connected = connected
        if connected:
            self.status_label.setText("CONNECTED")
            self.status_label.setStyleSheet(f"color: {COLOR_CONNECTED}; font-weight: bold;")
        else:
            self.status_label.setText("DISCONNECTED")
            self.status_label.setStyleSheet(f"color: {COLOR_DISCONNECTED}; font-weight: bold;")

    def show_record(self, record: TelemetryRecord):
        """Render a telemetry snapshot; unset fields show a placeholder."""
        self.clock_label.setText(format_mission_clock(record.mission_time_s))
        if record.satellite_count is None:
            self.satellites_label.setText(PLACEHOLDER)
        else:
            self.satellites_label.setText(str(record.satellite_count))
        self.signal_label.setText(_format_value(record.rssi_dbm, ".1f", "dBm"))
        self.battery_label.setText(_format_value(record.battery_pct, ".1f", "%"))
