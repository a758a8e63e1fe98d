"""
Track Panel Widget

Recorded positions for the map view. Shown only when the map_drawing
capability is enabled; tiles are not rendered.
"""

from typing import Sequence

from PyQt6.QtWidgets import QWidget, QVBoxLayout, QLabel, QListWidget

from ...communication.telemetry import PositionFix

MAX_ROWS = 200


class TrackPanel(QWidget):
    """Newest fixes first."""

    def __init__(self, parent=None):
        super().__init__(parent)
        layout = QVBoxLayout(self)
        layout.setContentsMargins(4, 4, 4, 4)

        self.summary_label = QLabel("No position fix")
        layout.addWidget(self.summary_label)

        self.fix_list = QListWidget()
        layout.addWidget(self.fix_list)

    def show_track(self, fixes: Sequence[PositionFix]):
        self.fix_list.clear()
        if not fixes:
            self.summary_label.setText("No position fix")
            return

        self.summary_label.setText(f"{len(fixes)} positions recorded")
        for fix in list(fixes)[-MAX_ROWS:][::-1]:
            self.fix_list.addItem(f"{fix.latitude:.6f}, {fix.longitude:.6f}  {fix.altitude_m:.0f} m")
