"""
UI Widgets
"""

from .console_view import ConsoleView
from .control_panel import ControlPanel
from .status_panel import StatusPanel, format_mission_clock
from .track_panel import TrackPanel

__all__ = [
    'ConsoleView',
    'ControlPanel',
    'StatusPanel',
    'TrackPanel',
    'format_mission_clock',
]
