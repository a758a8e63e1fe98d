"""
UI Package

PyQt6 operator window. Reads core state through the Qt bridge only.
"""

from .main_window import MainWindow
from .qt_bridge import StationBridge

__all__ = [
    'MainWindow',
    'StationBridge',
]
