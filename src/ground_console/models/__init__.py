"""
Models Package

Shared in-memory state read by the UI layer.
"""

from .console_log import ConsoleEntry, ConsoleLog, DEFAULT_CONSOLE_CAPACITY
from .telemetry_store import TelemetryStore, DEFAULT_TRACK_LENGTH

__all__ = [
    'ConsoleEntry',
    'ConsoleLog',
    'DEFAULT_CONSOLE_CAPACITY',
    'TelemetryStore',
    'DEFAULT_TRACK_LENGTH',
]
