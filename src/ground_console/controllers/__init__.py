"""
Controllers Package

Port ownership, telemetry ingest and the launch sequencer.
"""

from .telemetry_ingest import TelemetryIngest
from .port_registry import (
    Port,
    PortBusy,
    PortDisconnected,
    PortError,
    PortRegistry,
    PortState,
    PortUnavailable,
)
from .launch_sequencer import (
    InvalidTransition,
    LaunchController,
    LaunchMode,
    LaunchSequencer,
    LaunchState,
    LaunchStep,
    ScriptedTrigger,
    TelemetryTrigger,
    default_live_script,
    default_mock_script,
)

__all__ = [
    'TelemetryIngest',
    'Port',
    'PortBusy',
    'PortDisconnected',
    'PortError',
    'PortRegistry',
    'PortState',
    'PortUnavailable',
    'InvalidTransition',
    'LaunchController',
    'LaunchMode',
    'LaunchSequencer',
    'LaunchState',
    'LaunchStep',
    'ScriptedTrigger',
    'TelemetryTrigger',
    'default_live_script',
    'default_mock_script',
]
