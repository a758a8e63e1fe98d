"""
Pytest configuration and shared fixtures.
"""

import pytest

from ground_console.communication.protocol import FrameParser
from ground_console.communication.transport_base import MockBackend
from ground_console.controllers.port_registry import PortRegistry
from ground_console.controllers.telemetry_ingest import TelemetryIngest
from ground_console.models.console_log import ConsoleLog
from ground_console.models.telemetry_store import TelemetryStore
from ground_console.utils.error_handler import ErrorReporter


@pytest.fixture
def console():
    return ConsoleLog(capacity=100)


@pytest.fixture
def reporter(console):
    return ErrorReporter(console)


@pytest.fixture
def store():
    return TelemetryStore()


@pytest.fixture
def ingest(console, reporter, store):
    return TelemetryIngest(FrameParser(), store, console, reporter)


@pytest.fixture
def backend():
    return MockBackend(["COM3", "COM4"])


@pytest.fixture
def registry(backend, ingest, console, reporter):
    registry = PortRegistry(backend, ingest, console, reporter, read_timeout=0.02)
    yield registry
    registry.close()
