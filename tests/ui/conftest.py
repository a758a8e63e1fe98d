"""
PyQt6 UI Test Configuration and Fixtures
"""

import os

os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")

import pytest
from PyQt6.QtWidgets import QApplication
from PyQt6.QtCore import QSettings


@pytest.fixture(scope='session')
def qapp():
    """Create QApplication instance for all tests."""
    app = QApplication.instance()
    if app is None:
        app = QApplication([])
    yield app


@pytest.fixture
def settings(tmp_path):
    """QSettings backed by a temporary ini file."""
    return QSettings(str(tmp_path / "settings.ini"), QSettings.Format.IniFormat)
