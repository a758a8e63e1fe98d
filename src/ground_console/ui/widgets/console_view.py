"""
Console View Widget - read-only narration of system events.
"""

import logging

from PyQt6.QtWidgets import QPlainTextEdit
from PyQt6.QtGui import QFont, QTextCursor

from ...models.console_log import ConsoleEntry, ConsoleLog

logger = logging.getLogger(__name__)


class ConsoleView(QPlainTextEdit):
    """Shows console entries, capped at the log's capacity."""

    def __init__(self, capacity: int, parent=None):
        super().__init__(parent)
        self.setReadOnly(True)
        self.setMaximumBlockCount(capacity)
        self.setFont(QFont("Consolas", 9))
        self.setLineWrapMode(QPlainTextEdit.LineWrapMode.NoWrap)
        self.setStyleSheet("""
            QPlainTextEdit {
                background-color: #1e1e1e;
                color: #d4d4d4;
                border: 1px solid #333;
            }
        """)

    def load(self, log: ConsoleLog):
        """Replace the view contents with a log snapshot."""
        self.clear()
        for entry in log.entries():
            self.add_entry(entry)

    def add_entry(self, entry: ConsoleEntry):
        self.appendPlainText(str(entry))
        self.moveCursor(QTextCursor.MoveOperation.End)

    def lines(self):
        text = self.toPlainText()
        return text.split("\n") if text else []
