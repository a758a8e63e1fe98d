"""
Logging configuration for the Ground Control Console

Three handlers on the root logger: the rotating main log, a rotating
errors-only log and stdout. The format carries the thread name since
port readers and launch timers log from their own threads.
"""

import logging
import sys
import time
from pathlib import Path
from logging.handlers import RotatingFileHandler
from typing import Dict, Optional

DEFAULT_LOG_DIR = Path.home() / ".ground_console" / "logs"
MAIN_LOG_NAME = "ground_console.log"
ERROR_LOG_NAME = "ground_console_errors.log"
LOG_FORMAT = "%(asctime)s [%(threadName)s] %(name)s - %(levelname)s - %(message)s"
LOG_RETENTION_DAYS = 30

# Floor levels for chatty loggers. The parser and ingest log once per
# frame at DEBUG, so they stay at INFO unless verbose logging is asked for.
MODULE_LEVELS: Dict[str, int] = {
    "PyQt6": logging.WARNING,
    "serial": logging.WARNING,
    "ground_console.communication.protocol": logging.INFO,
    "ground_console.controllers.telemetry_ingest": logging.INFO,
}


def _rotating_handler(path: Path, level: int, max_bytes: int, backup_count: int,
                      formatter: logging.Formatter) -> RotatingFileHandler:
    handler = RotatingFileHandler(path, maxBytes=max_bytes, backupCount=backup_count, encoding="utf-8")
    handler.setLevel(level)
    handler.setFormatter(formatter)
    return handler


def setup_logger(log_level=logging.INFO, max_size_mb: int = 10, backup_count: int = 5,
                 log_dir: Optional[Path] = None, verbose_link: bool = False) -> Path:
    """
    Setup application logger with rotating file handlers.

    Args:
        log_level: Root logging level (default: INFO)
        max_size_mb: Main log size in MB before rotation (default: 10)
        backup_count: Number of main log backups to keep (default: 5)
        log_dir: Directory for log files (default: ~/.ground_console/logs)
        verbose_link: Let the per-frame parser and ingest messages through

    Returns:
        Path of the main log file
    """
    log_dir = Path(log_dir) if log_dir else DEFAULT_LOG_DIR
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / MAIN_LOG_NAME

    formatter = logging.Formatter(LOG_FORMAT)
    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)

    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)
        handler.close()

    root_logger.addHandler(_rotating_handler(
        log_file, log_level, max_size_mb * 1024 * 1024, backup_count, formatter))
    root_logger.addHandler(_rotating_handler(
        log_dir / ERROR_LOG_NAME, logging.ERROR, 5 * 1024 * 1024, 3, formatter))

    stdout_handler = logging.StreamHandler(sys.stdout)
    stdout_handler.setLevel(log_level)
    stdout_handler.setFormatter(formatter)
    root_logger.addHandler(stdout_handler)

    for name, level in MODULE_LEVELS.items():
        if verbose_link and name.startswith("ground_console."):
            level = logging.NOTSET
        logging.getLogger(name).setLevel(level)

    removed = _cleanup_old_logs(log_dir, days=LOG_RETENTION_DAYS)

    logger = logging.getLogger(__name__)
    logger.info(f"Logger initialized. Log file: {log_file}")
    if removed:
        logger.info(f"Removed {removed} rotated logs older than {LOG_RETENTION_DAYS} days")
    return log_file


def _cleanup_old_logs(log_dir: Path, days: int) -> int:
    """Remove rotated log files older than the given number of days."""
    cutoff_time = time.time() - (days * 24 * 60 * 60)
    removed = 0

    for log_file in log_dir.glob("*.log.*"):
        try:
            if log_file.stat().st_mtime < cutoff_time:
                log_file.unlink()
                removed += 1
        except OSError as e:
            logging.getLogger(__name__).debug(f"Could not remove old log {log_file}: {e}")
    return removed
