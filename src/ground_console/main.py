#!/usr/bin/env python3
"""
Ground Control Console - Main Entry Point
"""

import sys
import argparse
import logging

from PyQt6.QtWidgets import QApplication
from PyQt6.QtCore import QTimer

from . import __version__
from .config import ConfigError, load_config
from .controllers.ground_station import GroundStation
from .controllers.launch_sequencer import LaunchMode
from .communication.simulator import SIMULATOR_PORT
from .utils.logger import setup_logger


def parse_args(argv=None):
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        prog="ground-console",
        description="Ground Control Console - telemetry and launch sequencing",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s                          # Normal startup
  %(prog)s -p COM3                  # Open COM3 on startup
  %(prog)s --simulate               # Stream from the flight simulator
  %(prog)s -c console.json -m live  # Config file, device-driven launch
"""
    )

    parser.add_argument(
        "-c", "--config",
        metavar="FILE",
        help="Load configuration from a JSON file"
    )

    parser.add_argument(
        "-p", "--port",
        metavar="PORT",
        help="Open this serial port on startup"
    )

    parser.add_argument(
        "--simulate",
        action="store_true",
        help=f"Use the simulated flight computer ({SIMULATOR_PORT}) instead of serial ports"
    )

    parser.add_argument(
        "-m", "--mode",
        choices=[mode.value for mode in LaunchMode],
        help="Launch sequence mode (overrides the config file)"
    )

    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose logging"
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}"
    )

    return parser.parse_args(argv)


def main(argv=None):
    """Main application entry point."""
    args = parse_args(argv)

    setup_logger(log_level=logging.DEBUG if args.verbose else logging.INFO, verbose_link=args.verbose)
    logger = logging.getLogger(__name__)

    logger.info("Starting Ground Control Console...")

    try:
        config = load_config(args.config)
    except ConfigError as e:
        logger.error(f"Configuration error: {e}")
        print(f"error: {e}", file=sys.stderr)
        return 2

    if args.mode:
        config.launch_mode = args.mode

    station = GroundStation(config, simulate=args.simulate)

    app = QApplication(sys.argv if argv is None else [sys.argv[0]])
    app.setApplicationName("Ground Control Console")
    app.setOrganizationName("GroundConsole")
    app.setApplicationVersion(__version__)
    app.setStyle("Fusion")

    from .ui.main_window import MainWindow
    window = MainWindow(station)
    window.show()

    port = args.port or (SIMULATOR_PORT if args.simulate else None)
    if port:
        logger.info(f"Auto-opening port: {port}")
        QTimer.singleShot(100, lambda: window.open_port(port))

    logger.info("Application started successfully")

    exit_code = app.exec()
    station.shutdown()
    return exit_code


if __name__ == "__main__":
    sys.exit(main())
