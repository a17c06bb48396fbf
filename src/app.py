"""
Zenith - Non-custodial multi-chain wallet core

Serves the local wallet API until interrupted.

Entry point for the application.
"""

import argparse
import logging
import signal
import sys
from typing import Optional

from PyQt6.QtCore import QCoreApplication, QTimer

from services.logging import configure_logging, enable_file_logging
from services.server import WalletServer
from services.settings import WalletSettings

logger = logging.getLogger("zenith")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="zenith", description="Zenith wallet core API server")
    parser.add_argument("--port", type=int, help="Port to listen on (default from settings, 8081)")
    parser.add_argument("--allow-lan", action="store_true", help="Listen on all interfaces instead of localhost")
    parser.add_argument("--log-level", choices=["DEBUG", "INFO", "WARNING", "ERROR"], help="Console log level")
    parser.add_argument("--settings", help="Path to settings.json")
    return parser


def main(argv: Optional[list[str]] = None) -> int:
    """Application entry point."""
    args = build_parser().parse_args(argv)

    # Configure logging before anything else
    configure_logging(getattr(logging, args.log_level) if args.log_level else logging.INFO)

    try:
        settings = WalletSettings.load(args.settings)
    except ValueError as e:
        logger.error(f"Invalid settings: {e}")
        return 2

    if not args.log_level:
        logging.getLogger().setLevel(settings.log_level_value())
    enable_file_logging(settings.log_retention_days, settings.log_level_value())

    app = QCoreApplication(sys.argv[:1])
    app.setApplicationName("Zenith")
    app.setOrganizationName("Zenith")

    server = WalletServer.from_settings(settings)
    server.error.connect(lambda message: logger.error(message))

    port = args.port if args.port is not None else settings.server_port
    if not server.start(port, allow_lan=args.allow_lan or settings.allow_lan):
        return 1

    def _shutdown(*_):
        server.stop()
        app.quit()

    signal.signal(signal.SIGINT, _shutdown)
    signal.signal(signal.SIGTERM, _shutdown)

    # Wake the event loop so Python signal handlers get to run
    heartbeat = QTimer()
    heartbeat.timeout.connect(lambda: None)
    heartbeat.start(250)

    return app.exec()


if __name__ == "__main__":
    sys.exit(main())
