#!/usr/bin/env python3
"""
AccessReader - Main application entry point
"""

import argparse
import logging
import sys
from pathlib import Path


def get_data_dir(dev_mode=False):
    """~/.accessreader, or ./.accessreader in development mode"""
    if dev_mode:
        # Use current directory for development
        return Path.cwd() / ".accessreader"
    return Path.home() / ".accessreader"


def parse_args(argv=None):
    parser = argparse.ArgumentParser(prog="access-reader", description="Assistive document reader")
    parser.add_argument("document", nargs="?", help="plain text file to open")
    parser.add_argument("-d", "--dev", action="store_true", help="keep data in ./.accessreader")
    parser.add_argument("--debug", action="store_true", help="log debug messages to the console")
    return parser.parse_args(argv)


def main(argv=None):
    """Main entry point for AccessReader"""
    args = parse_args(argv)

    data_dir = get_data_dir(args.dev)
    data_dir.mkdir(parents=True, exist_ok=True)

    from accessreader.log_manager import setup_application_logging
    setup_application_logging(data_dir, debug=args.debug)
    logger = logging.getLogger("access_reader")

    # Import Qt modules after logging is configured
    from PySide6.QtCore import Qt
    from PySide6.QtWidgets import QApplication

    # Enable high DPI scaling
    QApplication.setHighDpiScaleFactorRoundingPolicy(Qt.HighDpiScaleFactorRoundingPolicy.PassThrough)

    app = QApplication(sys.argv[:1])
    app.setApplicationName("AccessReader")
    app.setOrganizationName("AccessReader")

    from accessreader.main_window import ReaderMainWindow, build_session
    from accessreader.settings.reader_settings import SettingsStore

    store = SettingsStore(data_dir)
    store.load_config()
    logger.info("Loaded configuration from %s", store.config_path)

    session = build_session(store, data_dir)
    window = ReaderMainWindow(session)
    if args.document:
        window.open_file(args.document)
    window.show()

    # Run the application
    return app.exec()


if __name__ == "__main__":
    sys.exit(main())
