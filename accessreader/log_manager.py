# accessreader/log_manager.py
"""
Log Manager Module

Configures application logging: a size-rotated log file in the data
directory plus console output.
"""

import logging
import os
from pathlib import Path

from concurrent_log_handler import ConcurrentRotatingFileHandler

LOG_FILE_NAME = "accessreader.log"
MAX_FILE_SIZE_KB = 200
BACKUP_COUNT = 2
LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


class LogManager:
    """Manages application logging configuration."""

    def __init__(self, data_dir, debug=False):
        """Initialize the log manager.

        Args:
            data_dir: Application data directory; logs go in its logs/ folder.
            debug: Log DEBUG messages to the console as well as the file.
        """
        self.file_level = logging.DEBUG
        self.console_level = logging.DEBUG if debug else logging.INFO

        # Environment overrides both file and console
        env_level = os.environ.get("ACCESSREADER_LOG_LEVEL", "").upper()
        if env_level:
            level = logging.getLevelName(env_level)
            if isinstance(level, int):
                self.file_level = level
                self.console_level = level

        self.log_dir = Path(data_dir) / "logs"
        self.log_file = self.log_dir / LOG_FILE_NAME
        self.max_file_size = MAX_FILE_SIZE_KB * 1024
        self.backup_count = BACKUP_COUNT

    def setup_logging(self):
        """Set up logging with rotation to keep file size manageable."""
        self.log_dir.mkdir(parents=True, exist_ok=True)

        root_logger = logging.getLogger()
        root_logger.setLevel(min(self.file_level, self.console_level))

        # Clear any existing handlers to avoid duplicates
        root_logger.handlers.clear()

        formatter = logging.Formatter(LOG_FORMAT)

        file_handler = ConcurrentRotatingFileHandler(
            str(self.log_file),
            maxBytes=self.max_file_size,
            backupCount=self.backup_count
        )
        file_handler.setFormatter(formatter)
        file_handler.setLevel(self.file_level)
        root_logger.addHandler(file_handler)

        console_handler = logging.StreamHandler()
        console_handler.setFormatter(formatter)
        console_handler.setLevel(self.console_level)
        root_logger.addHandler(console_handler)

        logging.info("Logging initialized")
        logging.info("Log file path: %s", self.log_file)
        return root_logger

    def get_log_file_path(self):
        return self.log_file


def setup_application_logging(data_dir, debug=False):
    """Convenience function to set up logging for the application."""
    log_manager = LogManager(data_dir, debug=debug)
    log_manager.setup_logging()
    return log_manager
