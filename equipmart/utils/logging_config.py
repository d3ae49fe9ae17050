"""Logging configuration for the application."""

import logging
import logging.handlers
import os
import sys
from pathlib import Path

from ..config import LOGS_DIR, settings

LOG_FILE_NAME = "search.log"


def _cleanup_old_logs(log_dir: Path, base_name: str, max_files: int, logger: logging.Logger):
    """Clean up old log files when max number is reached.

    Args:
        log_dir: Directory containing log files
        base_name: Base name of the log file (e.g., 'search.log')
        max_files: Maximum number of rotated log files to keep
        logger: Logger instance for logging cleanup operations
    """
    try:
        log_files = sorted(
            [f for f in log_dir.glob(f"{base_name}.*") if f.is_file()],
            key=lambda x: x.stat().st_mtime,
            reverse=True,
        )

        if len(log_files) > max_files:
            files_to_delete = log_files[max_files:]
            for old_file in files_to_delete:
                try:
                    logger.debug(f"Deleting old log file: {old_file}")
                    old_file.unlink()
                except OSError as e:
                    logger.error(f"Failed to delete old log file {old_file}: {e}")
            logger.info(f"Deleted {len(files_to_delete)} old log files")
    except Exception as e:
        logger.error(f"Error during log cleanup: {e}")


def setup_logging(log_dir: Path = LOGS_DIR):
    """Set up console and daily rotating file logging on the root logger."""
    os.makedirs(log_dir, exist_ok=True)

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)  # Handlers filter

    if root_logger.hasHandlers():
        root_logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(settings.logging.log_level)
    console_handler.setFormatter(logging.Formatter(settings.logging.format))
    root_logger.addHandler(console_handler)

    file_handler = logging.handlers.TimedRotatingFileHandler(
        log_dir / LOG_FILE_NAME,
        when="midnight",
        interval=1,
        backupCount=settings.logging.backup_count,
        encoding="utf-8",
        delay=True,
    )
    file_handler.suffix = "%Y-%m-%d"
    file_handler.setLevel(settings.logging.file_log_level)
    file_handler.setFormatter(logging.Formatter(settings.logging.file_format))
    root_logger.addHandler(file_handler)

    _cleanup_old_logs(log_dir, LOG_FILE_NAME, settings.logging.backup_count, root_logger)

    for logger_name, level in settings.logging.noisy_loggers.items():
        logging.getLogger(logger_name).setLevel(level)
