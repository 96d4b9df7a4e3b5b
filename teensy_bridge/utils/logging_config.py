"""
Logging Configuration Utility

Sets up logging for the serial bridge: a rotating log file plus a
console stream, both at the configured level.
"""

import logging
import logging.handlers
import sys
import os

from ..config.settings import LoggingConfig


FILE_FORMAT = '%(asctime)s - %(levelname)s - %(name)s - %(message)s'
DETAILED_FORMAT = ('%(asctime)s - %(name)s - %(levelname)s - %(threadName)s - '
                   '%(filename)s:%(lineno)d - %(message)s')
CONSOLE_FORMAT = '%(asctime)s - %(levelname)s - %(message)s'


def setup_logging(level: str = "INFO",
                  log_file: str = "teensy_bridge.log",
                  max_file_size_mb: float = 10.0,
                  backup_count: int = 5,
                  console_output: bool = True,
                  detailed_format: bool = False) -> bool:
    """
    Configure the root logger.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Log file path, empty to disable file logging
        max_file_size_mb: Maximum log file size in MB before rotation
        backup_count: Number of rotated files to keep
        console_output: Whether to log to stdout
        detailed_format: Include thread and source location in file records

    Returns:
        bool: True if logging setup successful
    """
    try:
        numeric_level = getattr(logging, level.upper(), logging.INFO)

        logger = logging.getLogger()
        logger.setLevel(numeric_level)
        logger.handlers.clear()

        formatter = logging.Formatter(
            DETAILED_FORMAT if detailed_format else FILE_FORMAT,
            datefmt='%Y-%m-%d %H:%M:%S'
        )

        if log_file:
            log_dir = os.path.dirname(log_file)
            if log_dir:
                os.makedirs(log_dir, exist_ok=True)

            file_handler = logging.handlers.RotatingFileHandler(
                log_file,
                maxBytes=int(max_file_size_mb * 1024 * 1024),
                backupCount=backup_count
            )
            file_handler.setLevel(numeric_level)
            file_handler.setFormatter(formatter)
            logger.addHandler(file_handler)

        if console_output:
            console_handler = logging.StreamHandler(sys.stdout)
            console_handler.setLevel(numeric_level)
            console_handler.setFormatter(logging.Formatter(CONSOLE_FORMAT, datefmt='%H:%M:%S'))
            logger.addHandler(console_handler)

        logger.info(f"Logging initialized - Level: {level}, File: {log_file or 'disabled'}")
        return True

    except (OSError, ValueError) as e:
        print(f"Failed to setup logging: {e}", file=sys.stderr)
        return False


def setup_logging_from_config(config: LoggingConfig) -> bool:
    """Configure logging from a settings section."""
    return setup_logging(
        level=config.level,
        log_file=config.log_file,
        max_file_size_mb=config.max_file_size_mb,
        backup_count=config.backup_count,
        console_output=config.console_output,
        detailed_format=config.detailed_format
    )
