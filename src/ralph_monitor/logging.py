"""Logging configuration for ralph-monitor.

Each component ("ingest", "status") gets a logger under the ralph_monitor
namespace with a size-rotated file in the log directory and, for
interactive runs, a stderr handler.
"""

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path

DEFAULT_LOG_DIR = Path.home() / "ralph-monitor" / "logs"

# Watch mode runs for days; keep its log bounded
DEFAULT_MAX_BYTES = 10 * 1024 * 1024
DEFAULT_BACKUP_COUNT = 3

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def setup_logging(
    name: str,
    log_dir: Path | None = None,
    level: int = logging.INFO,
    console: bool = True,
    console_level: int | None = None,
    max_bytes: int = DEFAULT_MAX_BYTES,
    backup_count: int = DEFAULT_BACKUP_COUNT,
) -> logging.Logger:
    """Configure logging for a ralph-monitor component.

    Log files are written to <log_dir>/<name>.log and rotated once they
    reach max_bytes. Calling this again for the same component replaces
    its handlers, so the latest destination and level win.

    Args:
        name: Component name (used for the logger and the log filename)
        log_dir: Directory for log files (defaults to ~/ralph-monitor/logs/)
        level: Logging level (defaults to INFO)
        console: Whether to also log to stderr (defaults to True)
        console_level: Minimum level shown on stderr (defaults to level)
        max_bytes: Size at which the log file is rotated
        backup_count: Number of rotated files kept

    Returns:
        Configured logger instance
    """
    if log_dir is None:
        log_dir = DEFAULT_LOG_DIR

    log_dir.mkdir(parents=True, exist_ok=True)

    logger = logging.getLogger(f"ralph_monitor.{name}")
    logger.setLevel(level)

    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt=DATE_FORMAT)

    file_handler = RotatingFileHandler(
        log_dir / f"{name}.log",
        maxBytes=max_bytes,
        backupCount=backup_count,
        encoding="utf-8",
    )
    file_handler.setLevel(level)
    file_handler.setFormatter(formatter)
    logger.addHandler(file_handler)

    if console:
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setLevel(level if console_level is None else console_level)
        console_handler.setFormatter(formatter)
        logger.addHandler(console_handler)

    return logger


def get_logger(name: str) -> logging.Logger:
    """Get a logger for a ralph-monitor component.

    Module loggers are children of the component loggers that
    setup_logging() configures: get_logger("ingest.daemon") propagates to
    the handlers installed by setup_logging("ingest").

    Args:
        name: Logger name (will be prefixed with 'ralph_monitor.')
    """
    return logging.getLogger(f"ralph_monitor.{name}")
