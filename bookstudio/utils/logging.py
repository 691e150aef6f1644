"""Logging setup for BookStudio: one daily file under ~/.bookstudio/logs."""

import logging
import sys
from pathlib import Path
from datetime import datetime, timedelta
from typing import Optional


LOGGER_NAME = "bookstudio"
FILE_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(filename)s:%(lineno)d - %(message)s'
CONSOLE_FORMAT = '%(levelname)s: %(message)s'


def default_log_dir() -> Path:
    return Path.home() / ".bookstudio" / "logs"


def cleanup_old_logs(log_dir: Path = None, days_to_keep: int = 1) -> int:
    """
    Delete text and session logs older than days_to_keep.

    Returns:
        Number of files deleted
    """
    log_dir = log_dir or default_log_dir()
    if not log_dir.exists():
        return 0

    cutoff = (datetime.now() - timedelta(days=days_to_keep)).timestamp()
    stale = [p for pattern in ("*.log", "*.jsonl") for p in log_dir.glob(pattern)]

    removed = 0
    for path in stale:
        try:
            if path.stat().st_mtime < cutoff:
                path.unlink()
                removed += 1
        except OSError:
            # Another session may hold or have removed it
            continue
    return removed


def _make_handler(handler: logging.Handler, fmt: str) -> logging.Handler:
    handler.setFormatter(logging.Formatter(fmt, datefmt='%Y-%m-%d %H:%M:%S'))
    return handler


def setup_logging(
    log_file: Optional[Path] = None,
    level: str = "INFO",
    console_output: bool = False
) -> logging.Logger:
    """
    Configure the package logger.

    Args:
        log_file: Log file path (defaults to a dated file in ~/.bookstudio/logs,
            in which case logs older than a day are pruned first)
        level: Level name (DEBUG, INFO, WARNING, ERROR)
        console_output: Also echo records to stdout

    Returns:
        The configured "bookstudio" logger
    """
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(getattr(logging, level.upper()))

    for old in list(logger.handlers):
        old.close()
        logger.removeHandler(old)

    pruned = 0
    if log_file is None:
        log_dir = default_log_dir()
        log_dir.mkdir(parents=True, exist_ok=True)
        pruned = cleanup_old_logs(log_dir, days_to_keep=1)
        log_file = log_dir / f"bookstudio_{datetime.now():%Y%m%d}.log"
    log_file.parent.mkdir(parents=True, exist_ok=True)

    logger.addHandler(_make_handler(logging.FileHandler(log_file, encoding='utf-8'), FILE_FORMAT))
    if console_output:
        logger.addHandler(_make_handler(logging.StreamHandler(sys.stdout), CONSOLE_FORMAT))

    logger.info(f"Logging to {log_file} at {level.upper()}")
    if pruned:
        logger.info(f"Removed {pruned} stale log file(s)")

    return logger


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """
    Logger for a BookStudio component, e.g. get_logger("api").

    Configures DEBUG file logging on first use when nothing else has.
    """
    if not logging.getLogger(LOGGER_NAME).handlers:
        setup_logging(level="DEBUG")
    return logging.getLogger(f"{LOGGER_NAME}.{name}" if name else LOGGER_NAME)
