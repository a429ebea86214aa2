"""Logging setup shared by the control-side and host-side entry points.

Provisioning runs log twice: human-readable progress on the console (bare
messages, ``✓``/``⚠`` prefixes) and a timestamped copy in a rotating file
under /var/log/provision_tools/. When the log directory cannot be created
(unprivileged control machine, read-only filesystem) the file handler is
replaced by a stderr fallback so a run never fails because of logging.
"""

from __future__ import annotations

from logging import (
    Logger, Formatter, StreamHandler, getLogger, INFO, WARNING
)
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional
import sys
import subprocess

from lib.types import BYTES_PER_MB

DEFAULT_LOG_MAX_BYTES = 5 * BYTES_PER_MB
DEFAULT_LOG_BACKUP_COUNT = 5
DEFAULT_LOG_LEVEL = INFO
DEFAULT_LOG_DIR = "/var/log/provision_tools"

# Format: timestamp - severity - logger - message
STANDARD_LOG_FORMAT = "%(asctime)s - %(levelname)-8s - %(name)s - %(message)s"
STANDARD_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def _ensure_fallback_handler(logger: Logger, level: int = INFO) -> None:
    if logger.handlers:
        return

    handler = StreamHandler(sys.stderr)
    handler.setLevel(level)
    handler.setFormatter(get_standard_formatter())
    logger.addHandler(handler)


def _ensure_console_handler(logger: Logger, level: int = INFO) -> None:
    has_console = any(
        isinstance(h, StreamHandler) and getattr(h, "stream", None) is sys.stdout
        for h in logger.handlers
    )
    if not has_console:
        console_handler = StreamHandler(sys.stdout)
        console_handler.setLevel(level)
        console_handler.setFormatter(Formatter('%(message)s'))
        logger.addHandler(console_handler)


def get_standard_formatter() -> Formatter:
    return Formatter(STANDARD_LOG_FORMAT, STANDARD_DATE_FORMAT)


def get_rotating_logger(
    name: str,
    log_file: str,
    max_bytes: int = DEFAULT_LOG_MAX_BYTES,
    backup_count: int = DEFAULT_LOG_BACKUP_COUNT,
    level: int = DEFAULT_LOG_LEVEL
) -> Logger:
    """Return a logger writing to ``log_file`` through a rotating handler.

    Calling this twice with the same name and file does not add a second
    handler.
    """
    logger = getLogger(name)
    if not logger.handlers:
        logger.setLevel(level)
        logger.propagate = False

    log_path = Path(log_file)
    try:
        log_path.parent.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        print(f"Error creating log directory {log_path.parent}: {e}", file=sys.stderr)
        _ensure_fallback_handler(logger, level)
        return logger

    log_file_path = str(log_path.resolve())
    for handler in logger.handlers:
        if isinstance(handler, RotatingFileHandler) and handler.baseFilename == log_file_path:
            return logger

    try:
        handler = RotatingFileHandler(log_file_path, maxBytes=max_bytes, backupCount=backup_count)
        handler.setLevel(level)
        handler.setFormatter(get_standard_formatter())
        logger.addHandler(handler)
    except OSError as e:
        print(f"Error opening log file {log_file_path}: {e}", file=sys.stderr)
        _ensure_fallback_handler(logger, level)

    return logger


def get_run_logger(
    name: str = "provision",
    log_dir: Optional[str] = None,
    level: int = DEFAULT_LOG_LEVEL,
    console_output: bool = True
) -> Logger:
    """Get the logger used for a provisioning run.

    Args:
        name: Logger name, also the log file stem
        log_dir: Directory for the log file (defaults to DEFAULT_LOG_DIR)
        level: Logging level
        console_output: Also print bare messages to stdout

    Example:
        logger = get_run_logger()
        logger.info("✓ chrony installed")
    """
    log_file = Path(log_dir or DEFAULT_LOG_DIR) / f"{name}.log"
    logger = get_rotating_logger(name, str(log_file), level=level)

    if console_output:
        _ensure_console_handler(logger, level)

    return logger


def get_console_logger(name: str = "provision_control", level: int = DEFAULT_LOG_LEVEL) -> Logger:
    """Stdout-only logger for the control machine, which keeps no log files."""
    logger = getLogger(name)
    logger.setLevel(level)
    logger.propagate = False
    _ensure_console_handler(logger, level)
    return logger


def log_message(logger: Logger, message: str, level: int = INFO) -> None:
    """Write a log message, reporting (not raising) handler I/O errors."""
    try:
        logger.log(level, message)
    except OSError as e:
        log_target = "unknown log"
        for handler in logger.handlers:
            if isinstance(handler, RotatingFileHandler):
                log_target = handler.baseFilename
                break
        print(f"Error writing to log {log_target}: {e}", file=sys.stderr)


def log_subprocess_result(
    logger: Logger,
    action: str,
    result: subprocess.CompletedProcess[str],
    success_level: int = INFO,
    failure_level: int = WARNING
) -> bool:
    """Log concise command result details and return success state."""
    if result.returncode == 0:
        logger.log(success_level, f"✓ {action}")
        return True

    stderr_raw = result.stderr or ""
    if isinstance(stderr_raw, bytes):
        stderr_raw = stderr_raw.decode(errors="replace")
    stderr = stderr_raw.strip().splitlines()
    if stderr:
        details = " | ".join(stderr[:3])
        if len(stderr) > 3:
            details += " | ..."
    else:
        details = f"exit code {result.returncode}"
    logger.log(failure_level, f"⚠ {action} failed: {details}")
    return False
