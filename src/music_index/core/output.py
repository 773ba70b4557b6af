"""
Unified output system using Loguru.
Dual output for user-facing messages (console + file), file-only for the rest.
"""

import sys
import threading
from pathlib import Path
from typing import Optional

from loguru import logger
from rich.console import Console

from .config import LoggingConfig, get_data_dir

_console: Console | None = None

LOG_FORMAT = "{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{line} | {message}"

_LEVEL_STYLES = {
    "debug": "cyan",
    "info": None,
    "warning": "yellow",
    "error": "red",
}


def get_console() -> Console:
    """Get or create the shared Rich Console used by the CLI and log()."""
    global _console
    if _console is None:
        _console = Console()
    return _console


def safe_print(message: str, style: Optional[str] = None) -> None:
    """Print through the shared console, with an optional Rich style."""
    if style:
        get_console().print(message, style=style)
    else:
        get_console().print(message)


def get_log_file_path() -> Path:
    """Get the path to the log file."""
    return get_data_dir() / "music-index.log"


def setup_loguru(
    log_file: Optional[Path] = None,
    level: str = "INFO",
    max_file_size_mb: int = 10,
    backup_count: int = 5,
    console_output: bool = False,
) -> None:
    """
    Configure loguru sinks.

    Args:
        log_file: Path to log file (default: ~/.local/share/music-index/music-index.log)
        level: Minimum level for logging (DEBUG, INFO, WARNING, ERROR)
        max_file_size_mb: Rotate the file once it reaches this size
        backup_count: Number of rotated files to keep
        console_output: Also log to stderr
    """
    log_file = log_file if log_file else get_log_file_path()
    log_file.parent.mkdir(parents=True, exist_ok=True)

    # Remove default handler
    logger.remove()

    logger.add(
        log_file,
        rotation=f"{max_file_size_mb} MB",
        retention=backup_count,
        level=level,
        format=LOG_FORMAT,
        enqueue=False,  # Synchronous writes (thread-safe but blocking)
    )

    if console_output:
        logger.add(sys.stderr, level=level, format="{level}: {message}")

    logger.info(f"Loguru initialized: {log_file} (level={level})")


def setup_loguru_from_config(config: LoggingConfig) -> None:
    """Configure loguru from the [logging] config section."""
    setup_loguru(
        log_file=Path(config.log_file) if config.log_file else None,
        level=config.level,
        max_file_size_mb=config.max_file_size_mb,
        backup_count=config.backup_count,
        console_output=config.console_output,
    )


def log(message: str, level: str = "info") -> None:
    """
    Unified logging: writes to the log AND prints for the user.

    Background threads marked with ``silent_logging = True`` only log.

    Args:
        message: User-facing message
        level: Log level (debug, info, warning, error)
    """
    log_func = getattr(logger, level)
    log_func(message)

    silent = getattr(threading.current_thread(), "silent_logging", False)
    if not silent:
        safe_print(message, style=_LEVEL_STYLES.get(level))
