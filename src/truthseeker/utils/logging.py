"""Logging configuration for TruthSeeker.

Provides explicit logging setup with Rich console formatting, optional file
logging, and an in-memory buffer of recent records for diagnostics screens.

Example:
    >>> from truthseeker.utils.logging import setup_logging, get_logger, LogContext
    >>> setup_logging(level="DEBUG")
    >>> logger = get_logger(__name__)
    >>> logger.info("Starting analysis")
    >>> with LogContext("Compiling report"):
    ...     pass
    # Logs: "Compiling report completed in 0.01s"
"""

from __future__ import annotations

import logging
import time
from collections import deque
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Generator

from rich.console import Console
from rich.logging import RichHandler


# =============================================================================
# Constants
# =============================================================================

PACKAGE_NAME = "truthseeker"

NOISY_LOGGERS = [
    "google",
    "google.genai",
    "google_genai",
    "urllib3",
    "httpx",
    "httpcore",
    "PIL",
    "asyncio",
]

FILE_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s:%(lineno)d | %(message)s"
FILE_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

_console = Console(stderr=True)


# =============================================================================
# In-memory Buffer
# =============================================================================


class LogBuffer(logging.Handler):
    """Keep the most recent log records as plain dictionaries.

    Front ends read ``entries()`` to show recent diagnostics without tailing
    a log file. Oldest records are dropped once ``capacity`` is reached.
    """

    def __init__(self, capacity: int = 500, level: int = logging.DEBUG) -> None:
        super().__init__(level)
        self._records: deque[dict[str, Any]] = deque(maxlen=capacity)

    def emit(self, record: logging.LogRecord) -> None:
        self._records.append(
            {
                "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
                "level": record.levelname,
                "message": record.getMessage(),
                "context": record.name,
            }
        )

    def entries(self) -> list[dict[str, Any]]:
        return list(self._records)

    def clear(self) -> None:
        self._records.clear()


# =============================================================================
# Setup Functions
# =============================================================================


def setup_logging(
    level: str = "INFO",
    log_file: Path | None = None,
    quiet_third_party: bool = True,
    buffer: LogBuffer | None = None,
) -> None:
    """Configure logging for the truthseeker package.

    Sets up a Rich console handler for pretty output and optionally a file
    handler for persistent logs and an in-memory buffer.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        log_file: Optional path to log file.
        quiet_third_party: If True, suppress noisy third-party loggers.
        buffer: Optional LogBuffer to attach alongside the console handler.

    Example:
        >>> setup_logging(level="DEBUG", log_file=Path("./truthseeker.log"))
    """
    numeric_level = getattr(logging, level.upper(), logging.INFO)

    root_logger = logging.getLogger(PACKAGE_NAME)
    root_logger.setLevel(numeric_level)

    # Remove existing handlers to avoid duplicates
    root_logger.handlers = []

    console_handler = RichHandler(
        console=_console,
        show_time=False,
        show_path=False,
        rich_tracebacks=True,
        tracebacks_show_locals=numeric_level == logging.DEBUG,
        markup=False,
    )
    console_handler.setLevel(numeric_level)
    root_logger.addHandler(console_handler)

    if log_file:
        add_file_handler(log_file)

    if buffer is not None:
        root_logger.addHandler(buffer)

    if quiet_third_party:
        for logger_name in NOISY_LOGGERS:
            logging.getLogger(logger_name).setLevel(logging.WARNING)

    root_logger.propagate = False

    root_logger.debug(f"Logging configured: level={level}, file={log_file}")


def get_logger(name: str) -> logging.Logger:
    """Get a logger under the package namespace.

    Args:
        name: Logger name, typically __name__ of the calling module.

    Returns:
        Configured logger instance.
    """
    if not name.startswith(PACKAGE_NAME):
        name = f"{PACKAGE_NAME}.{name}"
    return logging.getLogger(name)


# =============================================================================
# Log Context Manager
# =============================================================================


class LogContext:
    """Context manager for timing and logging operations.

    Attributes:
        message: Description of the operation.
        level: Log level for messages.
        logger: Logger instance to use.
        elapsed: Elapsed time in seconds (after exit).

    Example:
        >>> with LogContext("Compiling evidence report") as ctx:
        ...     pass
        # Logs: "Compiling evidence report..."
        # Logs: "Compiling evidence report completed in 0.02s"
    """

    def __init__(
        self,
        message: str,
        level: int = logging.INFO,
        logger: logging.Logger | None = None,
    ) -> None:
        self.message = message
        self.level = level
        self.logger = logger or logging.getLogger(PACKAGE_NAME)
        self.elapsed: float = 0.0
        self._start_time: float = 0.0

    def __enter__(self) -> "LogContext":
        self._start_time = time.perf_counter()
        self.logger.log(self.level, f"{self.message}...")
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: Any,
    ) -> None:
        self.elapsed = time.perf_counter() - self._start_time

        if exc_type is not None:
            self.logger.error(f"{self.message} failed after {self.elapsed:.2f}s: {exc_val}")
        else:
            self.logger.log(self.level, f"{self.message} completed in {self.elapsed:.2f}s")


@contextmanager
def log_context(
    message: str,
    level: int = logging.INFO,
    logger: logging.Logger | None = None,
) -> Generator[LogContext, None, None]:
    """Functional form of LogContext.

    Yields:
        LogContext instance with elapsed time.
    """
    ctx = LogContext(message, level, logger)
    with ctx:
        yield ctx


# =============================================================================
# Utility Functions
# =============================================================================


def set_level(level: str) -> None:
    """Change the log level at runtime."""
    numeric_level = getattr(logging, level.upper(), logging.INFO)
    logger = logging.getLogger(PACKAGE_NAME)
    logger.setLevel(numeric_level)
    for handler in logger.handlers:
        if not isinstance(handler, LogBuffer):
            handler.setLevel(numeric_level)


def add_file_handler(log_file: Path) -> None:
    """Add a file handler to the package logger.

    Args:
        log_file: Path to log file.
    """
    logger = logging.getLogger(PACKAGE_NAME)
    log_file.parent.mkdir(parents=True, exist_ok=True)

    file_handler = logging.FileHandler(log_file, encoding="utf-8")
    file_handler.setLevel(logger.level)
    file_handler.setFormatter(logging.Formatter(FILE_FORMAT, datefmt=FILE_DATE_FORMAT))
    logger.addHandler(file_handler)
