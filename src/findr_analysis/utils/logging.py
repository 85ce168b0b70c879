"""Logging utilities for the Findr analysis package.

All package loggers live under the ``findr_analysis`` namespace so that one
call to :func:`setup_logging` configures every module. Analyses announce
their stages with :func:`timed_step` and close with :func:`log_summary`.
"""

from __future__ import annotations

import copy
import logging
import sys
import time
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING, Iterator

if TYPE_CHECKING:
    from logging import Logger

LOGGER_NAME = "findr_analysis"

CONSOLE_FORMAT = "%(levelname)-8s | %(message)s"
FILE_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s:%(lineno)d | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

STEP_WIDTH = 60
SUMMARY_WIDTH = 40


class ColoredFormatter(logging.Formatter):
    """Console formatter coloring the level name on terminals."""

    COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"

    def __init__(self, fmt: str, datefmt: str | None = None, use_colors: bool = True) -> None:
        super().__init__(fmt, datefmt)
        self.use_colors = use_colors and sys.stderr.isatty()

    def format(self, record: logging.LogRecord) -> str:
        if self.use_colors:
            # The file handler formats the same record
            record = copy.copy(record)
            color = self.COLORS.get(record.levelname, self.RESET)
            record.levelname = f"{color}{record.levelname}{self.RESET}"
        return super().format(record)


def setup_logging(
    level: int | str = logging.INFO,
    log_file: str | Path | None = None,
    log_dir: str | Path | None = None,
    use_colors: bool = True,
    quiet: bool = False,
) -> Logger:
    """
    Configure the ``findr_analysis`` logger.

    Console messages go to stderr at ``level``. When a log file or log
    directory is given, every message down to DEBUG is also written to file.

    Args:
        level: Console logging level, as int or name.
        log_file: Log file path.
        log_dir: Directory for a timestamped log file, used when
            ``log_file`` is None.
        use_colors: Color level names on terminals.
        quiet: Suppress console output.

    Returns:
        The package logger.
    """
    if isinstance(level, str):
        level = getattr(logging, level.upper(), logging.INFO)

    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(logging.DEBUG)
    logger.handlers.clear()

    if not quiet:
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setLevel(level)
        console_handler.setFormatter(ColoredFormatter(CONSOLE_FORMAT, DATE_FORMAT, use_colors))
        logger.addHandler(console_handler)

    file_path = None
    if log_file is not None:
        file_path = Path(log_file)
    elif log_dir is not None:
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        file_path = Path(log_dir) / f"findr_analysis_{timestamp}.log"

    if file_path is not None:
        file_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(file_path, encoding="utf-8")
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(logging.Formatter(FILE_FORMAT, DATE_FORMAT))
        logger.addHandler(file_handler)
        logger.debug(f"Logging to file: {file_path}")

    if not logger.handlers:
        logger.addHandler(logging.NullHandler())

    logger.propagate = False
    return logger


def get_logger(name: str | None = None) -> Logger:
    """
    Get a logger in the package namespace.

    Args:
        name: Module name, usually ``__name__``. If None, returns the
            package logger.

    Returns:
        Logger instance.
    """
    if name is None:
        return logging.getLogger(LOGGER_NAME)
    if name == LOGGER_NAME or name.startswith(f"{LOGGER_NAME}."):
        return logging.getLogger(name)
    return logging.getLogger(f"{LOGGER_NAME}.{name}")


class StepTimer:
    """Elapsed time of a running step."""

    def __init__(self) -> None:
        self.start = time.perf_counter()
        self.end: float | None = None

    @property
    def elapsed(self) -> float:
        """Seconds since the step started, frozen once it ends."""
        end = self.end if self.end is not None else time.perf_counter()
        return end - self.start


@contextmanager
def timed_step(step_name: str, logger: Logger | None = None) -> Iterator[StepTimer]:
    """
    Log an analysis step with a separator and its running time.

    Args:
        step_name: Name of the step.
        logger: Logger to use. If None, uses package logger.

    Yields:
        Timer of the step.
    """
    logger = logger or get_logger()
    log_step(step_name, logger)

    timer = StepTimer()
    try:
        yield timer
    finally:
        timer.end = time.perf_counter()
        logger.debug(f"{step_name} took {timer.elapsed:.2f}s")


def log_step(step_name: str, logger: Logger | None = None) -> None:
    """Log a step name between separators."""
    logger = logger or get_logger()
    separator = "=" * STEP_WIDTH
    logger.info(separator)
    logger.info(f"  {step_name}")
    logger.info(separator)


def log_summary(
    title: str,
    items: dict[str, str | int | float],
    logger: Logger | None = None,
) -> None:
    """
    Log key-value pairs under a title.

    Args:
        title: Summary title.
        items: Items to log, in order.
        logger: Logger to use. If None, uses package logger.
    """
    logger = logger or get_logger()
    logger.info(f"{title}:")
    logger.info("-" * SUMMARY_WIDTH)
    for key, value in items.items():
        logger.info(f"  {key}: {value}")
    logger.info("-" * SUMMARY_WIDTH)
