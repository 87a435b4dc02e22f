"""
Logging setup and helpers for the auth backend.

Provides a colored console formatter, timing of composite operations
(project create/delete, transactions) and numbered steps for scripts.
"""

import logging
import sys
import time
from contextlib import contextmanager
from datetime import datetime
from typing import Any, Dict, Optional


class ColoredFormatter(logging.Formatter):
    """Console formatter: colored level, caller location and timing extras."""

    COLORS = {
        'DEBUG': '\033[36m',     # Cyan
        'INFO': '\033[32m',      # Green
        'WARNING': '\033[33m',   # Yellow
        'ERROR': '\033[31m',     # Red
        'CRITICAL': '\033[35m',  # Magenta
    }
    RESET = '\033[0m'

    # record attribute -> how it is shown after the message
    EXTRAS = (
        ('duration_ms', lambda r: f"duration={r.duration_ms:.1f}ms"),
        ('step', lambda r: f"step={r.step}/{r.total_steps}"),
        ('progress', lambda r: f"progress={r.progress}%"),
        ('status', lambda r: f"status={r.status}"),
    )

    def format(self, record):
        color = self.COLORS.get(record.levelname, '')
        timestamp = datetime.fromtimestamp(record.created).strftime('%Y-%m-%d %H:%M:%S.%f')[:-3]
        level_str = f"{color}{record.levelname:8}{self.RESET}"
        if record.funcName and record.funcName != '<module>':
            location = f"{record.module}.{record.funcName}"
        else:
            location = record.module

        extras = [render(record) for key, render in self.EXTRAS if hasattr(record, key)]
        extra_str = f" [{', '.join(extras)}]" if extras else ""

        return f"{timestamp} | {level_str} | {location:30} | {record.getMessage()}{extra_str}"


def setup_logging(level: str = "INFO") -> None:
    """
    Send every log record to stdout through :class:`ColoredFormatter`.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    """
    numeric = getattr(logging, level.upper())

    root = logging.getLogger()
    for handler in root.handlers[:]:
        root.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(ColoredFormatter())
    handler.setLevel(numeric)

    root.setLevel(numeric)
    root.addHandler(handler)

    # Audit events are always kept; SQL statements only on request
    logging.getLogger('audit').setLevel(logging.INFO)
    logging.getLogger('sqlalchemy.engine').setLevel(logging.WARNING)


class LogTimer:
    """
    Context manager that logs the start, end and duration of an operation.

    Usage:
        with LogTimer(logger, "Creating project 'P1'"):
            ...

    Or with a status on the completion line:
        with LogTimer(logger, "create project", level=logging.DEBUG) as timer:
            ...
            timer.add_info("status", "committed")
    """

    def __init__(self, logger: logging.Logger, operation: str, level: int = logging.INFO):
        self.logger = logger
        self.operation = operation
        self.level = level
        self.start_time: Optional[float] = None
        self.extra_info: Dict[str, Any] = {}

    def __enter__(self):
        self.start_time = time.perf_counter()
        self.logger.log(self.level, f"Starting: {self.operation}")
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        extra = {'duration_ms': (time.perf_counter() - self.start_time) * 1000}
        extra.update(self.extra_info)

        if exc_type is not None:
            self.logger.error(f"Failed: {self.operation} - {exc_val}", extra=extra)
        else:
            self.logger.log(self.level, f"Completed: {self.operation}", extra=extra)
        return False

    def add_info(self, key: str, value: Any) -> None:
        """Attach ``key=value`` to the completion log line."""
        self.extra_info[key] = value


@contextmanager
def log_step(logger: logging.Logger, step: int, total: int, description: str):
    """
    Log a numbered step in a multi-step script.

    Usage:
        with log_step(logger, 1, 4, "Creating schema"):
            ...
    """
    logger.info(
        f"[{step}/{total}] {description}",
        extra={'step': step, 'total_steps': total, 'progress': int(step * 100 / total)},
    )
    start = time.perf_counter()
    try:
        yield
    finally:
        logger.debug(
            f"[{step}/{total}] {description} - done",
            extra={
                'duration_ms': (time.perf_counter() - start) * 1000,
                'step': step,
                'total_steps': total,
            },
        )
