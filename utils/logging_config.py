"""
Logging configuration for judge-bench.

Provides structured logging with multiple outputs:
- Colored console output (human-readable)
- Rotating file log (human-readable)
- JSON structured log (machine-parseable)
- Error-only log (quick problem identification)
"""

import json
import logging
import logging.handlers
import sys
import time
import traceback
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional

ROOT_LOGGER_NAME = "judge_bench"

# Package loggers that feed the project handlers
PACKAGE_LOGGERS = ("src", "utils")


class StructuredFormatter(logging.Formatter):
    """JSON-structured log formatter for machine parsing."""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }
        if record.exc_info and record.exc_info[0] is not None:
            log_data["exception"] = {
                "type": record.exc_info[0].__name__,
                "message": str(record.exc_info[1]),
                "traceback": traceback.format_exception(*record.exc_info),
            }
        if hasattr(record, "extra_data"):
            log_data["data"] = record.extra_data
        return json.dumps(log_data, ensure_ascii=False)


class ColoredFormatter(logging.Formatter):
    """Colored console formatter for human readability."""

    COLORS = {
        "DEBUG": "\033[36m",     # Cyan
        "INFO": "\033[32m",      # Green
        "WARNING": "\033[33m",   # Yellow
        "ERROR": "\033[31m",     # Red
        "CRITICAL": "\033[35m",  # Magenta
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        # Work on a copy so other handlers see the plain level name
        record = logging.makeLogRecord(record.__dict__)
        color = self.COLORS.get(record.levelname, "")
        record.levelname = f"{color}{record.levelname}{self.RESET}"
        return super().format(record)


LINE_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
FILE_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(module)s:%(lineno)d | %(message)s"
ERROR_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(module)s:%(lineno)d\n%(message)s\n---"


def _rotating_handler(
    path: Path,
    level: int,
    formatter: logging.Formatter,
    max_bytes: int,
    backup_count: int,
) -> logging.Handler:
    handler = logging.handlers.RotatingFileHandler(
        path, maxBytes=max_bytes, backupCount=backup_count, encoding="utf-8"
    )
    handler.setLevel(level)
    handler.setFormatter(formatter)
    return handler


def setup_logging(
    level: str = "INFO",
    log_dir: Optional[Path] = None,
    console: bool = True,
    json_logs: bool = True,
    max_bytes: int = 10 * 1024 * 1024,
    backup_count: int = 5,
) -> logging.Logger:
    """
    Configure project logging.

    Handlers go on the ``judge_bench`` logger and on the package loggers
    (``src``, ``utils``) so ``logging.getLogger(__name__)`` in any module
    reaches them. Files written under ``log_dir``:

    - judge_bench.log: every record, human-readable
    - judge_bench.json.log: every record as one JSON object per line
    - judge_bench.error.log: ERROR and above

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR)
        log_dir: Directory for log files
        console: Also log to stdout (colored on a TTY)
        json_logs: Write the JSON log
        max_bytes: Max size per log file
        backup_count: Number of rotated files to keep

    Returns:
        The ``judge_bench`` logger
    """
    log_dir = log_dir or Path.home() / ".judge_bench" / "logs"
    log_dir.mkdir(parents=True, exist_ok=True)
    rotate = {"max_bytes": max_bytes, "backup_count": backup_count}

    handlers: List[logging.Handler] = []
    if console:
        console_handler = logging.StreamHandler(sys.stdout)
        fmt_cls = ColoredFormatter if sys.stdout.isatty() else logging.Formatter
        console_handler.setFormatter(fmt_cls(LINE_FORMAT, datefmt="%H:%M:%S"))
        handlers.append(console_handler)

    handlers.append(
        _rotating_handler(
            log_dir / "judge_bench.log", logging.DEBUG, logging.Formatter(FILE_FORMAT), **rotate
        )
    )
    if json_logs:
        handlers.append(
            _rotating_handler(
                log_dir / "judge_bench.json.log", logging.DEBUG, StructuredFormatter(), **rotate
            )
        )
    handlers.append(
        _rotating_handler(
            log_dir / "judge_bench.error.log", logging.ERROR, logging.Formatter(ERROR_FORMAT), **rotate
        )
    )

    numeric_level = getattr(logging, level.upper())
    for name in (ROOT_LOGGER_NAME, *PACKAGE_LOGGERS):
        target = logging.getLogger(name)
        target.setLevel(numeric_level)
        target.handlers.clear()
        target.propagate = False
        for handler in handlers:
            target.addHandler(handler)

    return logging.getLogger(ROOT_LOGGER_NAME)


class DebugTimer:
    """Context manager for timing code blocks with optional checkpoints."""

    def __init__(self, name: str, logger: Optional[logging.Logger] = None):
        self.name = name
        self.logger = logger or logging.getLogger(f"{ROOT_LOGGER_NAME}.debug")
        self.start_time = 0.0
        self.elapsed = 0.0
        self.checkpoints: list = []

    def __enter__(self):
        self.start_time = time.perf_counter()
        return self

    def checkpoint(self, name: str):
        elapsed = time.perf_counter() - self.start_time
        self.checkpoints.append((name, elapsed))
        self.logger.debug(f"[{self.name}] {name}: {elapsed * 1000:.1f}ms")

    def __exit__(self, *args):
        self.elapsed = time.perf_counter() - self.start_time
        self.logger.debug(f"[{self.name}] Total: {self.elapsed * 1000:.1f}ms")