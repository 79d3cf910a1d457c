"""Logging for inkloop runs.

Log records carry the id of the editing run that produced them, so the
interleaved output of several runs can be told apart. The per-run JSONL
event logs live in an ``events/`` directory beside the log file.
"""

from __future__ import annotations

import logging
import logging.handlers
import os
from contextlib import contextmanager
from contextvars import ContextVar
from pathlib import Path
from typing import Iterator

__all__ = [
    "setup_logging",
    "get_log_path",
    "get_event_log_dir",
    "bind_run_id",
    "current_run_id",
    "RunIdFilter",
    "LOG_FILENAME",
]

LOG_FILENAME = "inkloop.log"
EVENT_DIRNAME = "events"
LOG_DIR_ENV = "INKLOOP_LOG_DIR"
NO_RUN = "-"

_LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(run_id)s | %(name)s | %(message)s"
_DEFAULT_LOG_DIR = Path.home() / ".inkloop" / "logs"
# Client libraries that log every request at INFO.
_QUIET_LOGGERS: tuple[str, ...] = ("httpx", "openai")

_RUN_ID: ContextVar[str] = ContextVar("inkloop_run_id", default=NO_RUN)
_LOG_PATH: Path | None = None


# -----------------------------------------------------------------------------
# Run context
# -----------------------------------------------------------------------------


@contextmanager
def bind_run_id(run_id: str) -> Iterator[str]:
    """Tag every record logged inside the block (and its tasks) with *run_id*."""
    token = _RUN_ID.set(run_id)
    try:
        yield run_id
    finally:
        _RUN_ID.reset(token)


def current_run_id() -> str:
    return _RUN_ID.get()


class RunIdFilter(logging.Filter):
    """Adds ``run_id`` to records so handlers can format it."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "run_id"):
            record.run_id = _RUN_ID.get()
        return True


# -----------------------------------------------------------------------------
# Setup
# -----------------------------------------------------------------------------


def setup_logging(
    level: int = logging.INFO,
    *,
    log_dir: Path | str | None = None,
    console: bool = True,
    max_bytes: int = 1_000_000,
    backup_count: int = 3,
    force: bool = False,
) -> Path:
    """Route root logging to a rotating file and, optionally, stderr.

    stdout is left alone because the command line prints its JSON summary
    there. Repeated calls return the existing log path unless ``force`` is set.
    """
    global _LOG_PATH
    if _LOG_PATH is not None and not force:
        return _LOG_PATH

    log_path = _resolve_log_dir(log_dir) / LOG_FILENAME
    log_path.parent.mkdir(parents=True, exist_ok=True)

    formatter = logging.Formatter(fmt=_LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")
    run_filter = RunIdFilter()

    handlers: list[logging.Handler] = [
        logging.handlers.RotatingFileHandler(
            log_path, maxBytes=max_bytes, backupCount=backup_count, encoding="utf-8"
        )
    ]
    if console:
        # Console output stays terse unless debugging.
        console_handler = logging.StreamHandler()
        console_handler.setLevel(level if level <= logging.DEBUG else max(level, logging.WARNING))
        handlers.append(console_handler)
    for handler in handlers:
        handler.setFormatter(formatter)
        handler.addFilter(run_filter)

    logging.basicConfig(level=level, handlers=handlers, force=True)
    logging.captureWarnings(True)
    for logger_name in _QUIET_LOGGERS:
        logging.getLogger(logger_name).setLevel(logging.WARNING if level < logging.WARNING else level)

    _LOG_PATH = log_path
    return log_path


def get_log_path() -> Path | None:
    """Return the active log file, or ``None`` before :func:`setup_logging`."""
    return _LOG_PATH


def get_event_log_dir() -> Path:
    """Directory for per-run JSONL event logs.

    Beside the active log file once logging is set up; otherwise derived from
    ``INKLOOP_LOG_DIR`` or the default log directory.
    """
    base = _LOG_PATH.parent if _LOG_PATH is not None else _resolve_log_dir(None)
    return base / EVENT_DIRNAME


def _resolve_log_dir(log_dir: Path | str | None) -> Path:
    return Path(log_dir or os.environ.get(LOG_DIR_ENV) or _DEFAULT_LOG_DIR).expanduser()
