"""
Logging configuration — process setup plus per-run context.

``setup_logging()`` is called once by the CLI. Every module logs via
``logger = logging.getLogger(__name__)``; while a pipeline runs, its
run id is bound with ``bind_run()`` and stamped on every record
(``%(run_id)s``), so interleaved concurrent installs stay readable.

Levels are resolved in precedence order:
    CLI flag  >  CELLAR_LOG_LEVEL env var  >  WARNING (default)

Optional file output via CELLAR_LOG_FILE / CELLAR_LOG_FILE_LEVEL env vars.
"""

from __future__ import annotations

import contextvars
import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager

_current_run: contextvars.ContextVar[str] = contextvars.ContextVar("cellar_run", default="-")

# ── Format strings ──────────────────────────────────────────────

_FORMATS: dict[int, tuple[str, str | None]] = {
    # stage lines only
    logging.WARNING: ("%(message)s", None),
    logging.INFO: ("%(asctime)s %(run_id)s %(message)s", "%H:%M:%S"),
    logging.DEBUG: (
        "%(asctime)s %(levelname)-5s %(run_id)s %(name)s:%(lineno)d  %(message)s",
        "%H:%M:%S",
    ),
}

_FMT_FILE = "%(asctime)s %(levelname)-5s %(run_id)s %(name)s:%(lineno)d  %(message)s"
_DATEFMT_FILE = "%Y-%m-%d %H:%M:%S"

# Loggers outside cellar that get chatty below WARNING
_NOISY_LOGGERS = ("urllib3", "charset_normalizer", "filelock")


class RunContextFilter(logging.Filter):
    """Attach the bound run id (or ``-``) to every record."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.run_id = _current_run.get()
        return True


@contextmanager
def bind_run(run_id: str) -> Iterator[None]:
    """Stamp ``run_id`` on log records emitted inside the block."""
    token = _current_run.set(run_id)
    try:
        yield
    finally:
        _current_run.reset(token)


def current_run() -> str:
    return _current_run.get()


def _console_format(numeric_level: int) -> tuple[str, str | None]:
    if numeric_level <= logging.DEBUG:
        return _FORMATS[logging.DEBUG]
    if numeric_level <= logging.INFO:
        return _FORMATS[logging.INFO]
    return _FORMATS[logging.WARNING]


def _with_context(
    handler: logging.Handler, level: int, fmt: str, datefmt: str | None
) -> logging.Handler:
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(fmt, datefmt=datefmt))
    handler.addFilter(RunContextFilter())
    return handler


def setup_logging(
    level: str = "WARNING",
    log_file: str | None = None,
    log_file_level: str | None = None,
    quiet_third_party: bool = True,
) -> None:
    """Configure the root logger for a cellar process.

    Args:
        level: Console level name (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        log_file: Optional path to a log file.
        log_file_level: Level for the log file (default: ``level``).
        quiet_third_party: Keep non-cellar chatty loggers at WARNING
            unless the console is at DEBUG.
    """
    console_level = _parse_level(level)
    handlers = [
        _with_context(
            logging.StreamHandler(sys.stderr), console_level, *_console_format(console_level)
        )
    ]
    if log_file:
        handlers.append(_with_context(
            logging.FileHandler(log_file, encoding="utf-8"),
            _parse_level(log_file_level or level),
            _FMT_FILE,
            _DATEFMT_FILE,
        ))

    root = logging.getLogger()
    root.handlers[:] = handlers
    root.setLevel(min(h.level for h in handlers))

    if quiet_third_party and console_level > logging.DEBUG:
        for name in _NOISY_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)

    logging.raiseExceptions = False


def _parse_level(level: str | None) -> int:
    """Level name to its numeric value; anything unknown means WARNING."""
    if not level:
        return logging.WARNING
    numeric = getattr(logging, level.upper(), None)
    return numeric if isinstance(numeric, int) else logging.WARNING
