"""
Logging configuration — central setup for all entrypoints.

Called once at startup by main.py.  Every module that does
``logger = logging.getLogger(__name__)`` inherits this config.

Levels are resolved in precedence order:
    CLI flag  >  PROVISION_LOG_LEVEL env var  >  provision.yml  >  WARNING

Optional file output: an explicit file (PROVISION_LOG_FILE), or one
timestamped file per run inside a log directory (PROVISION_LOG_DIR or
``logging.directory`` in provision.yml).
"""

from __future__ import annotations

import logging
import sys
from datetime import datetime
from pathlib import Path

import click

# ── Format strings ──────────────────────────────────────────────

# WARNING level — minimal, level name only
_FMT_MINIMAL = "%(levelname)s: %(message)s"

# INFO level — timestamped with module context
_FMT_VERBOSE = "%(asctime)s %(levelname)s [%(name)s] %(message)s"
_DATEFMT_VERBOSE = "%H:%M:%S"

# DEBUG level — full diagnostic with file:line
_FMT_DEBUG = "%(asctime)s %(levelname)-5s %(name)s:%(lineno)d — %(message)s"
_DATEFMT_DEBUG = "%H:%M:%S"

# File output — always full detail, never colored
_FMT_FILE = "%(asctime)s %(levelname)-5s %(name)s:%(lineno)d — %(message)s"
_DATEFMT_FILE = "%Y-%m-%d %H:%M:%S"

# Per-run log file name inside a log directory
_LOG_FILE_PATTERN = "%Y-%m-%dT%H-%M-%S.log"

_LEVEL_COLORS = {
    logging.CRITICAL: "magenta",
    logging.ERROR: "red",
    logging.WARNING: "yellow",
    logging.INFO: "green",
    logging.DEBUG: "blue",
}


class ColorFormatter(logging.Formatter):
    """Formatter that colors the level name with ANSI escapes."""

    def format(self, record: logging.LogRecord) -> str:
        color = _LEVEL_COLORS.get(record.levelno)
        if color is None:
            return super().format(record)
        original = record.levelname
        record.levelname = click.style(original, fg=color, bold=record.levelno >= logging.ERROR)
        try:
            return super().format(record)
        finally:
            record.levelname = original


def setup_logging(
    level: str = "WARNING",
    log_file: str | None = None,
    log_file_level: str | None = None,
    log_dir: str | None = None,
    colorize: bool = True,
) -> Path | None:
    """Configure Python logging for the entire process.

    Args:
        level: Log level name (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        log_file: Optional path to a log file.
        log_file_level: Optional separate level for the log file.
            Defaults to the same as ``level``.
        log_dir: Directory for a timestamped per-run log file. Ignored
            when ``log_file`` is given.
        colorize: Color level names on the console.

    Returns:
        Path of the log file in use, or None.
    """
    numeric_level = _parse_level(level)

    # ── Console handler (stderr) ────────────────────────────────
    if numeric_level <= logging.DEBUG:
        fmt, datefmt = _FMT_DEBUG, _DATEFMT_DEBUG
    elif numeric_level <= logging.INFO:
        fmt, datefmt = _FMT_VERBOSE, _DATEFMT_VERBOSE
    else:
        fmt, datefmt = _FMT_MINIMAL, None

    formatter_cls = ColorFormatter if colorize else logging.Formatter
    console = logging.StreamHandler(sys.stderr)
    console.setLevel(numeric_level)
    console.setFormatter(formatter_cls(fmt, datefmt=datefmt))

    # ── Root logger ─────────────────────────────────────────────
    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(console)

    # Effective root level = minimum of console and file levels
    effective_level = numeric_level

    # ── File handler (optional) ─────────────────────────────────
    path: Path | None = None
    if log_file:
        path = Path(log_file)
    elif log_dir:
        path = Path(log_dir) / datetime.now().strftime(_LOG_FILE_PATTERN)

    if path is not None:
        file_level = _parse_level(log_file_level) if log_file_level else numeric_level
        effective_level = min(effective_level, file_level)

        path.parent.mkdir(parents=True, exist_ok=True)
        fh = logging.FileHandler(path, encoding="utf-8")
        fh.setLevel(file_level)
        fh.setFormatter(logging.Formatter(_FMT_FILE, datefmt=_DATEFMT_FILE))
        root.addHandler(fh)

    root.setLevel(effective_level)

    # Don't propagate exceptions from logging itself
    logging.raiseExceptions = False
    return path


def _parse_level(level: str | None) -> int:
    """Convert a level name string to its numeric constant."""
    if not level:
        return logging.WARNING
    numeric = getattr(logging, level.upper(), None)
    if not isinstance(numeric, int):
        return logging.WARNING
    return numeric


def is_known_level(level: str) -> bool:
    """Whether ``level`` names a standard logging level."""
    return level.upper() in logging.getLevelNamesMapping()
