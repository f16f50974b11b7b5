"""Logging setup for the CLI and the API server.

The terminal handler writes to stderr at WARNING, or DEBUG with ``-v``.
When the configured output directory exists, every run also appends to
``<output_dir>/.pulso/pulso.log`` at ``PulsoSettings.log_level``
(``PULSO_LOG_LEVEL``, default INFO), so aggregation warnings such as a
reached row cap are kept after the terminal scrolls away.
"""

from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path

from pulso.config import PulsoSettings

LOG_DIRNAME = ".pulso"
LOG_FILENAME = "pulso.log"

# 5 MB per file, two rotated copies
_MAX_BYTES = 5 * 1024 * 1024
_BACKUP_COUNT = 2

_TERMINAL_FORMAT = "%(levelname)s | %(name)s | %(message)s"
_FILE_FORMAT = "%(asctime)s | %(levelname)-7s | %(name)s | %(message)s"

# Request-level chatter from the store client and the server
_NOISY_LOGGERS = ("httpx", "httpcore", "uvicorn.access")


def _parse_log_level(level_str: str) -> int:
    """Level number for a name like ``"debug"``.  Unknown names give INFO."""
    numeric = logging.getLevelName(level_str.strip().upper())
    return numeric if isinstance(numeric, int) else logging.INFO


def log_file_path(settings: PulsoSettings) -> Path:
    return settings.output_dir / LOG_DIRNAME / LOG_FILENAME


def setup_logging(settings: PulsoSettings | None = None, *, verbose: bool = False) -> Path | None:
    """Replace the root logger's handlers with the pulso ones.

    Returns the log file path, or None when only the terminal handler was
    installed (no settings, or ``output_dir`` does not exist yet).
    """
    root = logging.getLogger()
    for handler in root.handlers[:]:
        root.removeHandler(handler)
        handler.close()
    root.setLevel(logging.DEBUG)

    terminal = logging.StreamHandler()
    terminal.setLevel(logging.DEBUG if verbose else logging.WARNING)
    terminal.setFormatter(logging.Formatter(_TERMINAL_FORMAT))
    root.addHandler(terminal)

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    if settings is None or not settings.output_dir.is_dir():
        return None

    path = log_file_path(settings)
    path.parent.mkdir(exist_ok=True)
    file_handler = RotatingFileHandler(
        path, maxBytes=_MAX_BYTES, backupCount=_BACKUP_COUNT, encoding="utf-8",
    )
    file_handler.setLevel(_parse_log_level(settings.log_level))
    file_handler.setFormatter(logging.Formatter(_FILE_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
    root.addHandler(file_handler)
    return path
