"""Terminal and persistent log file configuration.

The engine only emits records; the CLI and the server factory are the two
places that call :func:`setup_logging`.

- ``-v`` / ``--verbose`` sets the stderr handler to DEBUG (default WARNING).
- ``SURVEYLENS_LOG_LEVEL`` sets the log file level (default INFO).  The file
  lives at ``<output_dir>/.surveylens/surveylens.log`` and is only written
  when an output directory is given.
"""

from __future__ import annotations

import logging
import os
from logging.handlers import RotatingFileHandler
from pathlib import Path

_LOG_DIRNAME = ".surveylens"
_LOG_FILENAME = "surveylens.log"
_LOG_LEVEL_ENV = "SURVEYLENS_LOG_LEVEL"

_MAX_BYTES = 5 * 1024 * 1024  # 5 MB per file
_BACKUP_COUNT = 2

_TERMINAL_FORMAT = "%(levelname)s | %(name)s | %(message)s"
_FILE_FORMAT = "%(asctime)s | %(levelname)-7s | %(name)s | %(message)s"

# Request-per-line loggers from the HTTP stack
_NOISY_LOGGERS = ("httpx", "uvicorn.access", "multipart")


def _parse_log_level(level_str: str) -> int:
    """Level name (any case) -> logging constant; unknown names give INFO."""
    numeric = getattr(logging, level_str.strip().upper(), None)
    return numeric if isinstance(numeric, int) else logging.INFO


def log_file_path(output_dir: Path) -> Path:
    return output_dir / _LOG_DIRNAME / _LOG_FILENAME


def _terminal_handler(verbose: bool) -> logging.Handler:
    handler = logging.StreamHandler()
    handler.setLevel(logging.DEBUG if verbose else logging.WARNING)
    handler.setFormatter(logging.Formatter(_TERMINAL_FORMAT))
    return handler


def _file_handler(output_dir: Path) -> logging.Handler:
    path = log_file_path(output_dir)
    path.parent.mkdir(parents=True, exist_ok=True)
    handler = RotatingFileHandler(
        path, maxBytes=_MAX_BYTES, backupCount=_BACKUP_COUNT, encoding="utf-8",
    )
    handler.setLevel(_parse_log_level(os.environ.get(_LOG_LEVEL_ENV, "INFO")))
    handler.setFormatter(logging.Formatter(_FILE_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
    return handler


def setup_logging(*, output_dir: Path | None = None, verbose: bool = False) -> None:
    """Install the terminal handler and, with *output_dir*, the log file.

    Replaces whatever handlers the root logger already has, so repeated calls
    in one process never duplicate output.
    """
    root = logging.getLogger()
    for handler in root.handlers[:]:
        root.removeHandler(handler)
        handler.close()

    # handlers filter; the root passes everything through
    root.setLevel(logging.DEBUG)
    root.addHandler(_terminal_handler(verbose))
    if output_dir is not None:
        root.addHandler(_file_handler(output_dir))

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
