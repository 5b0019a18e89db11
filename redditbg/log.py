"""redditbg - Logging setup.

Console handler on stderr plus an appending log file in the local data dir.
Libraries only get a logger; entry points (scripts and the Huey consumer)
call setup_logging() once.
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path

from redditbg.config import LOG_LEVEL, LOG_PATH

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"
LOG_DATEFMT = "%Y-%m-%d %H:%M:%S"


class _ThirdPartyFilter(logging.Filter):
    """Keep redditbg/services logs; only warnings and up from everything else."""

    def filter(self, record: logging.LogRecord) -> bool:
        if record.name.startswith(("redditbg", "services", "scripts")):
            return True
        return record.levelno >= logging.WARNING


def setup_logging(
    *,
    log_path: str | Path | None = None,
    console_level: int | str | None = None,
    file_level: int = logging.DEBUG,
) -> None:
    """Configure root logging.

    Replaces any handlers already installed on the root logger so repeated
    calls do not duplicate output.

    Args:
        log_path: Log file path. Defaults to config.LOG_PATH.
        console_level: Console level. Defaults to config.LOG_LEVEL.
        file_level: File handler level.
    """
    log_path = Path(log_path if log_path is not None else LOG_PATH)
    log_path.parent.mkdir(parents=True, exist_ok=True)

    if console_level is None:
        console_level = LOG_LEVEL
    if isinstance(console_level, str):
        console_level = logging.getLevelName(console_level.upper())
        if not isinstance(console_level, int):
            console_level = logging.INFO

    root = logging.getLogger()
    root.setLevel(logging.DEBUG)
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()

    fmt = logging.Formatter(fmt=LOG_FORMAT, datefmt=LOG_DATEFMT)

    console = logging.StreamHandler(sys.stderr)
    console.setLevel(console_level)
    console.setFormatter(fmt)
    console.addFilter(_ThirdPartyFilter())
    root.addHandler(console)

    file_handler = logging.FileHandler(str(log_path), mode="a", encoding="utf-8")
    file_handler.setLevel(file_level)
    file_handler.setFormatter(fmt)
    file_handler.addFilter(_ThirdPartyFilter())
    root.addHandler(file_handler)

    logging.captureWarnings(True)
