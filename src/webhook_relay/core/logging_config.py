"""Logging Configuration - Centralized logging setup.

Provides a standard logging configuration driven by ``LOG_LEVEL`` and
``LOG_OUTPUT_PATHS``. Defaults to INFO so request and reply bodies logged
at DEBUG stay out of production logs.
"""

import logging
import sys
from pathlib import Path
from typing import List

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "warning": logging.WARNING,
    "error": logging.ERROR,
    "dpanic": logging.CRITICAL,
    "panic": logging.CRITICAL,
    "fatal": logging.CRITICAL,
}


def parse_log_level(level: str) -> int:
    """Translate a level name into a ``logging`` level.

    Raises:
        ValueError: If the name is not a recognized level.
    """
    try:
        return _LEVELS[level.strip().lower()]
    except KeyError:
        raise ValueError(f"invalid log level: {level!r}") from None


def _build_handlers(output_paths: str) -> List[logging.Handler]:
    handlers: List[logging.Handler] = []
    for path in (p.strip() for p in output_paths.split(",")):
        if not path:
            continue
        if path == "stdout":
            handlers.append(logging.StreamHandler(sys.stdout))
        elif path == "stderr":
            handlers.append(logging.StreamHandler(sys.stderr))
        else:
            Path(path).parent.mkdir(parents=True, exist_ok=True)
            handlers.append(logging.FileHandler(path, encoding="utf-8"))
    return handlers or [logging.StreamHandler(sys.stdout)]


def setup_logging(level: str = "info", output_paths: str = "stdout") -> None:
    """Configure logging for the relay.

    Args:
        level: Level name (debug, info, warn, error, fatal).
        output_paths: Comma-separated list of ``stdout``, ``stderr`` or file paths.

    Raises:
        ValueError: On an unknown level; startup must abort.
    """
    log_level = parse_log_level(level)

    logging.basicConfig(
        level=log_level,
        format=LOG_FORMAT,
        handlers=_build_handlers(output_paths),
        force=True,
    )

    # Quiet down noisy libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("nats").setLevel(logging.WARNING)

    logging.info("Logging initialized (%s level)", logging.getLevelName(log_level))
