"""Logging configuration for karasync."""

import logging
import sys
from pathlib import Path
from typing import Optional

from ..config import LOG_LEVEL
from ..exceptions import ConfigError

# Per-tick chatter (seeks, timer fires) is only useful when asked for
_TICK_LOGGERS = ("karasync.core.engine", "karasync.core.scroll", "karasync.utils.timers")


def _resolve_level(level: str) -> int:
    value = logging.getLevelName(level.upper())
    if not isinstance(value, int):
        raise ConfigError(f"Unknown log level: {level}")
    return value


def setup_logging(
    level: Optional[str] = None, log_file: Optional[Path] = None, verbose: bool = False
) -> logging.Logger:
    """
    Configure the ``karasync`` logger.

    The level defaults to ``KARASYNC_LOG_LEVEL``. Engine tick loggers are
    held at INFO unless ``verbose`` is set, so a DEBUG level alone does not
    flood the console with one line per frame.
    """
    logging.getLogger("PIL").setLevel(logging.WARNING)

    logger = logging.getLogger("karasync")
    logger.setLevel(_resolve_level(level or LOG_LEVEL))
    logger.handlers.clear()

    for name in _TICK_LOGGERS:
        logging.getLogger(name).setLevel(logging.NOTSET if verbose else logging.INFO)

    if verbose:
        formatter = logging.Formatter(
            "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
        )
    else:
        formatter = logging.Formatter("%(levelname)s: %(message)s")

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    return logger


def get_logger(name: str = "karasync") -> logging.Logger:
    """Get logger instance."""
    return logging.getLogger(name)
