"""Core logging implementation for frameforge.

Log output always goes to stderr (or a file): stdout carries the
JSON-RPC stream when the server runs over stdio.
"""

import logging
import sys
from pathlib import Path
from typing import Optional

__all__ = ["get_logger", "setup_logging", "parse_level"]

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def parse_level(level: int | str) -> int:
    """Resolve a level name such as "info" or "DEBUG" to a logging level.

    Unknown names fall back to INFO.
    """
    if isinstance(level, int):
        return level
    resolved = logging.getLevelName(level.strip().upper())
    return resolved if isinstance(resolved, int) else logging.INFO


def setup_logging(
    level: int | str = logging.INFO,
    stream=sys.stderr,
    log_file: Optional[Path] = None,
) -> None:
    """Configure basic logging.

    Args:
        level: Logging level, numeric or by name.
        stream: Output stream. Never stdout under the stdio transport.
        log_file: Optional file to append records to as well.
    """
    handlers: list[logging.Handler] = [logging.StreamHandler(stream)]
    if log_file is not None:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_file, encoding="utf-8"))

    logging.basicConfig(
        level=parse_level(level),
        format=LOG_FORMAT,
        handlers=handlers,
        force=True,
    )


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """Get a logger instance.

    Args:
        name: Name of the logger.

    Returns:
        Logger instance.
    """
    return logging.getLogger(name or "frameforge")
