"""Logging configuration for processes that own a Learning Brain.

Library modules only create ``logging.getLogger(__name__)`` loggers; the host
process decides where records go by calling ``setup_logging`` once.
"""

from __future__ import annotations

import logging
import sys

_JSON_FORMAT = '{"time":"%(asctime)s","level":"%(levelname)s","name":"%(name)s","message":"%(message)s"}'
_TEXT_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def setup_logging(level: str = "INFO", format_json: bool = False) -> logging.Handler:
    """
    Route log records from every brain module to stdout.

    Args:
        level: Root level name (DEBUG shows per-stage tick timings)
        format_json: Emit one JSON object per record instead of plain text

    Returns:
        The stdout handler added to the root logger, for later removal.
    """
    root_level = getattr(logging, level.upper(), logging.INFO)

    handler = logging.StreamHandler(sys.stdout)
    if format_json:
        handler.setFormatter(logging.Formatter(_JSON_FORMAT))
    else:
        handler.setFormatter(logging.Formatter(_TEXT_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))

    logging.root.setLevel(root_level)
    logging.root.addHandler(handler)
    return handler


def get_logger(name: str) -> logging.Logger:
    """Return the logger for a module name (usually ``__name__``)."""
    return logging.getLogger(name)


__all__ = ["get_logger", "setup_logging"]
