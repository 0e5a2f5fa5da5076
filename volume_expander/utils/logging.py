"""Logging setup for the operator and CLI processes."""

from __future__ import annotations

import logging
import sys
from typing import Optional


_HANDLER_NAME = "_volume_expander_stream_handler"

DEFAULT_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def configure_logging(level: int | str = logging.INFO, formatter: Optional[logging.Formatter] = None) -> None:
    """Send logs to stderr with one consistent format; safe to call repeatedly."""
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO
    root_logger = logging.getLogger()
    if formatter is None:
        formatter = logging.Formatter(DEFAULT_FORMAT)

    existing = None
    for handler in root_logger.handlers:
        if getattr(handler, _HANDLER_NAME, False):
            existing = handler
            break

    if existing is None:
        stream_handler = logging.StreamHandler(sys.stderr)
        stream_handler.setLevel(level)
        stream_handler.setFormatter(formatter)
        setattr(stream_handler, _HANDLER_NAME, True)
        root_logger.addHandler(stream_handler)
    else:
        existing.setFormatter(formatter)
        existing.setLevel(level)

    root_logger.setLevel(level)


def quiet_client_logging(level: int = logging.WARNING) -> None:
    for name in ("urllib3", "kubernetes"):
        logging.getLogger(name).setLevel(level)
