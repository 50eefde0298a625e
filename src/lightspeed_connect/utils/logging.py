"""Logging helpers shared by the client and the HTTP surface."""

from __future__ import annotations

import logging
import sys

_DEFAULT_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"


def mask_sensitive(value: str | None, keep: int = 4) -> str:
    """Return *value* with everything after the first *keep* chars masked.

    >>> mask_sensitive("abcdef123456", 4)
    'abcd****'
    """
    if not value:
        return "<none>"
    if len(value) <= keep:
        return "*" * len(value)
    return f"{value[:keep]}****"


def setup_logging(level: int | str = logging.INFO, *, logger_name: str = "lightspeed-connect") -> logging.Logger:
    """Attach a single stderr handler to the package logger.

    Calling this twice does not add a second handler.  Records still
    propagate to the root logger.
    """
    logger = logging.getLogger(logger_name)
    logger.setLevel(level)
    if not any(getattr(h, "_lightspeed_handler", False) for h in logger.handlers):
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter(_DEFAULT_FORMAT))
        handler._lightspeed_handler = True  # type: ignore[attr-defined]
        logger.addHandler(handler)
    return logger
