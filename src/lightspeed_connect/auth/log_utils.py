"""Structured logging helpers for the OAuth client.

This module purposefully restricts **which** contextual attributes are attached
to log records in order to avoid accidentally leaking secrets.  All helpers
ONLY inject the following *non-sensitive* fields:

- ``domain_prefix``  – The Lightspeed store subdomain
- ``correlation_id`` – Request correlation id, wired by the HTTP layer

Usage
-----
>>> from lightspeed_connect.auth.log_utils import get_auth_logger
>>> log = get_auth_logger(domain_prefix="shop1")
>>> log.info("Starting OAuth flow")

The adapter is a thin wrapper around :class:`logging.LoggerAdapter`.
"""

from __future__ import annotations

import logging
from typing import Any, Mapping, MutableMapping


class _AuthLoggerAdapter(logging.LoggerAdapter):
    """Inject whitelisted auth context into log records."""

    extra_keys = ("domain_prefix", "correlation_id")

    def __init__(self, logger: logging.Logger, extra: Mapping[str, Any] | None = None):
        extra_clean: MutableMapping[str, Any] = {}
        for k in self.extra_keys:
            if extra and k in extra and extra[k] is not None:
                extra_clean[k] = extra[k]
        super().__init__(logger, extra_clean)

    def process(self, msg: str, kwargs: MutableMapping[str, Any]):
        if "extra" not in kwargs or kwargs["extra"] is None:
            kwargs["extra"] = {}
        # merge but do not overwrite call-site provided extras
        for k, v in self.extra.items():
            kwargs["extra"].setdefault(k, v)
        return msg, kwargs


def get_auth_logger(
    *,
    base_logger_name: str = "lightspeed-connect.auth",
    domain_prefix: str | None = None,
    correlation_id: str | None = None,
) -> logging.LoggerAdapter:
    """Return a LoggerAdapter pre-filled with auth context."""
    logger = logging.getLogger(base_logger_name)
    return _AuthLoggerAdapter(
        logger,
        {
            "domain_prefix": domain_prefix,
            "correlation_id": correlation_id,
        },
    )
