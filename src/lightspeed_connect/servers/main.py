"""Starlette application exposing the Lightspeed connect / callback flow."""

from __future__ import annotations

import contextlib
import logging
from typing import AsyncIterator

from starlette.applications import Starlette
from starlette.middleware import Middleware

from lightspeed_connect.client import LightspeedClient
from lightspeed_connect.servers.auth import auth_routes
from lightspeed_connect.servers.correlation import CorrelationIdMiddleware
from lightspeed_connect.utils.logging import setup_logging

logger = logging.getLogger("lightspeed-connect.server.main")


def create_app(
    client: LightspeedClient | None = None,
    *,
    base_path: str = "/lightspeed",
    log_level: int | str | None = None,
) -> Starlette:
    """Build the app around *client* (one is created from env when omitted).

    When *log_level* is given a stderr handler is attached to the
    ``lightspeed-connect`` logger.  The client is closed on application
    shutdown.
    """
    if log_level is not None:
        setup_logging(log_level)
    lightspeed = client or LightspeedClient()

    @contextlib.asynccontextmanager
    async def lifespan(app: Starlette) -> AsyncIterator[None]:
        logger.info("Lightspeed connect app starting (base_path=%s)", base_path)
        try:
            yield
        finally:
            await lightspeed.aclose()
            logger.info("Lightspeed connect app stopped")

    app = Starlette(
        routes=auth_routes(lightspeed, base_path=base_path),
        middleware=[Middleware(CorrelationIdMiddleware)],
        lifespan=lifespan,
    )
    app.state.lightspeed = lightspeed
    return app
