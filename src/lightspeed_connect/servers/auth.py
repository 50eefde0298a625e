"""Browser-facing OAuth endpoints for the Lightspeed connection.

Handlers are intentionally thin:

1. Parse and validate HTTP-layer parameters.
2. Delegate business logic to :class:`~lightspeed_connect.client.LightspeedClient`.
3. Return an appropriate Starlette ``Response`` type.

The base path is configurable (default: ``/lightspeed``) so that
reverse-proxies can mount the application under arbitrary prefixes.

SECURITY NOTE
-------------
No raw secrets (state, codes, access / refresh tokens, client secrets) are
ever logged.  The correlation ID from ``request.state.correlation_id`` is
attached to each log record through :func:`get_auth_logger`.
"""

from __future__ import annotations

import html

from starlette.requests import Request
from starlette.responses import HTMLResponse, JSONResponse, RedirectResponse, Response
from starlette.routing import Route

from lightspeed_connect.auth.errors import LightspeedError
from lightspeed_connect.auth.log_utils import get_auth_logger
from lightspeed_connect.client import LightspeedClient

_LOGGER_NAME = "lightspeed-connect.auth.routes"


def _html_page(title: str, body: str, status: int = 200) -> HTMLResponse:
    """Return a tiny success / error HTML page."""
    content = (
        "<!doctype html><html lang='en'>"
        "<head><meta charset='utf-8'><title>"
        f"{html.escape(title)}</title></head><body><h1>{html.escape(title)}</h1>"
        f"<p>{html.escape(body)}</p></body></html>"
    )
    return HTMLResponse(content, status_code=status)


def _request_logger(request: Request, domain_prefix: str | None = None):
    return get_auth_logger(
        base_logger_name=_LOGGER_NAME,
        domain_prefix=domain_prefix,
        correlation_id=getattr(request.state, "correlation_id", None),
    )


# --------------------------------------------------------------------------- #
# Public API                                                                  #
# --------------------------------------------------------------------------- #
def auth_routes(client: LightspeedClient, *, base_path: str = "/lightspeed") -> list[Route]:
    """Return the OAuth routes bound to *client* under *base_path*."""

    # ----- GET /lightspeed/start ------------------------------------------ #
    async def _start_oauth(request: Request) -> Response:
        domain = request.query_params.get("domain")
        if not domain:
            return JSONResponse({"error": "missing domain"}, status_code=400)

        try:
            authorize_url = client.begin_authorization(domain)
        except ValueError as exc:
            return JSONResponse({"error": str(exc)}, status_code=400)

        _request_logger(request, domain.strip().lower()).info("OAuth start")

        fmt_param = request.query_params.get("format")
        accept_header = (request.headers.get("accept") or "").lower()

        if fmt_param == "json":
            return JSONResponse({"authorize_url": authorize_url})
        if fmt_param == "redirect" or "text/html" in accept_header:
            # 303 See Other keeps the follow-up request a GET
            return RedirectResponse(authorize_url, status_code=303)
        return JSONResponse({"authorize_url": authorize_url})

    # ----- GET /lightspeed/callback --------------------------------------- #
    async def _oauth_callback(request: Request) -> Response:
        # provider-side errors first (e.g. access_denied)
        oauth_error = request.query_params.get("error")
        if oauth_error:
            description = request.query_params.get("error_description", "")
            return _html_page(
                "Authorization error",
                f"{oauth_error}: {description}" if description else oauth_error,
                400,
            )

        code = request.query_params.get("code")
        state = request.query_params.get("state")
        if not code or not state:
            return _html_page("Missing parameters", "Missing authorization code or state parameter", 400)

        try:
            await client.complete_authorization(code, state, request.query_params.get("domain"))
        except LightspeedError as exc:
            _request_logger(request).warning("OAuth callback error=%s", exc.to_payload()["error"])
            return _html_page("Authorization failed", str(exc), 400)

        _request_logger(request, client.domain_prefix).info("OAuth success")
        return _html_page(
            "Authorization successful",
            f"Connected to {client.domain_prefix}. You may close this window.",
        )

    # ----- GET /lightspeed/status ----------------------------------------- #
    async def _status(request: Request) -> Response:
        return JSONResponse(
            {
                "connected": client.is_authenticated(),
                "domain_prefix": client.domain_prefix,
            }
        )

    # ----- POST /lightspeed/disconnect ------------------------------------ #
    async def _disconnect(request: Request) -> Response:
        client.disconnect()
        _request_logger(request).info("Disconnected")
        return Response(status_code=204)

    return [
        Route(f"{base_path}/start", _start_oauth, methods=["GET"]),
        Route(f"{base_path}/callback", _oauth_callback, methods=["GET"]),
        Route(f"{base_path}/status", _status, methods=["GET"]),
        Route(f"{base_path}/disconnect", _disconnect, methods=["POST"]),
    ]
