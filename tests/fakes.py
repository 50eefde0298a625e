"""Test doubles: a scripted fake Lightspeed platform, a fake clock, helpers."""

from __future__ import annotations

import asyncio
import json
from typing import Any, Callable, Union
from urllib.parse import parse_qs

import httpx

from lightspeed_connect.auth.store import CredentialStore

TOKEN_PATH = "/api/1.0/token"
NOW = 1_700_000_000.0  # seconds

Scripted = Union[httpx.Response, Exception, Callable[[httpx.Request], httpx.Response]]


# --------------------------------------------------------------------------- #
# Helpers                                                                     #
# --------------------------------------------------------------------------- #
class FakeClock:
    """Mutable clock returning *now* seconds."""

    def __init__(self, now: float = NOW) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def token_response(
    access_token: str = "A",
    refresh_token: str | None = "R",
    expires_in: int = 3600,
    status_code: int = 200,
) -> httpx.Response:
    payload: dict[str, Any] = {"access_token": access_token, "expires_in": expires_in}
    if refresh_token is not None:
        payload["refresh_token"] = refresh_token
    return httpx.Response(status_code, json=payload)


def form_of(request: httpx.Request) -> dict[str, str]:
    """Decode a form-encoded request body into a flat dict."""
    return {k: v[0] for k, v in parse_qs(request.content.decode()).items()}


class FakePlatform:
    """Scripted stand-in for the token endpoint and the ``/api/2.0`` API."""

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self.token_script: list[Scripted] = []
        self.api_script: list[Scripted] = []
        self.token_delay = 0.0

    @property
    def token_calls(self) -> list[httpx.Request]:
        return [r for r in self.requests if r.url.path == TOKEN_PATH]

    @property
    def api_calls(self) -> list[httpx.Request]:
        return [r for r in self.requests if r.url.path != TOKEN_PATH]

    async def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.url.path == TOKEN_PATH:
            if self.token_delay:
                await asyncio.sleep(self.token_delay)
            script = self.token_script
        else:
            script = self.api_script
        assert script, f"unexpected request {request.method} {request.url}"
        item = script.pop(0)
        if isinstance(item, Exception):
            raise item
        if callable(item) and not isinstance(item, httpx.Response):
            return item(request)
        return item


def seed_credentials(
    store: CredentialStore,
    *,
    expires_at_ms: int,
    access_token: str = "old-at",
    refresh_token: str = "old-rt",
    domain_prefix: str = "shop1",
) -> None:
    store.save_tokens(
        access_token=access_token,
        refresh_token=refresh_token,
        domain_prefix=domain_prefix,
        expires_at_ms=expires_at_ms,
    )


def json_body(request: httpx.Request) -> Any:
    return json.loads(request.content.decode())
