"""Authenticated Lightspeed Retail API client.

:class:`LightspeedClient` is the context object handed to collaborators (chat
UI, customer form, dashboard).  It is constructed once per session with its
storage and HTTP dependencies and exposes a small capability surface:

* ``is_authenticated()``
* ``begin_authorization(domain)`` -> redirect URL
* ``await complete_authorization(code, state, domain)`` -> :class:`TokenPair`
* ``await request(path, ...)`` -> decoded JSON
* ``disconnect()``

``request`` attaches a bearer token, refreshes it lazily when it is about to
expire and retries exactly once after a 401.
"""

from __future__ import annotations

import logging
from typing import Any, Mapping

import httpx

from lightspeed_connect.auth.clock import Clock, default_clock
from lightspeed_connect.auth.errors import (
    AuthenticationExpiredError,
    NeedsReauthError,
    NotAuthenticatedError,
    RequestFailedError,
)
from lightspeed_connect.auth.log_utils import get_auth_logger
from lightspeed_connect.auth.models import TokenPair
from lightspeed_connect.auth.service import LightspeedAuthService
from lightspeed_connect.auth.store import CredentialStore, DiskKeyValueStore, KeyValueStore
from lightspeed_connect.config import LightspeedConfig

logger = logging.getLogger("lightspeed-connect.client")

_DEFAULT_HEADERS: Mapping[str, str] = {
    "Accept": "application/json",
    "Content-Type": "application/json",
}


class LightspeedClient:
    """Session-scoped OAuth client for one Lightspeed store."""

    def __init__(
        self,
        config: LightspeedConfig | None = None,
        *,
        store: CredentialStore | KeyValueStore | None = None,
        http: httpx.AsyncClient | None = None,
        clock: Clock = default_clock,
    ) -> None:
        self.config = config or LightspeedConfig.from_env()
        if isinstance(store, CredentialStore):
            self.store = store
        else:
            self.store = CredentialStore(store if store is not None else DiskKeyValueStore())
        self._owns_http = http is None
        self.http = http or httpx.AsyncClient(timeout=httpx.Timeout(self.config.timeout_seconds))
        self.auth = LightspeedAuthService(
            config=self.config,
            store=self.store,
            http=self.http,
            clock=clock,
        )

    async def __aenter__(self) -> LightspeedClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Close the HTTP client if this instance created it."""
        if self._owns_http:
            await self.http.aclose()

    # ------------------------------------------------------------------ #
    # Capability surface                                                 #
    # ------------------------------------------------------------------ #
    def is_authenticated(self) -> bool:
        return self.auth.is_authenticated()

    @property
    def domain_prefix(self) -> str | None:
        return self.auth.domain_prefix()

    def begin_authorization(self, domain_prefix: str) -> str:
        return self.auth.build_authorize_url(domain_prefix)

    def cancel_authorization(self) -> None:
        self.auth.cancel_authorization()

    async def complete_authorization(
        self, code: str, state: str, domain_prefix: str | None = None
    ) -> TokenPair:
        return await self.auth.exchange_code(code=code, state=state, domain_prefix=domain_prefix)

    async def refresh(self) -> TokenPair:
        return await self.auth.refresh()

    async def get_valid_access_token(self) -> str:
        return await self.auth.get_valid_access_token()

    def disconnect(self) -> None:
        self.auth.disconnect()

    # ------------------------------------------------------------------ #
    # Authenticated requests                                             #
    # ------------------------------------------------------------------ #
    async def request(
        self,
        path: str,
        *,
        method: str = "GET",
        params: Mapping[str, Any] | None = None,
        json: Any = None,
        headers: Mapping[str, str] | None = None,
    ) -> Any:
        """Call ``/api/2.0{path}`` and return the decoded JSON body.

        Raises
        ------
        NotAuthenticatedError
            No credential is stored.
        AuthenticationExpiredError
            The platform rejected the token even after one refresh; the
            credential record has been cleared.
        RequestFailedError
            Any other non-2xx status, a transport error, or an undecodable
            body.  Stored credentials are left alone.
        """
        if not path.startswith("/"):
            raise ValueError("path must start with '/'")

        token = await self.auth.get_valid_access_token()
        domain = self.store.load().domain_prefix
        if not domain:
            raise NotAuthenticatedError("No domain prefix available - please authenticate.")
        url = self.config.api_base_url(domain) + path

        response = await self._send(method, url, token, params=params, json=json, headers=headers)
        if response.status_code == 401:
            log = get_auth_logger(domain_prefix=domain)
            log.info("%s %s returned 401; refreshing and retrying once", method, path)
            token = await self._token_after_rejection(token)
            response = await self._send(method, url, token, params=params, json=json, headers=headers)
            if response.status_code == 401:
                self._clear_if_current(token)
                log.warning("Retry of %s %s rejected again; credentials cleared", method, path)
                raise AuthenticationExpiredError()

        return self._decode(response)

    async def _token_after_rejection(self, rejected_token: str) -> str:
        latest = self.store.load()
        if latest.is_authenticated and latest.access_token != rejected_token:
            # another request refreshed while this one was in flight
            return latest.access_token  # type: ignore[return-value]
        try:
            pair = await self.auth.refresh()
        except NeedsReauthError as exc:
            self._clear_if_current(rejected_token)
            raise AuthenticationExpiredError() from exc
        return pair.access_token

    def _clear_if_current(self, token: str) -> None:
        # a reconnect may have stored a new session meanwhile
        if self.store.load().access_token == token:
            self.store.clear_credentials()

    async def _send(
        self,
        method: str,
        url: str,
        token: str,
        *,
        params: Mapping[str, Any] | None,
        json: Any,
        headers: Mapping[str, str] | None,
    ) -> httpx.Response:
        merged = httpx.Headers(_DEFAULT_HEADERS)
        if headers:
            merged.update(headers)
        merged["Authorization"] = f"Bearer {token}"
        try:
            return await self.http.request(
                method.upper(),
                url,
                params=params,
                json=json,
                headers=merged,
                timeout=self.config.timeout_seconds,
            )
        except httpx.HTTPError as exc:
            logger.warning("API request %s %s failed: %s", method, url, type(exc).__name__)
            raise RequestFailedError(f"API request failed: {exc}", body=str(exc)) from exc

    @staticmethod
    def _decode(response: httpx.Response) -> Any:
        if not response.is_success:
            raise RequestFailedError(
                f"API request failed: {response.status_code}",
                status_code=response.status_code,
                body=response.text,
            )
        if not response.content.strip():
            return None
        try:
            return response.json()
        except ValueError as exc:
            raise RequestFailedError(
                f"API response is not valid JSON: {exc}",
                status_code=response.status_code,
                body=f"JSON decode error: {exc}",
            ) from exc
