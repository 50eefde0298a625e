"""LightspeedAuthService – OAuth 2.0 authorization code flow and token lifecycle.

This service encapsulates the *business logic* for the Lightspeed Retail
handshake: building the authorize URL, exchanging the returned code,
refreshing tokens and handing out a valid access token.  Persistence goes
through :class:`~lightspeed_connect.auth.store.CredentialStore`; HTTP goes
through an injected :class:`httpx.AsyncClient`.

Credential lifecycle::

    UNAUTHENTICATED --exchange_code--> AUTHENTICATED
    AUTHENTICATED   --refresh ok-----> AUTHENTICATED
    AUTHENTICATED   --refresh fails--> UNAUTHENTICATED (record cleared)
    AUTHENTICATED   --disconnect-----> UNAUTHENTICATED

**No secrets are logged**: tokens, client secrets and states are masked.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any
from urllib.parse import urlencode

import httpx

from lightspeed_connect.auth.clock import Clock, default_clock, now_ms
from lightspeed_connect.auth.errors import (
    CsrfMismatchError,
    NotAuthenticatedError,
    RefreshFailedError,
    TokenExchangeError,
)
from lightspeed_connect.auth.log_utils import get_auth_logger
from lightspeed_connect.auth.models import CredentialRecord, PendingAuthorization, TokenPair
from lightspeed_connect.auth.state import (
    generate_csrf_token,
    normalize_domain_prefix,
    states_match,
)
from lightspeed_connect.auth.store import CredentialStore
from lightspeed_connect.config import LightspeedConfig
from lightspeed_connect.utils.logging import mask_sensitive

_LOG = logging.getLogger("lightspeed-connect.auth.service")


class LightspeedAuthService:
    """Application service orchestrating the OAuth web-flow and refresh."""

    def __init__(
        self,
        *,
        config: LightspeedConfig,
        store: CredentialStore,
        http: httpx.AsyncClient,
        clock: Clock = default_clock,
    ) -> None:
        self.config = config
        self.store = store
        self.http = http
        self.clock = clock
        self._refresh_task: asyncio.Future[TokenPair] | None = None

    # ------------------------------------------------------------------ #
    # Read-only helpers                                                  #
    # ------------------------------------------------------------------ #
    def is_authenticated(self) -> bool:
        """Pure read: both access token and domain prefix are stored."""
        return self.store.load().is_authenticated

    def domain_prefix(self) -> str | None:
        return self.store.load().domain_prefix

    # ------------------------------------------------------------------ #
    # Authorization handshake                                            #
    # ------------------------------------------------------------------ #
    def build_authorize_url(self, domain_prefix: str) -> str:
        """Start a handshake for *domain_prefix* and return the redirect URL.

        Any previous pending handshake is replaced; only one may be in flight.

        Raises
        ------
        InvalidDomainError
            If *domain_prefix* is not a valid store subdomain.
        ValueError
            If the client id or callback URL is not configured.
        """
        if not self.config.is_configured:
            raise ValueError("Lightspeed OAuth environment not configured")
        domain = normalize_domain_prefix(domain_prefix)

        csrf_token = generate_csrf_token()
        self.store.save_pending(
            PendingAuthorization(
                csrf_token=csrf_token,
                domain_prefix=domain,
                created_at=int(self.clock()),
                ttl_seconds=self.config.state_ttl_seconds,
            )
        )

        query_params: dict[str, str] = {
            "response_type": "code",
            "client_id": self.config.client_id,
            "redirect_uri": self.config.redirect_uri,
            "state": csrf_token,
        }
        url = f"{self.config.authorize_url}?{urlencode(query_params)}"

        get_auth_logger(domain_prefix=domain).debug(
            "Built authorize URL state=%s", mask_sensitive(csrf_token, 6)
        )
        return url

    def cancel_authorization(self) -> None:
        """Drop the pending handshake, if any."""
        self.store.clear_pending()

    def _consume_pending(self, state: str, domain_prefix: str | None) -> PendingAuthorization:
        pending = self.store.load_pending()
        if pending is None:
            raise CsrfMismatchError("No authorization in progress - please restart the connection process.")
        if pending.is_expired(clock=self.clock):
            self.store.clear_pending()
            raise CsrfMismatchError("Authorization request expired - please restart the connection process.")
        if not states_match(pending.csrf_token, state):
            raise CsrfMismatchError()
        if domain_prefix is not None and domain_prefix.strip().lower() != pending.domain_prefix:
            raise CsrfMismatchError("Domain prefix does not match the pending authorization.")
        return pending

    async def exchange_code(
        self,
        *,
        code: str,
        state: str,
        domain_prefix: str | None = None,
    ) -> TokenPair:
        """Exchange *code* for tokens and persist them.

        The state check runs before any network I/O.  When *domain_prefix* is
        omitted the domain recorded at handshake start is used.
        """
        pending = self._consume_pending(state, domain_prefix)
        domain = pending.domain_prefix
        log = get_auth_logger(domain_prefix=domain)

        payload: dict[str, str] = {
            "grant_type": "authorization_code",
            "client_id": self.config.client_id,
            "client_secret": self.config.client_secret,
            "code": code,
            "redirect_uri": self.config.redirect_uri,
        }

        try:
            resp = await self._post_token(domain, payload)
        except httpx.HTTPError as exc:
            log.warning("Token exchange request failed: %s", type(exc).__name__)
            raise TokenExchangeError(f"Token request failed: {exc}", body=str(exc)) from exc

        if not resp.is_success:
            log.warning("Token exchange rejected with HTTP %s", resp.status_code)
            raise TokenExchangeError(
                f"Token exchange failed: {resp.status_code}",
                status_code=resp.status_code,
                body=resp.text,
            )

        try:
            pair = TokenPair.from_payload(resp.json())
        except ValueError as exc:
            raise TokenExchangeError(
                f"Token exchange returned an invalid response: {exc}",
                status_code=resp.status_code,
                body=resp.text,
            ) from exc

        if not pair.refresh_token:
            log.warning("Token exchange response carried no refresh token")
            raise TokenExchangeError(
                "Token exchange returned no refresh token",
                status_code=resp.status_code,
                body=resp.text,
            )

        self.store.save_tokens(
            access_token=pair.access_token,
            refresh_token=pair.refresh_token,
            domain_prefix=domain,
            expires_at_ms=now_ms(self.clock) + pair.expires_in * 1000,
        )
        self.store.clear_pending()
        log.info("Exchanged OAuth code (expires in %ss)", pair.expires_in)
        return pair

    # ------------------------------------------------------------------ #
    # Token access & refresh                                             #
    # ------------------------------------------------------------------ #
    async def get_valid_access_token(self) -> str:
        """Return a usable access token, refreshing when close to expiry."""
        rec = self.store.load()
        if not rec.is_authenticated:
            raise NotAuthenticatedError()

        buffer_ms = self.config.refresh_buffer_seconds * 1000
        if rec.needs_refresh(now_ms(self.clock), buffer_ms):
            get_auth_logger(domain_prefix=rec.domain_prefix).info("Token expired, refreshing")
            pair = await self.refresh()
            return pair.access_token
        return rec.access_token  # type: ignore[return-value]

    async def refresh(self) -> TokenPair:
        """Refresh the access token.

        Implements single-flight behaviour: while a refresh is running every
        other caller awaits that same task instead of starting a second one,
        since the provider may rotate (and invalidate) the refresh token.
        """
        task = self._refresh_task
        if task is None:
            rec = self.store.load()
            if not rec.refresh_token or not rec.domain_prefix:
                raise NotAuthenticatedError("No refresh token or domain prefix available.")
            task = asyncio.ensure_future(self._refresh_tokens(rec))
            self._refresh_task = task
            task.add_done_callback(self._release_refresh)
        else:
            _LOG.debug("Joining refresh already in flight")
        # a cancelled waiter must not cancel the shared refresh
        return await asyncio.shield(task)

    def _release_refresh(self, task: asyncio.Future[TokenPair]) -> None:
        if self._refresh_task is task:
            self._refresh_task = None
        if not task.cancelled():
            task.exception()  # mark retrieved; waiters re-raise it themselves

    async def _refresh_tokens(self, rec: CredentialRecord) -> TokenPair:
        domain = rec.domain_prefix or ""
        log = get_auth_logger(domain_prefix=domain)
        payload: dict[str, str] = {
            "grant_type": "refresh_token",
            "client_id": self.config.client_id,
            "client_secret": self.config.client_secret,
            "refresh_token": rec.refresh_token or "",
        }

        try:
            resp = await self._post_token(domain, payload)
        except httpx.HTTPError as exc:
            self._discard_session(rec)
            log.warning("Token refresh request failed (%s)", type(exc).__name__)
            raise RefreshFailedError(f"Token refresh request failed: {exc}", body=str(exc)) from exc

        if not resp.is_success:
            self._discard_session(rec)
            log.warning("Token refresh rejected with HTTP %s", resp.status_code)
            raise RefreshFailedError(status_code=resp.status_code, body=resp.text)

        try:
            pair = TokenPair.from_payload(resp.json())
        except ValueError as exc:
            self._discard_session(rec)
            raise RefreshFailedError(
                f"Token refresh returned an invalid response: {exc}",
                status_code=resp.status_code,
                body=resp.text,
            ) from exc

        if not self._is_current(rec):
            # disconnected or re-connected while the refresh ran
            log.info("Discarding refresh result for a replaced session")
            raise NotAuthenticatedError("Credentials changed during token refresh.")

        self.store.update_tokens(
            access_token=pair.access_token,
            refresh_token=pair.refresh_token,
            expires_at_ms=now_ms(self.clock) + pair.expires_in * 1000,
        )
        log.info(
            "Refreshed access token (expires in %ss, refresh token %s)",
            pair.expires_in,
            "rotated" if pair.refresh_token else "kept",
        )
        return pair

    def _is_current(self, rec: CredentialRecord) -> bool:
        """True while the stored session is still the one *rec* was read from."""
        latest = self.store.load()
        return (
            latest.refresh_token == rec.refresh_token
            and latest.domain_prefix == rec.domain_prefix
        )

    def _discard_session(self, rec: CredentialRecord) -> None:
        if self._is_current(rec):
            self.store.clear_credentials()
            get_auth_logger(domain_prefix=rec.domain_prefix).warning(
                "Credentials cleared after failed refresh"
            )

    async def _post_token(self, domain_prefix: str, payload: dict[str, Any]) -> httpx.Response:
        return await self.http.post(
            self.config.token_url(domain_prefix),
            data=payload,
            headers={"Accept": "application/json"},
            timeout=self.config.timeout_seconds,
        )

    # ------------------------------------------------------------------ #
    # Disconnect                                                         #
    # ------------------------------------------------------------------ #
    def disconnect(self) -> None:
        """Delete stored tokens and any pending handshake; idempotent."""
        self.store.clear_all()
        _LOG.debug("Cleared stored Lightspeed credentials")
