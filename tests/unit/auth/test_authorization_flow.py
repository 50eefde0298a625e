"""Tests for the authorization handshake: authorize URL + code exchange."""

from __future__ import annotations

from urllib.parse import parse_qs, urlparse

import httpx
import pytest

from fakes import NOW, FakeClock, FakePlatform, form_of, token_response
from lightspeed_connect.auth.errors import CsrfMismatchError, TokenExchangeError
from lightspeed_connect.auth.models import CredentialRecord
from lightspeed_connect.auth.state import InvalidDomainError
from lightspeed_connect.auth.store import CredentialStore
from lightspeed_connect.client import LightspeedClient
from lightspeed_connect.config import LightspeedConfig


def _query(url: str) -> dict[str, str]:
    return {k: v[0] for k, v in parse_qs(urlparse(url).query).items()}


# --------------------------------------------------------------------------- #
# Authorize URL                                                               #
# --------------------------------------------------------------------------- #
def test_begin_authorization_builds_url_and_pending_state(
    client: LightspeedClient, store: CredentialStore, config: LightspeedConfig
) -> None:
    url = client.begin_authorization("shop1")

    parsed = urlparse(url)
    assert f"{parsed.scheme}://{parsed.netloc}{parsed.path}" == config.authorize_url
    params = _query(url)
    assert params["response_type"] == "code"
    assert params["client_id"] == "cid"
    assert params["redirect_uri"] == config.redirect_uri
    assert len(params["state"]) >= 32

    pending = store.load_pending()
    assert pending is not None
    assert pending.csrf_token == params["state"]
    assert pending.domain_prefix == "shop1"
    assert pending.created_at == int(NOW)
    assert pending.ttl_seconds == 600


def test_begin_authorization_overwrites_previous_handshake(
    client: LightspeedClient, store: CredentialStore
) -> None:
    first = _query(client.begin_authorization("shop1"))["state"]
    second = _query(client.begin_authorization("Shop2 "))["state"]

    assert first != second
    pending = store.load_pending()
    assert pending.csrf_token == second
    assert pending.domain_prefix == "shop2"


def test_begin_authorization_rejects_bad_domain(client: LightspeedClient, store: CredentialStore) -> None:
    with pytest.raises(InvalidDomainError):
        client.begin_authorization("evil.com/x")
    assert store.load_pending() is None


def test_begin_authorization_requires_client_id(store: CredentialStore) -> None:
    unconfigured = LightspeedClient(
        LightspeedConfig(client_id=""), store=store, http=httpx.AsyncClient()
    )
    with pytest.raises(ValueError, match="not configured"):
        unconfigured.begin_authorization("shop1")


# --------------------------------------------------------------------------- #
# Code exchange                                                               #
# --------------------------------------------------------------------------- #
@pytest.mark.anyio
async def test_exchange_code_scenario(
    client: LightspeedClient,
    store: CredentialStore,
    platform: FakePlatform,
    config: LightspeedConfig,
) -> None:
    state = _query(client.begin_authorization("shop1"))["state"]
    platform.token_script.append(token_response("A", "R", 3600))

    pair = await client.complete_authorization("abc", state, "shop1")

    assert pair.access_token == "A"
    assert pair.refresh_token == "R"
    assert pair.expires_in == 3600

    assert store.load() == CredentialRecord(
        access_token="A",
        refresh_token="R",
        domain_prefix="shop1",
        expires_at_ms=int(NOW * 1000) + 3_600_000,
    )
    assert store.load_pending() is None
    assert client.is_authenticated()

    (req,) = platform.token_calls
    assert str(req.url) == "https://shop1.retail.lightspeed.app/api/1.0/token"
    assert req.method == "POST"
    assert req.headers["content-type"] == "application/x-www-form-urlencoded"
    assert form_of(req) == {
        "grant_type": "authorization_code",
        "client_id": "cid",
        "client_secret": "csecret",
        "code": "abc",
        "redirect_uri": config.redirect_uri,
    }


@pytest.mark.anyio
async def test_exchange_uses_pending_domain_when_omitted(
    client: LightspeedClient, store: CredentialStore, platform: FakePlatform
) -> None:
    state = _query(client.begin_authorization("shop1"))["state"]
    platform.token_script.append(token_response())

    await client.complete_authorization("abc", state)

    assert store.load().domain_prefix == "shop1"


@pytest.mark.anyio
async def test_state_mismatch_makes_no_network_call(
    client: LightspeedClient, store: CredentialStore, platform: FakePlatform
) -> None:
    client.begin_authorization("shop1")

    with pytest.raises(CsrfMismatchError):
        await client.complete_authorization("abc", "forged-state", "shop1")

    assert platform.requests == []
    assert not client.is_authenticated()
    # the legitimate handshake is still pending
    assert store.load_pending() is not None


@pytest.mark.anyio
async def test_no_pending_handshake_is_csrf_mismatch(
    client: LightspeedClient, platform: FakePlatform
) -> None:
    with pytest.raises(CsrfMismatchError):
        await client.complete_authorization("abc", "anything", "shop1")
    assert platform.requests == []


@pytest.mark.anyio
async def test_domain_mismatch_is_csrf_mismatch(
    client: LightspeedClient, platform: FakePlatform
) -> None:
    state = _query(client.begin_authorization("shop1"))["state"]
    with pytest.raises(CsrfMismatchError):
        await client.complete_authorization("abc", state, "other-shop")
    assert platform.requests == []


@pytest.mark.anyio
async def test_expired_handshake_is_rejected_and_cleared(
    client: LightspeedClient, store: CredentialStore, platform: FakePlatform, clock: FakeClock
) -> None:
    state = _query(client.begin_authorization("shop1"))["state"]
    clock.advance(601)

    with pytest.raises(CsrfMismatchError, match="expired"):
        await client.complete_authorization("abc", state, "shop1")

    assert platform.requests == []
    assert store.load_pending() is None


@pytest.mark.anyio
async def test_cancel_authorization_invalidates_state(
    client: LightspeedClient, platform: FakePlatform
) -> None:
    state = _query(client.begin_authorization("shop1"))["state"]
    client.cancel_authorization()
    with pytest.raises(CsrfMismatchError):
        await client.complete_authorization("abc", state, "shop1")
    assert platform.requests == []


@pytest.mark.anyio
async def test_exchange_failure_keeps_status_and_body(
    client: LightspeedClient, platform: FakePlatform
) -> None:
    state = _query(client.begin_authorization("shop1"))["state"]
    platform.token_script.append(httpx.Response(400, text='{"error":"invalid_grant"}'))

    with pytest.raises(TokenExchangeError) as excinfo:
        await client.complete_authorization("bad-code", state, "shop1")

    assert excinfo.value.status_code == 400
    assert excinfo.value.body == '{"error":"invalid_grant"}'
    assert excinfo.value.to_payload()["error"] == "token_exchange_failed"
    assert not client.is_authenticated()


@pytest.mark.anyio
async def test_exchange_timeout_is_token_exchange_error(
    client: LightspeedClient, platform: FakePlatform
) -> None:
    state = _query(client.begin_authorization("shop1"))["state"]
    platform.token_script.append(httpx.ReadTimeout("timed out"))

    with pytest.raises(TokenExchangeError) as excinfo:
        await client.complete_authorization("abc", state, "shop1")
    assert excinfo.value.status_code is None


@pytest.mark.anyio
async def test_exchange_response_without_access_token(
    client: LightspeedClient, platform: FakePlatform
) -> None:
    state = _query(client.begin_authorization("shop1"))["state"]
    platform.token_script.append(httpx.Response(200, json={"expires_in": 3600}))

    with pytest.raises(TokenExchangeError, match="access_token"):
        await client.complete_authorization("abc", state, "shop1")
    assert not client.is_authenticated()


@pytest.mark.anyio
async def test_exchange_response_without_refresh_token(
    client: LightspeedClient, store: CredentialStore, platform: FakePlatform
) -> None:
    state = _query(client.begin_authorization("shop1"))["state"]
    platform.token_script.append(token_response("A", refresh_token=None))

    with pytest.raises(TokenExchangeError, match="refresh token") as excinfo:
        await client.complete_authorization("abc", state, "shop1")

    assert excinfo.value.status_code == 200
    assert "access_token" in excinfo.value.body
    assert store.load() == CredentialRecord()


# --------------------------------------------------------------------------- #
# Disconnect                                                                  #
# --------------------------------------------------------------------------- #
@pytest.mark.anyio
async def test_disconnect_is_idempotent(
    client: LightspeedClient, store: CredentialStore, platform: FakePlatform
) -> None:
    state = _query(client.begin_authorization("shop1"))["state"]
    platform.token_script.append(token_response())
    await client.complete_authorization("abc", state, "shop1")
    client.begin_authorization("shop1")

    client.disconnect()
    assert not client.is_authenticated()
    assert store.load() == CredentialRecord()
    assert store.load_pending() is None

    client.disconnect()
    assert not client.is_authenticated()
