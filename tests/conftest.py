"""Shared fixtures for the unit tests."""

from __future__ import annotations

from typing import Iterator

import httpx
import pytest

from fakes import FakeClock, FakePlatform
from lightspeed_connect.auth.store import CredentialStore, MemoryKeyValueStore
from lightspeed_connect.client import LightspeedClient
from lightspeed_connect.config import LightspeedConfig


@pytest.fixture
def anyio_backend() -> str:
    # the client relies on asyncio tasks for single-flight refresh
    return "asyncio"


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def config() -> LightspeedConfig:
    return LightspeedConfig(
        client_id="cid",
        client_secret="csecret",
        redirect_uri="https://app.example.test/lightspeed/callback",
    )


@pytest.fixture
def kv() -> MemoryKeyValueStore:
    return MemoryKeyValueStore()


@pytest.fixture
def store(kv: MemoryKeyValueStore) -> CredentialStore:
    return CredentialStore(kv)


@pytest.fixture
def platform() -> FakePlatform:
    return FakePlatform()


@pytest.fixture
def client(
    config: LightspeedConfig,
    store: CredentialStore,
    platform: FakePlatform,
    clock: FakeClock,
) -> Iterator[LightspeedClient]:
    http = httpx.AsyncClient(transport=httpx.MockTransport(platform.handler))
    yield LightspeedClient(config, store=store, http=http, clock=clock)
