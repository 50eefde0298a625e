"""Lightspeed Retail OAuth2 integration client."""

from __future__ import annotations

from lightspeed_connect.api import RetailApi  # noqa: F401
from lightspeed_connect.auth import (  # noqa: F401
    AuthenticationExpiredError,
    CredentialStore,
    CsrfMismatchError,
    DiskKeyValueStore,
    LightspeedError,
    MemoryKeyValueStore,
    NeedsReauthError,
    NotAuthenticatedError,
    RefreshFailedError,
    RequestFailedError,
    TokenExchangeError,
    TokenPair,
)
from lightspeed_connect.client import LightspeedClient  # noqa: F401
from lightspeed_connect.config import LightspeedConfig  # noqa: F401

__version__ = "0.1.0"

__all__ = [
    "LightspeedClient",
    "LightspeedConfig",
    "RetailApi",
    "CredentialStore",
    "MemoryKeyValueStore",
    "DiskKeyValueStore",
    "TokenPair",
    "LightspeedError",
    "CsrfMismatchError",
    "TokenExchangeError",
    "RequestFailedError",
    "NeedsReauthError",
    "NotAuthenticatedError",
    "RefreshFailedError",
    "AuthenticationExpiredError",
]
