"""OAuth core package.

This namespace hosts the **HTTP-framework-agnostic** building blocks of the
Lightspeed Retail authorization code flow.

Sub-modules
-----------
clock
    Test-friendly time abstraction.
state
    CSRF ``state`` generation / comparison and domain prefix validation.
models
    Immutable dataclasses for the credential record, pending handshake and
    token responses.
store
    Key/value persistence interface and the typed credential facade.
service
    Handshake, code exchange and single-flight refresh.
errors
    Exception types used by the auth logic.
log_utils
    Structured logging helpers (thin wrapper around :pymod:`logging`).

All public objects are re-exported here for convenience.
"""

from __future__ import annotations

from .clock import Clock, default_clock, now_ms  # noqa: F401
from .errors import (  # noqa: F401
    AuthenticationExpiredError,
    CsrfMismatchError,
    LightspeedError,
    NeedsReauthError,
    NotAuthenticatedError,
    RefreshFailedError,
    RequestFailedError,
    TokenExchangeError,
)
from .log_utils import get_auth_logger  # noqa: F401
from .models import CredentialRecord, PendingAuthorization, TokenPair  # noqa: F401
from .service import LightspeedAuthService  # noqa: F401
from .state import (  # noqa: F401
    InvalidDomainError,
    generate_csrf_token,
    normalize_domain_prefix,
    states_match,
)
from .store import (  # noqa: F401
    CredentialStore,
    DiskKeyValueStore,
    KeyValueStore,
    MemoryKeyValueStore,
)

__all__ = [
    # clock
    "Clock",
    "default_clock",
    "now_ms",
    # errors
    "LightspeedError",
    "CsrfMismatchError",
    "TokenExchangeError",
    "RequestFailedError",
    "NeedsReauthError",
    "NotAuthenticatedError",
    "RefreshFailedError",
    "AuthenticationExpiredError",
    # logging helpers
    "get_auth_logger",
    # models
    "CredentialRecord",
    "PendingAuthorization",
    "TokenPair",
    # service
    "LightspeedAuthService",
    # state
    "InvalidDomainError",
    "generate_csrf_token",
    "normalize_domain_prefix",
    "states_match",
    # store
    "KeyValueStore",
    "MemoryKeyValueStore",
    "DiskKeyValueStore",
    "CredentialStore",
]
