"""Environment-driven configuration for the Lightspeed client.

All variables share the ``LIGHTSPEED_`` prefix:

``LIGHTSPEED_CLIENT_ID`` / ``LIGHTSPEED_CLIENT_SECRET``
    OAuth application credentials.
``LIGHTSPEED_CALLBACK_URL``
    Registered redirect URI; must match the app registration exactly.
``LIGHTSPEED_AUTHORIZE_URL``
    Authorization endpoint (``https://secure.retail.lightspeed.app/connect``).
``LIGHTSPEED_PLATFORM_HOST``
    Host suffix for per-store URLs (``{domain}.retail.lightspeed.app``).
``LIGHTSPEED_HTTP_TIMEOUT``
    Seconds before a network call is abandoned (default 30).
``LIGHTSPEED_REFRESH_BUFFER``
    Seconds before expiry at which a token is refreshed (default 300).
``LIGHTSPEED_STATE_TTL``
    Lifetime in seconds of a pending authorization (default 600).
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Final

DEFAULT_AUTHORIZE_URL: Final[str] = "https://secure.retail.lightspeed.app/connect"
DEFAULT_PLATFORM_HOST: Final[str] = "retail.lightspeed.app"
DEFAULT_CALLBACK_URL: Final[str] = "http://localhost:5173/lightspeed/callback"

TOKEN_PATH: Final[str] = "/api/1.0/token"
API_PATH: Final[str] = "/api/2.0"


def _env_number(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {raw!r}") from None
    if value <= 0:
        raise ValueError(f"{name} must be positive, got {raw!r}")
    return value


@dataclass(frozen=True)
class LightspeedConfig:
    """OAuth application settings plus client tuning knobs."""

    client_id: str = ""
    client_secret: str = ""
    redirect_uri: str = DEFAULT_CALLBACK_URL
    authorize_url: str = DEFAULT_AUTHORIZE_URL
    platform_host: str = DEFAULT_PLATFORM_HOST
    timeout_seconds: float = 30.0
    refresh_buffer_seconds: int = 300
    state_ttl_seconds: int = 600

    @classmethod
    def from_env(cls) -> LightspeedConfig:
        """Build a config from ``LIGHTSPEED_*`` environment variables."""
        return cls(
            client_id=os.getenv("LIGHTSPEED_CLIENT_ID", ""),
            client_secret=os.getenv("LIGHTSPEED_CLIENT_SECRET", ""),
            redirect_uri=os.getenv("LIGHTSPEED_CALLBACK_URL") or DEFAULT_CALLBACK_URL,
            authorize_url=(os.getenv("LIGHTSPEED_AUTHORIZE_URL") or DEFAULT_AUTHORIZE_URL).rstrip("/"),
            platform_host=(os.getenv("LIGHTSPEED_PLATFORM_HOST") or DEFAULT_PLATFORM_HOST).strip("."),
            timeout_seconds=_env_number("LIGHTSPEED_HTTP_TIMEOUT", 30.0),
            refresh_buffer_seconds=int(_env_number("LIGHTSPEED_REFRESH_BUFFER", 300)),
            state_ttl_seconds=int(_env_number("LIGHTSPEED_STATE_TTL", 600)),
        )

    @property
    def is_configured(self) -> bool:
        return bool(self.client_id and self.redirect_uri)

    def store_base_url(self, domain_prefix: str) -> str:
        return f"https://{domain_prefix}.{self.platform_host}"

    def token_url(self, domain_prefix: str) -> str:
        return self.store_base_url(domain_prefix) + TOKEN_PATH

    def api_base_url(self, domain_prefix: str) -> str:
        return self.store_base_url(domain_prefix) + API_PATH
