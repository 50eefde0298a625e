"""Typed, immutable records used by the OAuth client."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping

from lightspeed_connect.auth.clock import Clock, default_clock


@dataclass(frozen=True, slots=True)
class CredentialRecord:
    """Snapshot of the persisted credential (one per device/session)."""

    access_token: str | None = None
    refresh_token: str | None = None
    domain_prefix: str | None = None
    expires_at_ms: int | None = None

    @property
    def is_authenticated(self) -> bool:
        """A token without a domain is unusable, so both must be present."""
        return bool(self.access_token and self.domain_prefix)

    def needs_refresh(self, now_ms: int, buffer_ms: int) -> bool:
        """Return *True* once ``now_ms`` enters the pre-expiry buffer."""
        if self.expires_at_ms is None:
            return True
        return now_ms >= self.expires_at_ms - buffer_ms


@dataclass(frozen=True, slots=True)
class PendingAuthorization:
    """Transient state of the single in-flight authorization handshake."""

    csrf_token: str
    domain_prefix: str
    created_at: int = field(default_factory=lambda: int(default_clock()))
    ttl_seconds: int = 600

    def is_expired(self, *, clock: Clock = default_clock) -> bool:
        """Return *True* if the handshake exceeded its TTL."""
        return (clock() - self.created_at) > self.ttl_seconds


@dataclass(frozen=True, slots=True)
class TokenPair:
    """Token endpoint response, as returned to the caller."""

    access_token: str
    expires_in: int
    refresh_token: str | None = None
    raw: Mapping[str, Any] = field(default_factory=dict, repr=False)

    @classmethod
    def from_payload(cls, data: Any) -> TokenPair:
        """Validate a decoded token response.

        Raises
        ------
        ValueError
            If ``access_token`` is missing or ``expires_in`` is not an integer.
        """
        if not isinstance(data, Mapping):
            raise ValueError("Token response is not a JSON object")
        access_token = data.get("access_token")
        if not access_token or not isinstance(access_token, str):
            raise ValueError("Token response missing access_token")
        try:
            expires_in = int(data["expires_in"])
        except (KeyError, TypeError, ValueError):
            raise ValueError("Token response missing a numeric expires_in") from None
        refresh_token = data.get("refresh_token") or None
        return cls(
            access_token=access_token,
            expires_in=expires_in,
            refresh_token=refresh_token,
            raw=dict(data),
        )
