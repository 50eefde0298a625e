"""Exception types raised by the Lightspeed OAuth client.

Only lightweight, **data-carrying** exceptions live here so that web/CLI layers
can transform them into HTTP responses or user-friendly messages.

Hierarchy::

    LightspeedError
    ├── CsrfMismatchError
    ├── TokenExchangeError
    ├── RequestFailedError
    └── NeedsReauthError
        ├── NotAuthenticatedError
        ├── RefreshFailedError
        └── AuthenticationExpiredError

Everything under :class:`NeedsReauthError` means the stored credential is gone
or unusable and the caller must restart the authorization handshake.
"""

from __future__ import annotations

from typing import Any

_BODY_PREVIEW = 200


class LightspeedError(RuntimeError):
    """Base class for all client errors."""

    code = "lightspeed_error"

    def to_payload(self) -> dict[str, Any]:
        """Return a JSON-serialisable payload **without secrets**."""
        return {"error": self.code, "message": str(self)}


class CsrfMismatchError(LightspeedError):
    """The callback ``state`` does not belong to a pending handshake."""

    code = "csrf_mismatch"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or "Invalid state parameter - potential CSRF attack.")


class _HttpFailure(LightspeedError):
    """Mixin-style base for errors carrying an HTTP status and raw body."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        body: str = "",
    ) -> None:
        super().__init__(message)
        # None when the request never produced a response (timeout, DNS...)
        self.status_code: int | None = status_code
        self.body: str = body

    def to_payload(self) -> dict[str, Any]:
        payload = super().to_payload()
        payload["status_code"] = self.status_code
        payload["body"] = self.body[:_BODY_PREVIEW]
        return payload


class TokenExchangeError(_HttpFailure):
    """The authorization code could not be traded for tokens."""

    code = "token_exchange_failed"


class RequestFailedError(_HttpFailure):
    """An API call failed for a reason other than authentication."""

    code = "request_failed"


class NeedsReauthError(LightspeedError):
    """Raised when a new OAuth handshake is required."""

    code = "needs_reauth"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or "Re-authentication required.")


class NotAuthenticatedError(NeedsReauthError):
    """No credential is stored; the handshake was never completed."""

    code = "not_authenticated"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or "No access token available - please authenticate.")


class RefreshFailedError(NeedsReauthError):
    """The refresh token was rejected; stored credentials have been cleared."""

    code = "refresh_failed"

    def __init__(
        self,
        message: str | None = None,
        *,
        status_code: int | None = None,
        body: str = "",
    ) -> None:
        super().__init__(message or "Token refresh failed - please re-authenticate.")
        self.status_code: int | None = status_code
        self.body: str = body

    def to_payload(self) -> dict[str, Any]:
        payload = super().to_payload()
        payload["status_code"] = self.status_code
        return payload


class AuthenticationExpiredError(NeedsReauthError):
    """The platform kept rejecting the credential after one refresh + replay."""

    code = "authentication_expired"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or "Authentication failed - please re-authenticate.")
