"""State parameter and domain helpers for the OAuth 2.0 web-flow.

The *state* parameter protects the user against CSRF: a fresh, single-use
value is generated when the handshake starts, persisted locally and compared
against the value Lightspeed echoes back on the callback.

Tokens come from :pyfunc:`secrets.token_urlsafe` and carry at least 128 bits
of entropy.  Comparison is constant-time.

Logging
-------
Only a masked prefix of the state is ever logged.
"""

from __future__ import annotations

import hmac
import logging
import re
import secrets
from typing import Final

from lightspeed_connect.utils.logging import mask_sensitive

_LOG = logging.getLogger("lightspeed-connect.auth.state")

_DEFAULT_NBYTES: Final[int] = 32
_MIN_NBYTES: Final[int] = 16  # 128 bits

# A single DNS label: lowercase alphanumerics and inner hyphens.
_DOMAIN_RE: Final[re.Pattern[str]] = re.compile(r"^[a-z0-9](?:[a-z0-9-]{0,61}[a-z0-9])?$")


class InvalidDomainError(ValueError):
    """Raised when a store domain prefix is not a valid subdomain label."""


def generate_csrf_token(nbytes: int = _DEFAULT_NBYTES) -> str:
    """Return a URL-safe CSRF token built from *nbytes* random bytes.

    Parameters
    ----------
    nbytes:
        Amount of randomness; must be at least 16 (128 bits).  The default of
        32 bytes yields a 43 character token.
    """
    if nbytes < _MIN_NBYTES:
        raise ValueError("CSRF token needs at least 16 random bytes")
    token = secrets.token_urlsafe(nbytes)
    _LOG.debug("Generated state %s", mask_sensitive(token, 6))
    return token


def states_match(expected: str | None, received: str | None) -> bool:
    """Constant-time comparison of the persisted and the received state."""
    if not expected or not received:
        return False
    return hmac.compare_digest(expected.encode("utf-8"), received.encode("utf-8"))


def normalize_domain_prefix(value: str | None) -> str:
    """Trim and lowercase *value*, then validate it as a subdomain label.

    Raises
    ------
    InvalidDomainError
        If the result is empty or contains anything other than lowercase
        letters, digits and (inner) hyphens.
    """
    clean = (value or "").strip().lower()
    if not clean:
        raise InvalidDomainError("store domain prefix is required")
    if not _DOMAIN_RE.match(clean):
        raise InvalidDomainError(
            "domain prefix should only contain lowercase letters, numbers, and hyphens"
        )
    return clean
