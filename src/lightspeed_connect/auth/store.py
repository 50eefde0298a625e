"""Key/value persistence for the Lightspeed credential record.

This module introduces a *narrow* persistence interface
(:class:`KeyValueStore`) with two implementations and a typed facade
(:class:`CredentialStore`) that the token lifecycle logic talks to.

* **Atomicity** – ``set`` writes a whole field set at once; the disk
  implementation uses *temp-file + os.replace*.
* **Portability** – only standard-library modules are required.
* **Storage-agnostic** – the service never sees key names or encodings.

Environment variables
---------------------
LIGHTSPEED_STORAGE_DIR
    Base directory for :class:`DiskKeyValueStore`.
    Defaults to ``~/.lightspeed-connect`` when unset.
"""

from __future__ import annotations

import json
import logging
import os
import threading
from pathlib import Path
from typing import Final, Iterable, Mapping, Protocol, runtime_checkable

from lightspeed_connect.auth.models import CredentialRecord, PendingAuthorization

_LOG = logging.getLogger("lightspeed-connect.auth.store")

# --------------------------------------------------------------------------- #
# key names                                                                   #
# --------------------------------------------------------------------------- #
ACCESS_TOKEN_KEY: Final[str] = "lightspeed_access_token"
REFRESH_TOKEN_KEY: Final[str] = "lightspeed_refresh_token"
DOMAIN_PREFIX_KEY: Final[str] = "lightspeed_domain_prefix"
TOKEN_EXPIRES_KEY: Final[str] = "lightspeed_token_expires"

OAUTH_STATE_KEY: Final[str] = "lightspeed_oauth_state"
OAUTH_DOMAIN_KEY: Final[str] = "lightspeed_oauth_domain_prefix"
OAUTH_CREATED_KEY: Final[str] = "lightspeed_oauth_created_at"
OAUTH_TTL_KEY: Final[str] = "lightspeed_oauth_ttl"

CREDENTIAL_KEYS: Final[tuple[str, ...]] = (
    ACCESS_TOKEN_KEY,
    REFRESH_TOKEN_KEY,
    DOMAIN_PREFIX_KEY,
    TOKEN_EXPIRES_KEY,
)
PENDING_KEYS: Final[tuple[str, ...]] = (
    OAUTH_STATE_KEY,
    OAUTH_DOMAIN_KEY,
    OAUTH_CREATED_KEY,
    OAUTH_TTL_KEY,
)


def _atomic_write(path: Path, data: dict) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_suffix(path.suffix + ".tmp")
    with tmp.open("w", encoding="utf-8") as fh:
        json.dump(data, fh, separators=(",", ":"), sort_keys=True)
    os.replace(tmp, path)  # atomic on POSIX


def _to_int(raw: str | None) -> int | None:
    if raw is None or raw == "":
        return None
    try:
        return int(raw)
    except ValueError:
        return None


# --------------------------------------------------------------------------- #
# public interface                                                            #
# --------------------------------------------------------------------------- #


@runtime_checkable
class KeyValueStore(Protocol):
    """Minimal persistence contract: string keys, string values."""

    def get(self, key: str) -> str | None: ...

    def set(self, values: Mapping[str, str]) -> None:
        """Write every entry of *values* in one all-or-nothing step."""
        ...

    def clear(self, keys: Iterable[str]) -> None: ...


class MemoryKeyValueStore(KeyValueStore):
    """Dict-backed store; survives nothing, handy for tests."""

    def __init__(self, initial: Mapping[str, str] | None = None) -> None:
        self._data: dict[str, str] = dict(initial or {})

    def get(self, key: str) -> str | None:
        return self._data.get(key)

    def set(self, values: Mapping[str, str]) -> None:
        # build the new mapping first so a bad value leaves nothing half-written
        merged = {**self._data, **{k: str(v) for k, v in values.items()}}
        self._data = merged

    def clear(self, keys: Iterable[str]) -> None:
        for key in keys:
            self._data.pop(key, None)

    def snapshot(self) -> dict[str, str]:
        return dict(self._data)


class DiskKeyValueStore(KeyValueStore):
    """JSON-file implementation of :class:`KeyValueStore`."""

    FILE_NAME: Final[str] = "credentials.json"

    def __init__(self, base_dir: str | os.PathLike | None = None) -> None:
        self.base_dir = Path(
            base_dir
            or os.getenv("LIGHTSPEED_STORAGE_DIR")
            or Path.home() / ".lightspeed-connect"
        ).expanduser()
        self.base_dir.mkdir(parents=True, exist_ok=True)
        self.path = self.base_dir / self.FILE_NAME
        self._lock = threading.Lock()

    def _read(self) -> dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            with self.path.open(encoding="utf-8") as fh:
                data = json.load(fh)
        except (json.JSONDecodeError, UnicodeDecodeError) as exc:
            # re-authenticating rebuilds the record
            _LOG.warning("Ignoring unreadable credential file %s: %s", self.path, type(exc).__name__)
            return {}
        if not isinstance(data, dict):
            _LOG.warning("Ignoring credential file %s: not a JSON object", self.path)
            return {}
        return {str(k): str(v) for k, v in data.items()}

    def get(self, key: str) -> str | None:
        with self._lock:
            return self._read().get(key)

    def set(self, values: Mapping[str, str]) -> None:
        with self._lock:
            data = self._read()
            data.update({k: str(v) for k, v in values.items()})
            _atomic_write(self.path, data)

    def clear(self, keys: Iterable[str]) -> None:
        with self._lock:
            data = self._read()
            removed = False
            for key in keys:
                if key in data:
                    del data[key]
                    removed = True
            if removed:
                _atomic_write(self.path, data)


# --------------------------------------------------------------------------- #
# typed facade                                                                #
# --------------------------------------------------------------------------- #


class CredentialStore:
    """Read/write :class:`CredentialRecord` and :class:`PendingAuthorization`."""

    def __init__(self, kv: KeyValueStore | None = None) -> None:
        self.kv: KeyValueStore = kv if kv is not None else MemoryKeyValueStore()

    # ---------------- credential record ---------------------------------- #
    def load(self) -> CredentialRecord:
        return CredentialRecord(
            access_token=self.kv.get(ACCESS_TOKEN_KEY) or None,
            refresh_token=self.kv.get(REFRESH_TOKEN_KEY) or None,
            domain_prefix=self.kv.get(DOMAIN_PREFIX_KEY) or None,
            expires_at_ms=_to_int(self.kv.get(TOKEN_EXPIRES_KEY)),
        )

    def save_tokens(
        self,
        *,
        access_token: str,
        refresh_token: str | None,
        domain_prefix: str,
        expires_at_ms: int,
    ) -> None:
        """Persist a freshly exchanged credential in one write."""
        self.kv.set(
            {
                ACCESS_TOKEN_KEY: access_token,
                # empty string overwrites a refresh token left by an earlier session
                REFRESH_TOKEN_KEY: refresh_token or "",
                DOMAIN_PREFIX_KEY: domain_prefix,
                TOKEN_EXPIRES_KEY: str(expires_at_ms),
            }
        )

    def update_tokens(
        self,
        *,
        access_token: str,
        expires_at_ms: int,
        refresh_token: str | None = None,
    ) -> None:
        """Apply a refresh result; the domain prefix is never touched."""
        values = {
            ACCESS_TOKEN_KEY: access_token,
            TOKEN_EXPIRES_KEY: str(expires_at_ms),
        }
        if refresh_token:
            values[REFRESH_TOKEN_KEY] = refresh_token
        self.kv.set(values)

    def clear_credentials(self) -> None:
        self.kv.clear(CREDENTIAL_KEYS)

    # ---------------- pending authorization ------------------------------ #
    def save_pending(self, pending: PendingAuthorization) -> None:
        self.kv.set(
            {
                OAUTH_STATE_KEY: pending.csrf_token,
                OAUTH_DOMAIN_KEY: pending.domain_prefix,
                OAUTH_CREATED_KEY: str(pending.created_at),
                OAUTH_TTL_KEY: str(pending.ttl_seconds),
            }
        )

    def load_pending(self) -> PendingAuthorization | None:
        csrf_token = self.kv.get(OAUTH_STATE_KEY)
        domain_prefix = self.kv.get(OAUTH_DOMAIN_KEY)
        if not csrf_token or not domain_prefix:
            return None
        created_at = _to_int(self.kv.get(OAUTH_CREATED_KEY))
        ttl = _to_int(self.kv.get(OAUTH_TTL_KEY))
        if created_at is None:
            # unparseable timestamp: treat the handshake as already expired
            created_at, ttl = 0, 0
        return PendingAuthorization(
            csrf_token=csrf_token,
            domain_prefix=domain_prefix,
            created_at=created_at,
            ttl_seconds=ttl if ttl is not None else 600,
        )

    def clear_pending(self) -> None:
        self.kv.clear(PENDING_KEYS)

    def clear_all(self) -> None:
        self.kv.clear(CREDENTIAL_KEYS + PENDING_KEYS)
