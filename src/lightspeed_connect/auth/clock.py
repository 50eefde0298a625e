"""Injectable time source; token expiry is kept in epoch milliseconds."""

from __future__ import annotations

import time
from typing import Protocol, runtime_checkable


@runtime_checkable
class Clock(Protocol):
    def __call__(self) -> float: ...


def default_clock() -> float:
    return time.time()


def now_ms(clock: Clock = default_clock) -> int:
    """Return the clock reading as integer epoch milliseconds."""
    return int(clock() * 1000)
