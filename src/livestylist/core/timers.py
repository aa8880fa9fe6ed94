"""
Timers — wall clock plus delayed callbacks, behind one small seam.

Session warning/expiry timers and relay cooldowns are scheduled through
a Timers instance instead of touching the event loop directly, so tests
can swap in a manual clock and advance time deterministically.
"""

from __future__ import annotations

import asyncio
import time
from typing import Callable, Protocol


class TimerHandle(Protocol):
    def cancel(self) -> None: ...


class Timers:
    """Default timers: time.time() and the running loop's call_later."""

    def now(self) -> float:
        return time.time()

    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        return asyncio.get_running_loop().call_later(delay, callback)
