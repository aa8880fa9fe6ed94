"""
Per-device request rate limiting.

Two moving windows, both keyed on the X-Device-ID header (client address
when the header is missing):
    general       → every user and session route
    session_start → POST /start-session only

Probes (/health, /ready, /metrics) are not limited.
"""

from __future__ import annotations

import logging

from fastapi import Request
from limits import parse
from limits.storage import MemoryStorage
from limits.strategies import MovingWindowRateLimiter

from livestylist.core.config import RateLimitConfig
from livestylist.core.metrics import metrics
from livestylist.errors import RateLimitedError

logger = logging.getLogger(__name__)

SESSION_START_MESSAGE = "Too many session requests. Please try again later."


def rate_limit_key(request: Request) -> str:
    device_id = request.headers.get("X-Device-ID")
    if device_id:
        return device_id
    if request.client is not None:
        return request.client.host
    return "unknown"


class DeviceRateLimiter:
    """In-process limiter shared by the routers of one app."""

    def __init__(self, cfg: RateLimitConfig) -> None:
        self.enabled = cfg.enabled
        self._storage = MemoryStorage()
        self._limiter = MovingWindowRateLimiter(self._storage)
        self._general = parse(cfg.general)
        self._session_start = parse(cfg.session_start)

    def _hit(self, scope: str, item, key: str, message: str | None = None) -> None:
        if not self.enabled:
            return
        if not self._limiter.hit(item, scope, key):
            metrics.inc("http.rate_limited", labels={"scope": scope})
            logger.info("Rate limit hit (%s)", scope, extra={"device_id": key})
            raise RateLimitedError(message) if message else RateLimitedError()

    async def general(self, request: Request) -> None:
        """Dependency for every API route."""
        self._hit("general", self._general, rate_limit_key(request))

    async def session_start(self, request: Request) -> None:
        """Dependency for POST /start-session."""
        self._hit("session_start", self._session_start, rate_limit_key(request), SESSION_START_MESSAGE)
