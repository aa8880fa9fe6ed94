"""
Session API — start and end timed live sessions.

Endpoints:
    POST /start-session → Quota-checked session start (201), returns the relay URL
    POST /end-session   → End one of this device's sessions

start-session order: entitlement tier → profile (404) → daily quota
(429) → replace any running session for the device → write the session
record. The session record write failing does not undo the start.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from livestylist.errors import ForbiddenError, NotFoundError, QuotaExceededError
from livestylist.http.deps import require_device_id
from livestylist.session.models import EndReason, Occasion

if TYPE_CHECKING:
    from livestylist.core.config import SessionConfig
    from livestylist.http.ratelimit import DeviceRateLimiter
    from livestylist.persistence.store import StylistStore
    from livestylist.services.entitlements import EntitlementChecker
    from livestylist.session.manager import SessionManager

logger = logging.getLogger(__name__)


class StartSessionBody(BaseModel):
    occasion: Occasion | None = None


class EndSessionBody(BaseModel):
    session_id: str


def create_session_router(
    manager: "SessionManager",
    store: "StylistStore",
    entitlements: "EntitlementChecker",
    session_config: "SessionConfig",
    ws_url: str,
    limiter: "DeviceRateLimiter",
) -> APIRouter:
    """Create the session lifecycle router."""

    router = APIRouter(tags=["sessions"], dependencies=[Depends(limiter.general)])

    @router.post("/start-session", dependencies=[Depends(limiter.session_start)])
    async def start_session(
        body: StartSessionBody | None = None,
        device_id: str = Depends(require_device_id),
    ) -> JSONResponse:
        occasion = body.occasion if body else None
        tier = await entitlements.check_tier(device_id)

        user = await store.get_user(device_id)
        if user is None:
            raise NotFoundError("User not registered. Call POST /register first.")

        check = await store.increment_session_count(
            device_id, limit=session_config.daily_limit(tier.value)
        )
        if not check.allowed:
            logger.info(
                "Daily session limit reached (tier=%s)",
                tier.value,
                extra={"device_id": device_id},
            )
            raise QuotaExceededError(tier.value, check.sessions_used_today)

        session = await manager.replace_session(device_id, tier, occasion)

        try:
            await store.create_session_record(session.session_id, device_id, tier.value)
        except Exception as e:
            logger.error(
                "Failed to write session record: %s",
                e,
                extra={"session_id": session.session_id, "device_id": device_id},
            )

        logger.info(
            "Session started successfully (tier=%s)",
            tier.value,
            extra={"session_id": session.session_id, "device_id": device_id},
        )
        return JSONResponse(
            {
                "session_id": session.session_id,
                "session_expiry_time": session.expires_at_ms,
                "remaining_sessions_today": check.remaining,
                "ws_url": ws_url,
            },
            status_code=201,
        )

    @router.post("/end-session")
    async def end_session(
        body: EndSessionBody, device_id: str = Depends(require_device_id)
    ) -> JSONResponse:
        session = manager.get_session(body.session_id)
        if session is None:
            raise NotFoundError("Session not found or already ended")
        if session.device_id != device_id:
            raise ForbiddenError("Session does not belong to this device")

        result = await manager.end_session(body.session_id, EndReason.MANUAL)
        if result is None:
            raise NotFoundError("Session not found or already ended")

        return JSONResponse(
            {
                "session_id": result.session_id,
                "duration_seconds": result.duration_seconds,
                "reason": result.reason,
            }
        )

    return router
