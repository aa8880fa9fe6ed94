"""
User API — device registration and stylist profile.

Endpoints:
    POST /register        → Create a profile for this device (201, 409 if exists)
    GET  /profile         → Read the profile (404 if not registered)
    PUT  /profile         → Update name, favorite color, stylist name, language
    GET  /session-history → Recent post-session summaries, newest first
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import TYPE_CHECKING

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from livestylist.errors import NotFoundError
from livestylist.http.deps import require_device_id

if TYPE_CHECKING:
    from livestylist.http.ratelimit import DeviceRateLimiter
    from livestylist.persistence.store import StylistStore

logger = logging.getLogger(__name__)

NAME_PATTERN = r"^[a-zA-Z\s'-]+$"
COLOR_PATTERN = r"^[a-zA-Z\s]+$"
LANGUAGE_PATTERN = r"^[a-z]{2}$"


class RegisterBody(BaseModel):
    name: str = Field(min_length=1, max_length=50, pattern=NAME_PATTERN)
    favorite_color: str = Field(min_length=1, max_length=30, pattern=COLOR_PATTERN)
    stylist_name: str | None = Field(default=None, min_length=1, max_length=50, pattern=NAME_PATTERN)
    language: str | None = Field(default=None, pattern=LANGUAGE_PATTERN)


class UpdateProfileBody(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=50, pattern=NAME_PATTERN)
    favorite_color: str | None = Field(default=None, min_length=1, max_length=30, pattern=COLOR_PATTERN)
    stylist_name: str | None = Field(default=None, min_length=1, max_length=50, pattern=NAME_PATTERN)
    language: str | None = Field(default=None, pattern=LANGUAGE_PATTERN)


def _iso(ts: float) -> str:
    return datetime.fromtimestamp(ts, tz=timezone.utc).isoformat()


def create_user_router(
    store: "StylistStore",
    limiter: "DeviceRateLimiter",
    history_limit: int = 10,
) -> APIRouter:
    """Create the user/profile router."""

    router = APIRouter(tags=["users"], dependencies=[Depends(limiter.general)])

    @router.post("/register")
    async def register(
        body: RegisterBody, device_id: str = Depends(require_device_id)
    ) -> JSONResponse:
        user = await store.create_user(
            device_id,
            name=body.name,
            favorite_color=body.favorite_color,
            stylist_name=body.stylist_name,
            language=body.language,
        )
        return JSONResponse(
            {
                "device_id": device_id,
                "name": user.name,
                "favorite_color": user.favorite_color,
                "stylist_name": user.stylist_name,
                "language": user.language,
                "created_at": _iso(user.created_at),
            },
            status_code=201,
        )

    @router.get("/profile")
    async def get_profile(device_id: str = Depends(require_device_id)) -> JSONResponse:
        user = await store.get_user(device_id)
        if user is None:
            raise NotFoundError("User not registered")
        return JSONResponse(
            {
                "device_id": device_id,
                "name": user.name,
                "favorite_color": user.favorite_color,
                "stylist_name": user.stylist_name,
                "language": user.language,
                "sessions_used_today": user.sessions_used_today,
                "last_session_date": user.last_session_date,
                "created_at": _iso(user.created_at),
            }
        )

    @router.put("/profile")
    async def update_profile(
        body: UpdateProfileBody, device_id: str = Depends(require_device_id)
    ) -> JSONResponse:
        user = await store.update_user(device_id, body.model_dump(exclude_none=True))
        return JSONResponse(
            {
                "device_id": device_id,
                "name": user.name,
                "favorite_color": user.favorite_color,
                "stylist_name": user.stylist_name,
                "language": user.language,
            }
        )

    @router.get("/session-history")
    async def session_history(device_id: str = Depends(require_device_id)) -> JSONResponse:
        memories = await store.get_recent_memories(device_id, limit=history_limit)
        return JSONResponse(
            {
                "sessions": [
                    {**memory.to_dict(), "created_at": _iso(memory.created_at)}
                    for memory in memories
                ]
            }
        )

    return router
