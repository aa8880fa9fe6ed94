"""HTTP routers: device profile and session lifecycle."""

from livestylist.http.ratelimit import DeviceRateLimiter
from livestylist.http.sessions import create_session_router
from livestylist.http.users import create_user_router

__all__ = ["DeviceRateLimiter", "create_session_router", "create_user_router"]
