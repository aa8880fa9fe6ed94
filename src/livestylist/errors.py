"""
Domain errors — raised by the store and services, mapped to HTTP by main.py.
"""

from __future__ import annotations


class StylistError(Exception):
    """Base class for errors with a stable machine-readable code."""

    code = "internal_error"
    status_code = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {"error": self.code, "message": self.message}


class NotFoundError(StylistError):
    code = "not_found"
    status_code = 404


class ConflictError(StylistError):
    code = "conflict"
    status_code = 409


class ForbiddenError(StylistError):
    code = "forbidden"
    status_code = 403


class QuotaExceededError(StylistError):
    """Daily session limit reached. Carries the count so clients can say 'come back tomorrow'."""

    code = "session_limit_exceeded"
    status_code = 429

    def __init__(self, tier: str, sessions_used_today: int) -> None:
        super().__init__(f"Daily session limit reached for {tier} tier")
        self.tier = tier
        self.sessions_used_today = sessions_used_today

    def to_dict(self) -> dict:
        return {
            **super().to_dict(),
            "sessions_used_today": self.sessions_used_today,
            "remaining_sessions_today": 0,
        }


class InvalidDeviceIdError(StylistError):
    code = "invalid_device_id"
    status_code = 400

    def __init__(self) -> None:
        super().__init__("Missing or invalid X-Device-ID header. Must be a valid UUID.")


class RateLimitedError(StylistError):
    code = "rate_limit_exceeded"
    status_code = 429

    def __init__(self, message: str = "Too many requests. Please try again later.") -> None:
        super().__init__(message)
