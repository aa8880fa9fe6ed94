"""
Session Models — live consultation sessions and the records they leave behind.

ActiveSession is the in-memory, mutable unit the lifecycle manager owns:
it carries its own timer handles and the transport of the relay
connection currently attached to it. UserProfile, SessionMemory and
QuotaCheck are the persisted shapes read from and written to the store.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Protocol

if TYPE_CHECKING:
    from livestylist.core.timers import TimerHandle


class SubscriptionTier(str, Enum):
    FREE = "free"
    PREMIUM = "premium"


class Occasion(str, Enum):
    CASUAL = "casual"
    WORK = "work"
    DATE_NIGHT = "date_night"
    EVENT = "event"
    GOING_OUT = "going_out"
    SELFCARE = "selfcare"


class SessionPhase(str, Enum):
    """Lifecycle phase of an active session."""

    PENDING = "pending"  # Created, no transport attached yet
    ACTIVE = "active"  # Relay connection attached
    WARNED = "warned"  # Warning timer fired, still running
    TERMINATED = "terminated"  # Ended; no longer in the registry


class EndReason(str, Enum):
    MANUAL = "manual"
    EXPIRED = "expired"
    REPLACED = "replaced"
    SERVER_SHUTDOWN = "server_shutdown"


class SessionRecordStatus(str, Enum):
    ACTIVE = "active"
    COMPLETED = "completed"
    EXPIRED = "expired"


class SessionTransport(Protocol):
    """What the lifecycle manager needs from a client connection."""

    async def send(self, event: dict[str, Any]) -> None: ...

    async def close(self, code: int = 1000, reason: str = "") -> None: ...


WarningHook = Callable[["ActiveSession"], Awaitable[None]]


@dataclass
class ActiveSession:
    """One time-boxed live consultation. Timestamps are epoch seconds."""

    session_id: str
    device_id: str
    tier: SubscriptionTier
    started_at: float
    expires_at: float
    occasion: Occasion | None = None
    phase: SessionPhase = SessionPhase.PENDING
    transport: SessionTransport | None = None
    on_warning: WarningHook | None = None
    warning_timer: TimerHandle | None = field(default=None, repr=False)
    expiry_timer: TimerHandle | None = field(default=None, repr=False)

    @property
    def expires_at_ms(self) -> int:
        return int(self.expires_at * 1000)

    def cancel_timers(self) -> None:
        if self.warning_timer is not None:
            self.warning_timer.cancel()
            self.warning_timer = None
        if self.expiry_timer is not None:
            self.expiry_timer.cancel()
            self.expiry_timer = None


@dataclass(frozen=True)
class EndResult:
    session_id: str
    duration_seconds: int
    reason: str


@dataclass(frozen=True)
class UserProfile:
    device_id: str
    name: str
    favorite_color: str
    stylist_name: str | None = None
    language: str | None = None
    sessions_used_today: int = 0
    last_session_date: str = ""  # YYYY-MM-DD
    created_at: float = field(default_factory=time.time)

    def to_dict(self) -> dict[str, Any]:
        return {
            "device_id": self.device_id,
            "name": self.name,
            "favorite_color": self.favorite_color,
            "stylist_name": self.stylist_name,
            "language": self.language,
            "sessions_used_today": self.sessions_used_today,
            "last_session_date": self.last_session_date,
            "created_at": self.created_at,
        }


@dataclass(frozen=True)
class SessionMemory:
    """Post-session summary, read back as continuity context next time."""

    session_id: str
    summary: str
    tips: list[str] = field(default_factory=list)
    duration_seconds: int | None = None
    occasion: str | None = None
    created_at: float = field(default_factory=time.time)

    def to_dict(self) -> dict[str, Any]:
        return {
            "session_id": self.session_id,
            "summary": self.summary,
            "tips": list(self.tips),
            "duration_seconds": self.duration_seconds,
            "occasion": self.occasion,
            "created_at": self.created_at,
        }


@dataclass(frozen=True)
class QuotaCheck:
    allowed: bool
    sessions_used_today: int
    remaining: int
