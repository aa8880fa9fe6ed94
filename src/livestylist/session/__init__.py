"""
Session lifecycle — timed live sessions keyed by session and device.

Key components:
- SessionRegistry: in-memory index of active sessions
- SessionManager: start / attach / warn / expire / end / shutdown
"""

from livestylist.session.manager import SessionManager
from livestylist.session.models import (
    ActiveSession,
    EndReason,
    EndResult,
    Occasion,
    SessionPhase,
    SubscriptionTier,
)
from livestylist.session.registry import SessionRegistry

__all__ = [
    "ActiveSession",
    "EndReason",
    "EndResult",
    "Occasion",
    "SessionPhase",
    "SubscriptionTier",
    "SessionRegistry",
    "SessionManager",
]
