"""
Session Manager — lifecycle of timed live sessions.

    PENDING ──attach──▶ ACTIVE ──warning timer──▶ WARNED
       │                  │                          │
       └──────────────────┴── end / expiry / replace / shutdown ──▶ TERMINATED

Each session gets two timers when it starts: a warning at
SESSION_WARNING_SECONDS and an expiry at SESSION_DURATION_SECONDS. Both
are cancelled on every termination path, and both callbacks re-check the
registry before acting, so a timer racing a manual end is a no-op.

Ending a session unregisters it first, then notifies the attached
transport, then hands the completed record to the store as a supervised
background task. Store failures are logged and never keep a session
alive: the registry, not the store, decides what is active.
"""

from __future__ import annotations

import asyncio
import logging
import math
import uuid
from typing import Any, Protocol

from livestylist.core.config import SessionConfig
from livestylist.core.metrics import metrics
from livestylist.core.tasks import BackgroundTasks
from livestylist.core.timers import Timers
from livestylist.session.models import (
    ActiveSession,
    EndReason,
    EndResult,
    Occasion,
    SessionPhase,
    SessionRecordStatus,
    SessionTransport,
    SubscriptionTier,
    WarningHook,
)
from livestylist.session.registry import SessionRegistry

logger = logging.getLogger(__name__)


class SessionRecordWriter(Protocol):
    async def complete_session_record(
        self, session_id: str, duration_seconds: int, status: str
    ) -> None: ...


class SessionManager:
    """Creates, times, and tears down live sessions."""

    def __init__(
        self,
        registry: SessionRegistry,
        records: SessionRecordWriter | None,
        session_config: SessionConfig,
        timers: Timers | None = None,
        tasks: BackgroundTasks | None = None,
    ) -> None:
        self.registry = registry
        self.records = records
        self.session_config = session_config
        self.timers = timers if timers is not None else Timers()
        self.tasks = tasks if tasks is not None else BackgroundTasks()

    # ─── Lookups ─────────────────────────────────────────────────

    def get_session(self, session_id: str) -> ActiveSession | None:
        return self.registry.get(session_id)

    def get_session_by_device(self, device_id: str) -> ActiveSession | None:
        return self.registry.get_by_device(device_id)

    def active_count(self) -> int:
        return len(self.registry)

    # ─── Start ───────────────────────────────────────────────────

    def start_session(
        self,
        device_id: str,
        tier: SubscriptionTier | str,
        occasion: Occasion | str | None = None,
    ) -> ActiveSession:
        """Start a session for a device, or return the one it already has.

        Idempotent: an existing active session is returned unchanged and
        its timers are left alone.
        """
        existing = self.registry.get_by_device(device_id)
        if existing is not None:
            logger.info(
                "Returning existing active session %s for device %s",
                existing.session_id,
                device_id,
                extra={"session_id": existing.session_id, "device_id": device_id},
            )
            return existing

        cfg = self.session_config
        now = self.timers.now()
        session = ActiveSession(
            session_id=str(uuid.uuid4()),
            device_id=device_id,
            tier=SubscriptionTier(tier),
            started_at=now,
            expires_at=now + cfg.duration_seconds,
            occasion=Occasion(occasion) if occasion else None,
        )

        session_id = session.session_id
        session.warning_timer = self.timers.call_later(
            cfg.warning_seconds, lambda: self._on_warning(session_id)
        )
        session.expiry_timer = self.timers.call_later(
            cfg.duration_seconds, lambda: self._on_expiry(session_id)
        )

        self.registry.add(session)
        metrics.inc("session.started", labels={"tier": session.tier.value})
        logger.info(
            "Session started: %s (device=%s, tier=%s, expires_at=%.0f)",
            session_id,
            device_id,
            session.tier.value,
            session.expires_at,
            extra={"session_id": session_id, "device_id": device_id},
        )
        return session

    # ─── Transport ───────────────────────────────────────────────

    async def attach_transport(
        self,
        session_id: str,
        transport: SessionTransport,
        on_warning: WarningHook | None = None,
    ) -> bool:
        """Attach (or re-attach) a relay connection and announce the session on it."""
        session = self.registry.get(session_id)
        if session is None:
            return False

        session.transport = transport
        session.on_warning = on_warning
        if session.phase == SessionPhase.PENDING:
            session.phase = SessionPhase.ACTIVE

        await self._send(
            session,
            {
                "type": "session_started",
                "session_id": session_id,
                "expires_at": session.expires_at_ms,
            },
        )
        return True

    def detach_transport(self, session_id: str, transport: SessionTransport) -> None:
        """Forget a transport that disconnected, unless a newer one replaced it."""
        session = self.registry.get(session_id)
        if session is not None and session.transport is transport:
            session.transport = None
            session.on_warning = None

    # ─── End ─────────────────────────────────────────────────────

    async def replace_session(
        self,
        device_id: str,
        tier: SubscriptionTier | str,
        occasion: Occasion | str | None = None,
    ) -> ActiveSession:
        """End the device's current session (reason: replaced), then start a fresh one."""
        existing = self.registry.get_by_device(device_id)
        if existing is not None:
            logger.info(
                "Ending existing session %s before starting a new one",
                existing.session_id,
                extra={"session_id": existing.session_id, "device_id": device_id},
            )
            await self.end_session(existing.session_id, EndReason.REPLACED)
        return self.start_session(device_id, tier, occasion)

    async def end_session(
        self, session_id: str, reason: EndReason | str = EndReason.MANUAL
    ) -> EndResult | None:
        """End a session. Returns None if it was already gone."""
        ended = await self._end(session_id, reason)
        if ended is None:
            return None
        return ended[0]

    async def _end(
        self, session_id: str, reason: EndReason | str
    ) -> tuple[EndResult, asyncio.Task | None] | None:
        # Raises ValueError for an unknown reason while the session is still registered.
        reason_value = EndReason(reason).value

        # Unregister before the first await so concurrent ends see it gone.
        session = self.registry.remove(session_id)
        if session is None:
            return None

        session.cancel_timers()
        session.phase = SessionPhase.TERMINATED

        elapsed = self.timers.now() - session.started_at
        duration_seconds = int(math.floor(elapsed + 0.5))

        await self._send(
            session,
            {
                "type": "session_ended",
                "session_id": session_id,
                "duration_seconds": duration_seconds,
                "reason": reason_value,
            },
        )
        if session.transport is not None:
            try:
                await session.transport.close(1000, "Session ended")
            except Exception as e:
                logger.debug("Transport close failed for %s: %s", session_id, e)

        persist_task = None
        if self.records is not None:
            status = (
                SessionRecordStatus.EXPIRED
                if reason_value == EndReason.EXPIRED.value
                else SessionRecordStatus.COMPLETED
            )
            persist_task = self.tasks.spawn(
                self._persist(session_id, duration_seconds, status.value),
                name=f"persist-session-{session_id}",
            )

        metrics.inc("session.ended", labels={"reason": reason_value})
        logger.info(
            "Session ended: %s (duration=%ds, reason=%s)",
            session_id,
            duration_seconds,
            reason_value,
            extra={"session_id": session_id, "reason": reason_value},
        )
        return EndResult(session_id, duration_seconds, reason_value), persist_task

    async def _persist(self, session_id: str, duration_seconds: int, status: str) -> None:
        try:
            await self.records.complete_session_record(  # type: ignore[union-attr]
                session_id, duration_seconds, status
            )
        except Exception as e:
            logger.error(
                "Failed to update session record %s: %s",
                session_id,
                e,
                extra={"session_id": session_id},
            )

    async def shutdown_all(self) -> None:
        """End every session with reason server_shutdown and wait for the writes."""
        session_ids = self.registry.session_ids()
        logger.info("Shutting down %d active sessions", len(session_ids))

        writes: list[asyncio.Task] = []
        for session_id in session_ids:
            try:
                ended = await self._end(session_id, EndReason.SERVER_SHUTDOWN)
            except Exception as e:
                logger.error("Error ending session %s on shutdown: %s", session_id, e)
                continue
            if ended is not None and ended[1] is not None:
                writes.append(ended[1])

        if writes:
            await asyncio.gather(*writes, return_exceptions=True)

    # ─── Timer callbacks ─────────────────────────────────────────

    def _on_warning(self, session_id: str) -> None:
        session = self.registry.get(session_id)
        if session is None:
            return
        session.warning_timer = None
        session.phase = SessionPhase.WARNED
        logger.info(
            "Session ending soon: %s", session_id, extra={"session_id": session_id}
        )
        self.tasks.spawn(self._announce_warning(session), name=f"warn-{session_id}")

    async def _announce_warning(self, session: ActiveSession) -> None:
        await self._send(
            session,
            {
                "type": "session_ending_soon",
                "session_id": session.session_id,
                "seconds_remaining": self.session_config.seconds_after_warning,
            },
        )
        if session.on_warning is not None:
            await session.on_warning(session)

    def _on_expiry(self, session_id: str) -> None:
        session = self.registry.get(session_id)
        if session is None:
            return
        session.expiry_timer = None
        logger.info("Session expired: %s", session_id, extra={"session_id": session_id})
        self.tasks.spawn(self._expire(session), name=f"expire-{session_id}")

    async def _expire(self, session: ActiveSession) -> None:
        if session.session_id not in self.registry:
            return
        await self._send(
            session, {"type": "session_expired", "session_id": session.session_id}
        )
        await self.end_session(session.session_id, EndReason.EXPIRED)

    # ─── Helpers ─────────────────────────────────────────────────

    async def _send(self, session: ActiveSession, event: dict[str, Any]) -> None:
        if session.transport is None:
            return
        try:
            await session.transport.send(event)
        except Exception as e:
            logger.debug(
                "Failed to send %s to session %s: %s",
                event.get("type"),
                session.session_id,
                e,
            )
