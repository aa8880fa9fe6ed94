"""
Live Relay Endpoint — /ws/live?session_id=...&device_id=...

Connection setup, in order:
  1. Validate query params and session ownership
  2. Load the user profile and recent session memories
  3. Build the stylist instruction and connect the upstream session
  4. Attach the socket to the lifecycle manager (timer events flow here)
  5. Run the client read loop while a side task pumps upstream events

Close codes:
    4000  missing session_id or device_id
    4001  session not found or already ended
    4003  session belongs to another device
    4004  user profile not found
    4005  user profile could not be loaded
    4006  upstream model session could not be established
    1000  normal end (session ended by the lifecycle manager)

An upstream failure after setup does not close the socket: the client
gets an error event and the session timers still decide when it ends.
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Callable

from fastapi import WebSocket, WebSocketDisconnect
from fastapi.websockets import WebSocketState

from livestylist.agents.coordinator import build_coordinator_instruction
from livestylist.agents.preview import PreviewGenerator
from livestylist.agents.vision import VisionPipeline
from livestylist.core.config import RelayConfig, SessionConfig
from livestylist.core.metrics import metrics
from livestylist.core.tasks import BackgroundTasks
from livestylist.core.timers import Timers
from livestylist.persistence.store import StylistStore
from livestylist.relay.session import RelaySession
from livestylist.relay.upstream import UpstreamConnectError, UpstreamSession
from livestylist.services.summary import SessionSummarizer
from livestylist.session.manager import SessionManager

logger = logging.getLogger(__name__)

CLOSE_MISSING_PARAMS = 4000
CLOSE_SESSION_NOT_FOUND = 4001
CLOSE_WRONG_DEVICE = 4003
CLOSE_NO_PROFILE = 4004
CLOSE_PROFILE_LOAD_FAILED = 4005
CLOSE_UPSTREAM_FAILED = 4006


class ClientConnection:
    """The SessionTransport for one accepted WebSocket."""

    def __init__(self, websocket: WebSocket, send_timeout: float = 5.0) -> None:
        self.websocket = websocket
        self.send_timeout = send_timeout
        self.closed = False

    async def send(self, event: dict[str, Any]) -> None:
        """Send a JSON event with timeout protection. Dropped if the socket is gone."""
        if self.closed or self.websocket.application_state != WebSocketState.CONNECTED:
            return
        try:
            await asyncio.wait_for(
                self.websocket.send_text(json.dumps(event)),
                timeout=self.send_timeout,
            )
        except asyncio.TimeoutError:
            logger.warning("WebSocket send timeout (%s)", event.get("type"))
        except Exception as e:
            logger.debug("WebSocket send skipped (%s): %s", event.get("type"), e)

    async def close(self, code: int = 1000, reason: str = "") -> None:
        if self.closed:
            return
        self.closed = True
        if self.websocket.application_state != WebSocketState.CONNECTED:
            return
        try:
            await self.websocket.close(code=code, reason=reason)
        except Exception as e:
            logger.debug("WebSocket close failed: %s", e)


class LiveRelay:
    """Wires one WebSocket into a RelaySession. Shared across connections."""

    def __init__(
        self,
        manager: SessionManager,
        store: StylistStore,
        upstream_factory: Callable[[], UpstreamSession],
        vision: VisionPipeline,
        preview: PreviewGenerator,
        summarizer: SessionSummarizer | None,
        relay_config: RelayConfig,
        session_config: SessionConfig,
        send_timeout: float = 5.0,
        timers: Timers | None = None,
        tasks: BackgroundTasks | None = None,
    ) -> None:
        self.manager = manager
        self.store = store
        self.upstream_factory = upstream_factory
        self.vision = vision
        self.preview = preview
        self.summarizer = summarizer
        self.relay_config = relay_config
        self.session_config = session_config
        self.send_timeout = send_timeout
        self.timers = timers if timers is not None else manager.timers
        self.tasks = tasks if tasks is not None else manager.tasks

    async def handle(
        self, websocket: WebSocket, session_id: str | None, device_id: str | None
    ) -> None:
        await websocket.accept()
        connection = ClientConnection(websocket, self.send_timeout)

        if not session_id or not device_id:
            await self._refuse(connection, CLOSE_MISSING_PARAMS, "Missing session_id or device_id query parameter")
            return

        session = self.manager.get_session(session_id)
        if session is None:
            await self._refuse(connection, CLOSE_SESSION_NOT_FOUND, "Session not found or expired")
            return
        if session.device_id != device_id:
            await self._refuse(connection, CLOSE_WRONG_DEVICE, "Session does not belong to this device")
            return

        log_extra = {"session_id": session_id, "device_id": device_id}

        try:
            profile = await self.store.get_user(device_id)
        except Exception as e:
            logger.error("Failed to load user profile: %s", e, extra=log_extra)
            await self._refuse(connection, CLOSE_PROFILE_LOAD_FAILED, "Failed to load user profile")
            return
        if profile is None:
            await self._refuse(connection, CLOSE_NO_PROFILE, "User profile not found")
            return

        memories = []
        try:
            memories = await self.store.get_recent_memories(
                device_id, limit=self.session_config.memory_context_limit
            )
        except Exception as e:
            logger.warning(
                "Failed to load session memories, continuing without: %s", e, extra=log_extra
            )

        instruction = build_coordinator_instruction(profile, memories, session.occasion)

        upstream = self.upstream_factory()
        try:
            await upstream.connect(instruction)
        except UpstreamConnectError as e:
            logger.error("Upstream connect failed: %s", e, extra=log_extra)
            await self._refuse(connection, CLOSE_UPSTREAM_FAILED, "Failed to connect to AI")
            return

        started_at = session.started_at
        occasion = session.occasion.value if session.occasion else None
        language = profile.language

        async def summarize(session_log: list[str]) -> None:
            if self.summarizer is None:
                return
            await self.summarizer.summarize_and_save(
                session_log,
                session_id=session_id,
                device_id=device_id,
                duration_seconds=round(self.timers.now() - started_at),
                occasion=occasion,
                language=language,
            )

        relay = RelaySession(
            session_id=session_id,
            device_id=device_id,
            transport=connection,
            upstream=upstream,
            manager=self.manager,
            vision=self.vision,
            preview=self.preview,
            relay_config=self.relay_config,
            timers=self.timers,
            tasks=self.tasks,
            on_summary=summarize,
        )

        attached = await self.manager.attach_transport(
            session_id, connection, on_warning=relay.on_session_warning
        )
        if not attached:
            await upstream.close()
            await self._refuse(connection, CLOSE_SESSION_NOT_FOUND, "Session not found or expired")
            return

        metrics.inc("relay.connections", labels={"status": "accepted"})
        logger.info("Live relay connected", extra=log_extra)

        pump = asyncio.create_task(relay.run_upstream(), name=f"upstream-{session_id}")
        try:
            await relay.start()
            await self._read_loop(websocket, connection, relay)
        except WebSocketDisconnect:
            logger.info("Live relay disconnected", extra=log_extra)
        except Exception as e:
            logger.error("Live relay error: %s", e, exc_info=True, extra=log_extra)
        finally:
            pump.cancel()
            await asyncio.gather(pump, return_exceptions=True)
            await relay.close()
            self.manager.detach_transport(session_id, connection)
            connection.closed = True
            logger.info("Live relay cleaned up", extra=log_extra)

    async def _read_loop(
        self, websocket: WebSocket, connection: ClientConnection, relay: RelaySession
    ) -> None:
        while not connection.closed:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                return
            raw = message.get("text")
            if raw is None:
                raw = message.get("bytes")
            if raw is None:
                continue
            await relay.handle_raw(raw)

    async def _refuse(self, connection: ClientConnection, code: int, reason: str) -> None:
        metrics.inc("relay.connections", labels={"status": f"refused_{code}"})
        logger.info("Refusing live relay connection: %s (%d)", reason, code)
        await connection.close(code, reason)
