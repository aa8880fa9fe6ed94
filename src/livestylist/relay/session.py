"""
RelaySession — bridges one client connection and one upstream model session.

    client ──audio/frame/control──▶ RelaySession ──audio/text──▶ upstream
       ▲                                │    │
       └──── transcript/audio/state ◀───┘    ├──▶ vision pipeline  (10s cooldown)
                                             └──▶ preview generator (5s cooldown)

Inbound client messages are dispatched in arrival order. Vision and
preview runs are spawned as background tasks so message handling never
waits on them; each is gated by an in-progress flag that stays set for a
fixed cooldown after the run finishes, success or failure. Triggers that
arrive while a flag is set are dropped, not queued.

Upstream events are translated to client events. Output transcription is
also fed to the trigger scanner: "Let me show you a soft pink lip look."
starts an agent-initiated preview from the latest body crop.

All state here belongs to one connection and is touched only from the
event loop.
"""

from __future__ import annotations

import asyncio
import base64
import binascii
import logging
import time
from typing import Any, Awaitable, Callable

from livestylist.agents.preview import PreviewGenerator
from livestylist.agents.prompts import build_edit_prompt
from livestylist.agents.vision import VISION_AGENTS, VisionPipeline, format_vision_results
from livestylist.core.config import RelayConfig
from livestylist.core.metrics import metrics
from livestylist.core.tasks import BackgroundTasks
from livestylist.core.timers import TimerHandle, Timers
from livestylist.relay import protocol
from livestylist.relay.protocol import (
    AiState,
    AudioMessage,
    ClientMessage,
    EndSessionMessage,
    FrameMessage,
    GeneratePreviewMessage,
    MuteMessage,
    PingMessage,
    PreviewTrigger,
    ProtocolError,
    UnmuteMessage,
)
from livestylist.relay.triggers import PreviewTriggerScanner
from livestylist.relay.upstream import UpstreamEvent, UpstreamEventType, UpstreamSession
from livestylist.session.manager import SessionManager
from livestylist.session.models import ActiveSession, EndReason, SessionTransport

logger = logging.getLogger(__name__)

GREETING_PROMPT = (
    "[Session started. Greet the user warmly and introduce yourself. "
    "Do NOT describe what you see or mention any clothing/appearance details yet. "
    "You have not received any visual data.]"
)

WRAP_UP_PROMPT = (
    "[System: The session ends in about {seconds} seconds. Start wrapping up and "
    "gently ask if the user has any final questions. Do not read this aloud.]"
)

PREVIEW_SHOWN_PROMPT = (
    "[System: A style preview image was just generated and shown to the user. "
    'Prompt: "{prompt}". You can reference it naturally, e.g. "As you can see in '
    'the preview...". Do not read this aloud.]'
)

NO_REFERENCE_IMAGE = "No image available yet. Please ensure the camera can see you."
PREVIEW_FAILED = "Could not generate preview. Please try again."
UPSTREAM_ERROR = "AI session error"

SummaryHook = Callable[[list[str]], Awaitable[None]]


class RelaySession:
    """Per-connection relay state and orchestration."""

    def __init__(
        self,
        session_id: str,
        device_id: str,
        transport: SessionTransport,
        upstream: UpstreamSession,
        manager: SessionManager,
        vision: VisionPipeline,
        preview: PreviewGenerator,
        relay_config: RelayConfig,
        timers: Timers | None = None,
        tasks: BackgroundTasks | None = None,
        on_summary: SummaryHook | None = None,
    ) -> None:
        self.session_id = session_id
        self.device_id = device_id
        self.transport = transport
        self.upstream = upstream
        self.manager = manager
        self.vision = vision
        self.preview = preview
        self.relay_config = relay_config
        self.timers = timers if timers is not None else Timers()
        self.tasks = tasks if tasks is not None else BackgroundTasks()
        self.on_summary = on_summary

        # Orchestration state
        self.ai_state = AiState.IDLE
        self.muted = False
        self.vision_in_progress = False
        self.vision_update_count = 0
        self.preview_in_progress = False
        self.latest_body_crop: str | None = None
        self.scanner = PreviewTriggerScanner(relay_config.min_style_description_length)
        self.session_log: list[str] = []
        self.closed = False

        self._vision_cooldown: TimerHandle | None = None
        self._preview_cooldown: TimerHandle | None = None
        self._message_count = 0

    # ─── Lifecycle ───────────────────────────────────────────────

    async def start(self) -> None:
        """Announce the relay to the client and ask the model for a greeting."""
        await self._send(protocol.session_started(self.session_id))
        await self._set_state(AiState.LISTENING)
        await self._inject(GREETING_PROMPT, turn_complete=True)
        logger.info(
            "Relay started for session %s",
            self.session_id,
            extra={"session_id": self.session_id, "device_id": self.device_id},
        )

    async def close(self) -> None:
        """Tear down: close upstream, stop cooldowns, hand the transcript to the summarizer."""
        if self.closed:
            return
        self.closed = True

        for handle in (self._vision_cooldown, self._preview_cooldown):
            if handle is not None:
                handle.cancel()
        self._vision_cooldown = None
        self._preview_cooldown = None

        try:
            await self.upstream.close()
        except Exception as e:
            logger.debug("Upstream close failed for %s: %s", self.session_id, e)

        if self.session_log and self.on_summary is not None:
            self.tasks.spawn(
                self.on_summary(list(self.session_log)),
                name=f"summary-{self.session_id}",
            )

        logger.info(
            "Relay closed for session %s (%d client messages, %d log entries, %d vision updates)",
            self.session_id,
            self._message_count,
            len(self.session_log),
            self.vision_update_count,
            extra={"session_id": self.session_id},
        )

    async def on_session_warning(self, session: ActiveSession) -> None:
        """Lifecycle warning hook: nudge the model to wrap up without forcing a reply."""
        seconds = max(0, round(session.expires_at - self.timers.now()))
        await self._inject(WRAP_UP_PROMPT.format(seconds=seconds), turn_complete=False)

    # ─── Inbound (client → relay) ────────────────────────────────

    async def handle_raw(self, raw: str | bytes) -> None:
        """Parse one client frame and dispatch it. Malformed frames are dropped."""
        self._message_count += 1
        try:
            message = protocol.parse_client_message(raw)
        except ProtocolError as e:
            metrics.inc("relay.dropped", labels={"reason": "malformed"})
            logger.warning(
                "Dropping malformed client message: %s",
                e,
                extra={"session_id": self.session_id},
            )
            return
        if self._message_count <= 3 or self._message_count % 50 == 0:
            logger.debug(
                "Client message #%d (%s) for session %s",
                self._message_count,
                message.type,
                self.session_id,
                extra={"session_id": self.session_id},
            )
        await self.dispatch(message)

    async def dispatch(self, message: ClientMessage) -> None:
        metrics.inc("relay.messages", labels={"type": message.type})

        if isinstance(message, AudioMessage):
            await self._on_audio(message)
        elif isinstance(message, FrameMessage):
            self._on_frame(message)
        elif isinstance(message, MuteMessage):
            self.muted = True
        elif isinstance(message, UnmuteMessage):
            self.muted = False
        elif isinstance(message, EndSessionMessage):
            await self._on_end_session(message)
        elif isinstance(message, GeneratePreviewMessage):
            await self._on_generate_preview(message)
        elif isinstance(message, PingMessage):
            await self._send(protocol.pong())

    async def _on_audio(self, message: AudioMessage) -> None:
        if self.muted or self.closed:
            return
        try:
            pcm = base64.b64decode(message.data, validate=True)
        except (binascii.Error, ValueError) as e:
            metrics.inc("relay.dropped", labels={"reason": "bad_audio"})
            logger.warning("Dropping undecodable audio chunk: %s", e)
            return
        if not pcm:
            return
        try:
            await self.upstream.send_audio(pcm, self.relay_config.input_sample_rate)
        except Exception as e:
            logger.warning(
                "Failed to forward audio upstream: %s",
                e,
                extra={"session_id": self.session_id},
            )

    def _on_frame(self, message: FrameMessage) -> None:
        if message.body_crop:
            self.latest_body_crop = message.body_crop

        if not message.complete:
            return
        if self.vision_in_progress:
            metrics.inc("relay.dropped", labels={"reason": "vision_busy"})
            logger.debug("Vision in progress, frame used only as reference image")
            return

        # Set before spawning so a frame arriving next sees the pass as running.
        self.vision_in_progress = True
        self.tasks.spawn(
            self._run_vision(message.eye_crop, message.mouth_crop, message.body_crop),
            name=f"vision-{self.session_id}",
        )

    async def _on_end_session(self, message: EndSessionMessage) -> None:
        if message.session_id and message.session_id != self.session_id:
            await self._send(protocol.error("Session ID mismatch"))
            return
        try:
            await self.manager.end_session(self.session_id, EndReason.MANUAL)
        except Exception as e:
            logger.error(
                "Error ending session %s: %s",
                self.session_id,
                e,
                extra={"session_id": self.session_id},
            )

    async def _on_generate_preview(self, message: GeneratePreviewMessage) -> None:
        if self.latest_body_crop is None:
            await self._send(protocol.preview_error(NO_REFERENCE_IMAGE, message.prompt))
            return
        full_prompt = (
            build_edit_prompt(message.prompt, message.category)
            if message.category
            else message.prompt
        )
        self._start_preview(message.prompt, full_prompt, PreviewTrigger.CLIENT)

    # ─── Vision ──────────────────────────────────────────────────

    async def _run_vision(self, eye_crop: str, mouth_crop: str, body_crop: str) -> None:
        started = time.monotonic()
        logger.info(
            "Starting vision pipeline (eye=%d, mouth=%d, body=%d bytes b64)",
            len(eye_crop),
            len(mouth_crop),
            len(body_crop),
            extra={"session_id": self.session_id},
        )
        await self._send(protocol.vision_active(list(VISION_AGENTS)))
        await self._set_state(AiState.ANALYZING)

        try:
            results = await asyncio.wait_for(
                self.vision.analyze(eye_crop, mouth_crop, body_crop),
                timeout=self.relay_config.side_effect_timeout_seconds,
            )
            self.vision_update_count += 1
            # Only the first update completes a turn so the model reacts to it
            # right away; later ones just refresh context.
            first = self.vision_update_count == 1
            text = format_vision_results(results)
            await self._inject(text, turn_complete=first)
            self.session_log.append(f"[Vision]: {text}")
            metrics.inc("relay.vision", labels={"status": "ok"})
            logger.info(
                "Vision results injected (update #%d)",
                self.vision_update_count,
                extra={
                    "session_id": self.session_id,
                    "duration_ms": round((time.monotonic() - started) * 1000),
                },
            )
        except asyncio.TimeoutError:
            metrics.inc("relay.vision", labels={"status": "timeout"})
            logger.error(
                "Vision pipeline timed out after %.0fs",
                self.relay_config.side_effect_timeout_seconds,
                extra={"session_id": self.session_id},
            )
        except Exception as e:
            metrics.inc("relay.vision", labels={"status": "error"})
            logger.error(
                "Vision pipeline failed: %s", e, extra={"session_id": self.session_id}
            )
        finally:
            metrics.observe("relay.vision_ms", (time.monotonic() - started) * 1000)
            await self._send(protocol.vision_active([]))
            if self.ai_state == AiState.ANALYZING:
                await self._set_state(AiState.LISTENING)
            self._schedule_vision_cooldown()

    def _schedule_vision_cooldown(self) -> None:
        if self.closed:
            return
        self._vision_cooldown = self.timers.call_later(
            self.relay_config.vision_cooldown_seconds, self._end_vision_cooldown
        )

    def _end_vision_cooldown(self) -> None:
        self._vision_cooldown = None
        self.vision_in_progress = False

    # ─── Preview ─────────────────────────────────────────────────

    def _start_preview(self, prompt: str, full_prompt: str, trigger: PreviewTrigger) -> None:
        if self.preview_in_progress:
            metrics.inc("relay.dropped", labels={"reason": "preview_busy"})
            logger.info(
                "Preview generation already in progress, skipping",
                extra={"session_id": self.session_id, "trigger": trigger.value},
            )
            return
        self.preview_in_progress = True
        self.tasks.spawn(
            self._run_preview(prompt, full_prompt, trigger),
            name=f"preview-{self.session_id}",
        )

    async def _run_preview(self, prompt: str, full_prompt: str, trigger: PreviewTrigger) -> None:
        started = time.monotonic()
        source_image = self.latest_body_crop
        await self._send(protocol.preview_generating(prompt))

        try:
            if source_image is None:
                raise RuntimeError("No reference image")
            result = await asyncio.wait_for(
                self.preview.generate(source_image, full_prompt),
                timeout=self.relay_config.side_effect_timeout_seconds,
            )
        except asyncio.TimeoutError:
            metrics.inc("relay.preview", labels={"status": "timeout", "trigger": trigger.value})
            logger.error(
                "Preview generation timed out",
                extra={"session_id": self.session_id, "trigger": trigger.value},
            )
            await self._send(protocol.preview_error(PREVIEW_FAILED, prompt))
        except Exception as e:
            metrics.inc("relay.preview", labels={"status": "error", "trigger": trigger.value})
            logger.error(
                "Preview generation failed: %s",
                e,
                extra={"session_id": self.session_id, "trigger": trigger.value},
            )
            await self._send(protocol.preview_error(PREVIEW_FAILED, prompt))
        else:
            await self._send(
                protocol.preview_image(
                    image=result.image,
                    mime_type=result.mime_type,
                    prompt=prompt,
                    trigger=trigger,
                    description=result.description,
                )
            )
            self.session_log.append(f"[Preview generated]: {prompt}")
            await self._inject(PREVIEW_SHOWN_PROMPT.format(prompt=prompt), turn_complete=False)
            metrics.inc("relay.preview", labels={"status": "ok", "trigger": trigger.value})
            logger.info(
                "Preview delivered",
                extra={
                    "session_id": self.session_id,
                    "trigger": trigger.value,
                    "duration_ms": round((time.monotonic() - started) * 1000),
                },
            )
        finally:
            metrics.observe("relay.preview_ms", (time.monotonic() - started) * 1000)
            self._schedule_preview_cooldown()

    def _schedule_preview_cooldown(self) -> None:
        if self.closed:
            return
        self._preview_cooldown = self.timers.call_later(
            self.relay_config.preview_cooldown_seconds, self._end_preview_cooldown
        )

    def _end_preview_cooldown(self) -> None:
        self._preview_cooldown = None
        self.preview_in_progress = False

    def _on_agent_trigger(self, description: str) -> None:
        if self.latest_body_crop is None:
            logger.warning(
                "Preview trigger matched but no body crop available",
                extra={"session_id": self.session_id},
            )
            return
        logger.info(
            "Agent triggered preview generation: %s",
            description,
            extra={"session_id": self.session_id, "trigger": PreviewTrigger.AGENT.value},
        )
        self._start_preview(description, build_edit_prompt(description), PreviewTrigger.AGENT)

    # ─── Outbound (upstream → client) ────────────────────────────

    async def run_upstream(self) -> None:
        """Pump upstream events to the client until the upstream stream ends."""
        async for event in self.upstream.events():
            if self.closed:
                break
            await self.handle_upstream_event(event)

    async def handle_upstream_event(self, event: UpstreamEvent) -> None:
        kind = event.type

        if kind == UpstreamEventType.AUDIO:
            await self._send(protocol.audio(base64.b64encode(event.data).decode("ascii")))
            if self.ai_state != AiState.SPEAKING:
                await self._set_state(AiState.SPEAKING)

        elif kind == UpstreamEventType.MODEL_TEXT:
            await self._send(protocol.transcript("output", event.text))

        elif kind == UpstreamEventType.OUTPUT_TRANSCRIPT:
            await self._send(protocol.transcript("output", event.text))
            self.session_log.append(f"[Stylist]: {event.text}")
            description = self.scanner.feed(event.text)
            if description:
                self._on_agent_trigger(description)

        elif kind == UpstreamEventType.INPUT_TRANSCRIPT:
            await self._send(protocol.transcript("input", event.text))
            self.session_log.append(f"[User]: {event.text}")

        elif kind == UpstreamEventType.TURN_COMPLETE:
            await self._set_state(AiState.LISTENING)
            await self._send(protocol.transcript("output", "", finished=True))
            description = self.scanner.flush()
            if description:
                self._on_agent_trigger(description)

        elif kind == UpstreamEventType.INTERRUPTED:
            await self._set_state(AiState.LISTENING)

        elif kind == UpstreamEventType.SETUP_COMPLETE:
            logger.info("Upstream setup complete", extra={"session_id": self.session_id})

        elif kind == UpstreamEventType.ERROR:
            metrics.inc("relay.upstream_errors")
            logger.error(
                "Upstream session error: %s",
                event.text,
                extra={"session_id": self.session_id},
            )
            await self._send(protocol.error(UPSTREAM_ERROR))

    # ─── Helpers ─────────────────────────────────────────────────

    async def _set_state(self, ai_state: AiState) -> None:
        self.ai_state = ai_state
        await self._send(protocol.state(ai_state))

    async def _inject(self, text: str, turn_complete: bool) -> None:
        if self.closed:
            return
        try:
            await self.upstream.send_text(text, turn_complete=turn_complete)
        except Exception as e:
            logger.warning(
                "Failed to inject context upstream: %s",
                e,
                extra={"session_id": self.session_id},
            )

    async def _send(self, event: dict[str, Any]) -> None:
        try:
            await self.transport.send(event)
        except Exception as e:
            logger.debug(
                "Failed to send %s to client for %s: %s",
                event.get("type"),
                self.session_id,
                e,
            )
