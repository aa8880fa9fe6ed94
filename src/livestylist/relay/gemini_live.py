"""
Gemini Live Upstream — UpstreamSession over the google-genai Live API.

One Live API session per relay connection: native-audio output with a
prebuilt voice, transcription enabled in both directions, and the
stylist persona as system instruction.

session.receive() yields messages until the end of one model turn, so
events() loops over it until the session is closed.
"""

from __future__ import annotations

import contextlib
import logging
from typing import Any, AsyncIterator

from google import genai
from google.genai import types

from livestylist.core.config import GeminiConfig
from livestylist.relay.upstream import (
    UpstreamConnectError,
    UpstreamEvent,
    UpstreamEventType,
    UpstreamSession,
)

logger = logging.getLogger(__name__)


class GeminiLiveUpstream(UpstreamSession):
    def __init__(self, gemini_config: GeminiConfig, client: genai.Client | None = None) -> None:
        self.gemini_config = gemini_config
        self._client = client
        self._exit_stack: contextlib.AsyncExitStack | None = None
        self._session: Any = None
        self._closed = False

    @property
    def client(self) -> genai.Client:
        if self._client is None:
            self._client = genai.Client(api_key=self.gemini_config.api_key)
        return self._client

    def _build_config(self, system_instruction: str) -> types.LiveConnectConfig:
        return types.LiveConnectConfig(
            response_modalities=[types.Modality.AUDIO],
            speech_config=types.SpeechConfig(
                voice_config=types.VoiceConfig(
                    prebuilt_voice_config=types.PrebuiltVoiceConfig(
                        voice_name=self.gemini_config.voice_name
                    )
                )
            ),
            system_instruction=types.Content(
                parts=[types.Part.from_text(text=system_instruction)]
            ),
            input_audio_transcription=types.AudioTranscriptionConfig(),
            output_audio_transcription=types.AudioTranscriptionConfig(),
        )

    async def connect(self, system_instruction: str) -> None:
        stack = contextlib.AsyncExitStack()
        try:
            self._session = await stack.enter_async_context(
                self.client.aio.live.connect(
                    model=self.gemini_config.live_model,
                    config=self._build_config(system_instruction),
                )
            )
        except Exception as e:
            await stack.aclose()
            raise UpstreamConnectError(f"Gemini Live connect failed: {e}") from e

        self._exit_stack = stack
        logger.info("Gemini Live session opened (model=%s)", self.gemini_config.live_model)

    async def send_audio(self, pcm: bytes, sample_rate: int = 16000) -> None:
        if self._session is None or self._closed:
            return
        await self._session.send_realtime_input(
            audio=types.Blob(data=pcm, mime_type=f"audio/pcm;rate={sample_rate}")
        )

    async def send_text(self, text: str, turn_complete: bool) -> None:
        if self._session is None or self._closed:
            return
        await self._session.send_client_content(
            turns=types.Content(role="user", parts=[types.Part.from_text(text=text)]),
            turn_complete=turn_complete,
        )

    async def events(self) -> AsyncIterator[UpstreamEvent]:
        if self._session is None:
            return
        try:
            while not self._closed:
                async for message in self._session.receive():
                    for event in _translate(message):
                        yield event
        except Exception as e:
            if self._closed:
                return
            logger.error("Gemini Live receive failed: %s", e)
            yield UpstreamEvent.error(str(e))

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        if self._exit_stack is not None:
            try:
                await self._exit_stack.aclose()
            except Exception as e:
                logger.debug("Error closing Gemini Live session: %s", e)
            self._exit_stack = None
        self._session = None


def _translate(message: Any) -> list[UpstreamEvent]:
    """One LiveServerMessage → zero or more UpstreamEvents, in arrival order."""
    events: list[UpstreamEvent] = []

    if getattr(message, "setup_complete", None) is not None:
        events.append(UpstreamEvent(type=UpstreamEventType.SETUP_COMPLETE))

    content = getattr(message, "server_content", None)
    if content is None:
        return events

    if content.interrupted:
        events.append(UpstreamEvent.interrupted())

    if content.model_turn and content.model_turn.parts:
        for part in content.model_turn.parts:
            if part.inline_data and part.inline_data.data:
                events.append(
                    UpstreamEvent.audio(
                        part.inline_data.data,
                        part.inline_data.mime_type or "audio/pcm;rate=24000",
                    )
                )
            elif part.text:
                events.append(UpstreamEvent(type=UpstreamEventType.MODEL_TEXT, text=part.text))

    if content.output_transcription and content.output_transcription.text:
        events.append(UpstreamEvent.output_transcript(content.output_transcription.text))

    if content.input_transcription and content.input_transcription.text:
        events.append(UpstreamEvent.input_transcript(content.input_transcription.text))

    if content.turn_complete:
        events.append(UpstreamEvent.turn_complete())

    return events
