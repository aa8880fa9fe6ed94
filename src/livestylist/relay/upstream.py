"""
Upstream Session — the boundary to the streaming conversational model.

The relay never talks to a model SDK directly. It drives an
UpstreamSession (connect, send audio, send text, close) and consumes a
stream of typed UpstreamEvents. GeminiLiveUpstream is the production
implementation; tests drive the relay with an in-memory fake.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import AsyncIterator


class UpstreamEventType(str, Enum):
    AUDIO = "audio"  # Inline PCM audio from the model
    MODEL_TEXT = "model_text"  # Text part of the model turn
    OUTPUT_TRANSCRIPT = "output_transcript"  # Transcription of what the model said
    INPUT_TRANSCRIPT = "input_transcript"  # Transcription of what the user said
    TURN_COMPLETE = "turn_complete"
    INTERRUPTED = "interrupted"
    SETUP_COMPLETE = "setup_complete"
    ERROR = "error"


@dataclass(frozen=True)
class UpstreamEvent:
    type: UpstreamEventType
    text: str = ""
    data: bytes = b""
    mime_type: str = ""

    @classmethod
    def audio(cls, data: bytes, mime_type: str = "audio/pcm;rate=24000") -> UpstreamEvent:
        return cls(type=UpstreamEventType.AUDIO, data=data, mime_type=mime_type)

    @classmethod
    def output_transcript(cls, text: str) -> UpstreamEvent:
        return cls(type=UpstreamEventType.OUTPUT_TRANSCRIPT, text=text)

    @classmethod
    def input_transcript(cls, text: str) -> UpstreamEvent:
        return cls(type=UpstreamEventType.INPUT_TRANSCRIPT, text=text)

    @classmethod
    def turn_complete(cls) -> UpstreamEvent:
        return cls(type=UpstreamEventType.TURN_COMPLETE)

    @classmethod
    def interrupted(cls) -> UpstreamEvent:
        return cls(type=UpstreamEventType.INTERRUPTED)

    @classmethod
    def error(cls, message: str) -> UpstreamEvent:
        return cls(type=UpstreamEventType.ERROR, text=message)


class UpstreamConnectError(RuntimeError):
    """The upstream session could not be established."""


class UpstreamSession(ABC):
    """A live, bidirectional model session for one relay connection."""

    @abstractmethod
    async def connect(self, system_instruction: str) -> None:
        """Open the session. Raises UpstreamConnectError on failure."""
        ...

    @abstractmethod
    async def send_audio(self, pcm: bytes, sample_rate: int = 16000) -> None:
        ...

    @abstractmethod
    async def send_text(self, text: str, turn_complete: bool) -> None:
        """Inject a user-role text turn into the conversation context."""
        ...

    @abstractmethod
    def events(self) -> AsyncIterator[UpstreamEvent]:
        """Server events until the session closes.

        A mid-session failure is delivered as a single ERROR event, after
        which the iterator ends.
        """
        ...

    @abstractmethod
    async def close(self) -> None:
        ...
