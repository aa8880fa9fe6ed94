"""
Relay Protocol — the JSON wire format between the mobile client and the relay.

Client → relay messages are a discriminated union on "type", validated at
the boundary with pydantic. Anything that fails validation (bad JSON,
unknown type, missing field) raises ProtocolError; the relay logs it and
drops the message without closing the connection.

Relay → client events are plain dicts built by the helpers below.

Client sends:
    {"type": "audio", "data": "<base64 PCM16 mono 16kHz>"}
    {"type": "frame", "eye_crop": "...", "mouth_crop": "...", "body_crop": "..."}
    {"type": "mute"} / {"type": "unmute"}
    {"type": "end_session", "session_id": "<optional>"}
    {"type": "generate_preview", "prompt": "...", "category": "makeup"}
    {"type": "ping"}

Relay sends:
    session_started, state, vision_active, transcript, audio,
    preview_generating, preview_image, preview_error,
    session_ending_soon, session_expired, session_ended, error, pong
"""

from __future__ import annotations

import json
from enum import Enum
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, Field, TypeAdapter, ValidationError

PreviewCategory = Literal["hairstyle", "makeup", "accessory", "clothing", "full_look"]


class ProtocolError(ValueError):
    """A client message that does not match the wire protocol."""


class AiState(str, Enum):
    IDLE = "idle"
    LISTENING = "listening"
    THINKING = "thinking"
    SPEAKING = "speaking"
    ANALYZING = "analyzing"


class PreviewTrigger(str, Enum):
    AGENT = "agent"
    CLIENT = "client"


# ─── Inbound (client → relay) ────────────────────────────────────


class AudioMessage(BaseModel):
    type: Literal["audio"]
    data: str


class FrameMessage(BaseModel):
    type: Literal["frame"]
    # A frame may arrive with some crops missing (face partly out of view);
    # it still refreshes the reference image but cannot start a vision pass.
    eye_crop: str = ""
    mouth_crop: str = ""
    body_crop: str = ""

    @property
    def complete(self) -> bool:
        return bool(self.eye_crop and self.mouth_crop and self.body_crop)


class MuteMessage(BaseModel):
    type: Literal["mute"]


class UnmuteMessage(BaseModel):
    type: Literal["unmute"]


class EndSessionMessage(BaseModel):
    type: Literal["end_session"]
    session_id: str | None = None


class GeneratePreviewMessage(BaseModel):
    type: Literal["generate_preview"]
    prompt: str = Field(min_length=1, max_length=500)
    category: PreviewCategory | None = None


class PingMessage(BaseModel):
    type: Literal["ping"]


ClientMessage = Annotated[
    Union[
        AudioMessage,
        FrameMessage,
        MuteMessage,
        UnmuteMessage,
        EndSessionMessage,
        GeneratePreviewMessage,
        PingMessage,
    ],
    Field(discriminator="type"),
]

_client_message_adapter: TypeAdapter[ClientMessage] = TypeAdapter(ClientMessage)


def parse_client_message(raw: str | bytes) -> ClientMessage:
    """Parse and validate one client frame. Raises ProtocolError."""
    try:
        payload = json.loads(raw)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise ProtocolError(f"Invalid JSON: {e}") from e
    try:
        return _client_message_adapter.validate_python(payload)
    except ValidationError as e:
        raise ProtocolError(
            f"Invalid message: {e.error_count()} validation error(s)"
        ) from e


# ─── Outbound (relay → client) ───────────────────────────────────


def session_started(session_id: str) -> dict[str, Any]:
    return {"type": "session_started", "session_id": session_id}


def state(ai_state: AiState) -> dict[str, Any]:
    return {"type": "state", "ai_state": ai_state.value}


def vision_active(agents: list[str]) -> dict[str, Any]:
    return {"type": "vision_active", "agents": list(agents)}


def transcript(direction: str, text: str, finished: bool = False) -> dict[str, Any]:
    return {
        "type": "transcript",
        "direction": direction,
        "text": text,
        "finished": finished,
    }


def audio(data: str) -> dict[str, Any]:
    return {"type": "audio", "data": data}


def preview_generating(prompt: str) -> dict[str, Any]:
    return {"type": "preview_generating", "prompt": prompt}


def preview_image(
    image: str,
    mime_type: str,
    prompt: str,
    trigger: PreviewTrigger,
    description: str | None = None,
) -> dict[str, Any]:
    event: dict[str, Any] = {
        "type": "preview_image",
        "image": image,
        "mimeType": mime_type,
        "prompt": prompt,
        "trigger": trigger.value,
    }
    if description:
        event["description"] = description
    return event


def preview_error(message: str, prompt: str) -> dict[str, Any]:
    return {"type": "preview_error", "message": message, "prompt": prompt}


def error(message: str) -> dict[str, Any]:
    return {"type": "error", "message": message}


def pong() -> dict[str, Any]:
    return {"type": "pong"}
