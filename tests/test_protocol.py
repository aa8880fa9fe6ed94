"""Tests for the client/relay wire protocol."""

import json

import pytest

from livestylist.relay import protocol
from livestylist.relay.protocol import (
    AudioMessage,
    EndSessionMessage,
    FrameMessage,
    GeneratePreviewMessage,
    PingMessage,
    PreviewTrigger,
    ProtocolError,
    parse_client_message,
)


def test_parse_known_messages():
    assert isinstance(parse_client_message('{"type": "audio", "data": "AAAA"}'), AudioMessage)
    assert isinstance(parse_client_message('{"type": "ping"}'), PingMessage)

    end = parse_client_message('{"type": "end_session"}')
    assert isinstance(end, EndSessionMessage)
    assert end.session_id is None

    preview = parse_client_message(
        json.dumps({"type": "generate_preview", "prompt": "red lip", "category": "makeup"})
    )
    assert isinstance(preview, GeneratePreviewMessage)
    assert preview.category == "makeup"


def test_frame_completeness():
    full = parse_client_message(
        json.dumps({"type": "frame", "eye_crop": "a", "mouth_crop": "b", "body_crop": "c"})
    )
    partial = parse_client_message(json.dumps({"type": "frame", "body_crop": "c"}))

    assert isinstance(full, FrameMessage) and full.complete
    assert isinstance(partial, FrameMessage) and not partial.complete


@pytest.mark.parametrize(
    "raw",
    [
        "not json",
        '{"type": "dance"}',
        '{"data": "AAAA"}',
        '{"type": "audio"}',
        '{"type": "generate_preview", "prompt": ""}',
        json.dumps({"type": "generate_preview", "prompt": "x" * 501}),
        json.dumps({"type": "generate_preview", "prompt": "x", "category": "shoes"}),
    ],
)
def test_invalid_messages_raise(raw):
    with pytest.raises(ProtocolError):
        parse_client_message(raw)


def test_preview_image_event():
    event = protocol.preview_image("aW1n", "image/png", "bold lip", PreviewTrigger.AGENT)

    assert event == {
        "type": "preview_image",
        "image": "aW1n",
        "mimeType": "image/png",
        "prompt": "bold lip",
        "trigger": "agent",
    }

    with_description = protocol.preview_image(
        "aW1n", "image/png", "bold lip", PreviewTrigger.CLIENT, description="Done"
    )
    assert with_description["description"] == "Done"
    assert with_description["trigger"] == "client"


def test_transcript_event():
    assert protocol.transcript("output", "Hi", finished=True) == {
        "type": "transcript",
        "direction": "output",
        "text": "Hi",
        "finished": True,
    }
