"""Live relay: wire protocol, trigger scanning, upstream sessions and the per-connection orchestrator."""

from livestylist.relay.protocol import AiState, PreviewTrigger, ProtocolError, parse_client_message
from livestylist.relay.session import RelaySession
from livestylist.relay.triggers import PreviewTriggerScanner
from livestylist.relay.upstream import (
    UpstreamConnectError,
    UpstreamEvent,
    UpstreamEventType,
    UpstreamSession,
)

__all__ = [
    "AiState",
    "PreviewTrigger",
    "ProtocolError",
    "parse_client_message",
    "RelaySession",
    "PreviewTriggerScanner",
    "UpstreamConnectError",
    "UpstreamEvent",
    "UpstreamEventType",
    "UpstreamSession",
]
