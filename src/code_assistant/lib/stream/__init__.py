"""Chat stream client: SSE framing and the per-turn stream controller."""

from code_assistant.lib.stream.controller import (
    StreamController,
    StreamSession,
    StreamState,
)
from code_assistant.lib.stream.sse import SSEDecoder, encode_event

__all__ = [
    "SSEDecoder",
    "StreamController",
    "StreamSession",
    "StreamState",
    "encode_event",
]
