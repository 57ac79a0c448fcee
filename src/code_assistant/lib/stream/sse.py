"""Server-sent-event framing for the chat stream.

Only ``data: <json>`` lines carry events. Lines may be split across network
chunks at any byte, so ``SSEDecoder`` keeps the trailing partial line until
its newline arrives. Anything that is not a ``data:`` line, or whose payload
is not a JSON object, is skipped.
"""

from __future__ import annotations

__all__ = ["SSEDecoder", "encode_event"]

import json
import logging
from collections.abc import Iterator
from typing import Any

logger = logging.getLogger(__name__)

_DATA_PREFIX = "data: "


def encode_event(event: dict[str, Any]) -> str:
    """Frame one event as ``data: <json>`` followed by a blank line."""
    return f"{_DATA_PREFIX}{json.dumps(event)}\n\n"


class SSEDecoder:
    """Incremental decoder turning text chunks into event dicts."""

    def __init__(self) -> None:
        self._pending = ""

    def feed(self, chunk: str) -> Iterator[dict[str, Any]]:
        """Yield every complete event contained in *chunk* plus carried text."""
        self._pending += chunk
        *lines, self._pending = self._pending.split("\n")
        for line in lines:
            event = self._decode_line(line)
            if event is not None:
                yield event

    def flush(self) -> Iterator[dict[str, Any]]:
        """Decode a final line that arrived without a trailing newline."""
        line, self._pending = self._pending, ""
        event = self._decode_line(line)
        if event is not None:
            yield event

    @staticmethod
    def _decode_line(line: str) -> dict[str, Any] | None:
        line = line.rstrip("\r")
        if not line.startswith(_DATA_PREFIX):
            return None
        payload = line[len(_DATA_PREFIX) :]
        try:
            event = json.loads(payload)
        except json.JSONDecodeError:
            logger.debug("Skipping malformed SSE line: %r", payload[:200])
            return None
        if not isinstance(event, dict):
            logger.debug("Skipping non-object SSE payload: %r", payload[:200])
            return None
        return event
