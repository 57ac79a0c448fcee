"""One streamed chat turn: request, incremental parsing, dispatch, finalize.

``StreamController.send_message`` persists the user message and an empty
assistant placeholder, POSTs to ``/api/chat`` and reads the SSE response.
Every ``content`` delta is appended to the buffer, the placeholder is updated,
the buffer is re-parsed and newly detected directives are handed to the
``ActionDispatcher``. On ``done`` the final parse is written to the message
metadata once.

State machine::

    idle -> streaming <-> paused
    streaming | paused -> completed | cancelled | errored

``pause`` closes a gate that content deltas wait on; reading from the socket
continues and deltas are applied in order after ``resume``. ``cancel`` cancels
the task running ``send_message``; actions already executed are not undone.
"""

from __future__ import annotations

__all__ = [
    "CANCELLED_CONTENT",
    "CANCELLED_MARKER",
    "StreamController",
    "StreamSession",
    "StreamState",
]

import asyncio
import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from typing import Any, Literal

import httpx

from code_assistant.lib.actions.executors import error_reason
from code_assistant.lib.actions.policy import ActionDispatcher
from code_assistant.lib.directives.parser import DirectiveTracker, parse_directives
from code_assistant.lib.directives.types import Directive, ParsedDirectives
from code_assistant.lib.errors import StreamBusyError, StreamError, StreamTransportError
from code_assistant.lib.state import AppState, Message
from code_assistant.lib.stream.sse import SSEDecoder

logger = logging.getLogger(__name__)

StreamState = Literal["idle", "streaming", "paused", "completed", "cancelled", "errored"]

CANCELLED_MARKER = "[Request cancelled]"
CANCELLED_CONTENT = "Request cancelled."
ERROR_CONTENT_PREFIX = "Sorry, I encountered an error: "
_ACTIVE_STATES: tuple[StreamState, ...] = ("streaming", "paused")
_DEFAULT_TIMEOUT_S = 120.0

# Decoded event, a read failure, or ``None`` at the end of the body.
_QueueItem = dict[str, Any] | Exception | None


@dataclass
class StreamSession:
    """Transient state of the stream currently being read."""

    message_id: str
    buffer: str = ""
    metadata: dict[str, Any] = field(default_factory=dict)
    state: StreamState = "streaming"

    @property
    def is_streaming(self) -> bool:
        return self.state in _ACTIVE_STATES

    @property
    def is_paused(self) -> bool:
        return self.state == "paused"


class StreamController:
    """Drive chat turns against ``{api_base_url}/api/chat``."""

    def __init__(
        self,
        *,
        app_state: AppState,
        dispatcher: ActionDispatcher,
        api_base_url: str,
        client: httpx.AsyncClient | None = None,
        timeout: float = _DEFAULT_TIMEOUT_S,
        on_update: Callable[[Message], None] | None = None,
    ) -> None:
        self.app_state = app_state
        self.dispatcher = dispatcher
        self.api_base_url = api_base_url.rstrip("/")
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout)
        self._on_update = on_update
        self._gate = asyncio.Event()
        self._gate.set()
        self._task: asyncio.Task[Any] | None = None
        self._cancel_requested = False
        self.session: StreamSession | None = None

    @property
    def state(self) -> StreamState:
        return self.session.state if self.session is not None else "idle"

    @property
    def is_streaming(self) -> bool:
        return self.session is not None and self.session.is_streaming

    @property
    def is_paused(self) -> bool:
        return self.session is not None and self.session.is_paused

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    # ------------------------------------------------------------------
    # Controls
    # ------------------------------------------------------------------

    def pause(self) -> bool:
        """Hold further content deltas; return whether anything was paused."""
        if self.session is None or self.session.state != "streaming":
            return False
        self.session.state = "paused"
        self._gate.clear()
        logger.info("Stream paused")
        return True

    def resume(self) -> bool:
        if self.session is None or self.session.state != "paused":
            return False
        self.session.state = "streaming"
        self._gate.set()
        logger.info("Stream resumed")
        return True

    def cancel(self) -> bool:
        """Cancel the active stream; return whether one was running."""
        if not self.is_streaming or self._task is None:
            return False
        self._cancel_requested = True
        self._gate.set()
        self._task.cancel()
        logger.info("Stream cancellation requested")
        return True

    # ------------------------------------------------------------------
    # Sending
    # ------------------------------------------------------------------

    async def send_message(
        self,
        content: str,
        mentioned_files: Sequence[str] = (),
        system_prompt: str | None = None,
        agent_name: str | None = None,
    ) -> Message:
        """Run one chat turn and return the finished assistant message."""
        if self.is_streaming:
            msg = "a message is already streaming"
            raise StreamBusyError(msg)

        mentioned = list(mentioned_files)
        self.app_state.add_message(
            Message.create("user", content, mentioned_files=mentioned)
        )
        assistant = self.app_state.add_message(Message.create("assistant"))
        self.app_state.persist()

        session = StreamSession(message_id=assistant.id)
        self.session = session
        self._task = asyncio.current_task()
        self._cancel_requested = False
        self._gate.set()

        payload: dict[str, Any] = {
            "message": content,
            "files": self.app_state.resolve_files(mentioned),
        }
        if system_prompt:
            payload["systemPrompt"] = system_prompt
        if agent_name:
            payload["agentName"] = agent_name

        logger.info("Streaming reply %s", assistant.id)
        try:
            await self._stream(session, payload)
        except asyncio.CancelledError:
            if not self._cancel_requested:
                raise
            task = asyncio.current_task()
            if task is not None:
                task.uncancel()
            self._finish_cancelled(session)
        except StreamError as exc:
            self._finish_errored(session, str(exc))
        except Exception as exc:
            logger.exception("Unexpected failure while streaming %s", assistant.id)
            self._finish_errored(session, str(exc) or type(exc).__name__)
        finally:
            self._task = None
            self._gate.set()
            self.app_state.persist()

        message = self.app_state.get_message(assistant.id)
        assert message is not None
        return message

    async def _stream(self, session: StreamSession, payload: dict[str, Any]) -> None:
        tracker = DirectiveTracker()
        url = f"{self.api_base_url}/api/chat"
        try:
            async with self._client.stream("POST", url, json=payload) as response:
                if response.is_error:
                    await response.aread()
                    msg = f"Failed to send message: {error_reason(response)}"
                    raise StreamTransportError(msg)
                events: asyncio.Queue[_QueueItem] = asyncio.Queue()
                reader = asyncio.create_task(self._read_events(response, events))
                try:
                    while True:
                        item = await events.get()
                        if item is None:
                            break
                        if isinstance(item, Exception):
                            raise item
                        if await self._handle_event(session, tracker, item):
                            return
                finally:
                    reader.cancel()
                    await asyncio.wait({reader})
        except httpx.HTTPError as exc:
            raise StreamTransportError(str(exc) or type(exc).__name__) from exc
        msg = "stream ended before completion"
        raise StreamTransportError(msg)

    async def _read_events(
        self, response: httpx.Response, events: asyncio.Queue[_QueueItem]
    ) -> None:
        """Decode the response body into *events*, ending with ``None``.

        Reading never waits on the pause gate; decoded events queue up until
        they are applied.
        """
        decoder = SSEDecoder()
        try:
            async for chunk in response.aiter_text():
                for event in decoder.feed(chunk):
                    events.put_nowait(event)
            for event in decoder.flush():
                events.put_nowait(event)
        except Exception as exc:
            events.put_nowait(exc)
            return
        events.put_nowait(None)

    async def _handle_event(
        self,
        session: StreamSession,
        tracker: DirectiveTracker,
        event: dict[str, Any],
    ) -> bool:
        """Apply one decoded event; return ``True`` once the stream is done."""
        if event.get("error"):
            raise StreamTransportError(str(event["error"]))

        delta = event.get("content")
        if isinstance(delta, str) and delta:
            await self._gate.wait()
            await self._apply_delta(session, tracker, delta)

        metadata = event.get("metadata")
        if isinstance(metadata, dict):
            session.metadata.update(metadata)

        code_changes = event.get("codeChanges")
        if isinstance(code_changes, list):
            session.metadata["codeChanges"] = code_changes
            if not self.app_state.settings.auto_apply_changes:
                self.app_state.set_pending_changes(code_changes)

        if event.get("done"):
            await self._finish_completed(session)
            return True
        return False

    async def _apply_delta(
        self,
        session: StreamSession,
        tracker: DirectiveTracker,
        delta: str,
    ) -> None:
        session.buffer += delta
        self._update_message(session.message_id, content=session.buffer)
        snapshot = parse_directives(session.buffer)
        fresh = tracker.observe(snapshot)
        # Dispatched actions run to completion even if the stream is cancelled.
        await asyncio.shield(self._dispatch(fresh, snapshot, session.message_id))

    async def _dispatch(
        self,
        fresh: list[Directive],
        snapshot: ParsedDirectives,
        message_id: str,
    ) -> None:
        if fresh:
            await self.dispatcher.dispatch(fresh, message_id=message_id)
        await self.dispatcher.resolve_deferred(snapshot)

    # ------------------------------------------------------------------
    # Terminal states
    # ------------------------------------------------------------------

    async def _finish_completed(self, session: StreamSession) -> None:
        final = parse_directives(session.buffer)
        await asyncio.shield(self.dispatcher.finalize(final))
        metadata = {**session.metadata, **final.to_dict()}
        self._update_message(session.message_id, content=session.buffer, metadata=metadata)
        session.state = "completed"
        logger.info("Stream %s completed (%d chars)", session.message_id, len(session.buffer))

    def _finish_cancelled(self, session: StreamSession) -> None:
        self.dispatcher.discard_deferred()
        if session.buffer:
            content = f"{session.buffer}\n\n{CANCELLED_MARKER}"
        else:
            content = CANCELLED_CONTENT
        self._update_message(
            session.message_id,
            content=content,
            metadata={"error": "Request cancelled", "cancelled": True},
        )
        session.state = "cancelled"
        logger.info("Stream %s cancelled", session.message_id)

    def _finish_errored(self, session: StreamSession, reason: str) -> None:
        self.dispatcher.discard_deferred()
        metadata: dict[str, Any] = {"error": reason}
        if session.buffer:
            metadata["partialContent"] = session.buffer
        self._update_message(
            session.message_id,
            content=f"{ERROR_CONTENT_PREFIX}{reason}",
            metadata=metadata,
        )
        session.state = "errored"
        logger.warning("Stream %s failed: %s", session.message_id, reason)

    def _update_message(self, message_id: str, **changes: Any) -> None:
        message = self.app_state.update_message(message_id, **changes)
        if self._on_update is not None:
            self._on_update(message)
