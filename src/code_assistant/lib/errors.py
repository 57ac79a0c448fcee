"""Exception types raised by the streaming pipeline and action executors."""

from __future__ import annotations

__all__ = [
    "ActionExecutionError",
    "StreamBusyError",
    "StreamError",
    "StreamTransportError",
    "failure_reason",
]

UNKNOWN_ERROR = "Unknown error"


class StreamError(RuntimeError):
    """Base class for chat stream failures."""


class StreamTransportError(StreamError):
    """The chat request failed or the stream ended without a ``done`` event."""


class StreamBusyError(StreamError):
    """A message was sent while another stream was still active."""


class ActionExecutionError(RuntimeError):
    """An executor collaborator rejected or failed one action.

    ``reason`` is the human-readable message reported by the collaborator, or
    ``"Unknown error"`` when none was available.
    """

    def __init__(self, reason: str | None = None, *, status_code: int | None = None):
        self.reason = (reason or "").strip() or UNKNOWN_ERROR
        self.status_code = status_code
        super().__init__(self.reason)


def failure_reason(exc: BaseException) -> str:
    """Return the reason to report for an action that raised *exc*."""
    if isinstance(exc, ActionExecutionError):
        return exc.reason
    return str(exc).strip() or type(exc).__name__
