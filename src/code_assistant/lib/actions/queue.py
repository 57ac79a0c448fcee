"""Per-conversation pending action queue."""

from __future__ import annotations

__all__ = ["ActionQueue"]

import logging
from collections import Counter
from collections.abc import Awaitable, Callable, Iterable, Iterator
from typing import TypeVar

from code_assistant.lib.actions.types import ActionData, ActionStatus, QueuedAction

logger = logging.getLogger(__name__)

_R = TypeVar("_R")


class ActionQueue:
    """Ordered collection of ``QueuedAction`` items.

    All mutation happens synchronously on the event loop thread; batch runs
    observe the same ``QueuedAction`` objects and update their status in
    place.
    """

    def __init__(self) -> None:
        self._items: list[QueuedAction] = []

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[QueuedAction]:
        return iter(list(self._items))

    @property
    def items(self) -> list[QueuedAction]:
        return list(self._items)

    def add(self, data: ActionData) -> QueuedAction:
        action = QueuedAction(data=data)
        self._items.append(action)
        logger.debug("Queued %s action %s", action.type, action.id)
        return action

    def extend(self, items: Iterable[ActionData]) -> list[QueuedAction]:
        return [self.add(data) for data in items]

    def get(self, action_id: str) -> QueuedAction | None:
        return next((item for item in self._items if item.id == action_id), None)

    def update(
        self,
        action_id: str,
        *,
        status: ActionStatus,
        error: str | None = None,
    ) -> QueuedAction:
        action = self.get(action_id)
        if action is None:
            msg = f"unknown action: {action_id}"
            raise KeyError(msg)
        action.status = status
        action.error = error
        return action

    def remove(self, action_id: str) -> None:
        self._items = [item for item in self._items if item.id != action_id]

    def pending(self) -> list[QueuedAction]:
        return [item for item in self._items if item.status == "pending"]

    def counts(self) -> dict[ActionStatus, int]:
        counter = Counter(item.status for item in self._items)
        return {
            "pending": counter["pending"],
            "in_progress": counter["in_progress"],
            "completed": counter["completed"],
            "failed": counter["failed"],
        }

    def clear_completed(self) -> int:
        """Remove ``completed`` items only; return how many were removed."""
        before = len(self._items)
        self._items = [item for item in self._items if item.status != "completed"]
        return before - len(self._items)

    def clear_all(self) -> None:
        """Drop every item. In-flight items keep running but are forgotten."""
        in_flight = sum(1 for item in self._items if item.status == "in_progress")
        if in_flight:
            logger.info("Abandoning %d in-flight action(s)", in_flight)
        self._items = []

    async def run_pending(
        self,
        runner: Callable[[list[QueuedAction]], Awaitable[_R]],
    ) -> _R:
        """Pass the currently pending items to *runner* (usually a ``BatchRunner``)."""
        return await runner(self.pending())
