"""User-visible notification channel.

Notifications are the terminal equivalent of UI toasts: short titled messages
about executed actions, batch summaries and tool recommendations. Every
notification is also written to the module logger so headless runs keep a
record.
"""

from __future__ import annotations

__all__ = ["Notification", "NotificationVariant", "Notifier"]

import logging
from collections import deque
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Literal

logger = logging.getLogger(__name__)

NotificationVariant = Literal["default", "destructive"]


@dataclass(frozen=True)
class Notification:
    """One user-visible notification."""

    title: str
    description: str = ""
    variant: NotificationVariant = "default"
    created_at: str = field(default_factory=lambda: datetime.now(UTC).isoformat())


class Notifier:
    """Collect notifications and forward them to an optional sink."""

    def __init__(
        self,
        *,
        sink: Callable[[Notification], None] | None = None,
        max_history: int = 100,
    ) -> None:
        self._sink = sink
        self._history: deque[Notification] = deque(maxlen=max(1, max_history))

    @property
    def history(self) -> list[Notification]:
        return list(self._history)

    def notify(
        self,
        title: str,
        description: str = "",
        *,
        variant: NotificationVariant = "default",
    ) -> Notification:
        notification = Notification(
            title=title,
            description=description,
            variant=variant,
        )
        self._history.append(notification)
        if variant == "destructive":
            logger.warning("%s: %s", title, description)
        else:
            logger.info("%s: %s", title, description)
        if self._sink is not None:
            self._sink(notification)
        return notification

    def clear(self) -> None:
        self._history.clear()
