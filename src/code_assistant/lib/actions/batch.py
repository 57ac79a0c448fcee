"""Sequential batch execution of queued actions."""

from __future__ import annotations

__all__ = ["BatchItemResult", "BatchProgress", "BatchResult", "BatchRunner"]

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field

from code_assistant.lib.actions.executors import ActionExecutor
from code_assistant.lib.actions.types import QueuedAction
from code_assistant.lib.errors import failure_reason
from code_assistant.lib.notifications import Notifier

logger = logging.getLogger(__name__)

FILE_EDIT_DELAY_S = 0.1
DEFAULT_DELAY_S = 0.2


@dataclass
class BatchProgress:
    """Running counts for one batch.

    ``completed`` counts finished items of either outcome; ``failed`` is the
    subset that failed. ``current`` labels the item in flight.
    """

    total: int
    completed: int = 0
    failed: int = 0
    current: str | None = None

    @property
    def succeeded(self) -> int:
        return self.completed - self.failed


@dataclass(frozen=True)
class BatchItemResult:
    action_id: str
    label: str
    ok: bool
    summary: str = ""
    error: str | None = None


@dataclass
class BatchResult:
    items: list[BatchItemResult] = field(default_factory=list)

    @property
    def succeeded(self) -> list[BatchItemResult]:
        return [item for item in self.items if item.ok]

    @property
    def failed(self) -> list[BatchItemResult]:
        return [item for item in self.items if not item.ok]


class BatchRunner:
    """Run actions one at a time with a fixed pause between items.

    A failing item is marked ``failed`` with its reason and the batch moves
    on; a single summary notification is emitted at the end. When at least
    one file edit succeeded, ``on_changes_applied`` is awaited last.
    """

    def __init__(
        self,
        executor: ActionExecutor,
        notifier: Notifier,
        *,
        file_edit_delay: float = FILE_EDIT_DELAY_S,
        default_delay: float = DEFAULT_DELAY_S,
        on_progress: Callable[[BatchProgress], None] | None = None,
        on_changes_applied: Callable[[], Awaitable[None]] | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.executor = executor
        self.notifier = notifier
        self.file_edit_delay = file_edit_delay
        self.default_delay = default_delay
        self.on_progress = on_progress
        self.on_changes_applied = on_changes_applied
        self._sleep = sleep
        self.progress: BatchProgress | None = None

    async def __call__(self, actions: list[QueuedAction]) -> BatchResult:
        return await self.run(actions)

    def _delay_after(self, action: QueuedAction) -> float:
        if action.type == "file_edit":
            return self.file_edit_delay
        return self.default_delay

    def _report(self) -> None:
        if self.on_progress is not None and self.progress is not None:
            self.on_progress(self.progress)

    async def run(self, actions: list[QueuedAction]) -> BatchResult:
        result = BatchResult()
        if not actions:
            return result

        self.progress = BatchProgress(total=len(actions))
        self._report()
        changes_applied = False
        for index, action in enumerate(actions):
            self.progress.current = action.label
            action.status = "in_progress"
            action.error = None
            try:
                outcome = await self.executor.execute(action.data)
            except Exception as exc:
                reason = failure_reason(exc)
                action.status = "failed"
                action.error = reason
                self.progress.failed += 1
                logger.warning("Batch item %s failed: %s", action.label, reason)
                result.items.append(
                    BatchItemResult(
                        action_id=action.id,
                        label=action.label,
                        ok=False,
                        error=reason,
                    )
                )
            else:
                action.status = "completed"
                changes_applied = changes_applied or action.type == "file_edit"
                result.items.append(
                    BatchItemResult(
                        action_id=action.id,
                        label=action.label,
                        ok=True,
                        summary=outcome.summary,
                    )
                )
            self.progress.completed += 1
            self._report()
            if index < len(actions) - 1:
                await self._sleep(self._delay_after(action))

        self.progress.current = None
        self._report()
        self._summarize(result)
        if changes_applied and self.on_changes_applied is not None:
            await self.on_changes_applied()
        return result

    def _summarize(self, result: BatchResult) -> None:
        succeeded = len(result.succeeded)
        failed = len(result.failed)
        if failed == 0:
            self.notifier.notify(
                "All changes applied",
                f"Successfully applied {succeeded} action(s)",
            )
            return
        self.notifier.notify(
            "Batch processing complete",
            f"{succeeded} succeeded, {failed} failed",
            variant="destructive",
        )
