"""Action pipeline: queue, policy, executors and batch runner.

- ``types``: ``QueuedAction`` and the closed ``ActionData`` union.
- ``queue``: the pending queue awaiting user confirmation.
- ``policy``: auto-execution decision table and ``ActionDispatcher``.
- ``executors``: one HTTP call per action variant.
- ``batch``: sequential confirmation runs with progress and a summary.
"""

from code_assistant.lib.actions.batch import (
    BatchItemResult,
    BatchProgress,
    BatchResult,
    BatchRunner,
)
from code_assistant.lib.actions.executors import (
    ActionExecutor,
    ActionOutcome,
    HttpActionExecutor,
)
from code_assistant.lib.actions.policy import ActionDispatcher, Disposition, decide
from code_assistant.lib.actions.queue import ActionQueue
from code_assistant.lib.actions.types import (
    ActionData,
    ActionStatus,
    ActionType,
    QueuedAction,
    action_type_for,
)

__all__ = [
    "ActionData",
    "ActionDispatcher",
    "ActionExecutor",
    "ActionOutcome",
    "ActionQueue",
    "ActionStatus",
    "ActionType",
    "BatchItemResult",
    "BatchProgress",
    "BatchResult",
    "BatchRunner",
    "Disposition",
    "HttpActionExecutor",
    "QueuedAction",
    "action_type_for",
    "decide",
]
