"""Queued action records.

A ``QueuedAction`` wraps one executable directive. Its ``type`` is derived
from the variant of ``data``, so the two can never disagree.
"""

from __future__ import annotations

__all__ = [
    "ActionData",
    "ActionStatus",
    "ActionType",
    "QueuedAction",
    "action_type_for",
    "describe_action",
]

import uuid
from dataclasses import dataclass, field
from typing import Any, Literal

from code_assistant.lib.directives.types import (
    DeploymentConfig,
    FileEdit,
    PackageInstall,
    ShellCommand,
    WorkflowConfig,
)

ActionType = Literal[
    "file_edit",
    "shell_command",
    "package_install",
    "workflow_config",
    "deployment_config",
]
ActionStatus = Literal["pending", "in_progress", "completed", "failed"]

ActionData = FileEdit | ShellCommand | PackageInstall | WorkflowConfig | DeploymentConfig


_ACTION_TYPES: dict[type, ActionType] = {
    FileEdit: "file_edit",
    ShellCommand: "shell_command",
    PackageInstall: "package_install",
    WorkflowConfig: "workflow_config",
    DeploymentConfig: "deployment_config",
}


def action_type_for(data: ActionData) -> ActionType:
    """Return the action type tag for a directive variant."""
    try:
        return _ACTION_TYPES[type(data)]
    except KeyError:
        msg = f"not an executable directive: {type(data).__name__}"
        raise TypeError(msg) from None


def describe_action(data: ActionData) -> str:
    """Short human label used for progress and notifications."""
    if isinstance(data, FileEdit):
        return data.file
    if isinstance(data, ShellCommand):
        return data.command
    if isinstance(data, PackageInstall):
        return f"{data.language}: {', '.join(data.packages)}"
    if isinstance(data, WorkflowConfig):
        return f"workflow {data.name}"
    if isinstance(data, DeploymentConfig):
        return f"deployment {data.run_command}"
    msg = f"not an executable directive: {type(data).__name__}"
    raise TypeError(msg)


@dataclass
class QueuedAction:
    """One action awaiting (or having undergone) execution."""

    data: ActionData
    id: str = field(default_factory=lambda: f"action-{uuid.uuid4().hex}")
    status: ActionStatus = "pending"
    error: str | None = None

    @property
    def type(self) -> ActionType:
        return action_type_for(self.data)

    @property
    def label(self) -> str:
        return describe_action(self.data)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "id": self.id,
            "type": self.type,
            "data": self.data.to_dict(),
            "status": self.status,
        }
        if self.error is not None:
            data["error"] = self.error
        return data
