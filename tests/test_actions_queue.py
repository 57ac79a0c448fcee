"""Tests for code_assistant.lib.actions.queue and actions.types."""

from __future__ import annotations

import asyncio

import pytest

from code_assistant.lib.actions.queue import ActionQueue
from code_assistant.lib.actions.types import (
    QueuedAction,
    action_type_for,
    describe_action,
)
from code_assistant.lib.directives.types import (
    DeploymentConfig,
    FileEdit,
    PackageInstall,
    ShellCommand,
    WorkflowConfig,
)


def _shell(command: str = "ls") -> ShellCommand:
    return ShellCommand(command=command, is_dangerous=False)


# ---------------------------------------------------------------------------
# Action records
# ---------------------------------------------------------------------------


class TestActionTypes:
    @pytest.mark.parametrize(
        ("data", "action_type", "label"),
        [
            (FileEdit(file="a.py", new_content="x"), "file_edit", "a.py"),
            (_shell("npm test"), "shell_command", "npm test"),
            (
                PackageInstall(language="nodejs", packages=("lodash", "axios")),
                "package_install",
                "nodejs: lodash, axios",
            ),
            (
                WorkflowConfig(name="Run", commands=("npm start",)),
                "workflow_config",
                "workflow Run",
            ),
            (
                DeploymentConfig(run_command="npm start"),
                "deployment_config",
                "deployment npm start",
            ),
        ],
    )
    def test_type_and_label(self, data, action_type: str, label: str) -> None:
        assert action_type_for(data) == action_type
        assert describe_action(data) == label
        action = QueuedAction(data=data)
        assert action.type == action_type
        assert action.label == label

    def test_to_dict(self) -> None:
        action = QueuedAction(data=_shell(), status="failed", error="boom")
        data = action.to_dict()
        assert data["type"] == "shell_command"
        assert data["data"] == {"command": "ls", "isDangerous": False}
        assert data["status"] == "failed"
        assert data["error"] == "boom"
        assert data["id"].startswith("action-")


# ---------------------------------------------------------------------------
# ActionQueue
# ---------------------------------------------------------------------------


class TestActionQueue:
    def test_add_preserves_order(self) -> None:
        queue = ActionQueue()
        added = queue.extend([_shell("a"), _shell("b"), _shell("c")])
        assert [item.id for item in queue] == [item.id for item in added]
        assert len(queue) == 3
        assert all(item.status == "pending" for item in queue.items)

    def test_ids_are_unique(self) -> None:
        queue = ActionQueue()
        queue.extend([_shell("same")] * 20)
        assert len({item.id for item in queue}) == 20

    def test_update_and_counts(self) -> None:
        queue = ActionQueue()
        first, second, _ = queue.extend([_shell("a"), _shell("b"), _shell("c")])
        queue.update(first.id, status="completed")
        queue.update(second.id, status="failed", error="nope")
        assert queue.get(second.id).error == "nope"
        assert queue.counts() == {
            "pending": 1,
            "in_progress": 0,
            "completed": 1,
            "failed": 1,
        }
        assert [item.label for item in queue.pending()] == ["c"]

    def test_update_unknown(self) -> None:
        with pytest.raises(KeyError, match="unknown action"):
            ActionQueue().update("action-missing", status="completed")

    def test_clear_completed_keeps_failed_and_pending(self) -> None:
        queue = ActionQueue()
        first, second, _ = queue.extend([_shell("a"), _shell("b"), _shell("c")])
        queue.update(first.id, status="completed")
        queue.update(second.id, status="failed")
        assert queue.clear_completed() == 1
        assert [item.label for item in queue] == ["b", "c"]

    def test_remove_and_clear_all(self) -> None:
        queue = ActionQueue()
        first, second = queue.extend([_shell("a"), _shell("b")])
        queue.remove(first.id)
        assert [item.id for item in queue] == [second.id]
        queue.update(second.id, status="in_progress")
        queue.clear_all()
        assert len(queue) == 0

    def test_run_pending_passes_pending_items(self) -> None:
        queue = ActionQueue()
        first, second = queue.extend([_shell("a"), _shell("b")])
        queue.update(first.id, status="completed")
        seen: list[list[str]] = []

        async def runner(items: list[QueuedAction]) -> int:
            seen.append([item.id for item in items])
            return len(items)

        assert asyncio.run(queue.run_pending(runner)) == 1
        assert seen == [[second.id]]
