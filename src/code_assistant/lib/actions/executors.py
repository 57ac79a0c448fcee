"""Action executors: one call per action variant against the collaborator API.

``HttpActionExecutor`` talks to the FastAPI collaborator endpoints served by
``code_assistant.server.app``. Any other object that satisfies the
``ActionExecutor`` protocol (an in-process fake in tests, for example) can be
used by the dispatcher and batch runner instead.
"""

from __future__ import annotations

__all__ = [
    "ActionExecutor",
    "ActionOutcome",
    "HttpActionExecutor",
    "error_reason",
]

import logging
from dataclasses import dataclass, field
from typing import Any, Protocol

import httpx

from code_assistant.lib.actions.types import ActionData
from code_assistant.lib.directives.types import (
    DeploymentConfig,
    FileEdit,
    PackageInstall,
    ShellCommand,
    ToolNudge,
    WorkflowConfig,
)
from code_assistant.lib.errors import UNKNOWN_ERROR, ActionExecutionError

logger = logging.getLogger(__name__)

_DEFAULT_TIMEOUT_S = 60.0


@dataclass(frozen=True)
class ActionOutcome:
    """Successful result of one executed action."""

    summary: str
    payload: dict[str, Any] = field(default_factory=dict)


class ActionExecutor(Protocol):
    """Run single actions, record tool nudges and restart the run workflow."""

    async def execute(self, data: ActionData) -> ActionOutcome: ...

    async def record_tool_nudge(self, nudge: ToolNudge) -> None: ...

    async def restart_workflow(self) -> dict[str, Any]: ...


def error_reason(response: httpx.Response) -> str:
    """Extract a human-readable failure reason from an error response."""
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict):
        for key in ("error", "detail"):
            value = body.get(key)
            if isinstance(value, str) and value.strip():
                return value.strip()
    return response.reason_phrase or UNKNOWN_ERROR


class HttpActionExecutor:
    """Execute actions by POSTing to the collaborator endpoints."""

    def __init__(
        self,
        base_url: str,
        *,
        client: httpx.AsyncClient | None = None,
        timeout: float = _DEFAULT_TIMEOUT_S,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout)

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def _post(self, path: str, payload: dict[str, Any]) -> dict[str, Any]:
        logger.debug("POST %s", path)
        try:
            response = await self._client.post(f"{self.base_url}{path}", json=payload)
        except httpx.HTTPError as exc:
            raise ActionExecutionError(str(exc) or type(exc).__name__) from exc
        if response.is_error:
            raise ActionExecutionError(
                error_reason(response), status_code=response.status_code
            )
        try:
            body = response.json()
        except ValueError:
            return {}
        return body if isinstance(body, dict) else {}

    async def execute(self, data: ActionData) -> ActionOutcome:
        """Dispatch *data* to the executor method for its variant."""
        if isinstance(data, FileEdit):
            return await self.apply_file_edit(data)
        if isinstance(data, ShellCommand):
            return await self.run_shell_command(data)
        if isinstance(data, PackageInstall):
            return await self.install_packages(data)
        if isinstance(data, WorkflowConfig):
            return await self.configure_workflow(data)
        if isinstance(data, DeploymentConfig):
            return await self.configure_deployment(data)
        msg = f"no executor for {type(data).__name__}"
        raise TypeError(msg)

    async def apply_file_edit(self, edit: FileEdit) -> ActionOutcome:
        payload = {
            "file": edit.file,
            "added": edit.added,
            "removed": edit.removed,
            "newContent": edit.new_content or "",
            "oldContent": edit.old_content or "",
            "changeType": edit.change_type,
        }
        body = await self._post("/api/file-operations/edit", payload)
        return ActionOutcome(summary=f"Updated {edit.file}", payload=body)

    async def run_shell_command(self, command: ShellCommand) -> ActionOutcome:
        payload: dict[str, Any] = {"command": command.command}
        if command.working_directory:
            payload["workingDirectory"] = command.working_directory
        body = await self._post("/api/shell/execute", payload)
        exit_code = body.get("exitCode", 0)
        output = str(body.get("output") or "").strip()
        summary = output[:100] if output else "Success"
        if exit_code:
            summary = f"exit code {exit_code}: {summary}"
        return ActionOutcome(summary=summary, payload=body)

    async def install_packages(self, install: PackageInstall) -> ActionOutcome:
        payload = {
            "language": install.language,
            "packageList": ", ".join(install.packages),
            "confirmed": True,
        }
        body = await self._post("/api/packages/install", payload)
        return ActionOutcome(
            summary=f"Installed {', '.join(install.packages)}", payload=body
        )

    async def configure_workflow(self, workflow: WorkflowConfig) -> ActionOutcome:
        payload = {
            "currentName": workflow.name,
            "newName": workflow.name,
            "commands": list(workflow.commands),
            "mode": workflow.mode,
            "setRunButton": workflow.set_run_button,
        }
        body = await self._post("/api/workflow/configure", payload)
        return ActionOutcome(
            summary=f"Workflow {workflow.name} has been configured", payload=body
        )

    async def configure_deployment(self, deployment: DeploymentConfig) -> ActionOutcome:
        payload: dict[str, Any] = {"runCommand": deployment.run_command}
        if deployment.build_command:
            payload["buildCommand"] = deployment.build_command
        body = await self._post("/api/deployment/configure", payload)
        return ActionOutcome(
            summary="Your deployment settings have been updated", payload=body
        )

    async def record_tool_nudge(self, nudge: ToolNudge) -> None:
        await self._post(
            "/api/workspace-tools/nudge",
            {"toolName": nudge.tool_name, "reason": nudge.reason},
        )

    async def restart_workflow(self) -> dict[str, Any]:
        return await self._post("/api/workflow/restart", {})
