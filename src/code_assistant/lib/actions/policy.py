"""Auto-execution policy and dispatch of freshly detected directives.

``decide`` is the pure decision table. ``ActionDispatcher`` applies it to the
directives a ``DirectiveTracker`` reports during a stream:

- ``execute``: run the single action now and report the result as a
  notification. Failures are reported, never raised.
- ``queue``: append a ``QueuedAction`` to the pending queue for later batch
  confirmation.
- ``notify``: surface a tool recommendation.
- ``ignore``: informational directives (RAG source links).

Dangerous shell commands are always queued, whatever the settings say.
"""

from __future__ import annotations

__all__ = ["ActionDispatcher", "Disposition", "EditRequest", "decide"]

import logging
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Literal

from code_assistant.lib.actions.executors import ActionExecutor
from code_assistant.lib.actions.queue import ActionQueue
from code_assistant.lib.actions.types import ActionData, describe_action
from code_assistant.lib.directives.types import (
    DeploymentConfig,
    Directive,
    FileEdit,
    PackageInstall,
    ParsedDirectives,
    RAGSourceRef,
    ShellCommand,
    ToolNudge,
    WorkflowConfig,
)
from code_assistant.lib.errors import failure_reason
from code_assistant.lib.notifications import Notifier
from code_assistant.lib.state import AppState, Settings

logger = logging.getLogger(__name__)

Disposition = Literal["execute", "queue", "notify", "ignore"]

_SUCCESS_TITLES: dict[type, str] = {
    FileEdit: "Change applied",
    ShellCommand: "Command executed",
    PackageInstall: "Packages installed",
    WorkflowConfig: "Workflow configured",
    DeploymentConfig: "Deployment configured",
}
_FAILURE_TITLES: dict[type, str] = {
    FileEdit: "Failed to apply change",
    ShellCommand: "Command failed",
    PackageInstall: "Installation failed",
    WorkflowConfig: "Configuration failed",
    DeploymentConfig: "Configuration failed",
}


def decide(directive: Directive, settings: Settings) -> Disposition:
    """Return what to do with a newly detected directive."""
    if isinstance(directive, ToolNudge):
        return "notify"
    if isinstance(directive, RAGSourceRef):
        return "ignore"
    if isinstance(directive, ShellCommand) and directive.is_dangerous:
        return "queue"
    if isinstance(directive, FileEdit) and not directive.has_content:
        return "queue"
    return "execute" if settings.auto_apply_changes else "queue"


@dataclass(frozen=True)
class EditRequest:
    """Advanced-mode record of directives proposed by one message."""

    message_id: str | None
    file_edits: tuple[str, ...] = ()
    shell_commands: tuple[str, ...] = ()
    created_at: str = field(default_factory=lambda: datetime.now(UTC).isoformat())


class ActionDispatcher:
    """Route new directives to the executor, the queue or the notifier."""

    def __init__(
        self,
        *,
        state: AppState,
        queue: ActionQueue,
        executor: ActionExecutor,
        notifier: Notifier,
    ) -> None:
        self.state = state
        self.queue = queue
        self.executor = executor
        self.notifier = notifier
        self.edit_requests: list[EditRequest] = []
        # File edits detected before their body streamed, keyed by path.
        self._deferred: dict[str, FileEdit] = {}

    @property
    def settings(self) -> Settings:
        return self.state.settings

    async def dispatch(
        self,
        directives: list[Directive],
        *,
        message_id: str | None = None,
    ) -> None:
        if self.settings.mode == "advanced":
            self._track_edit_request(directives, message_id)
        for directive in directives:
            await self.dispatch_one(directive)

    async def dispatch_one(self, directive: Directive) -> Disposition | None:
        """Apply the policy to one directive.

        Returns ``None`` for a file edit whose body has not streamed yet; it is
        held and dispatched again by ``resolve_deferred`` or ``finalize``.
        """
        if isinstance(directive, FileEdit) and not directive.has_content:
            self._deferred[directive.file] = directive
            logger.debug("Deferring file edit %s until its body arrives", directive.file)
            return None

        disposition = decide(directive, self.settings)
        if isinstance(directive, ToolNudge):
            await self._notify_tool(directive)
        elif isinstance(directive, RAGSourceRef):
            pass
        elif disposition == "execute":
            await self.execute(directive)
        else:
            self.queue.add(directive)
        return disposition

    async def resolve_deferred(self, snapshot: ParsedDirectives) -> None:
        """Dispatch deferred file edits whose content is present in *snapshot*."""
        if not self._deferred:
            return
        for edit in snapshot.file_edits:
            if edit.file in self._deferred and edit.has_content:
                del self._deferred[edit.file]
                await self.dispatch_one(edit)

    async def finalize(self, snapshot: ParsedDirectives) -> None:
        """Resolve what can be resolved and queue the remaining deferred edits."""
        await self.resolve_deferred(snapshot)
        for edit in self._deferred.values():
            self.queue.add(edit)
        self._deferred.clear()

    def discard_deferred(self) -> None:
        self._deferred.clear()

    async def execute(self, data: ActionData) -> bool:
        """Run one action immediately and report the outcome; return success."""
        label = describe_action(data)
        try:
            outcome = await self.executor.execute(data)
        except Exception as exc:
            reason = failure_reason(exc)
            logger.warning("Action %s failed: %s", label, reason)
            self.notifier.notify(_FAILURE_TITLES[type(data)], reason, variant="destructive")
            return False
        logger.info("Executed %s", label)
        self.notifier.notify(_SUCCESS_TITLES[type(data)], outcome.summary)
        if isinstance(data, FileEdit):
            await self.restart_workflow()
        return True

    async def restart_workflow(self) -> None:
        """Restart the run workflow after applied changes, when enabled."""
        if not self.settings.auto_restart_workflow:
            return
        try:
            body = await self.executor.restart_workflow()
        except Exception as exc:
            logger.warning("Failed to restart workflow: %s", failure_reason(exc))
            return
        logger.info("Workflow restart requested: %s", body.get("workflow") or "none configured")

    async def _notify_tool(self, directive: ToolNudge) -> None:
        self.notifier.notify(
            "Tool Recommendation",
            f"Consider using {directive.tool_name}: {directive.reason}",
        )
        try:
            await self.executor.record_tool_nudge(directive)
        except Exception as exc:
            logger.warning(
                "Could not record tool nudge %s: %s", directive.tool_name, failure_reason(exc)
            )

    def _track_edit_request(
        self, directives: list[Directive], message_id: str | None
    ) -> None:
        file_edits = tuple(d.file for d in directives if isinstance(d, FileEdit))
        commands = tuple(d.command for d in directives if isinstance(d, ShellCommand))
        if not file_edits and not commands:
            return
        request = EditRequest(
            message_id=message_id, file_edits=file_edits, shell_commands=commands
        )
        self.edit_requests.append(request)
        logger.info(
            "Edit request: %d file edit(s), %d shell command(s)",
            len(file_edits),
            len(commands),
        )
