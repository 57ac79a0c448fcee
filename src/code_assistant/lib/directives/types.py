"""Typed directive records extracted from assistant message text.

Each directive kind is a frozen dataclass with a ``key`` property: the natural
key used to deduplicate directives inside one parse and across successive
parses of a growing buffer. ``ParsedDirectives`` is the immutable snapshot
returned by ``code_assistant.lib.directives.parser.parse_directives``.

Serialization (``to_dict``) uses the camelCase field names of the chat wire
format so parsed metadata can be stored on a message and sent to clients
unchanged.
"""

from __future__ import annotations

__all__ = [
    "DIRECTIVE_KINDS",
    "DeploymentConfig",
    "Directive",
    "FileEdit",
    "PackageInstall",
    "ParsedDirectives",
    "RAGSourceRef",
    "ShellCommand",
    "ToolNudge",
    "WorkflowConfig",
    "WorkflowMode",
]

from collections.abc import Hashable, Iterator
from dataclasses import dataclass
from typing import Any, Literal

WorkflowMode = Literal["sequential", "parallel"]


@dataclass(frozen=True)
class FileEdit:
    """A proposed change to one file.

    ``new_content`` stays ``None`` until the closing tag of a paired edit tag
    has been streamed; self-closing edit tags never carry content.
    """

    file: str
    added: int = 0
    removed: int = 0
    old_content: str | None = None
    new_content: str | None = None

    @property
    def key(self) -> Hashable:
        return self.file

    @property
    def has_content(self) -> bool:
        """Return whether the edit body has been received."""
        return self.new_content is not None

    @property
    def change_type(self) -> Literal["edit", "create"]:
        """``create`` when there is no prior content to replace, else ``edit``."""
        return "edit" if self.old_content else "create"

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "file": self.file,
            "added": self.added,
            "removed": self.removed,
        }
        if self.old_content is not None:
            data["oldContent"] = self.old_content
        if self.new_content is not None:
            data["newContent"] = self.new_content
        return data


@dataclass(frozen=True)
class ShellCommand:
    """A proposed shell command; ``is_dangerous`` is declared by the model."""

    command: str
    is_dangerous: bool
    working_directory: str | None = None

    @property
    def key(self) -> Hashable:
        return self.command

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "command": self.command,
            "isDangerous": self.is_dangerous,
        }
        if self.working_directory:
            data["workingDirectory"] = self.working_directory
        return data


@dataclass(frozen=True)
class PackageInstall:
    """A proposed package installation for one language ecosystem."""

    language: str
    packages: tuple[str, ...]

    @property
    def key(self) -> Hashable:
        return (self.language, frozenset(self.packages))

    def to_dict(self) -> dict[str, Any]:
        return {"language": self.language, "packages": list(self.packages)}


@dataclass(frozen=True)
class WorkflowConfig:
    """A proposed named workflow (run configuration)."""

    name: str
    commands: tuple[str, ...]
    mode: WorkflowMode = "sequential"
    set_run_button: bool = False

    @property
    def key(self) -> Hashable:
        return self.name

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "commands": list(self.commands),
            "mode": self.mode,
            "setRunButton": self.set_run_button,
        }


@dataclass(frozen=True)
class DeploymentConfig:
    """Proposed build/run commands for deployment."""

    run_command: str
    build_command: str | None = None

    @property
    def key(self) -> Hashable:
        return (self.build_command, self.run_command)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"runCommand": self.run_command}
        if self.build_command:
            data["buildCommand"] = self.build_command
        return data


@dataclass(frozen=True)
class ToolNudge:
    """A recommendation to open a workspace tool."""

    tool_name: str
    reason: str

    @property
    def key(self) -> Hashable:
        return (self.tool_name, self.reason)

    def to_dict(self) -> dict[str, Any]:
        return {"toolName": self.tool_name, "reason": self.reason}


@dataclass(frozen=True)
class RAGSourceRef:
    """A markdown link to retrieved context, ``[path](rag://id)``."""

    id: str
    path: str

    @property
    def key(self) -> Hashable:
        return (self.id, self.path)

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "path": self.path}


Directive = (
    FileEdit
    | ShellCommand
    | PackageInstall
    | WorkflowConfig
    | DeploymentConfig
    | ToolNudge
    | RAGSourceRef
)

# Field names of the list-valued members of ``ParsedDirectives``, in the order
# directives are reported to callers.
DIRECTIVE_KINDS: tuple[str, ...] = (
    "file_edits",
    "shell_commands",
    "package_installs",
    "workflow_configs",
    "deployment_configs",
    "tool_nudges",
    "rag_sources",
)

_WIRE_NAMES = {
    "file_edits": "fileEdits",
    "shell_commands": "shellCommands",
    "package_installs": "packageInstalls",
    "workflow_configs": "workflowConfigs",
    "deployment_configs": "deploymentConfigs",
    "tool_nudges": "toolNudges",
    "rag_sources": "ragSources",
}


@dataclass(frozen=True)
class ParsedDirectives:
    """Every directive currently visible in one buffer snapshot."""

    file_edits: tuple[FileEdit, ...] = ()
    shell_commands: tuple[ShellCommand, ...] = ()
    package_installs: tuple[PackageInstall, ...] = ()
    workflow_configs: tuple[WorkflowConfig, ...] = ()
    deployment_configs: tuple[DeploymentConfig, ...] = ()
    tool_nudges: tuple[ToolNudge, ...] = ()
    rag_sources: tuple[RAGSourceRef, ...] = ()
    action_summary: str | None = None

    def kind(self, name: str) -> tuple[Directive, ...]:
        """Return the directives of one kind by its field name."""
        if name not in DIRECTIVE_KINDS:
            msg = f"unknown directive kind: {name}"
            raise KeyError(msg)
        return getattr(self, name)

    def iter_directives(self) -> Iterator[Directive]:
        """Yield every directive, grouped by kind in ``DIRECTIVE_KINDS`` order."""
        for name in DIRECTIVE_KINDS:
            yield from self.kind(name)

    def is_empty(self) -> bool:
        return self.action_summary is None and not any(
            self.kind(name) for name in DIRECTIVE_KINDS
        )

    def to_dict(self) -> dict[str, Any]:
        """Serialize to the camelCase metadata shape stored on messages."""
        data: dict[str, Any] = {
            _WIRE_NAMES[name]: [item.to_dict() for item in self.kind(name)]
            for name in DIRECTIVE_KINDS
        }
        if self.action_summary is not None:
            data["actionSummary"] = self.action_summary
        return data
