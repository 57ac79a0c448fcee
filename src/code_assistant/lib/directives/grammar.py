"""Directive markup grammar embedded in assistant text.

The model is instructed (see ``code_assistant.lib.default_prompts``) to wrap
machine-actionable proposals in a small XML-like tag vocabulary:

- ``<proposed_file_replace_substring file_path="...">`` (with ``<old_str>`` and
  ``<new_str>`` children), ``<proposed_file_replace file_path="...">`` and
  ``<proposed_file_insert file_path="...">``
- ``<proposed_shell_command is_dangerous="true|false">cmd</proposed_shell_command>``
- ``<proposed_package_install language="..." package_list="a, b"/>``
- ``<proposed_workflow_configuration workflow_name="..." set_run_button="..."
  mode="sequential|parallel">lines</proposed_workflow_configuration>``
- ``<proposed_deployment_configuration build_command="..." run_command="..."/>``
- ``<proposed_workspace_tool_nudge tool_name="..." reason="..."/>``
- ``<proposed_actions summary="..."/>``
- markdown links ``[path](rag://id)`` for retrieved sources

Every function here is pure and takes the whole buffer. Tags are located by
name first and their attributes are then read into a map, so attribute order
never matters. A tag that has not finished streaming simply does not match
yet; nothing in this module raises on malformed input.
"""

from __future__ import annotations

__all__ = [
    "FILE_EDIT_TAGS",
    "TagMatch",
    "iter_tags",
    "parse_action_summary",
    "parse_attributes",
    "parse_deployment_configs",
    "parse_file_edits",
    "parse_package_installs",
    "parse_rag_sources",
    "parse_shell_commands",
    "parse_tool_nudges",
    "parse_workflow_configs",
]

import html
import re
from collections.abc import Iterator
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Literal

from code_assistant.lib.directives.types import (
    DeploymentConfig,
    FileEdit,
    PackageInstall,
    RAGSourceRef,
    ShellCommand,
    ToolNudge,
    WorkflowConfig,
    WorkflowMode,
)

FILE_EDIT_TAGS = (
    "proposed_file_replace_substring",
    "proposed_file_replace",
    "proposed_file_insert",
)
SHELL_COMMAND_TAG = "proposed_shell_command"
PACKAGE_INSTALL_TAG = "proposed_package_install"
WORKFLOW_TAG = "proposed_workflow_configuration"
DEPLOYMENT_TAG = "proposed_deployment_configuration"
TOOL_NUDGE_TAG = "proposed_workspace_tool_nudge"
ACTIONS_TAG = "proposed_actions"

# Attribute text may contain ``>`` only inside quoted values.
_ATTRS = r"(?P<attrs>(?:[^<>\"']|\"[^\"]*\"|'[^']*')*)"
_ATTR_PATTERN = re.compile(
    r"(?<![\w.-])(?P<name>[A-Za-z_][\w.-]*)\s*=\s*"
    r"(?:\"(?P<dq>[^\"]*)\"|'(?P<sq>[^']*)')"
)
_OLD_STR_PATTERN = re.compile(r"<old_str>(.*?)</old_str>", flags=re.DOTALL)
_NEW_STR_PATTERN = re.compile(r"<new_str>(.*?)</new_str>", flags=re.DOTALL)
_RAG_LINK_PATTERN = re.compile(r"\[([^\]]+)\]\(rag://([^)]+)\)")
_WORKFLOW_MODES: tuple[WorkflowMode, ...] = ("sequential", "parallel")

BodyMode = Literal["none", "optional", "required"]


@dataclass(frozen=True)
class TagMatch:
    """One located directive tag."""

    name: str
    attributes: dict[str, str] = field(default_factory=dict)
    body: str | None = None
    self_closing: bool = False
    start: int = 0
    end: int = 0


@lru_cache(maxsize=16)
def _open_tag_pattern(names: tuple[str, ...]) -> re.Pattern[str]:
    # Longest names first so ``proposed_file_replace`` never shadows
    # ``proposed_file_replace_substring``.
    alternation = "|".join(
        re.escape(name) for name in sorted(names, key=len, reverse=True)
    )
    return re.compile(rf"<(?P<name>{alternation})(?=[\s/>])" + _ATTRS + ">")


def parse_attributes(attrs_text: str) -> dict[str, str]:
    """Read ``name="value"`` pairs in any order; the first occurrence wins."""
    attributes: dict[str, str] = {}
    for match in _ATTR_PATTERN.finditer(attrs_text):
        raw = match.group("dq")
        if raw is None:
            raw = match.group("sq") or ""
        attributes.setdefault(match.group("name"), html.unescape(raw))
    return attributes


def iter_tags(
    text: str,
    names: tuple[str, ...] | str,
    *,
    body: BodyMode = "none",
) -> Iterator[TagMatch]:
    """Yield complete tags named *names* in document order.

    ``body`` controls closing-tag handling: ``none`` never looks for one,
    ``optional`` attaches the body when the closing tag has arrived, and
    ``required`` skips tags whose closing tag is still missing.
    """
    if isinstance(names, str):
        names = (names,)
    pattern = _open_tag_pattern(tuple(names))
    pos = 0
    while True:
        match = pattern.search(text, pos)
        if match is None:
            return
        name = match.group("name")
        attrs_text = match.group("attrs").rstrip()
        self_closing = attrs_text.endswith("/")
        if self_closing:
            attrs_text = attrs_text[:-1]

        tag_body: str | None = None
        end = match.end()
        if body != "none" and not self_closing:
            closing = f"</{name}>"
            close_at = text.find(closing, match.end())
            if close_at != -1:
                tag_body = text[match.end() : close_at]
                end = close_at + len(closing)

        pos = end
        if body == "required" and tag_body is None:
            continue
        yield TagMatch(
            name=name,
            attributes=parse_attributes(attrs_text),
            body=tag_body,
            self_closing=self_closing,
            start=match.start(),
            end=end,
        )


def _attr(tag: TagMatch, name: str) -> str:
    return tag.attributes.get(name, "").strip()


def _count_lines(content: str | None) -> int:
    if not content:
        return 0
    return len(content.split("\n"))


def parse_file_edits(text: str) -> list[FileEdit]:
    """Return file edit proposals, including ones whose body is still streaming."""
    edits: list[FileEdit] = []
    for tag in iter_tags(text, FILE_EDIT_TAGS, body="optional"):
        path = _attr(tag, "file_path")
        if not path:
            continue
        old_content: str | None = None
        new_content: str | None = None
        if tag.body is not None:
            if tag.name == "proposed_file_replace_substring":
                old_match = _OLD_STR_PATTERN.search(tag.body)
                new_match = _NEW_STR_PATTERN.search(tag.body)
                if old_match and new_match:
                    old_content = old_match.group(1).strip()
                    new_content = new_match.group(1).strip()
            else:
                new_content = tag.body.strip()
        edits.append(
            FileEdit(
                file=path,
                added=_count_lines(new_content),
                removed=_count_lines(old_content),
                old_content=old_content,
                new_content=new_content,
            )
        )
    return edits


def parse_shell_commands(text: str) -> list[ShellCommand]:
    """Return shell commands whose closing tag has arrived.

    Only an explicit ``is_dangerous="false"`` marks a command safe; a missing
    or unrecognised value is treated as dangerous.
    """
    commands: list[ShellCommand] = []
    for tag in iter_tags(text, SHELL_COMMAND_TAG, body="required"):
        command = (tag.body or "").strip()
        if not command:
            continue
        commands.append(
            ShellCommand(
                command=command,
                is_dangerous=_attr(tag, "is_dangerous").lower() != "false",
                working_directory=_attr(tag, "working_directory") or None,
            )
        )
    return commands


def parse_package_installs(text: str) -> list[PackageInstall]:
    installs: list[PackageInstall] = []
    for tag in iter_tags(text, PACKAGE_INSTALL_TAG):
        language = _attr(tag, "language")
        packages = tuple(
            item.strip()
            for item in tag.attributes.get("package_list", "").split(",")
            if item.strip()
        )
        if not language or not packages:
            continue
        installs.append(PackageInstall(language=language, packages=packages))
    return installs


def parse_workflow_configs(text: str) -> list[WorkflowConfig]:
    configs: list[WorkflowConfig] = []
    for tag in iter_tags(text, WORKFLOW_TAG, body="required"):
        name = _attr(tag, "workflow_name")
        if not name:
            continue
        raw_mode = _attr(tag, "mode").lower()
        mode: WorkflowMode = "parallel" if raw_mode == "parallel" else "sequential"
        commands = tuple(
            line.strip() for line in (tag.body or "").split("\n") if line.strip()
        )
        configs.append(
            WorkflowConfig(
                name=name,
                commands=commands,
                mode=mode,
                set_run_button=_attr(tag, "set_run_button").lower() == "true",
            )
        )
    return configs


def parse_deployment_configs(text: str) -> list[DeploymentConfig]:
    configs: list[DeploymentConfig] = []
    for tag in iter_tags(text, DEPLOYMENT_TAG):
        run_command = _attr(tag, "run_command")
        if not run_command:
            continue
        configs.append(
            DeploymentConfig(
                run_command=run_command,
                build_command=_attr(tag, "build_command") or None,
            )
        )
    return configs


def parse_tool_nudges(text: str) -> list[ToolNudge]:
    nudges: list[ToolNudge] = []
    for tag in iter_tags(text, TOOL_NUDGE_TAG):
        tool_name = _attr(tag, "tool_name")
        reason = _attr(tag, "reason")
        if tool_name and reason:
            nudges.append(ToolNudge(tool_name=tool_name, reason=reason))
    return nudges


def parse_rag_sources(text: str) -> list[RAGSourceRef]:
    return [
        RAGSourceRef(id=match.group(2), path=match.group(1))
        for match in _RAG_LINK_PATTERN.finditer(text)
    ]


def parse_action_summary(text: str) -> str | None:
    """Return the ``summary`` of the first ``proposed_actions`` tag that has one."""
    for tag in iter_tags(text, ACTIONS_TAG):
        summary = _attr(tag, "summary")
        if summary:
            return summary
    return None
