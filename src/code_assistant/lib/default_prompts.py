"""Shared default prompts used by the chat server and CLI."""

from __future__ import annotations

__all__ = [
    "AGENT_INSTRUCTIONS",
    "DEFAULT_AGENT",
    "DIRECTIVE_GUIDE",
    "SYSTEM_PROMPT",
    "build_system_prompt",
    "build_user_message",
]

import logging
from collections.abc import Mapping, Sequence

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "You are Assistant, a helpful AI that assists developers with their code. "
    "You specialize in:\n"
    "- Explaining code concepts clearly\n"
    "- Suggesting code improvements and fixes\n"
    "- Writing new code based on requirements\n"
    "- Reviewing code and pointing out potential issues\n\n"
    "If the user mentions files (@filename), you have access to their contents "
    "and should reference them in your response.\n\n"
    "Keep responses concise but thorough. Be friendly and supportive."
)

DIRECTIVE_GUIDE = """\
When you propose concrete actions, emit them with these tags so they can be applied:

<proposed_file_replace_substring file_path="path/to/file">
<old_str>exact text to replace</old_str>
<new_str>replacement text</new_str>
</proposed_file_replace_substring>

<proposed_file_replace file_path="path/to/file">full new file content</proposed_file_replace>

<proposed_file_insert file_path="path/to/new_file">content of the new file</proposed_file_insert>

<proposed_shell_command is_dangerous="false">ls -la</proposed_shell_command>
  Set is_dangerous="true" for anything that deletes data, rewrites history or
  touches the system outside the workspace.

<proposed_package_install language="python" package_list="requests, rich"/>

<proposed_workflow_configuration workflow_name="Run" set_run_button="true" mode="sequential">
npm install
npm start
</proposed_workflow_configuration>

<proposed_deployment_configuration build_command="npm run build" run_command="npm start"/>

<proposed_workspace_tool_nudge tool_name="Shell" reason="Inspect running processes"/>

<proposed_actions summary="One line describing everything proposed above"/>

Cite retrieved sources as markdown links of the form [path/to/file](rag://source-id).
"""

DEFAULT_AGENT = "assistantAgent"

AGENT_INSTRUCTIONS: dict[str, str] = {
    "assistantAgent": (
        "You are a helpful AI coding assistant. You help users with:\n"
        "- Writing and understanding code\n"
        "- Debugging issues\n"
        "- Explaining programming concepts\n"
        "- Proposing code changes\n"
        "- Answering technical questions\n\n"
        "Always provide clear, practical solutions with code examples when relevant."
    ),
    "codeReviewerAgent": (
        "You are an expert code reviewer. Focus on:\n"
        "- Code quality and best practices\n"
        "- Security vulnerabilities\n"
        "- Performance optimizations\n"
        "- Maintainability and readability\n"
        "- Testing coverage\n\n"
        "Provide specific, actionable feedback with examples."
    ),
    "debuggerAgent": (
        "You are a debugging specialist. Help users:\n"
        "- Identify root causes of errors\n"
        "- Trace execution flow\n"
        "- Analyze stack traces\n"
        "- Suggest fixes with explanations\n"
        "- Prevent similar issues\n\n"
        "Be systematic and thorough in your analysis."
    ),
}


def build_system_prompt(
    system_prompt: str | None = None,
    agent_name: str | None = None,
) -> str:
    """Compose the system message for one chat request.

    A caller-supplied *system_prompt* replaces the default persona. A known
    *agent_name* other than the default prepends that agent's instructions;
    unknown names fall back to the default agent. The directive guide is
    always appended.
    """
    parts: list[str] = []
    if agent_name and agent_name != DEFAULT_AGENT:
        instructions = AGENT_INSTRUCTIONS.get(agent_name)
        if instructions is None:
            logger.warning("Unknown agent %r; using %s", agent_name, DEFAULT_AGENT)
        else:
            parts.append(instructions)
    parts.append(system_prompt.strip() if system_prompt else SYSTEM_PROMPT)
    parts.append(DIRECTIVE_GUIDE)
    return "\n\n".join(parts)


def build_user_message(message: str, files: Sequence[Mapping[str, str]] = ()) -> str:
    """Prefix *message* with fenced contents of the mentioned files."""
    if not files:
        return message
    contexts = "\n\n".join(
        f"File: {item.get('name', '')}\n"
        f"```{item.get('language', '')}\n{item.get('content', '')}\n```"
        for item in files
    )
    return f"{contexts}\n\nUser request: {message}"
