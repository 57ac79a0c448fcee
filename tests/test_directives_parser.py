"""Tests for code_assistant.lib.directives.parser."""

from __future__ import annotations

import pytest

from code_assistant.lib.directives import DirectiveTracker, parse_directives
from code_assistant.lib.directives.types import (
    DIRECTIVE_KINDS,
    FileEdit,
    PackageInstall,
    ParsedDirectives,
    ShellCommand,
)

_RICH_MESSAGE = (
    '<proposed_actions summary="Set up the project"/>\n'
    "First, update the entry point:\n"
    '<proposed_file_replace_substring file_path="src/main.py">\n'
    "<old_str>print('hi')</old_str>\n"
    "<new_str>print('hello')</new_str>\n"
    "</proposed_file_replace_substring>\n"
    "Then install dependencies:\n"
    '<proposed_package_install language="python" package_list="httpx, rich"/>\n'
    '<proposed_shell_command is_dangerous="false">pytest -q</proposed_shell_command>\n'
    '<proposed_shell_command is_dangerous="true">rm -rf build</proposed_shell_command>\n'
    '<proposed_workflow_configuration workflow_name="Run" mode="sequential">\n'
    "python -m app\n"
    "</proposed_workflow_configuration>\n"
    '<proposed_deployment_configuration run_command="python -m app"/>\n'
    '<proposed_workspace_tool_nudge tool_name="Shell" reason="Watch the logs"/>\n'
    "Based on [src/main.py](rag://doc-1).\n"
)


def _keys(directives: list) -> set:
    return {(type(item).__name__, item.key) for item in directives}


# ---------------------------------------------------------------------------
# parse_directives
# ---------------------------------------------------------------------------


class TestParseDirectives:
    def test_empty_buffer(self) -> None:
        parsed = parse_directives("")
        assert parsed == ParsedDirectives()
        assert parsed.is_empty()

    def test_plain_text_has_no_directives(self) -> None:
        assert parse_directives("Just some advice about <b>HTML</b>.").is_empty()

    def test_rich_message_every_kind(self) -> None:
        parsed = parse_directives(_RICH_MESSAGE)
        assert parsed.action_summary == "Set up the project"
        assert [edit.file for edit in parsed.file_edits] == ["src/main.py"]
        assert parsed.package_installs == (
            PackageInstall(language="python", packages=("httpx", "rich")),
        )
        assert [cmd.command for cmd in parsed.shell_commands] == [
            "pytest -q",
            "rm -rf build",
        ]
        assert parsed.workflow_configs[0].commands == ("python -m app",)
        assert parsed.deployment_configs[0].run_command == "python -m app"
        assert parsed.tool_nudges[0].tool_name == "Shell"
        assert parsed.rag_sources[0].id == "doc-1"

    def test_duplicate_shell_commands_collapse(self) -> None:
        text = (
            '<proposed_shell_command is_dangerous="false">ls</proposed_shell_command>'
            " and again "
            '<proposed_shell_command is_dangerous="false">ls</proposed_shell_command>'
        )
        assert parse_directives(text).shell_commands == (
            ShellCommand(command="ls", is_dangerous=False),
        )

    def test_duplicate_file_edits_keep_first(self) -> None:
        text = (
            '<proposed_file_replace file_path="a.py">one</proposed_file_replace>'
            '<proposed_file_replace file_path="a.py">two</proposed_file_replace>'
        )
        (edit,) = parse_directives(text).file_edits
        assert edit.new_content == "one"

    def test_deterministic(self) -> None:
        first = parse_directives(_RICH_MESSAGE)
        second = parse_directives(str(_RICH_MESSAGE))
        assert first == second

    def test_attribute_order_does_not_matter(self) -> None:
        a = parse_directives(
            '<proposed_workspace_tool_nudge tool_name="Git" reason="Commit"/>'
        )
        b = parse_directives(
            '<proposed_workspace_tool_nudge reason="Commit" tool_name="Git"/>'
        )
        assert a == b

    def test_to_dict_uses_wire_names(self) -> None:
        data = parse_directives(_RICH_MESSAGE).to_dict()
        assert set(data) == {
            "fileEdits",
            "shellCommands",
            "packageInstalls",
            "workflowConfigs",
            "deploymentConfigs",
            "toolNudges",
            "ragSources",
            "actionSummary",
        }
        assert data["shellCommands"][0] == {"command": "pytest -q", "isDangerous": False}
        assert data["packageInstalls"][0] == {
            "language": "python",
            "packages": ["httpx", "rich"],
        }

    def test_kind_rejects_unknown_name(self) -> None:
        with pytest.raises(KeyError, match="unknown directive kind"):
            ParsedDirectives().kind("widgets")

    def test_iter_directives_follows_kind_order(self) -> None:
        kinds = [type(item).__name__ for item in parse_directives(_RICH_MESSAGE).iter_directives()]
        assert kinds == [
            "FileEdit",
            "ShellCommand",
            "ShellCommand",
            "PackageInstall",
            "WorkflowConfig",
            "DeploymentConfig",
            "ToolNudge",
            "RAGSourceRef",
        ]
        assert len(DIRECTIVE_KINDS) == 7


# ---------------------------------------------------------------------------
# DirectiveTracker
# ---------------------------------------------------------------------------


class TestDirectiveTracker:
    def test_shell_command_split_across_chunks(self) -> None:
        tracker = DirectiveTracker()
        buffer = '<proposed_shell_command is_dangerous="false">npm i'
        assert tracker.observe(parse_directives(buffer)) == []

        buffer += "</proposed_shell_command>"
        assert tracker.observe(parse_directives(buffer)) == [
            ShellCommand(command="npm i", is_dangerous=False)
        ]
        assert tracker.observe(parse_directives(buffer + " more text")) == []

    def test_package_install_detected_once(self) -> None:
        tracker = DirectiveTracker()
        chunks = [
            "Sure. ",
            '<proposed_package_install language="nodejs" ',
            'package_list="lodash, axios"/>',
            " Done.",
        ]
        buffer = ""
        fresh: list = []
        for chunk in chunks:
            buffer += chunk
            fresh.extend(tracker.observe(parse_directives(buffer)))
        assert fresh == [PackageInstall(language="nodejs", packages=("lodash", "axios"))]

    def test_every_split_reports_final_set_exactly_once(self) -> None:
        final = list(parse_directives(_RICH_MESSAGE).iter_directives())
        for step in (1, 7, 64):
            tracker = DirectiveTracker()
            reported: list = []
            for end in range(step, len(_RICH_MESSAGE) + step, step):
                reported.extend(tracker.observe(parse_directives(_RICH_MESSAGE[:end])))
            assert len(reported) == len(final)
            assert _keys(reported) == _keys(final)

    def test_file_edit_reported_before_body(self) -> None:
        tracker = DirectiveTracker()
        fresh = tracker.observe(
            parse_directives('<proposed_file_replace file_path="a.py">print(')
        )
        assert fresh == [FileEdit(file="a.py")]
        complete = parse_directives(
            '<proposed_file_replace file_path="a.py">print(1)</proposed_file_replace>'
        )
        assert tracker.observe(complete) == []
        assert complete.file_edits[0].new_content == "print(1)"

    def test_action_summary_latched(self) -> None:
        tracker = DirectiveTracker()
        tracker.observe(parse_directives('<proposed_actions summary="Plan"/>'))
        assert tracker.action_summary == "Plan"

    def test_seen_count_and_reset(self) -> None:
        tracker = DirectiveTracker()
        tracker.observe(parse_directives(_RICH_MESSAGE))
        assert tracker.seen_count() == 8
        tracker.reset()
        assert tracker.seen_count() == 0
        assert tracker.action_summary is None
        assert len(tracker.observe(parse_directives(_RICH_MESSAGE))) == 8
