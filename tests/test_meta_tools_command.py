"""Tests for code_assistant.lib.meta.tools.command and packages."""

from __future__ import annotations

import subprocess
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from code_assistant.lib.meta.tools import command as command_tools
from code_assistant.lib.meta.tools import packages

# ---------------------------------------------------------------------------
# resolve_cwd
# ---------------------------------------------------------------------------


class TestResolveCwd:
    def test_none_returns_root(self, tmp_path: Path) -> None:
        assert command_tools.resolve_cwd(tmp_path, None) == tmp_path.resolve()

    @pytest.mark.parametrize("cwd", ["  ", ".", "./"])
    def test_blank_or_dot_returns_root(self, tmp_path: Path, cwd: str) -> None:
        assert command_tools.resolve_cwd(tmp_path, cwd) == tmp_path.resolve()

    def test_valid_subdir(self, tmp_path: Path) -> None:
        sub = tmp_path / "sub"
        sub.mkdir()
        assert command_tools.resolve_cwd(tmp_path, "sub") == sub.resolve()

    def test_nonexistent_dir_raises(self, tmp_path: Path) -> None:
        with pytest.raises(NotADirectoryError):
            command_tools.resolve_cwd(tmp_path, "nope")

    def test_escape_raises(self, tmp_path: Path) -> None:
        with pytest.raises(ValueError, match="path escapes workspace"):
            command_tools.resolve_cwd(tmp_path, "..")


# ---------------------------------------------------------------------------
# run_shell_command
# ---------------------------------------------------------------------------


class TestRunShellCommand:
    def test_captures_stdout(self, tmp_path: Path) -> None:
        result = command_tools.run_shell_command(tmp_path, "echo hello")
        assert result.success
        assert result.stdout == "hello\n"
        assert result.output == "hello\n"
        assert result.cwd == str(tmp_path.resolve())

    def test_nonzero_exit(self, tmp_path: Path) -> None:
        result = command_tools.run_shell_command(tmp_path, "echo oops >&2; exit 3")
        assert result.exit_code == 3
        assert not result.success
        assert result.output == "oops\n"

    def test_runs_in_subdirectory(self, tmp_path: Path) -> None:
        (tmp_path / "web").mkdir()
        (tmp_path / "web" / "marker.txt").write_text("x")
        result = command_tools.run_shell_command(tmp_path, "ls", cwd="web")
        assert "marker.txt" in result.stdout

    def test_empty_command_raises(self, tmp_path: Path) -> None:
        with pytest.raises(ValueError, match="command must be non-empty"):
            command_tools.run_shell_command(tmp_path, "   ")

    def test_invalid_timeout_raises(self, tmp_path: Path) -> None:
        with pytest.raises(ValueError, match="timeout_s must be > 0"):
            command_tools.run_shell_command(tmp_path, "ls", timeout_s=0)

    @patch("code_assistant.lib.meta.tools.command.subprocess.run")
    def test_timeout(self, mock_run: MagicMock, tmp_path: Path) -> None:
        mock_run.side_effect = subprocess.TimeoutExpired(
            cmd="sleep 99", timeout=1, output="partial", stderr=None
        )
        result = command_tools.run_shell_command(tmp_path, "sleep 99", timeout_s=1)
        assert result.timed_out is True
        assert result.exit_code == command_tools.TIMEOUT_EXIT_CODE
        assert result.stdout == "partial"
        assert result.stderr == "command timed out after 1s"
        assert not result.success


# ---------------------------------------------------------------------------
# packages
# ---------------------------------------------------------------------------


def _which_all(command: str) -> str | None:
    return f"/usr/bin/{command}"


class TestPackages:
    def test_split_package_list(self) -> None:
        assert packages.split_package_list(" lodash, ,axios ") == ["lodash", "axios"]
        assert packages.split_package_list(["rich", " ", "httpx "]) == ["rich", "httpx"]

    def test_lock_file_selects_manager(self, tmp_path: Path) -> None:
        (tmp_path / "yarn.lock").write_text("")
        manager = packages.detect_package_manager(tmp_path, "nodejs", which=_which_all)
        assert manager is not None
        assert manager.name == "yarn"

    def test_uninstalled_manager_skipped(self, tmp_path: Path) -> None:
        (tmp_path / "yarn.lock").write_text("")
        manager = packages.detect_package_manager(
            tmp_path, "nodejs", which=lambda cmd: None if cmd == "yarn" else "/bin/x"
        )
        assert manager.name == "npm"

    def test_falls_back_to_first_manager(self, tmp_path: Path) -> None:
        manager = packages.detect_package_manager(tmp_path, "python", which=_which_all)
        assert manager.name == "pip"

    @pytest.mark.parametrize("alias", ["javascript", "TypeScript", " node "])
    def test_language_aliases(self, tmp_path: Path, alias: str) -> None:
        manager = packages.detect_package_manager(tmp_path, alias, which=_which_all)
        assert manager.name == "npm"

    def test_unknown_language(self, tmp_path: Path) -> None:
        assert packages.detect_package_manager(tmp_path, "cobol", which=_which_all) is None

    def test_build_and_format_command(self) -> None:
        npm = packages.PACKAGE_MANAGERS["nodejs"][0]
        argv = packages.build_install_command(npm, ["lodash", "@types/node"])
        assert argv == ["npm", "install", "--no-audit", "lodash", "@types/node"]
        assert packages.format_command(["pip", "install", "a b"]) == "pip install 'a b'"

    def test_build_without_packages(self) -> None:
        with pytest.raises(ValueError, match="no packages"):
            packages.build_install_command(packages.PACKAGE_MANAGERS["python"][0], [])

    def test_manager_to_dict(self) -> None:
        assert packages.PACKAGE_MANAGERS["python"][1].to_dict() == {
            "name": "poetry",
            "command": "poetry",
            "installCmd": "add",
            "lockFile": "poetry.lock",
        }
