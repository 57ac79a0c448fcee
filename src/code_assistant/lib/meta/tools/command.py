"""Command execution tools for workspace-confined shell actions.

``run_shell_command`` backs ``POST /api/shell/execute``: the command runs
through the system shell with its working directory confined to the
workspace, a hard timeout, and captured output.
"""

from __future__ import annotations

__all__ = [
    "DEFAULT_TIMEOUT_S",
    "TIMEOUT_EXIT_CODE",
    "CommandResult",
    "resolve_cwd",
    "run_shell_command",
]

import logging
import subprocess
from dataclasses import dataclass
from pathlib import Path

from code_assistant.lib.meta.tools.filesystem import resolve_workspace_target

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_S = 30
TIMEOUT_EXIT_CODE = 124


@dataclass(frozen=True)
class CommandResult:
    """Captured result of a command execution."""

    command: str
    cwd: str
    exit_code: int
    stdout: str
    stderr: str
    timed_out: bool = False

    @property
    def success(self) -> bool:
        """Return whether the command completed successfully."""
        return self.exit_code == 0 and not self.timed_out

    @property
    def output(self) -> str:
        """stdout when present, else stderr."""
        return self.stdout or self.stderr


def resolve_cwd(workspace_root: Path, cwd: str | None) -> Path:
    """Resolve *cwd* to a path-safe directory under *workspace_root*."""
    root = workspace_root.resolve()
    if cwd is None or not cwd.strip() or cwd.strip() in (".", "./"):
        return root
    target = resolve_workspace_target(root, cwd)
    if not target.is_dir():
        msg = f"cwd is not a directory: {cwd}"
        raise NotADirectoryError(msg)
    return target


def run_shell_command(
    workspace_root: Path,
    command: str,
    *,
    cwd: str | None = None,
    timeout_s: int = DEFAULT_TIMEOUT_S,
) -> CommandResult:
    """Execute *command* through the shell, capturing output and handling timeouts."""
    if not command.strip():
        raise ValueError("command must be non-empty")
    if timeout_s <= 0:
        raise ValueError("timeout_s must be > 0")

    working_dir = resolve_cwd(workspace_root, cwd)
    logger.info("Running shell command in %s: %s", working_dir, command)
    try:
        completed = subprocess.run(
            command,
            shell=True,
            cwd=working_dir,
            capture_output=True,
            text=True,
            check=False,
            timeout=timeout_s,
        )
    except subprocess.TimeoutExpired as exc:
        stdout = exc.stdout if isinstance(exc.stdout, str) else ""
        stderr = exc.stderr if isinstance(exc.stderr, str) else ""
        timeout_note = f"command timed out after {timeout_s}s"
        stderr = f"{stderr}\n{timeout_note}".strip()
        return CommandResult(
            command=command,
            cwd=str(working_dir),
            exit_code=TIMEOUT_EXIT_CODE,
            stdout=stdout,
            stderr=stderr,
            timed_out=True,
        )

    return CommandResult(
        command=command,
        cwd=str(working_dir),
        exit_code=completed.returncode,
        stdout=completed.stdout,
        stderr=completed.stderr,
    )
