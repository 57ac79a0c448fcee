"""System tools package used by the collaborator server.

This package contains reusable system-facing helpers:
- ``filesystem`` for path-confined workspace file operations.
- ``command`` for path-confined shell command execution.
- ``packages`` for package-manager detection and install commands.
"""

from code_assistant.lib.meta.tools.command import CommandResult, run_shell_command
from code_assistant.lib.meta.tools.filesystem import (
    apply_file_edit,
    delete_path,
    normalize_relative_path,
    read_text_file,
    resolve_workspace_target,
    write_text_file,
)
from code_assistant.lib.meta.tools.packages import (
    PackageManager,
    build_install_command,
    detect_package_manager,
    split_package_list,
)

__all__ = [
    "CommandResult",
    "PackageManager",
    "apply_file_edit",
    "build_install_command",
    "delete_path",
    "detect_package_manager",
    "normalize_relative_path",
    "read_text_file",
    "resolve_workspace_target",
    "run_shell_command",
    "split_package_list",
    "write_text_file",
]
