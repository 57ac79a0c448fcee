"""Filesystem tools for workspace-confined file operations.

These helpers back the file endpoints of the collaborator server. Every path
is interpreted relative to the workspace root and rejected when it would
escape it.
"""

from __future__ import annotations

__all__ = [
    "apply_file_edit",
    "delete_path",
    "normalize_relative_path",
    "read_text_file",
    "resolve_workspace_target",
    "write_text_file",
]

import shutil
from pathlib import Path
from typing import Literal

ChangeType = Literal["edit", "create"]


def normalize_relative_path(rel_path: str) -> str:
    """Normalize a workspace-relative path to a safe forward-slash form."""
    normalized = rel_path.strip().replace("\\", "/")
    while normalized.startswith("./"):
        normalized = normalized[2:]
    return normalized


def resolve_workspace_target(workspace_root: Path, rel_path: str) -> Path:
    """Resolve a relative path inside ``workspace_root`` or raise ``ValueError``."""
    root = workspace_root.resolve()
    normalized = normalize_relative_path(rel_path)
    if not normalized or normalized.startswith("/"):
        msg = f"invalid path: {rel_path!r}"
        raise ValueError(msg)

    target = (root / normalized).resolve()
    try:
        target.relative_to(root)
    except ValueError as exc:
        msg = f"path escapes workspace: {rel_path!r}"
        raise ValueError(msg) from exc
    return target


def read_text_file(workspace_root: Path, rel_path: str) -> tuple[str, str]:
    """Read a UTF-8 file and return ``(content, display_path)``."""
    root = workspace_root.resolve()
    target = resolve_workspace_target(root, rel_path)

    if not target.exists():
        msg = f"file not found: {rel_path}"
        raise FileNotFoundError(msg)
    if target.is_dir():
        msg = f"path is a directory: {rel_path}"
        raise IsADirectoryError(msg)

    try:
        text = target.read_text(encoding="utf-8")
    except UnicodeDecodeError as exc:
        msg = f"file is not UTF-8 text: {rel_path}"
        raise UnicodeError(msg) from exc
    return text, target.relative_to(root).as_posix()


def write_text_file(workspace_root: Path, rel_path: str, content: str) -> str:
    """Write UTF-8 text to a workspace-relative file and return normalized path."""
    root = workspace_root.resolve()
    target = resolve_workspace_target(root, rel_path)
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(content, encoding="utf-8")
    return target.relative_to(root).as_posix()


def delete_path(workspace_root: Path, rel_path: str) -> str:
    """Delete a file or directory tree and return normalized path."""
    root = workspace_root.resolve()
    target = resolve_workspace_target(root, rel_path)
    if target == root:
        msg = "refusing to delete the workspace root"
        raise ValueError(msg)
    if not target.exists():
        msg = f"file not found: {rel_path}"
        raise FileNotFoundError(msg)
    if target.is_dir():
        shutil.rmtree(target)
    else:
        target.unlink()
    return target.relative_to(root).as_posix()


def apply_file_edit(
    workspace_root: Path,
    rel_path: str,
    *,
    new_content: str,
    old_content: str = "",
    change_type: ChangeType = "create",
) -> str:
    """Apply a proposed edit and return normalized path.

    ``create`` writes *new_content* as the whole file. ``edit`` replaces the
    first occurrence of *old_content* in the current file with *new_content*
    and raises ``LookupError`` when it is not present.
    """
    if change_type == "create" or not old_content:
        return write_text_file(workspace_root, rel_path, new_content)

    current, display_path = read_text_file(workspace_root, rel_path)
    if old_content not in current:
        msg = f"text to replace was not found in {display_path}"
        raise LookupError(msg)
    return write_text_file(
        workspace_root, rel_path, current.replace(old_content, new_content, 1)
    )
