"""Package-manager detection and install command construction."""

from __future__ import annotations

__all__ = [
    "PACKAGE_MANAGERS",
    "PackageManager",
    "build_install_command",
    "detect_package_manager",
    "format_command",
    "split_package_list",
]

import shlex
import shutil
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True)
class PackageManager:
    """One package manager and the lock file that signals its use."""

    name: str
    command: str
    install_args: tuple[str, ...]
    lock_file: str

    def to_dict(self) -> dict[str, str]:
        return {
            "name": self.name,
            "command": self.command,
            "installCmd": " ".join(self.install_args),
            "lockFile": self.lock_file,
        }


PACKAGE_MANAGERS: dict[str, tuple[PackageManager, ...]] = {
    "nodejs": (
        PackageManager("npm", "npm", ("install", "--no-audit"), "package-lock.json"),
        PackageManager("yarn", "yarn", ("add",), "yarn.lock"),
        PackageManager("pnpm", "pnpm", ("add",), "pnpm-lock.yaml"),
    ),
    "python": (
        PackageManager("pip", "pip", ("install",), "requirements.txt"),
        PackageManager("poetry", "poetry", ("add",), "poetry.lock"),
    ),
}
_LANGUAGE_ALIASES = {
    "javascript": "nodejs",
    "typescript": "nodejs",
    "node": "nodejs",
    "py": "python",
}


def _canonical_language(language: str) -> str:
    key = language.strip().lower()
    return _LANGUAGE_ALIASES.get(key, key)


def split_package_list(package_list: str | Sequence[str]) -> list[str]:
    """Split a comma-separated list (or clean a sequence) into package names."""
    items = package_list.split(",") if isinstance(package_list, str) else package_list
    return [item.strip() for item in items if item and item.strip()]


def detect_package_manager(
    workspace_root: Path,
    language: str,
    *,
    which: Callable[[str], str | None] = shutil.which,
) -> PackageManager | None:
    """Pick the installed manager whose lock file exists, else the first one.

    Returns ``None`` for languages with no known package managers.
    """
    managers = PACKAGE_MANAGERS.get(_canonical_language(language), ())
    for manager in managers:
        if which(manager.command) is None:
            continue
        if (workspace_root / manager.lock_file).exists():
            return manager
    return managers[0] if managers else None


def build_install_command(manager: PackageManager, packages: Sequence[str]) -> list[str]:
    """Return the argv that installs *packages* with *manager*."""
    if not packages:
        raise ValueError("no packages to install")
    return [manager.command, *manager.install_args, *packages]


def format_command(argv: Sequence[str]) -> str:
    return shlex.join(argv)
