"""Configuration loading: CLI flags → env vars → .env files → defaults."""

from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass, field, replace
from pathlib import Path
from urllib.parse import urlparse

from dotenv import load_dotenv

from code_assistant.lib.state import Settings, SettingsMode

logger = logging.getLogger(__name__)

_MODEL_PATTERN = re.compile(r"^[a-zA-Z0-9._:/-]+$")
_MODES: tuple[SettingsMode, ...] = ("basic", "advanced")
_TRUTHY = ("1", "true", "yes")

ConfigValue = str | bool | float | None

DEFAULT_API_BASE_URL = "http://127.0.0.1:8000"
DEFAULT_STATE_FILENAME = ".code_assistant/state.json"


def _validate_api_base_url(url: str) -> None:
    """Require an absolute ``http(s)://host`` base URL."""
    parsed = urlparse(url)
    if parsed.scheme in ("http", "https") and parsed.netloc:
        return
    msg = (
        f"Invalid api_base_url '{url}': must be an absolute http(s) URL. "
        f"Example: {DEFAULT_API_BASE_URL}"
    )
    raise ValueError(msg)


def _validate_model(model: str) -> None:
    """Warn if model string doesn't match expected patterns."""
    if not model or model == "default":
        return
    if not _MODEL_PATTERN.match(model):
        logger.warning(
            "Model '%s' contains unexpected characters; "
            "expected a bare name (e.g. 'gpt-4o-mini')",
            model,
        )


def _load_env_files(workspace: str | None = None) -> None:
    """Load dotenv files from cwd and the workspace root (if available)."""
    load_dotenv(Path.cwd() / ".env", override=False)
    if workspace:
        workspace_path = Path(workspace).expanduser()
        if workspace_path.is_dir():
            load_dotenv(workspace_path / ".env", override=False)


def _env_flag(name: str) -> bool | None:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return None
    return raw.strip().lower() in _TRUTHY


@dataclass(frozen=True)
class Config:
    """Immutable application configuration."""

    api_base_url: str = DEFAULT_API_BASE_URL
    model: str = "default"
    workspace: str = "."
    state_path: Path | None = None
    auto_apply: bool = False
    mode: SettingsMode = "basic"
    verbose: bool = False
    request_timeout: float = 120.0
    # Settings fields that were given explicitly (flag or env var).
    explicit_settings: frozenset[str] = field(default=frozenset(), compare=False)

    def __post_init__(self) -> None:
        """Validate config fields on creation.

        ``api_base_url`` must be an absolute http(s) URL, ``mode`` one of
        ``basic``/``advanced`` and ``request_timeout`` positive. A warning is
        logged when ``model`` contains unexpected characters.
        """
        _validate_api_base_url(self.api_base_url)
        _validate_model(self.model)
        if self.mode not in _MODES:
            msg = f"mode must be one of {_MODES}, got {self.mode!r}"
            raise ValueError(msg)
        if self.request_timeout <= 0:
            msg = f"request_timeout must be positive, got {self.request_timeout}"
            raise ValueError(msg)

    @property
    def workspace_path(self) -> Path:
        return Path(self.workspace).expanduser().resolve()

    @property
    def resolved_state_path(self) -> Path:
        if self.state_path is not None:
            return self.state_path.expanduser()
        return self.workspace_path / DEFAULT_STATE_FILENAME

    def settings(self, base: Settings | None = None) -> Settings:
        """Build the policy settings implied by this config.

        With *base* (typically the persisted settings), only the values in
        ``explicit_settings`` replace it; everything else is kept.
        """
        if base is None:
            return Settings(auto_apply_changes=self.auto_apply, mode=self.mode)
        changes: dict[str, bool | str] = {}
        if "auto_apply" in self.explicit_settings:
            changes["auto_apply_changes"] = self.auto_apply
        if "mode" in self.explicit_settings:
            changes["mode"] = self.mode
        return replace(base, **changes)

    @classmethod
    def from_env(cls, overrides: dict[str, ConfigValue] | None = None) -> Config:
        """Build config from environment variables, then apply overrides.

        Priority: overrides (CLI flags) > env vars > .env files > defaults.
        """
        workspace_override = overrides.get("workspace") if overrides else None
        _load_env_files(
            str(workspace_override) if isinstance(workspace_override, str) else None
        )

        env_values: dict[str, ConfigValue] = {
            "api_base_url": os.environ.get("CODE_ASSISTANT_API_BASE_URL"),
            "model": os.environ.get("CODE_ASSISTANT_MODEL"),
            "workspace": os.environ.get("CODE_ASSISTANT_WORKSPACE"),
            "state_path": os.environ.get("CODE_ASSISTANT_STATE_PATH"),
            "auto_apply": _env_flag("CODE_ASSISTANT_AUTO_APPLY"),
            "mode": os.environ.get("CODE_ASSISTANT_MODE"),
            "verbose": _env_flag("CODE_ASSISTANT_VERBOSE"),
            "request_timeout": os.environ.get("CODE_ASSISTANT_REQUEST_TIMEOUT"),
        }

        merged = {k: v for k, v in env_values.items() if v is not None and v != ""}
        if overrides:
            merged.update({k: v for k, v in overrides.items() if v is not None})

        raw_state_path = merged.get("state_path")
        raw_timeout = merged.get("request_timeout", cls.request_timeout)
        try:
            request_timeout = float(raw_timeout)  # type: ignore[arg-type]
        except (TypeError, ValueError) as exc:
            msg = f"request_timeout must be a number, got {raw_timeout!r}"
            raise ValueError(msg) from exc

        return cls(
            api_base_url=str(merged.get("api_base_url", cls.api_base_url)).rstrip("/"),
            model=str(merged.get("model", cls.model)),
            workspace=str(merged.get("workspace", cls.workspace)),
            state_path=Path(str(raw_state_path)) if raw_state_path else None,
            auto_apply=bool(merged.get("auto_apply", cls.auto_apply)),
            mode=str(merged.get("mode", cls.mode)).lower(),  # type: ignore[arg-type]
            verbose=bool(merged.get("verbose", cls.verbose)),
            request_timeout=request_timeout,
            explicit_settings=frozenset(
                name for name in ("auto_apply", "mode") if name in merged
            ),
        )
