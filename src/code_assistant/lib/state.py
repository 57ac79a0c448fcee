"""Conversation state: sessions, messages, workspace files and settings.

``AppState`` is the single mutable object shared by the stream controller, the
action dispatcher and the CLI. It is deliberately plain: every mutation is a
synchronous method call made from the event loop, so no locking is needed.

Persistence is narrow. ``to_dict``/``from_dict`` round-trip the sessions,
messages, files, settings and the current session id as JSON. The pending
action queue and any in-flight stream are never persisted.
"""

from __future__ import annotations

__all__ = [
    "AppState",
    "Message",
    "Role",
    "Session",
    "Settings",
    "SettingsMode",
    "WorkspaceFile",
]

import copy
import json
import logging
import uuid
from dataclasses import dataclass, field, replace
from datetime import UTC, datetime
from pathlib import Path
from typing import Any, Literal

logger = logging.getLogger(__name__)

Role = Literal["user", "assistant"]
SettingsMode = Literal["basic", "advanced"]

_SETTINGS_MODES: tuple[SettingsMode, ...] = ("basic", "advanced")
_DEFAULT_SESSION_TITLE = "New chat"


def _now() -> str:
    return datetime.now(UTC).isoformat()


def _new_id(prefix: str) -> str:
    return f"{prefix}-{uuid.uuid4().hex[:12]}"


@dataclass(frozen=True)
class Settings:
    """User preferences that drive the auto-execution policy."""

    auto_apply_changes: bool = False
    auto_restart_workflow: bool = True
    mode: SettingsMode = "basic"

    def __post_init__(self) -> None:
        if self.mode not in _SETTINGS_MODES:
            msg = f"mode must be one of {_SETTINGS_MODES}, got {self.mode!r}"
            raise ValueError(msg)

    def to_dict(self) -> dict[str, Any]:
        return {
            "autoApplyChanges": self.auto_apply_changes,
            "autoRestartWorkflow": self.auto_restart_workflow,
            "mode": self.mode,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Settings:
        return cls(
            auto_apply_changes=bool(data.get("autoApplyChanges", False)),
            auto_restart_workflow=bool(data.get("autoRestartWorkflow", True)),
            mode=data.get("mode", "basic"),
        )


@dataclass
class Message:
    """One chat message. ``metadata`` holds parsed directives once complete."""

    id: str
    role: Role
    content: str = ""
    mentioned_files: list[str] | None = None
    metadata: dict[str, Any] | None = None
    created_at: str = field(default_factory=_now)

    @classmethod
    def create(
        cls,
        role: Role,
        content: str = "",
        *,
        mentioned_files: list[str] | None = None,
    ) -> Message:
        return cls(
            id=_new_id("msg"),
            role=role,
            content=content,
            mentioned_files=list(mentioned_files) if mentioned_files else None,
        )

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "id": self.id,
            "role": self.role,
            "content": self.content,
            "createdAt": self.created_at,
        }
        if self.mentioned_files:
            data["mentionedFiles"] = list(self.mentioned_files)
        if self.metadata is not None:
            data["metadata"] = self.metadata
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Message:
        return cls(
            id=str(data["id"]),
            role=data.get("role", "user"),
            content=str(data.get("content", "")),
            mentioned_files=data.get("mentionedFiles") or None,
            metadata=data.get("metadata"),
            created_at=str(data.get("createdAt") or _now()),
        )


@dataclass
class Session:
    """A conversation. Branches remember where they were forked from."""

    id: str
    title: str = _DEFAULT_SESSION_TITLE
    messages: list[Message] = field(default_factory=list)
    parent_session_id: str | None = None
    branch_from_message_id: str | None = None
    created_at: str = field(default_factory=_now)
    updated_at: str = field(default_factory=_now)

    def touch(self) -> None:
        self.updated_at = _now()

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "id": self.id,
            "title": self.title,
            "messages": [message.to_dict() for message in self.messages],
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }
        if self.parent_session_id:
            data["parentSessionId"] = self.parent_session_id
        if self.branch_from_message_id:
            data["branchFromMessageId"] = self.branch_from_message_id
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Session:
        return cls(
            id=str(data["id"]),
            title=str(data.get("title") or _DEFAULT_SESSION_TITLE),
            messages=[Message.from_dict(item) for item in data.get("messages", [])],
            parent_session_id=data.get("parentSessionId"),
            branch_from_message_id=data.get("branchFromMessageId"),
            created_at=str(data.get("createdAt") or _now()),
            updated_at=str(data.get("updatedAt") or _now()),
        )


@dataclass(frozen=True)
class WorkspaceFile:
    """A file the user has attached to the conversation."""

    id: str
    name: str
    content: str
    language: str = "plaintext"

    def to_context(self) -> dict[str, str]:
        """Return the ``{name, content, language}`` triple sent with a chat."""
        return {"name": self.name, "content": self.content, "language": self.language}

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, **self.to_context()}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> WorkspaceFile:
        return cls(
            id=str(data["id"]),
            name=str(data["name"]),
            content=str(data.get("content", "")),
            language=str(data.get("language") or "plaintext"),
        )


class AppState:
    """In-memory application state with optional JSON persistence."""

    def __init__(
        self,
        *,
        settings: Settings | None = None,
        path: Path | None = None,
    ) -> None:
        self.settings = settings or Settings()
        self.path = path
        self.sessions: dict[str, Session] = {}
        self.files: dict[str, WorkspaceFile] = {}
        self.current_session_id: str | None = None
        self.pending_changes: list[dict[str, Any]] = []

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    def create_session(self, title: str = _DEFAULT_SESSION_TITLE) -> Session:
        session = Session(id=_new_id("session"), title=title)
        self.sessions[session.id] = session
        self.current_session_id = session.id
        logger.debug("Created session %s", session.id)
        return session

    @property
    def current_session(self) -> Session | None:
        if self.current_session_id is None:
            return None
        return self.sessions.get(self.current_session_id)

    def ensure_session(self) -> Session:
        """Return the current session, creating one when there is none."""
        session = self.current_session
        if session is None:
            session = self.create_session()
        return session

    def select_session(self, session_id: str) -> Session:
        session = self.sessions.get(session_id)
        if session is None:
            msg = f"unknown session: {session_id}"
            raise KeyError(msg)
        self.current_session_id = session_id
        return session

    def delete_session(self, session_id: str) -> None:
        if self.sessions.pop(session_id, None) is None:
            msg = f"unknown session: {session_id}"
            raise KeyError(msg)
        if self.current_session_id == session_id:
            self.current_session_id = next(iter(self.sessions), None)

    def branch_session(self, message_id: str, *, title: str | None = None) -> Session:
        """Fork the current session at *message_id*.

        The new session receives copies of every message up to and including
        *message_id* and becomes current; the source session is left as-is.
        """
        source = self.current_session
        if source is None:
            msg = "no current session to branch from"
            raise ValueError(msg)
        index = next(
            (i for i, message in enumerate(source.messages) if message.id == message_id),
            None,
        )
        if index is None:
            msg = f"message {message_id} is not in session {source.id}"
            raise KeyError(msg)

        branch = Session(
            id=_new_id("session"),
            title=title or f"{source.title} (branch)",
            messages=[copy.deepcopy(m) for m in source.messages[: index + 1]],
            parent_session_id=source.id,
            branch_from_message_id=message_id,
        )
        self.sessions[branch.id] = branch
        self.current_session_id = branch.id
        logger.info("Branched session %s from %s at %s", branch.id, source.id, message_id)
        return branch

    # ------------------------------------------------------------------
    # Messages
    # ------------------------------------------------------------------

    @property
    def messages(self) -> list[Message]:
        session = self.current_session
        return list(session.messages) if session is not None else []

    def add_message(self, message: Message) -> Message:
        session = self.ensure_session()
        session.messages.append(message)
        if message.role == "user" and session.title == _DEFAULT_SESSION_TITLE:
            session.title = message.content.strip()[:60] or _DEFAULT_SESSION_TITLE
        session.touch()
        return message

    def get_message(self, message_id: str) -> Message | None:
        for session in self.sessions.values():
            for message in session.messages:
                if message.id == message_id:
                    return message
        return None

    def update_message(
        self,
        message_id: str,
        *,
        content: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> Message:
        message = self.get_message(message_id)
        if message is None:
            msg = f"unknown message: {message_id}"
            raise KeyError(msg)
        if content is not None:
            message.content = content
        if metadata is not None:
            message.metadata = metadata
        return message

    # ------------------------------------------------------------------
    # Files
    # ------------------------------------------------------------------

    def add_file(self, name: str, content: str, language: str = "plaintext") -> WorkspaceFile:
        workspace_file = WorkspaceFile(
            id=_new_id("file"), name=name, content=content, language=language
        )
        self.files[workspace_file.id] = workspace_file
        return workspace_file

    def remove_file(self, file_id: str) -> None:
        self.files.pop(file_id, None)

    def resolve_files(self, file_ids: list[str] | tuple[str, ...]) -> list[dict[str, str]]:
        """Map file ids to chat context triples, dropping unknown ids."""
        resolved: list[dict[str, str]] = []
        for file_id in file_ids:
            workspace_file = self.files.get(file_id)
            if workspace_file is None:
                logger.debug("Dropping unknown mentioned file %s", file_id)
                continue
            resolved.append(workspace_file.to_context())
        return resolved

    # ------------------------------------------------------------------
    # Settings and pending changes
    # ------------------------------------------------------------------

    def update_settings(self, **changes: Any) -> Settings:
        self.settings = replace(self.settings, **changes)
        return self.settings

    def set_pending_changes(self, changes: list[dict[str, Any]]) -> None:
        self.pending_changes = list(changes)

    def clear_pending_changes(self) -> None:
        self.pending_changes = []

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def to_dict(self) -> dict[str, Any]:
        return {
            "settings": self.settings.to_dict(),
            "currentSessionId": self.current_session_id,
            "sessions": [session.to_dict() for session in self.sessions.values()],
            "files": [item.to_dict() for item in self.files.values()],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any], *, path: Path | None = None) -> AppState:
        state = cls(settings=Settings.from_dict(data.get("settings", {})), path=path)
        for raw in data.get("sessions", []):
            session = Session.from_dict(raw)
            state.sessions[session.id] = session
        for raw in data.get("files", []):
            workspace_file = WorkspaceFile.from_dict(raw)
            state.files[workspace_file.id] = workspace_file
        current = data.get("currentSessionId")
        state.current_session_id = current if current in state.sessions else None
        return state

    def save(self, path: Path | None = None) -> Path:
        target = path or self.path
        if target is None:
            msg = "no state path configured"
            raise ValueError(msg)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(json.dumps(self.to_dict(), indent=2), encoding="utf-8")
        return target

    @classmethod
    def load(cls, path: Path, *, settings: Settings | None = None) -> AppState:
        """Load state from *path*; a missing file yields a fresh state."""
        if not path.is_file():
            return cls(settings=settings, path=path)
        data = json.loads(path.read_text(encoding="utf-8"))
        if not isinstance(data, dict):
            msg = f"state file {path} does not contain a JSON object"
            raise ValueError(msg)
        state = cls.from_dict(data, path=path)
        if settings is not None:
            state.settings = settings
        return state

    def persist(self) -> None:
        """Save when a path is configured; otherwise do nothing."""
        if self.path is not None:
            self.save()
