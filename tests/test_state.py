"""Tests for code_assistant.lib.state."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from code_assistant.lib.state import AppState, Message, Settings

# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------


class TestSettings:
    def test_defaults(self) -> None:
        settings = Settings()
        assert settings.auto_apply_changes is False
        assert settings.auto_restart_workflow is True
        assert settings.mode == "basic"

    def test_invalid_mode(self) -> None:
        with pytest.raises(ValueError, match="mode must be one of"):
            Settings(mode="expert")  # type: ignore[arg-type]

    def test_dict_round_trip(self) -> None:
        settings = Settings(auto_apply_changes=True, mode="advanced")
        assert settings.to_dict() == {
            "autoApplyChanges": True,
            "autoRestartWorkflow": True,
            "mode": "advanced",
        }
        assert Settings.from_dict(settings.to_dict()) == settings


# ---------------------------------------------------------------------------
# Sessions and messages
# ---------------------------------------------------------------------------


class TestSessions:
    def test_add_message_creates_session_and_title(self) -> None:
        state = AppState()
        assert state.current_session is None
        state.add_message(Message.create("user", "  Fix the failing tests please  "))
        session = state.current_session
        assert session is not None
        assert session.title == "Fix the failing tests please"
        assert [m.role for m in state.messages] == ["user"]

    def test_title_truncated_and_set_once(self) -> None:
        state = AppState()
        state.add_message(Message.create("user", "x" * 80))
        state.add_message(Message.create("user", "second"))
        assert state.current_session.title == "x" * 60

    def test_message_ids_are_unique(self) -> None:
        ids = {Message.create("user").id for _ in range(50)}
        assert len(ids) == 50
        assert all(item.startswith("msg-") for item in ids)

    def test_update_message(self) -> None:
        state = AppState()
        message = state.add_message(Message.create("assistant"))
        state.update_message(message.id, content="Hello", metadata={"k": 1})
        assert state.get_message(message.id).content == "Hello"
        assert state.get_message(message.id).metadata == {"k": 1}

    def test_update_unknown_message(self) -> None:
        with pytest.raises(KeyError, match="unknown message"):
            AppState().update_message("msg-missing", content="x")

    def test_select_and_delete(self) -> None:
        state = AppState()
        first = state.create_session("one")
        second = state.create_session("two")
        assert state.current_session_id == second.id
        state.select_session(first.id)
        assert state.current_session_id == first.id
        state.delete_session(first.id)
        assert state.current_session_id == second.id
        with pytest.raises(KeyError):
            state.select_session(first.id)
        with pytest.raises(KeyError):
            state.delete_session(first.id)

    def test_branch_copies_prefix(self) -> None:
        state = AppState()
        m1 = state.add_message(Message.create("user", "one"))
        m2 = state.add_message(Message.create("assistant", "two"))
        state.add_message(Message.create("user", "three"))
        source_id = state.current_session_id

        branch = state.branch_session(m2.id)

        assert state.current_session_id == branch.id
        assert [m.id for m in branch.messages] == [m1.id, m2.id]
        assert branch.parent_session_id == source_id
        assert branch.branch_from_message_id == m2.id
        assert len(state.sessions[source_id].messages) == 3

        branch.messages[0].content = "changed"
        assert state.sessions[source_id].messages[0].content == "one"

    def test_branch_unknown_message(self) -> None:
        state = AppState()
        state.add_message(Message.create("user", "one"))
        with pytest.raises(KeyError):
            state.branch_session("msg-nope")

    def test_branch_without_session(self) -> None:
        with pytest.raises(ValueError, match="no current session"):
            AppState().branch_session("msg-x")


# ---------------------------------------------------------------------------
# Files and settings
# ---------------------------------------------------------------------------


class TestFilesAndSettings:
    def test_resolve_files_drops_unknown(self) -> None:
        state = AppState()
        attached = state.add_file("app.py", "print(1)", "python")
        assert state.resolve_files([attached.id, "file-missing"]) == [
            {"name": "app.py", "content": "print(1)", "language": "python"}
        ]
        state.remove_file(attached.id)
        assert state.resolve_files([attached.id]) == []

    def test_update_settings(self) -> None:
        state = AppState()
        updated = state.update_settings(auto_apply_changes=True)
        assert updated.auto_apply_changes is True
        assert state.settings is updated

    def test_pending_changes(self) -> None:
        state = AppState()
        state.set_pending_changes([{"fileName": "a.py"}])
        assert state.pending_changes == [{"fileName": "a.py"}]
        state.clear_pending_changes()
        assert state.pending_changes == []


# ---------------------------------------------------------------------------
# Persistence
# ---------------------------------------------------------------------------


class TestPersistence:
    def test_save_and_load(self, tmp_path: Path) -> None:
        path = tmp_path / "nested" / "state.json"
        state = AppState(settings=Settings(mode="advanced"), path=path)
        message = state.add_message(Message.create("user", "hi", mentioned_files=["f1"]))
        state.add_file("a.py", "x = 1", "python")
        state.pending_changes = [{"fileName": "a.py"}]
        state.save()

        loaded = AppState.load(path)
        assert loaded.current_session_id == state.current_session_id
        assert loaded.settings.mode == "advanced"
        assert loaded.get_message(message.id).mentioned_files == ["f1"]
        assert len(loaded.files) == 1
        assert loaded.pending_changes == []

    def test_load_missing_file(self, tmp_path: Path) -> None:
        state = AppState.load(tmp_path / "absent.json", settings=Settings(mode="advanced"))
        assert state.sessions == {}
        assert state.settings.mode == "advanced"
        assert state.path == tmp_path / "absent.json"

    def test_load_settings_override(self, tmp_path: Path) -> None:
        path = tmp_path / "state.json"
        AppState(path=path).save()
        loaded = AppState.load(path, settings=Settings(auto_apply_changes=True))
        assert loaded.settings.auto_apply_changes is True

    def test_load_rejects_non_object(self, tmp_path: Path) -> None:
        path = tmp_path / "state.json"
        path.write_text(json.dumps([1, 2]), encoding="utf-8")
        with pytest.raises(ValueError, match="JSON object"):
            AppState.load(path)

    def test_unknown_current_session_dropped(self) -> None:
        state = AppState.from_dict({"currentSessionId": "session-gone", "sessions": []})
        assert state.current_session_id is None

    def test_save_without_path(self) -> None:
        with pytest.raises(ValueError, match="no state path"):
            AppState().save()

    def test_persist_without_path_is_noop(self) -> None:
        AppState().persist()
