"""FastAPI application serving the chat stream and collaborator endpoints.

``POST /api/chat`` streams OpenAI chat-completion deltas as server-sent
events. The remaining endpoints are the collaborators that executed actions
call: file edits, shell commands, package installs, workflow and deployment
configuration, and tool-nudge recording. Every file and shell operation is
confined to the configured workspace root.

Run with ``code-assistant serve`` or
``uvicorn code_assistant.server.app:create_app --factory``.
"""

from __future__ import annotations

__all__ = ["ServerState", "create_app", "detect_code_changes", "router"]

import logging
import re
import threading
import uuid
from collections import deque
from collections.abc import Iterator
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import Path
from typing import Any, Literal

from fastapi import APIRouter, BackgroundTasks, Depends, FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse, StreamingResponse
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from code_assistant.lib.ai_providers import OPENAI_PROVIDER, AIProvider
from code_assistant.lib.config import Config
from code_assistant.lib.default_prompts import build_system_prompt, build_user_message
from code_assistant.lib.meta.tools import command as command_tools
from code_assistant.lib.meta.tools import filesystem, packages
from code_assistant.lib.stream.sse import encode_event

logger = logging.getLogger(__name__)

SHELL_HISTORY_LIMIT = 100
NUDGE_HISTORY_LIMIT = 50
PACKAGE_INSTALL_TIMEOUT_S = 300
_CODE_BLOCK_PATTERN = re.compile(r"```(\w+)?\n([\s\S]*?)```")
_MIN_CODE_CHANGE_CHARS = 50

WorkflowStatus = Literal["idle", "running", "success", "failed"]


def _now() -> str:
    return datetime.now(UTC).isoformat()


# --- Request / response models ---


class CamelModel(BaseModel):
    """Base model accepting and emitting camelCase field names."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ChatFile(CamelModel):
    name: str
    content: str = ""
    language: str = "plaintext"


class ChatRequest(CamelModel):
    """Request body for ``POST /api/chat``."""

    message: str = ""
    files: list[ChatFile] = Field(default_factory=list)
    system_prompt: str | None = None
    agent_name: str | None = None


class FilePathRequest(CamelModel):
    file_path: str


class FileWriteRequest(CamelModel):
    file_path: str
    content: str = ""


class FileEditRequest(CamelModel):
    """Request body for ``POST /api/file-operations/edit``."""

    file: str
    added: int = 0
    removed: int = 0
    new_content: str = ""
    old_content: str = ""
    change_type: Literal["edit", "create"] = "create"


class ShellExecuteRequest(CamelModel):
    command: str = ""
    working_directory: str | None = None


class ShellHistoryItem(CamelModel):
    id: str
    command: str
    output: str = ""
    exit_code: int = 0
    working_directory: str | None = None
    timestamp: str = Field(default_factory=_now)


class PackageDetectRequest(CamelModel):
    language: str = ""


class PackageInstallRequest(CamelModel):
    language: str = ""
    package_list: str | list[str] = ""
    confirmed: bool = False


class WorkflowConfigureRequest(CamelModel):
    current_name: str = ""
    new_name: str | None = None
    commands: list[str] | str = Field(default_factory=list)
    mode: Literal["sequential", "parallel"] = "sequential"
    set_run_button: bool = False


class WorkflowNameRequest(CamelModel):
    name: str | None = None
    workflow_name: str | None = None
    commands: list[str] | str | None = None

    @property
    def resolved_name(self) -> str:
        return (self.name or self.workflow_name or "").strip()


class DeploymentConfigRequest(CamelModel):
    build_command: str | None = None
    run_command: str = ""


class ToolNudgeRequest(CamelModel):
    tool_name: str = ""
    reason: str = ""


class ToolNudgeRecord(CamelModel):
    tool_name: str
    reason: str
    timestamp: str = Field(default_factory=_now)


# --- Server state ---


@dataclass
class WorkflowRecord:
    name: str
    commands: list[str] = field(default_factory=list)
    mode: str = "sequential"
    set_run_button: bool = False
    status: WorkflowStatus = "idle"
    stop_requested: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "commands": list(self.commands),
            "mode": self.mode,
            "setRunButton": self.set_run_button,
            "status": self.status,
        }


@dataclass
class ServerState:
    """Mutable collaborator state held on ``app.state.server``."""

    config: Config
    provider: AIProvider
    shell_history: deque[ShellHistoryItem] = field(
        default_factory=lambda: deque(maxlen=SHELL_HISTORY_LIMIT)
    )
    tool_nudges: deque[ToolNudgeRecord] = field(
        default_factory=lambda: deque(maxlen=NUDGE_HISTORY_LIMIT)
    )
    workflows: dict[str, WorkflowRecord] = field(default_factory=dict)
    deployment: dict[str, str] = field(default_factory=lambda: {"runCommand": "npm run dev"})
    lock: threading.Lock = field(default_factory=threading.Lock)

    @property
    def workspace(self) -> Path:
        return self.config.workspace_path


def get_server_state(request: Request) -> ServerState:
    return request.app.state.server


router = APIRouter()


def _split_commands(commands: list[str] | str | None) -> list[str]:
    if commands is None:
        return []
    items = commands.split("\n") if isinstance(commands, str) else commands
    return [item.strip() for item in items if item and item.strip()]


def detect_code_changes(response: str, files: list[ChatFile]) -> list[dict[str, str]]:
    """Match fenced code blocks in *response* to mentioned files.

    A block is treated as a replacement for the first file whose language
    matches the block tag, or whose name appears in the response, provided
    the block is substantial and differs from the file's current content.
    """
    if not files:
        return []
    lowered = response.lower()
    changes: list[dict[str, str]] = []
    for match in _CODE_BLOCK_PATTERN.finditer(response):
        language = match.group(1)
        code = match.group(2).strip()
        for item in files:
            if item.language != language and item.name.lower() not in lowered:
                continue
            if len(code) > _MIN_CODE_CHANGE_CHARS and code != item.content:
                changes.append(
                    {
                        "fileName": item.name,
                        "oldContent": item.content,
                        "newContent": code,
                    }
                )
                break
    return changes


# --- Endpoints ---


@router.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok"}


@router.post("/api/chat")
def chat(
    body: ChatRequest,
    server: ServerState = Depends(get_server_state),
) -> StreamingResponse:
    if not body.message.strip():
        raise HTTPException(status_code=400, detail="Message is required")

    files = [item.model_dump() for item in body.files]
    messages = [
        {
            "role": "system",
            "content": build_system_prompt(body.system_prompt, body.agent_name),
        },
        {"role": "user", "content": build_user_message(body.message, files)},
    ]

    def events() -> Iterator[str]:
        parts: list[str] = []
        try:
            for delta in server.provider.stream(messages, model=server.config.model):
                parts.append(delta)
                yield encode_event({"content": delta})
            code_changes = detect_code_changes("".join(parts), body.files)
            if code_changes:
                yield encode_event({"codeChanges": code_changes})
            done: dict[str, Any] = {"done": True}
            if body.agent_name:
                done["agentName"] = body.agent_name
            yield encode_event(done)
        except Exception:
            logger.exception("Chat stream failed")
            yield encode_event({"error": "An error occurred"})

    return StreamingResponse(
        events(),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "Connection": "keep-alive"},
    )


@router.post("/api/files/read")
def read_file(
    body: FilePathRequest,
    server: ServerState = Depends(get_server_state),
) -> dict[str, str]:
    try:
        content, display_path = filesystem.read_text_file(server.workspace, body.file_path)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except (FileNotFoundError, IsADirectoryError) as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return {"filePath": display_path, "content": content}


@router.post("/api/files/write")
def write_file(
    body: FileWriteRequest,
    server: ServerState = Depends(get_server_state),
) -> dict[str, Any]:
    try:
        display_path = filesystem.write_text_file(
            server.workspace, body.file_path, body.content
        )
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    logger.info("Wrote %s", display_path)
    return {"filePath": display_path, "success": True}


@router.post("/api/files/delete")
def delete_file(
    body: FilePathRequest,
    server: ServerState = Depends(get_server_state),
) -> dict[str, Any]:
    try:
        display_path = filesystem.delete_path(server.workspace, body.file_path)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except FileNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    logger.info("Deleted %s", display_path)
    return {"filePath": display_path, "success": True}


@router.post("/api/file-operations/edit")
def edit_file(
    body: FileEditRequest,
    server: ServerState = Depends(get_server_state),
) -> dict[str, Any]:
    try:
        display_path = filesystem.apply_file_edit(
            server.workspace,
            body.file,
            new_content=body.new_content,
            old_content=body.old_content,
            change_type=body.change_type,
        )
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except (FileNotFoundError, IsADirectoryError) as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except LookupError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    logger.info(
        "Applied %s to %s (+%d/-%d)",
        body.change_type,
        display_path,
        body.added,
        body.removed,
    )
    return {"file": display_path, "changeType": body.change_type, "success": True}


@router.post("/api/shell/execute", response_model=ShellHistoryItem)
def execute_shell(
    body: ShellExecuteRequest,
    server: ServerState = Depends(get_server_state),
) -> ShellHistoryItem:
    if not body.command.strip():
        raise HTTPException(status_code=400, detail="Command is required")
    try:
        result = command_tools.run_shell_command(
            server.workspace, body.command, cwd=body.working_directory
        )
    except (ValueError, NotADirectoryError) as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    item = ShellHistoryItem(
        id=f"cmd_{uuid.uuid4().hex[:12]}",
        command=body.command,
        output=result.output,
        exit_code=result.exit_code,
        working_directory=body.working_directory,
    )
    with server.lock:
        server.shell_history.appendleft(item)
    return item


@router.get("/api/shell/history", response_model=list[ShellHistoryItem])
def shell_history(server: ServerState = Depends(get_server_state)) -> list[ShellHistoryItem]:
    return list(server.shell_history)


@router.delete("/api/shell/history")
def clear_shell_history(server: ServerState = Depends(get_server_state)) -> dict[str, bool]:
    with server.lock:
        server.shell_history.clear()
    return {"success": True}


@router.post("/api/packages/detect")
def detect_packages(
    body: PackageDetectRequest,
    server: ServerState = Depends(get_server_state),
) -> dict[str, Any]:
    if not body.language.strip():
        raise HTTPException(status_code=400, detail="language is required")
    manager = packages.detect_package_manager(server.workspace, body.language)
    if manager is None:
        raise HTTPException(
            status_code=404, detail=f"No package manager found for {body.language}"
        )
    return {"manager": manager.to_dict()}


@router.post("/api/packages/install")
def install_packages(
    body: PackageInstallRequest,
    server: ServerState = Depends(get_server_state),
) -> dict[str, Any]:
    names = packages.split_package_list(body.package_list)
    if not body.language.strip() or not names:
        raise HTTPException(
            status_code=400, detail="language and packageList are required"
        )
    manager = packages.detect_package_manager(server.workspace, body.language)
    if manager is None:
        raise HTTPException(
            status_code=400, detail=f"No package manager detected for {body.language}"
        )
    command = packages.format_command(packages.build_install_command(manager, names))
    if not body.confirmed:
        return {
            "requiresConfirmation": True,
            "manager": manager.name,
            "packages": names,
            "command": command,
        }

    logger.info("Installing with %s: %s", manager.name, command)
    result = command_tools.run_shell_command(
        server.workspace, command, timeout_s=PACKAGE_INSTALL_TIMEOUT_S
    )
    if not result.success:
        detail = (result.stderr or result.stdout).strip() or f"exit code {result.exit_code}"
        raise HTTPException(
            status_code=500, detail=f"Failed to install packages: {detail}"
        )
    return {
        "success": True,
        "language": body.language,
        "packages": names,
        "manager": manager.name,
        "output": result.output,
        "timestamp": _now(),
    }


@router.post("/api/workflow/configure")
def configure_workflow(
    body: WorkflowConfigureRequest,
    server: ServerState = Depends(get_server_state),
) -> dict[str, Any]:
    name = (body.new_name or body.current_name).strip()
    if not name:
        raise HTTPException(status_code=400, detail="Workflow name is required")
    with server.lock:
        if body.current_name and body.current_name != name:
            server.workflows.pop(body.current_name, None)
        previous = server.workflows.get(name)
        record = WorkflowRecord(
            name=name,
            commands=_split_commands(body.commands),
            mode=body.mode,
            set_run_button=body.set_run_button,
            status=previous.status if previous else "idle",
        )
        server.workflows[name] = record
    logger.info("Configured workflow %s (%d command(s))", name, len(record.commands))
    return {"success": True, "workflow": record.to_dict()}


@router.get("/api/workflow/status")
def workflow_status(
    name: str | None = None,
    server: ServerState = Depends(get_server_state),
) -> dict[str, Any]:
    if name:
        record = server.workflows.get(name)
        return record.to_dict() if record else {"name": name, "status": "idle"}
    return {"workflows": [record.to_dict() for record in server.workflows.values()]}


def _run_workflow(server: ServerState, record: WorkflowRecord) -> None:
    def run_one(command: str) -> bool:
        result = command_tools.run_shell_command(server.workspace, command)
        if not result.success:
            logger.warning(
                "Workflow %s command failed (%d): %s", record.name, result.exit_code, command
            )
        return result.success

    if record.mode == "parallel":
        with ThreadPoolExecutor(max_workers=max(1, len(record.commands))) as pool:
            ok = all(pool.map(run_one, record.commands))
    else:
        ok = True
        for command in record.commands:
            if record.stop_requested:
                break
            if not run_one(command):
                ok = False
                break

    with server.lock:
        if record.stop_requested:
            record.status = "idle"
        else:
            record.status = "success" if ok else "failed"
    logger.info("Workflow %s finished: %s", record.name, record.status)


@router.post("/api/workflow/execute")
def execute_workflow(
    body: WorkflowNameRequest,
    background_tasks: BackgroundTasks,
    server: ServerState = Depends(get_server_state),
) -> dict[str, Any]:
    name = body.resolved_name
    if not name:
        raise HTTPException(status_code=400, detail="Workflow name is required")
    with server.lock:
        record = server.workflows.get(name) or WorkflowRecord(name=name)
        if body.commands is not None:
            record.commands = _split_commands(body.commands)
        if not record.commands:
            raise HTTPException(
                status_code=400, detail=f"Workflow {name} has no commands"
            )
        record.status = "running"
        record.stop_requested = False
        server.workflows[name] = record
    background_tasks.add_task(_run_workflow, server, record)
    return {"success": True, "status": "running"}


@router.post("/api/workflow/restart")
def restart_workflow(
    background_tasks: BackgroundTasks,
    server: ServerState = Depends(get_server_state),
) -> dict[str, Any]:
    """Re-run the workflow bound to the run button, if one is configured."""
    with server.lock:
        candidates = [
            record
            for record in server.workflows.values()
            if record.set_run_button and record.commands
        ]
        if not candidates:
            return {"success": True, "workflow": None}
        record = candidates[-1]
        if record.status == "running":
            return {"success": True, "workflow": record.name, "status": "running"}
        record.status = "running"
        record.stop_requested = False
    logger.info("Restarting workflow %s", record.name)
    background_tasks.add_task(_run_workflow, server, record)
    return {"success": True, "workflow": record.name, "status": "running"}


@router.post("/api/workflow/stop")
def stop_workflow(
    body: WorkflowNameRequest,
    server: ServerState = Depends(get_server_state),
) -> dict[str, bool]:
    name = body.resolved_name
    if not name:
        raise HTTPException(status_code=400, detail="Workflow name is required")
    with server.lock:
        record = server.workflows.setdefault(name, WorkflowRecord(name=name))
        record.stop_requested = True
        record.status = "idle"
    return {"success": True}


@router.post("/api/deployment/configure")
def configure_deployment(
    body: DeploymentConfigRequest,
    server: ServerState = Depends(get_server_state),
) -> dict[str, Any]:
    if not body.run_command.strip():
        raise HTTPException(status_code=400, detail="runCommand is required")
    config: dict[str, str] = {"runCommand": body.run_command.strip()}
    if body.build_command and body.build_command.strip():
        config["buildCommand"] = body.build_command.strip()
    with server.lock:
        server.deployment = config
    logger.info("Deployment configured: %s", config)
    return {"success": True, "config": config}


@router.get("/api/deployment/config")
def deployment_config(server: ServerState = Depends(get_server_state)) -> dict[str, str]:
    return dict(server.deployment)


@router.post("/api/workspace-tools/nudge")
def record_nudge(
    body: ToolNudgeRequest,
    server: ServerState = Depends(get_server_state),
) -> dict[str, Any]:
    if not body.tool_name.strip() or not body.reason.strip():
        raise HTTPException(status_code=400, detail="toolName and reason are required")
    nudge = ToolNudgeRecord(tool_name=body.tool_name, reason=body.reason)
    with server.lock:
        server.tool_nudges.appendleft(nudge)
    logger.info("Nudge to %s: %s", nudge.tool_name, nudge.reason)
    return {"success": True, "nudge": nudge.model_dump(by_alias=True)}


@router.get("/api/workspace-tools/nudges", response_model=list[ToolNudgeRecord])
def list_nudges(server: ServerState = Depends(get_server_state)) -> list[ToolNudgeRecord]:
    return list(server.tool_nudges)


# --- Application factory ---


async def _http_error_handler(request: Request, exc: HTTPException) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content={"error": str(exc.detail)})


def create_app(
    config: Config | None = None,
    *,
    provider: AIProvider | None = None,
) -> FastAPI:
    """Build the FastAPI app bound to *config* (``Config.from_env()`` by default)."""
    resolved = config or Config.from_env()
    app = FastAPI(
        title="code_assistant",
        description="Streaming chat assistant with directive execution endpoints.",
        version="0.1.0",
    )
    app.state.server = ServerState(config=resolved, provider=provider or OPENAI_PROVIDER)
    app.add_exception_handler(HTTPException, _http_error_handler)
    app.include_router(router)
    return app
