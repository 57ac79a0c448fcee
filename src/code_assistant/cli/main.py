"""CLI entry point: stream a chat turn or serve the collaborator API."""

from __future__ import annotations

import argparse
import asyncio
import contextlib
import logging
import signal
import sys
from pathlib import Path

from code_assistant.lib.actions import (
    ActionDispatcher,
    ActionQueue,
    BatchProgress,
    BatchRunner,
    HttpActionExecutor,
)
from code_assistant.lib.config import Config
from code_assistant.lib.meta.tools.filesystem import read_text_file
from code_assistant.lib.notifications import Notification, Notifier
from code_assistant.lib.state import AppState, Message
from code_assistant.lib.stream import StreamController

_LANGUAGES = {
    ".py": "python",
    ".js": "javascript",
    ".jsx": "javascript",
    ".ts": "typescript",
    ".tsx": "typescript",
    ".json": "json",
    ".md": "markdown",
    ".html": "html",
    ".css": "css",
    ".sh": "bash",
    ".toml": "toml",
    ".yaml": "yaml",
    ".yml": "yaml",
}


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser for the ``code-assistant`` command."""
    parser = argparse.ArgumentParser(
        prog="code-assistant",
        description="Streaming coding assistant with directive execution.",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        default=None,
        help="Enable debug logging.",
    )
    parser.add_argument(
        "--workspace",
        default=None,
        help="Workspace root for files, commands and state (default: cwd).",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    chat = subparsers.add_parser("chat", help="Send one message and stream the reply.")
    chat.add_argument("message", help="Message to send.")
    chat.add_argument(
        "--file",
        dest="files",
        action="append",
        default=[],
        help="Workspace-relative file to mention (repeatable).",
    )
    chat.add_argument("--agent", default=None, help="Agent preset name.")
    chat.add_argument(
        "--system-prompt",
        default=None,
        help="Replace the default assistant persona.",
    )
    chat.add_argument(
        "--api-base-url",
        default=None,
        help="Base URL of the chat/collaborator server.",
    )
    chat.add_argument(
        "--auto-apply",
        action="store_true",
        default=None,
        help="Execute non-dangerous actions as soon as they are detected.",
    )
    chat.add_argument(
        "--mode",
        choices=("basic", "advanced"),
        default=None,
        help="Assistant mode (advanced logs edit requests).",
    )
    chat.add_argument(
        "-y",
        "--yes",
        action="store_true",
        help="Run every queued action after the reply completes.",
    )
    chat.add_argument(
        "--state-path",
        default=None,
        help="JSON file holding sessions, messages, files and settings.",
    )

    serve = subparsers.add_parser("serve", help="Run the HTTP server.")
    serve.add_argument("--host", default="127.0.0.1")
    serve.add_argument("--port", type=int, default=8000)
    serve.add_argument("--model", default=None, help="Chat model (overrides env).")
    return parser


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _print_notification(notification: Notification) -> None:
    prefix = "!" if notification.variant == "destructive" else "*"
    print(
        f"\n[{prefix}] {notification.title}: {notification.description}",
        file=sys.stderr,
    )


def _print_progress(progress: BatchProgress) -> None:
    current = f" ({progress.current})" if progress.current else ""
    print(
        f"  {progress.completed}/{progress.total} done, {progress.failed} failed{current}",
        file=sys.stderr,
    )


class _StreamPrinter:
    """Print only the part of the streamed message not printed yet."""

    def __init__(self) -> None:
        self._printed = 0

    def __call__(self, message: Message) -> None:
        if message.metadata is not None:
            return
        text = message.content
        if len(text) > self._printed:
            print(text[self._printed :], end="", flush=True)
            self._printed = len(text)


def _attach_files(state: AppState, workspace: Path, paths: list[str]) -> list[str]:
    file_ids: list[str] = []
    for rel_path in paths:
        content, display_path = read_text_file(workspace, rel_path)
        language = _LANGUAGES.get(Path(display_path).suffix.lower(), "plaintext")
        file_ids.append(state.add_file(display_path, content, language).id)
    return file_ids


def _print_queue(queue: ActionQueue) -> None:
    pending = queue.pending()
    if not pending:
        return
    print(f"\n{len(pending)} action(s) awaiting confirmation:")
    for action in pending:
        print(f"  - [{action.type}] {action.label}")


async def _run_chat(config: Config, args: argparse.Namespace) -> int:
    state = AppState.load(config.resolved_state_path)
    state.settings = config.settings(state.settings)
    file_ids = _attach_files(state, config.workspace_path, args.files)
    notifier = Notifier(sink=_print_notification)
    queue = ActionQueue()
    executor = HttpActionExecutor(config.api_base_url, timeout=config.request_timeout)
    dispatcher = ActionDispatcher(
        state=state, queue=queue, executor=executor, notifier=notifier
    )
    controller = StreamController(
        app_state=state,
        dispatcher=dispatcher,
        api_base_url=config.api_base_url,
        timeout=config.request_timeout,
        on_update=_StreamPrinter(),
    )

    loop = asyncio.get_running_loop()
    with contextlib.suppress(NotImplementedError):
        loop.add_signal_handler(signal.SIGINT, controller.cancel)
    try:
        message = await controller.send_message(
            args.message,
            file_ids,
            system_prompt=args.system_prompt,
            agent_name=args.agent,
        )
        if controller.state != "completed":
            print(f"\n{message.content}", file=sys.stderr)
        else:
            print()
        _print_queue(queue)
        if args.yes and queue.pending():
            runner = BatchRunner(
                executor,
                notifier,
                on_progress=_print_progress,
                on_changes_applied=dispatcher.restart_workflow,
            )
            await queue.run_pending(runner)
    finally:
        with contextlib.suppress(NotImplementedError):
            loop.remove_signal_handler(signal.SIGINT)
        await controller.aclose()
        await executor.aclose()
    return 0 if controller.state == "completed" else 1


def _serve(config: Config, args: argparse.Namespace) -> None:
    import uvicorn

    from code_assistant.server.app import create_app

    uvicorn.run(create_app(config), host=args.host, port=args.port)


def main(argv: list[str] | None = None) -> None:
    """Entry point for the CLI."""
    parser = build_parser()
    args = parser.parse_args(argv)

    overrides = {
        "workspace": args.workspace,
        "verbose": args.verbose,
    }
    if args.command == "chat":
        overrides.update(
            {
                "api_base_url": args.api_base_url,
                "auto_apply": args.auto_apply,
                "mode": args.mode,
                "state_path": args.state_path,
            }
        )
    else:
        overrides["model"] = args.model

    try:
        config = Config.from_env(overrides=overrides)
    except ValueError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        sys.exit(1)
    _configure_logging(config.verbose)

    if args.command == "serve":
        _serve(config, args)
        return

    try:
        exit_code = asyncio.run(_run_chat(config, args))
    except (FileNotFoundError, IsADirectoryError, ValueError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        sys.exit(1)
    if exit_code:
        sys.exit(exit_code)


if __name__ == "__main__":
    main()
