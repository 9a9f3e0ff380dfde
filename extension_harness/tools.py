"""Tool bodies, kept free of MCP types apart from ToolError so they test directly."""

from __future__ import annotations

import logging
import os
from collections.abc import Sequence
from pathlib import Path
from typing import Any

from mcp.server.fastmcp.exceptions import ToolError

from .errors import ExpertPanelError, HarnessError, SessionNotFound
from .expert_panel import ExpertPanel, format_panel
from .formatter import format_completed, format_stopped
from .prompt_file import write_prompt_files
from .session_manager import SessionSupervisor

log = logging.getLogger(__name__)

EXTENSION_SUBDIR = "src"
TEST_SUBDIR = "examples"


def resolve_workspace(workspace_dir: str) -> tuple[Path, Path, Path]:
    """Return (workspace, extension path, test dir), relative paths against cwd."""
    workspace = Path(os.path.abspath(workspace_dir))
    return workspace, workspace / EXTENSION_SUBDIR, workspace / TEST_SUBDIR


async def launch_dev_extension(
    sv: SessionSupervisor, workspace_dir: str, prompt: str,
) -> str:
    workspace, extension_path, test_dir = resolve_workspace(workspace_dir)

    if not workspace.is_dir():
        raise ToolError(f"Error: Workspace directory does not exist: {workspace}")
    if not extension_path.is_dir():
        raise ToolError(
            f"Error: Extension path does not exist: {extension_path} "
            f"(derived from {workspace}/{EXTENSION_SUBDIR})"
        )
    if not test_dir.is_dir():
        test_dir.mkdir(parents=True, exist_ok=True)
        log.info("Created test directory: %s", test_dir)

    try:
        session_id = await sv.launch(str(extension_path), prompt, str(test_dir))
    except (HarnessError, OSError) as exc:
        log.error("Error launching extension: %s", exc)
        raise ToolError(f"Error launching VSCode extension: {exc}") from exc

    log.info("Extension launched with session ID: %s. Waiting for completion...", session_id)
    try:
        result = await sv.await_completion(session_id)
    except SessionNotFound as exc:
        raise ToolError(
            f"Error waiting for VSCode extension test to complete: {exc}"
        ) from exc

    return format_completed(result)


async def stop_dev_extension(
    sv: SessionSupervisor, session_id: str | None = None,
) -> str:
    if session_id:
        result = await sv.stop_by_id(session_id)
        if result is None:
            return (
                f"No VSCode extension test found with session ID: {session_id}. "
                "Nothing to stop."
            )
    else:
        result = await sv.stop_current()
        if result is None:
            return "No active VSCode extension test found. Nothing to stop."

    return format_stopped(result)


def write_prompt_file(sv: SessionSupervisor, workspace_dir: str, prompt: str) -> str:
    """Write the prompt files without launching anything (debugging aid)."""
    workspace, _, test_dir = resolve_workspace(workspace_dir)
    if not workspace.is_dir():
        raise ToolError(f"Error: Workspace directory does not exist: {workspace}")
    test_dir.mkdir(parents=True, exist_ok=True)

    session_id = sv.registry.new_id()
    try:
        prompt_path, visible_path = write_prompt_files(
            test_dir, prompt, session_id, sv.server_name,
        )
    except OSError as exc:
        raise ToolError(f"Error writing prompt file: {exc}") from exc

    return (
        f"Prompt file written successfully to:\n- {prompt_path}\n"
        f"- {visible_path} (visible copy)"
    )


def list_dev_extensions(sv: SessionSupervisor) -> dict[str, Any]:
    sessions = sv.list_sessions()
    return {"count": len(sessions), "sessions": sessions}


def get_dev_extension_output(
    sv: SessionSupervisor, session_id: str, tail: int = 2000,
) -> dict[str, Any]:
    try:
        return sv.get_output(session_id, tail=tail)
    except SessionNotFound:
        return {
            "session_id": session_id,
            "status": "not_found",
            "error": f"No session '{session_id}'",
        }


async def ask_expert_panel(
    panel: ExpertPanel,
    question: str,
    models: Sequence[str] | None = None,
    context: str | None = None,
) -> str:
    try:
        answers = await panel.ask(question, models=models, context=context)
    except ExpertPanelError as exc:
        raise ToolError(str(exc)) from exc
    return format_panel(answers)
