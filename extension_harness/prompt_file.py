"""Prompt artifacts dropped into the test directory for the extension to pick up."""

from __future__ import annotations

import logging
from pathlib import Path

log = logging.getLogger(__name__)

PROMPT_FILENAME = ".PROMPT"
VISIBLE_PROMPT_FILENAME = "PROMPT.txt"

STOP_TOOL_NAME = "stop_dev_extension"

_FOOTER = """

---

IMPORTANT: WHEN YOU HAVE COMPLETED THE TASK ABOVE, YOU MUST EXPLICITLY CALL THE FOLLOWING MCP TOOL:

use_mcp_tool(
  server_name: "{server_name}",
  tool_name: "{tool_name}",
  arguments: {{
    "sessionId": "{session_id}"
  }}
)

Session ID: {session_id}

This will signal that you have finished the task and allow the system to continue.
DO NOT FORGET to call this tool when you are done. The system will remain blocked until you do."""


def build_prompt(prompt: str, session_id: str, server_name: str) -> str:
    return prompt + _FOOTER.format(
        server_name=server_name,
        tool_name=STOP_TOOL_NAME,
        session_id=session_id,
    )


def prompt_paths(test_dir: str | Path) -> tuple[Path, Path]:
    base = Path(test_dir)
    return base / PROMPT_FILENAME, base / VISIBLE_PROMPT_FILENAME


def write_prompt_files(
    test_dir: str | Path,
    prompt: str,
    session_id: str,
    server_name: str,
) -> tuple[Path, Path]:
    """Write the machine and human-readable prompt files, overwriting old ones.

    Errors propagate: a session without its prompt is useless.
    """
    content = build_prompt(prompt, session_id, server_name)
    paths = prompt_paths(test_dir)
    for path in paths:
        path.write_text(content, encoding="utf-8")
    log.debug("Wrote prompt files for %s: %s", session_id, ", ".join(map(str, paths)))
    return paths


def remove_prompt_files(test_dir: str | Path, session_id: str | None = None) -> None:
    """Best-effort delete of both prompt files; failures are logged only.

    With a `session_id`, a file that names a different session (a later
    launch into the same test directory overwrote it) is left alone.
    """
    for path in prompt_paths(test_dir):
        try:
            if session_id is not None and not _names_session(path, session_id):
                continue
            path.unlink(missing_ok=True)
        except OSError:
            log.warning(
                "[%s] Failed to remove prompt file %s",
                session_id or "-", path, exc_info=True,
            )


def _names_session(path: Path, session_id: str) -> bool:
    try:
        content = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return False
    return f"Session ID: {session_id}\n" in content
