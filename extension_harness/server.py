"""MCP server exposing the extension-testing tools over stdio or HTTP."""

from __future__ import annotations

from mcp.server.fastmcp import FastMCP

from . import tools
from .config import Config
from .expert_panel import ExpertPanel
from .session_manager import SessionSupervisor
from .session_manager.supervisor import DEFAULT_SERVER_NAME

# Default port for the persistent HTTP daemon
DEFAULT_PORT = 8902


def create_server(
    supervisor: SessionSupervisor | None = None,
    config: Config | None = None,
    port: int = DEFAULT_PORT,
) -> FastMCP:
    """Create and configure the MCP server."""

    cfg = config or Config()
    sv = supervisor or SessionSupervisor(
        command=cfg.editor_command,
        grace_timeout=cfg.grace_timeout,
        server_name=DEFAULT_SERVER_NAME,
    )
    panel = ExpertPanel(
        api_key=cfg.openrouter_api_key,
        default_models=cfg.panel_models or (cfg.default_model,),
        concurrency=cfg.panel_concurrency,
    )

    mcp = FastMCP(
        name=sv.server_name,
        instructions=(
            "Runs VS Code extensions in development mode against a prompt. "
            "launch_dev_extension blocks until the session finishes; whoever "
            "completes the prompt calls stop_dev_extension with the session id."
        ),
        host="127.0.0.1",
        port=port,
        stateless_http=True,
    )

    # ------------------------------------------------------------------
    # Tool: launch_dev_extension
    # ------------------------------------------------------------------
    @mcp.tool()
    async def launch_dev_extension(workspaceDir: str, prompt: str) -> str:  # noqa: N803
        """Launch a VSCode extension in development mode with a test prompt.

        Runs `<workspaceDir>/src` as the extension under development with
        `<workspaceDir>/examples` as the opened folder, and waits until the
        session is stopped or the editor exits.

        Args:
            workspaceDir: Path to the workspace directory containing the extension.
            prompt: The prompt to execute in the extension.
        """
        return await tools.launch_dev_extension(sv, workspaceDir, prompt)

    # ------------------------------------------------------------------
    # Tool: stop_dev_extension
    # ------------------------------------------------------------------
    @mcp.tool()
    async def stop_dev_extension(sessionId: str | None = None) -> str:  # noqa: N803
        """Stop a VSCode extension test by session ID or the currently running test.

        Sends SIGTERM to the editor, waits up to the grace period, then
        escalates to SIGKILL.

        Args:
            sessionId: ID of the session to stop. If not provided, stops the current session.
        """
        return await tools.stop_dev_extension(sv, sessionId)

    # ------------------------------------------------------------------
    # Tool: write_prompt_file
    # ------------------------------------------------------------------
    @mcp.tool()
    def write_prompt_file(workspaceDir: str, prompt: str) -> str:  # noqa: N803
        """Write a prompt file without launching VSCode (for debugging).

        Args:
            workspaceDir: Path to the workspace directory.
            prompt: The prompt to write to the file.
        """
        return tools.write_prompt_file(sv, workspaceDir, prompt)

    # ------------------------------------------------------------------
    # Tool: list_dev_extensions
    # ------------------------------------------------------------------
    @mcp.tool()
    def list_dev_extensions() -> dict:
        """List all running extension test sessions with PID, status and uptime."""
        return tools.list_dev_extensions(sv)

    # ------------------------------------------------------------------
    # Tool: get_dev_extension_output
    # ------------------------------------------------------------------
    @mcp.tool()
    def get_dev_extension_output(sessionId: str, tail: int = 2000) -> dict:  # noqa: N803
        """Get captured stdout/stderr from a running extension test session.

        Args:
            sessionId: ID of the session.
            tail: Number of characters to return from the end of each stream.
        """
        return tools.get_dev_extension_output(sv, sessionId, tail)

    # ------------------------------------------------------------------
    # Tool: ask_expert_panel
    # ------------------------------------------------------------------
    @mcp.tool()
    async def ask_expert_panel(
        question: str,
        models: list[str] | None = None,
        context: str | None = None,
    ) -> str:
        """Ask a panel of LLMs the same question in parallel and return every answer.

        Args:
            question: The question for the panel.
            models: OpenRouter model ids. Defaults to the configured panel.
            context: Optional code or background the experts should consider.
        """
        return await tools.ask_expert_panel(panel, question, models, context)

    return mcp
