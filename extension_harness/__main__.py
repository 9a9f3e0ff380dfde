"""Run the extension harness MCP server.

Usage:
    python -m extension_harness [--transport stdio|http] [--port PORT] [--env-file FILE]

Over stdio the server lives as long as the client that spawned it.  Over
HTTP it runs as a daemon, so a session launched by one client can be
stopped by another.
"""

import argparse
import asyncio
import logging
import signal
import sys
from pathlib import Path

import uvicorn

from extension_harness.config import Config
from extension_harness.server import DEFAULT_PORT, create_server
from extension_harness.session_manager import SessionSupervisor

log = logging.getLogger(__name__)


async def _run_stdio(supervisor: SessionSupervisor, config: Config) -> None:
    server = create_server(supervisor=supervisor, config=config)
    try:
        await server.run_stdio_async()
    finally:
        log.info("Stopping all sessions")
        await supervisor.cleanup_all()


async def _run_http(supervisor: SessionSupervisor, config: Config, port: int) -> None:
    app = create_server(supervisor=supervisor, config=config, port=port).streamable_http_app()
    daemon = uvicorn.Server(
        uvicorn.Config(app, host="127.0.0.1", port=port, log_level="info")
    )

    stop_requested = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, stop_requested.set)

    # Server._serve() leaves signal handling to us; serve() would install
    # its own handlers over the ones above.
    serving = asyncio.create_task(daemon._serve(), name="uvicorn")
    stop_waiter = asyncio.create_task(stop_requested.wait(), name="stop-signal")
    try:
        await asyncio.wait({serving, stop_waiter}, return_when=asyncio.FIRST_COMPLETED)
        if stop_requested.is_set():
            log.info("Shutdown requested")
            daemon.should_exit = True
        # Re-raises if uvicorn died on its own (e.g. port already in use)
        await serving
    finally:
        stop_waiter.cancel()
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.remove_signal_handler(sig)
        log.info("Stopping all sessions")
        await supervisor.cleanup_all()


def _is_client_disconnect(exc: BaseException) -> bool:
    if type(exc).__name__ == "ClosedResourceError":
        return True
    # anyio task groups wrap it in an exception group
    return any(_is_client_disconnect(e) for e in getattr(exc, "exceptions", ()))


def quiet_client_disconnects(record: logging.LogRecord) -> bool:
    """Log filter: a client hanging up mid-response becomes a one-line DEBUG record."""
    exc = record.exc_info[1] if record.exc_info else None
    if exc is not None and _is_client_disconnect(exc):
        record.levelno = logging.DEBUG
        record.levelname = "DEBUG"
        record.msg = "Client disconnected before the response was sent"
        record.args = None
        record.exc_info = None
        record.exc_text = None
    return True


def main() -> None:
    parser = argparse.ArgumentParser(description="VS Code extension test harness (MCP)")
    parser.add_argument(
        "--transport", choices=("stdio", "http"), default="stdio",
        help="MCP transport (default: stdio)",
    )
    parser.add_argument(
        "--port", type=int, default=DEFAULT_PORT,
        help=f"Port for the HTTP transport (default: {DEFAULT_PORT})",
    )
    parser.add_argument(
        "--env-file", type=Path, default=None,
        help="Env file to load instead of searching for .env.local",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    args = parser.parse_args()

    # stdout carries the stdio protocol; everything we log goes to stderr
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s [extension-harness] %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )
    logging.getLogger("mcp.server.streamable_http_manager").addFilter(
        quiet_client_disconnects
    )

    config = Config.from_env(args.env_file)
    if not config.has_api_key:
        log.warning("OPENROUTER_API_KEY is not set; ask_expert_panel will fail")

    supervisor = SessionSupervisor(
        command=config.editor_command,
        grace_timeout=config.grace_timeout,
    )

    if args.transport == "http":
        log.info("Starting extension-harness on http://127.0.0.1:%d/mcp", args.port)
        asyncio.run(_run_http(supervisor, config, args.port))
    else:
        asyncio.run(_run_stdio(supervisor, config))


if __name__ == "__main__":
    main()
