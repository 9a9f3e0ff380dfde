"""MCP server for driving VS Code extension development sessions.

Can run standalone:
    python -m extension_harness [--transport stdio|http]
"""

from .config import Config
from .models import CompletionResult
from .session_manager import SessionSupervisor

__all__ = ["CompletionResult", "Config", "SessionSupervisor"]

__version__ = "0.1.0"
