"""Render CompletionResults as tool text."""

from __future__ import annotations

from .models import CompletionResult

MAX_RESULT_CHARS = 1000
TRUNCATION_MARKER = "...\n(Output truncated, full logs available in the terminal)"


def format_exit_code(code: int | None) -> str:
    return "unknown" if code is None else str(code)


def format_logs(result: CompletionResult, limit: int = MAX_RESULT_CHARS) -> str:
    """Combine output and errors, truncated to `limit` characters."""
    text = result.output_text or "No output captured"
    if result.errors:
        text += f"\n\nErrors:\n{result.error_text}"
    if len(text) > limit:
        return text[:limit] + TRUNCATION_MARKER
    return text


def format_completed(result: CompletionResult) -> str:
    return (
        f"VSCode extension test completed in {result.duration:.2f} seconds "
        f"with exit code {format_exit_code(result.exit_code)}.\n\n"
        f"Results:\n{format_logs(result)}"
    )


def format_stopped(result: CompletionResult) -> str:
    return (
        f"VSCode extension test stopped. Test ran for {result.duration:.2f} seconds "
        f"with exit code {format_exit_code(result.exit_code)}.\n\n"
        f"Results:\n{format_logs(result)}"
    )
