from __future__ import annotations

import enum
from dataclasses import dataclass, field


class SessionStatus(str, enum.Enum):
    LAUNCHED = "launched"
    RUNNING = "running"
    STOPPING = "stopping"    # claimed by exactly one producer
    TERMINATED = "terminated"


@dataclass(frozen=True)
class CompletionResult:
    """Delivered once per session, to the stop caller and/or the waiter."""

    session_id: str
    duration: float  # seconds
    exit_code: int | None
    output: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)

    @property
    def output_text(self) -> str:
        return "".join(self.output)

    @property
    def error_text(self) -> str:
        return "".join(self.errors)
