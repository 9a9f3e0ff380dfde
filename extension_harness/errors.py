"""Exception taxonomy for the extension harness."""

from __future__ import annotations


class HarnessError(Exception):
    """Base class for all harness errors."""


class InvalidPathError(HarnessError):
    """A workspace, extension or test directory does not exist."""

    def __init__(self, path: str, what: str = "Path") -> None:
        self.path = path
        super().__init__(f"{what} does not exist: {path}")


class SpawnError(HarnessError):
    """The OS refused to create the editor process."""


class SessionNotFound(HarnessError):
    def __init__(self, session_id: str) -> None:
        self.session_id = session_id
        super().__init__(f"Session not found: {session_id}")


class TerminationTimeout(HarnessError):
    """A process ignored SIGTERM for the whole grace period.

    Only raised inside the process handle, where it triggers the SIGKILL
    escalation.
    """


class ExpertPanelError(HarnessError):
    pass
