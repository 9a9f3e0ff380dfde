"""Session registry: lock-protected map of live sessions plus the "current" pointer."""

from __future__ import annotations

import secrets
import string
import threading
import time
from dataclasses import dataclass, field

from ..models import SessionStatus
from .handle import ProcessHandle

_ID_ALPHABET = string.ascii_lowercase + string.digits
_ID_LENGTH = 8


@dataclass
class SessionRecord:
    """State for a single supervised editor session.

    The record owns its process handle; nothing outside the registry keeps a
    reference to either, only the session id.
    """

    session_id: str
    extension_path: str
    test_dir: str
    prompt: str
    status: SessionStatus = SessionStatus.LAUNCHED
    pid: int | None = None
    start_time: float = field(default_factory=time.time)
    started: float = field(default_factory=time.monotonic)
    output: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    handle: ProcessHandle | None = field(default=None, repr=False)

    def elapsed(self) -> float:
        return time.monotonic() - self.started


class SessionRegistry:
    """In-process registry of live sessions.

    Every method takes the lock for its whole body and never awaits, so each
    call is atomic with respect to coroutines on the loop and to other
    threads.
    """

    def __init__(self) -> None:
        self._sessions: dict[str, SessionRecord] = {}
        self._issued: set[str] = set()
        self._current: str | None = None
        self._lock = threading.Lock()

    def new_id(self) -> str:
        """Return a fresh ``test-xxxxxxxx`` id, never handed out before."""
        with self._lock:
            while True:
                suffix = "".join(secrets.choice(_ID_ALPHABET) for _ in range(_ID_LENGTH))
                session_id = f"test-{suffix}"
                if session_id not in self._issued:
                    self._issued.add(session_id)
                    return session_id

    def put(self, record: SessionRecord) -> None:
        with self._lock:
            self._sessions[record.session_id] = record

    def get(self, session_id: str) -> SessionRecord | None:
        with self._lock:
            return self._sessions.get(session_id)

    def remove(self, session_id: str) -> SessionRecord | None:
        """Drop a session; clears current if it pointed at it. Idempotent."""
        with self._lock:
            record = self._sessions.pop(session_id, None)
            if self._current == session_id:
                self._current = None
            if record is not None:
                record.status = SessionStatus.TERMINATED
            return record

    def claim(self, session_id: str) -> SessionRecord | None:
        """Move a live session to STOPPING and return it.

        Only the first caller wins; later callers (and callers for unknown
        ids) get None.
        """
        with self._lock:
            record = self._sessions.get(session_id)
            if record is None or record.status not in (
                SessionStatus.LAUNCHED, SessionStatus.RUNNING,
            ):
                return None
            record.status = SessionStatus.STOPPING
            return record

    def list_all(self) -> list[SessionRecord]:
        with self._lock:
            return list(self._sessions.values())

    def set_current(self, session_id: str | None) -> None:
        with self._lock:
            if session_id is not None and session_id not in self._sessions:
                raise KeyError(f"No session '{session_id}'")
            self._current = session_id

    def get_current(self) -> str | None:
        with self._lock:
            return self._current

    def clear(self) -> list[SessionRecord]:
        """Remove everything, returning what was removed."""
        with self._lock:
            records = list(self._sessions.values())
            for record in records:
                record.status = SessionStatus.TERMINATED
            self._sessions.clear()
            self._current = None
            return records

    def __contains__(self, session_id: object) -> bool:
        with self._lock:
            return session_id in self._sessions

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)
