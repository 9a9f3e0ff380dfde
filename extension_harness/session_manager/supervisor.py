"""Session Supervisor: launches editor sessions and resolves their completion."""

from __future__ import annotations

import asyncio
import logging
import os
import time
from collections.abc import Sequence
from functools import partial
from typing import Any

from ..errors import InvalidPathError, SessionNotFound, SpawnError
from ..models import CompletionResult, SessionStatus
from ..prompt_file import remove_prompt_files, write_prompt_files
from .broker import CompletionBroker
from .handle import ProcessHandle
from .registry import SessionRecord, SessionRegistry

log = logging.getLogger(__name__)

DEFAULT_GRACE_TIMEOUT = 5.0
DEFAULT_SERVER_NAME = "extension-harness"


class SessionSupervisor:
    """Owns every live editor session.

    Three producers can end a session: an explicit stop, the process exiting
    on its own, and the SIGKILL escalation inside a stop.  Each producer first
    *claims* the session in the registry; only the claimant builds the result,
    removes the session and publishes through the broker.
    """

    def __init__(
        self,
        command: Sequence[str] = ("code",),
        grace_timeout: float = DEFAULT_GRACE_TIMEOUT,
        registry: SessionRegistry | None = None,
        broker: CompletionBroker | None = None,
        server_name: str = DEFAULT_SERVER_NAME,
    ) -> None:
        if not command:
            raise ValueError("command must not be empty")
        self.command = list(command)
        self.grace_timeout = grace_timeout
        self.registry = registry if registry is not None else SessionRegistry()
        self.broker = broker if broker is not None else CompletionBroker()
        self.server_name = server_name

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def launch(self, extension_path: str, prompt: str, test_dir: str) -> str:
        """Start an editor session and return its id without waiting for it."""
        if not os.path.isdir(extension_path):
            raise InvalidPathError(extension_path, "Extension path")
        if not os.path.isdir(test_dir):
            raise InvalidPathError(test_dir, "Test directory")

        session_id = self.registry.new_id()
        record = SessionRecord(
            session_id=session_id,
            extension_path=extension_path,
            test_dir=test_dir,
            prompt=prompt,
        )

        write_prompt_files(test_dir, prompt, session_id, self.server_name)

        args = [
            *self.command[1:],
            f"--extensionDevelopmentPath={extension_path}",
            "--disable-extensions",
            test_dir,
        ]
        try:
            handle = await ProcessHandle.spawn(
                self.command[0],
                args,
                cwd=test_dir,
                name=session_id,
                on_stdout=partial(self._on_chunk, session_id, False),
                on_stderr=partial(self._on_chunk, session_id, True),
                on_exit=partial(self._on_exit, session_id),
            )
        except SpawnError:
            remove_prompt_files(test_dir, session_id)
            raise

        # No await from here on: the exit watcher cannot run before the
        # session is registered.
        record.handle = handle
        record.pid = handle.pid
        record.status = SessionStatus.RUNNING
        self.registry.put(record)
        self.broker.open(session_id)
        self.registry.set_current(session_id)

        log.info(
            "Launched session %s (pid=%s) for %s in %s",
            session_id, handle.pid, extension_path, test_dir,
        )
        return session_id

    async def await_completion(self, session_id: str) -> CompletionResult:
        """Block until the session is stopped or its process exits."""
        return await self.broker.wait(session_id)

    async def stop_current(self) -> CompletionResult | None:
        session_id = self.registry.get_current()
        if session_id is None:
            return None
        return await self.stop_by_id(session_id)

    async def stop_by_id(self, session_id: str) -> CompletionResult | None:
        """Stop a session. Returns None if it is unknown or already ending."""
        record = self.registry.claim(session_id)
        if record is None:
            log.info("Session not found or already stopping: %s", session_id)
            return None

        exit_code: int | None = None
        try:
            if record.handle is not None:
                exit_code = await record.handle.terminate(self.grace_timeout)
        finally:
            # Even if the stop is cancelled mid-wait the claim must resolve
            result = self._finish(record, exit_code)
        log.info(
            "Stopped session %s after %.2fs (exit code %s)",
            session_id, result.duration, exit_code,
        )
        return result

    def list_sessions(self) -> list[dict[str, Any]]:
        """Return summary info for all live sessions."""
        current = self.registry.get_current()
        now = time.time()
        return [
            {
                "session_id": record.session_id,
                "pid": record.pid,
                "status": record.status.value,
                "extension_path": record.extension_path,
                "test_dir": record.test_dir,
                "start_time": record.start_time,
                "uptime_seconds": round(now - record.start_time, 1),
                "current": record.session_id == current,
            }
            for record in self.registry.list_all()
        ]

    def get_output(self, session_id: str, tail: int = 2000) -> dict[str, Any]:
        """Return the last `tail` characters of a live session's output."""
        record = self.registry.get(session_id)
        if record is None:
            raise SessionNotFound(session_id)
        return {
            "session_id": session_id,
            "status": record.status.value,
            "pid": record.pid,
            "stdout": _tail("".join(record.output), tail),
            "stderr": _tail("".join(record.errors), tail),
        }

    async def cleanup_all(self) -> None:
        """SIGKILL every session and forget them all (process shutdown).

        Anyone still waiting gets a result with no exit code.
        """
        records = self.registry.clear()
        for record in records:
            if record.handle is not None:
                try:
                    record.handle.kill()
                except Exception:
                    log.exception("[%s] Error killing process during cleanup", record.session_id)
            remove_prompt_files(record.test_dir, record.session_id)
            self.broker.publish(record.session_id, self._result(record, None))
        self.broker.discard_all()

        # Let the exit watchers reap the killed processes before the loop goes away
        handles = [r.handle for r in records if r.handle is not None]
        if handles:
            await asyncio.gather(*(h.wait_closed() for h in handles))
        if records:
            log.info("Cleaned up %d session(s)", len(records))

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _on_chunk(self, session_id: str, is_error: bool, chunk: str) -> None:
        record = self.registry.get(session_id)
        if record is None:
            return
        (record.errors if is_error else record.output).append(chunk)
        log.debug("[%s%s] %s", session_id, " stderr" if is_error else "", chunk.rstrip())

    def _on_exit(self, session_id: str, exit_code: int | None) -> None:
        record = self.registry.claim(session_id)
        if record is None:
            # A stop call owns this session
            return
        log.info(
            "Session %s exited on its own with code %s", session_id, exit_code,
        )
        self._finish(record, exit_code)

    def _finish(self, record: SessionRecord, exit_code: int | None) -> CompletionResult:
        """Delete artifacts, then remove and publish in one synchronous step."""
        result = self._result(record, exit_code)
        remove_prompt_files(record.test_dir, record.session_id)
        self.registry.remove(record.session_id)
        delivered = self.broker.publish(record.session_id, result)
        if delivered:
            log.debug("Published completion for %s", record.session_id)
        return result

    @staticmethod
    def _result(record: SessionRecord, exit_code: int | None) -> CompletionResult:
        return CompletionResult(
            session_id=record.session_id,
            duration=record.elapsed(),
            exit_code=exit_code,
            output=list(record.output),
            errors=list(record.errors),
        )


def _tail(text: str, num_chars: int) -> str:
    if num_chars <= 0:
        return ""
    return text[-num_chars:]
