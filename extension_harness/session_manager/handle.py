"""Process handle: owns one spawned OS process and its stream readers."""

from __future__ import annotations

import asyncio
import codecs
import logging
import os
import shutil
import signal
from collections.abc import Callable, Sequence

from ..errors import SpawnError, TerminationTimeout

log = logging.getLogger(__name__)

# After SIGKILL the process should be gone almost immediately; don't hang
# forever if the OS never reports it.
KILL_WAIT = 5.0

# A child that inherited our pipes can keep them open after the process we
# spawned is gone, so reader drain is bounded.
DRAIN_TIMEOUT = 1.0

READ_CHUNK = 4096

ChunkCallback = Callable[[str], None]
ExitCallback = Callable[[int | None], None]


class ProcessHandle:
    """Turns one process's async events into chunk and exit callbacks.

    Use :meth:`spawn` to create one.  The process runs in its own process
    group so signals reach the whole tree it starts.
    """

    def __init__(
        self,
        process: asyncio.subprocess.Process,
        name: str,
        on_stdout: ChunkCallback | None = None,
        on_stderr: ChunkCallback | None = None,
        on_exit: ExitCallback | None = None,
    ) -> None:
        self._process = process
        self.name = name
        self._on_exit = on_exit
        self._reader_tasks: list[asyncio.Task[None]] = [
            asyncio.create_task(
                self._read_stream(process.stdout, on_stdout),  # type: ignore[arg-type]
                name=f"{name}-stdout",
            ),
            asyncio.create_task(
                self._read_stream(process.stderr, on_stderr),  # type: ignore[arg-type]
                name=f"{name}-stderr",
            ),
        ]
        self._exit_task = asyncio.create_task(
            self._watch_exit(), name=f"{name}-waiter",
        )

    @classmethod
    async def spawn(
        cls,
        command: str,
        args: Sequence[str],
        cwd: str,
        *,
        name: str,
        on_stdout: ChunkCallback | None = None,
        on_stderr: ChunkCallback | None = None,
        on_exit: ExitCallback | None = None,
    ) -> ProcessHandle:
        executable = shutil.which(command)
        if executable is None:
            raise SpawnError(f"Executable not found: {command}")

        try:
            process = await asyncio.create_subprocess_exec(
                executable,
                *args,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                cwd=cwd,
                # New process group so we can signal the whole tree
                start_new_session=True,
            )
        except OSError as exc:
            raise SpawnError(f"Failed to start {command}: {exc}") from exc

        log.info("[%s] Spawned %s (pid=%s)", name, executable, process.pid)
        return cls(process, name, on_stdout, on_stderr, on_exit)

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def pid(self) -> int:
        return self._process.pid

    @property
    def returncode(self) -> int | None:
        return self._process.returncode

    @property
    def running(self) -> bool:
        return self._process.returncode is None

    # ------------------------------------------------------------------
    # Termination
    # ------------------------------------------------------------------

    async def terminate(self, grace_timeout: float) -> int | None:
        """SIGTERM, wait up to `grace_timeout`, then SIGKILL.

        Returns the exit code, or None if the process never reported one.
        A no-op when the process has already exited.
        """
        if self.running:
            self._signal(signal.SIGTERM)
            try:
                await self._wait(grace_timeout)
            except TerminationTimeout:
                log.warning(
                    "[%s] No exit %.1fs after SIGTERM, sending SIGKILL",
                    self.name, grace_timeout,
                )
                self._signal(signal.SIGKILL)
                try:
                    await self._wait(KILL_WAIT)
                except TerminationTimeout:
                    log.error("[%s] Process did not die after SIGKILL", self.name)

        await self._drain()
        return self._process.returncode

    def kill(self) -> None:
        """SIGKILL without waiting."""
        if self.running:
            self._signal(signal.SIGKILL)

    @property
    def closed(self) -> bool:
        """True once the exit watcher (and with it the readers) has finished."""
        return self._exit_task.done()

    async def wait_closed(self, timeout: float = KILL_WAIT + DRAIN_TIMEOUT) -> bool:
        """Wait for the exit watcher to finish; cancel everything left on timeout."""
        await asyncio.wait([self._exit_task], timeout=timeout)
        if self._exit_task.done():
            return True
        log.warning("[%s] Exit watcher still pending after %.1fs", self.name, timeout)
        for task in (*self._reader_tasks, self._exit_task):
            task.cancel()
        return False

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _signal(self, sig: signal.Signals) -> None:
        try:
            os.killpg(os.getpgid(self._process.pid), sig)
        except (ProcessLookupError, OSError):
            # Already gone, or the group is not ours; signal the process alone
            try:
                self._process.send_signal(sig)
            except ProcessLookupError:
                pass

    async def _wait(self, timeout: float) -> None:
        try:
            await asyncio.wait_for(self._process.wait(), timeout=timeout)
        except asyncio.TimeoutError as exc:
            raise TerminationTimeout(
                f"{self.name} still running after {timeout:.1f}s"
            ) from exc

    async def _drain(self) -> None:
        pending = [t for t in self._reader_tasks if not t.done()]
        if not pending:
            return
        _, still_open = await asyncio.wait(pending, timeout=DRAIN_TIMEOUT)
        for task in still_open:
            task.cancel()

    async def _watch_exit(self) -> None:
        code = await self._process.wait()
        await self._drain()
        log.info("[%s] Process exited with code %s", self.name, code)
        if self._on_exit is None:
            return
        try:
            self._on_exit(code)
        except Exception:
            log.exception("[%s] Exit callback failed", self.name)

    @staticmethod
    async def _read_stream(
        stream: asyncio.StreamReader,
        callback: ChunkCallback | None,
    ) -> None:
        """Forward decoded chunks as they arrive.

        The incremental decoder keeps multi-byte characters that straddle a
        read boundary intact.
        """
        decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        try:
            while True:
                chunk = await stream.read(READ_CHUNK)
                if not chunk:
                    break
                text = decoder.decode(chunk)
                if text and callback is not None:
                    callback(text)
            tail = decoder.decode(b"", final=True)
            if tail and callback is not None:
                callback(tail)
        except asyncio.CancelledError:
            pass
