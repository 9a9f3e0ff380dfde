import asyncio
import signal
import sys

import pytest

from extension_harness.errors import SpawnError
from extension_harness.session_manager import ProcessHandle


async def _spawn_python(code: str, tmp_path, **callbacks) -> ProcessHandle:
    return await ProcessHandle.spawn(
        sys.executable, ["-u", "-c", code], cwd=str(tmp_path), name="t", **callbacks,
    )


@pytest.mark.asyncio
async def test_spawn_missing_executable(tmp_path):
    with pytest.raises(SpawnError, match="not found"):
        await ProcessHandle.spawn(
            "no-such-editor-binary-xyz", [], cwd=str(tmp_path), name="t",
        )


@pytest.mark.asyncio
async def test_spawn_missing_cwd(tmp_path):
    with pytest.raises(SpawnError):
        await ProcessHandle.spawn(
            sys.executable, ["-c", "pass"], cwd=str(tmp_path / "nope"), name="t",
        )


@pytest.mark.asyncio
async def test_output_is_exact_concatenation(tmp_path):
    out: list[str] = []
    err: list[str] = []
    exited = asyncio.Event()
    codes: list[int | None] = []

    def on_exit(code):
        codes.append(code)
        exited.set()

    code = (
        "import sys\n"
        "sys.stdout.reconfigure(encoding='utf-8')\n"
        "for i in range(200):\n"
        "    sys.stdout.write(f'{i}:ü€;')\n"
        "sys.stdout.flush()\n"
        "sys.stderr.write('boom')\n"
    )
    await _spawn_python(
        code, tmp_path, on_stdout=out.append, on_stderr=err.append, on_exit=on_exit,
    )
    await asyncio.wait_for(exited.wait(), timeout=10)

    assert "".join(out) == "".join(f"{i}:ü€;" for i in range(200))
    assert "".join(err) == "boom"
    assert codes == [0]


@pytest.mark.asyncio
async def test_terminate_after_exit_is_noop(tmp_path):
    exited = asyncio.Event()
    handle = await _spawn_python(
        "import sys; sys.exit(3)", tmp_path, on_exit=lambda code: exited.set(),
    )
    await asyncio.wait_for(exited.wait(), timeout=10)

    assert not handle.running
    assert await handle.terminate(0.1) == 3
    assert await handle.terminate(0.1) == 3
    handle.kill()  # also harmless


@pytest.mark.asyncio
async def test_terminate_graceful(tmp_path):
    lines: list[str] = []
    handle = await _spawn_python(
        "import time\nprint('up', flush=True)\nwhile True: time.sleep(0.05)",
        tmp_path, on_stdout=lines.append,
    )
    code = await handle.terminate(5.0)
    assert code == -signal.SIGTERM
    assert not handle.running


@pytest.mark.asyncio
async def test_terminate_escalates_to_sigkill(tmp_path):
    lines: list[str] = []
    handle = await _spawn_python(
        "import signal, time\n"
        "signal.signal(signal.SIGTERM, signal.SIG_IGN)\n"
        "print('ready', flush=True)\n"
        "while True: time.sleep(0.05)",
        tmp_path, on_stdout=lines.append,
    )
    for _ in range(500):
        if "ready" in "".join(lines):
            break
        await asyncio.sleep(0.02)

    code = await handle.terminate(0.3)
    assert code == -signal.SIGKILL


@pytest.mark.asyncio
async def test_wait_closed_after_kill(tmp_path):
    codes: list[int | None] = []
    handle = await _spawn_python(
        "import time\nwhile True: time.sleep(0.05)", tmp_path, on_exit=codes.append,
    )
    assert not handle.closed

    handle.kill()
    assert await handle.wait_closed(timeout=10)

    assert handle.closed
    assert codes == [-signal.SIGKILL]


@pytest.mark.asyncio
async def test_wait_closed_times_out_and_cancels(tmp_path):
    handle = await _spawn_python(
        "import time\nwhile True: time.sleep(0.05)", tmp_path,
    )
    try:
        assert not await handle.wait_closed(timeout=0.1)
        await asyncio.sleep(0.05)
        assert handle.closed
    finally:
        handle.kill()
        await handle._process.wait()
