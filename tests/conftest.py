"""Shared pytest fixtures.

Instead of VS Code the supervisor launches a small Python "editor".  It
opens the test directory it is given (the last argv entry, just like
``code``), reads the first line of the prompt file there and behaves
accordingly:

  exit N        print a greeting, write to stderr, exit with code N
  chatty        write a known sequence of stdout/stderr chunks, exit 0
  ignore-term   ignore SIGTERM, print "ready", run until killed
  <anything>    print "ready", run until signalled
"""

import asyncio
import sys
import textwrap
from pathlib import Path

import pytest
import pytest_asyncio

from extension_harness.session_manager import SessionSupervisor

FAKE_EDITOR = textwrap.dedent(
    """
    import os
    import signal
    import sys
    import time

    sys.stdout.reconfigure(encoding="utf-8")
    sys.stderr.reconfigure(encoding="utf-8")

    test_dir = sys.argv[-1]
    with open(os.path.join(test_dir, ".PROMPT"), encoding="utf-8") as f:
        mode = f.readline().strip()

    print(f"editor started: {mode}", flush=True)

    if mode.startswith("exit"):
        sys.stderr.write("closing\\n")
        sys.stderr.flush()
        sys.exit(int(mode.split()[1]))

    if mode == "chatty":
        for i in range(50):
            sys.stdout.write(f"out {i} héllo ✓\\n")
            sys.stdout.flush()
        sys.stderr.write("warn: something\\n")
        sys.stderr.flush()
        sys.exit(0)

    if mode == "ignore-term":
        signal.signal(signal.SIGTERM, signal.SIG_IGN)

    print("ready", flush=True)
    while True:
        time.sleep(0.05)
    """
)

CHATTY_STDOUT = "editor started: chatty\n" + "".join(
    f"out {i} héllo ✓\n" for i in range(50)
)


@pytest.fixture
def fake_editor(tmp_path: Path) -> list[str]:
    """argv prefix that runs the fake editor."""
    script = tmp_path / "fake_editor.py"
    script.write_text(FAKE_EDITOR, encoding="utf-8")
    return [sys.executable, "-u", str(script)]


@pytest.fixture
def workspace(tmp_path: Path) -> Path:
    """A workspace with an extension (src/) and a test folder (examples/)."""
    ws = tmp_path / "workspace"
    (ws / "src").mkdir(parents=True)
    (ws / "src" / "package.json").write_text('{"name": "demo-extension"}')
    (ws / "examples").mkdir()
    return ws


@pytest_asyncio.fixture
async def supervisor(fake_editor):
    sv = SessionSupervisor(command=fake_editor, grace_timeout=2.0)
    yield sv
    await sv.cleanup_all()


async def wait_for_output(sv: SessionSupervisor, session_id: str, text: str,
                          timeout: float = 10.0) -> None:
    """Poll until `text` shows up in a session's stdout."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while loop.time() < deadline:
        if text in sv.get_output(session_id, tail=100_000)["stdout"]:
            return
        await asyncio.sleep(0.02)
    raise AssertionError(f"{text!r} never appeared in output of {session_id}")
