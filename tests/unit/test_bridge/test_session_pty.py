"""TerminalSession against real shells on real pseudo-terminals."""

from __future__ import annotations

import asyncio
import json
import re
import shutil
import sys
from pathlib import Path

import pytest

from shellbridge.bridge.session import CLOSE_NORMAL, TerminalSession
from shellbridge.config.settings import BridgeConfig, SessionEnvironment
from shellbridge.terminal.cwd import ProcCwdProbe
from shellbridge.terminal.process import PtySpawner

pytestmark = pytest.mark.skipif(
    not sys.platform.startswith("linux") or shutil.which("sh") is None,
    reason="requires Linux with a POSIX sh",
)


def _output(websocket) -> str:
    return "".join(m["data"] for m in websocket.messages_of("output"))


def _finished(pid: int) -> bool:
    """True once ``pid`` is gone or only a zombie awaiting its reaper."""
    try:
        with open(f"/proc/{pid}/stat") as f:
            stat = f.read()
    except OSError:
        return True
    return stat.rpartition(")")[2].split()[0] == "Z"


@pytest.fixture
def pty_session(websocket, tmp_path: Path) -> TerminalSession:
    config = BridgeConfig(cwd_debounce=0.05)
    environment = SessionEnvironment(shell=shutil.which("sh"), workspace_root=str(tmp_path))
    return TerminalSession(
        websocket,
        config=config,
        environment=environment,
        spawner=PtySpawner(term=config.term),
        cwd_probe=ProcCwdProbe(),
    )


class TestShellExit:
    @pytest.mark.asyncio
    async def test_exit_is_reported_with_background_job_running(
        self, pty_session, websocket, wait_until
    ) -> None:
        task = asyncio.create_task(pty_session.run())
        await wait_until(lambda: pty_session.process is not None)
        websocket.client_send(json.dumps({"type": "input", "data": "sleep 30 & echo job=$!\n"}))
        await wait_until(lambda: re.search(r"job=(\d+)", _output(websocket)), timeout=5.0)
        job = int(re.search(r"job=(\d+)", _output(websocket)).group(1))

        websocket.client_send(json.dumps({"type": "input", "data": "exit 0\n"}))
        await asyncio.wait_for(task, 5.0)

        assert websocket.messages[-1] == {"type": "exit", "code": 0}
        assert websocket.close_calls == [(CLOSE_NORMAL, "Terminal process exited")]
        await wait_until(lambda: _finished(job), timeout=2.0)

    @pytest.mark.asyncio
    async def test_plain_exit(self, pty_session, websocket, wait_until) -> None:
        task = asyncio.create_task(pty_session.run())
        await wait_until(lambda: pty_session.process is not None)
        websocket.client_send(json.dumps({"type": "input", "data": "exit 4\n"}))
        await asyncio.wait_for(task, 5.0)
        assert websocket.messages_of("exit") == [{"type": "exit", "code": 4}]
        assert pty_session.process.returncode == 4
