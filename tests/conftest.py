"""Shared test fixtures for the shellbridge test suite.

Provides in-memory stand-ins for the pieces a terminal session talks to:
a scripted shell process, a spawner that hands them out, a cwd probe
that reads the fake shell's directory, and a server-side WebSocket.
"""

from __future__ import annotations

import asyncio
import json
import posixpath

import pytest
from fastapi import WebSocketDisconnect

from shellbridge.config.settings import BridgeConfig, SessionEnvironment
from shellbridge.domain.models import ShellLaunch
from shellbridge.terminal.cwd import CwdProbe
from shellbridge.terminal.process import PtyProcessError, SpawnError


# ---------------------------------------------------------------------------
# Fake shell process
# ---------------------------------------------------------------------------


class FakeProcess:
    """A tiny scripted shell with the PtyProcess interface.

    Understands ``cd <dir>``, ``echo <text>`` and ``exit <code>`` when a
    line is submitted; everything written is recorded verbatim.
    """

    def __init__(self, pid: int, cwd: str, cols: int, rows: int) -> None:
        self.pid = pid
        self.cwd = cwd
        self.cols = cols
        self.rows = rows
        self.written = bytearray()
        self.resizes: list[tuple[int, int]] = []
        self.kill_count = 0
        self.closed = False
        self._line = ""
        self._chunks: asyncio.Queue[bytes | None] = asyncio.Queue()
        self._exit: asyncio.Future[int] = asyncio.get_running_loop().create_future()

    @property
    def is_alive(self) -> bool:
        return not self._exit.done()

    async def read(self) -> bytes | None:
        return await self._chunks.get()

    def write(self, data: bytes) -> None:
        if self.closed:
            raise PtyProcessError("PTY is closed")
        self.written += data
        for char in data.decode("utf-8", errors="replace"):
            if char in "\r\n":
                self._run_line(self._line.strip())
                self._line = ""
            else:
                self._line += char

    def resize(self, cols: int, rows: int) -> None:
        if self.closed:
            raise PtyProcessError("PTY is closed")
        self.cols, self.rows = cols, rows
        self.resizes.append((cols, rows))

    async def wait(self) -> int:
        return await self._exit

    def kill(self) -> None:
        self.kill_count += 1
        self.finish(-9)

    def close(self) -> None:
        if not self.closed:
            self.closed = True
            self._chunks.put_nowait(None)

    def emit(self, data: bytes) -> None:
        self._chunks.put_nowait(data)

    def finish(self, code: int) -> None:
        if not self._exit.done():
            self._chunks.put_nowait(None)
            self._exit.set_result(code)

    def exit_leaving_output_open(self, code: int) -> None:
        """Exit while another holder keeps the terminal from reaching EOF."""
        if not self._exit.done():
            self._exit.set_result(code)

    def _run_line(self, line: str) -> None:
        command, _, arg = line.partition(" ")
        if command == "cd":
            self.cwd = posixpath.normpath(posixpath.join(self.cwd, arg))
        elif command == "echo":
            self.emit(f"{arg}\r\n".encode())
        elif command == "exit":
            self.finish(int(arg or 0))


class FakeSpawner:
    """Hands out FakeProcess instances and records how they were launched."""

    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.launches: list[tuple[ShellLaunch, str, int, int]] = []
        self.processes: list[FakeProcess] = []

    async def spawn(self, launch: ShellLaunch, cwd: str, cols: int, rows: int) -> FakeProcess:
        self.launches.append((launch, cwd, cols, rows))
        if self.fail:
            raise SpawnError(f"Shell not found: {launch.command}")
        process = FakeProcess(pid=1000 + len(self.processes), cwd=cwd, cols=cols, rows=rows)
        self.processes.append(process)
        return process


class FakeCwdProbe(CwdProbe):
    """Reports the working directory of the spawner's fake shells."""

    def __init__(self, spawner: FakeSpawner, available: bool = True) -> None:
        self._spawner = spawner
        self.available = available

    def read_cwd(self, pid: int) -> str | None:
        if not self.available:
            return None
        for process in self._spawner.processes:
            if process.pid == pid:
                return process.cwd
        return None


# ---------------------------------------------------------------------------
# Fake server-side WebSocket
# ---------------------------------------------------------------------------


class FakeWebSocket:
    """Records what a session sends; the test plays the client."""

    def __init__(self) -> None:
        self.accepted = False
        self.sent: list[str] = []
        self.close_calls: list[tuple[int, str | None]] = []
        self.fail_send = False
        self._inbox: asyncio.Queue[dict] = asyncio.Queue()

    async def accept(self) -> None:
        self.accepted = True

    async def send_text(self, data: str) -> None:
        if self.fail_send:
            raise WebSocketDisconnect(code=1006)
        if self.close_calls:
            raise RuntimeError('Cannot call "send" once a close message has been sent.')
        self.sent.append(data)

    async def receive(self) -> dict:
        return await self._inbox.get()

    async def close(self, code: int = 1000, reason: str | None = None) -> None:
        self.close_calls.append((code, reason))

    def client_send(self, text: str) -> None:
        self._inbox.put_nowait({"type": "websocket.receive", "text": text})

    def client_send_bytes(self, data: bytes) -> None:
        self._inbox.put_nowait({"type": "websocket.receive", "bytes": data})

    def client_disconnect(self, code: int = 1000) -> None:
        self._inbox.put_nowait({"type": "websocket.disconnect", "code": code})

    @property
    def messages(self) -> list[dict]:
        return [json.loads(frame) for frame in self.sent]

    def messages_of(self, kind: str) -> list[dict]:
        return [m for m in self.messages if m["type"] == kind]


async def _wait_until(predicate, timeout: float = 2.0) -> None:
    """Poll ``predicate`` on the event loop until it holds."""
    async def _poll() -> None:
        while not predicate():
            await asyncio.sleep(0.005)
    await asyncio.wait_for(_poll(), timeout)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def bridge_config() -> BridgeConfig:
    """Bridge settings with a short cwd debounce to keep tests fast."""
    return BridgeConfig(cwd_debounce=0.05)


@pytest.fixture
def session_environment() -> SessionEnvironment:
    return SessionEnvironment(shell="/bin/bash", workspace_root="/home/user/ws", home="/home/user")


@pytest.fixture
def spawner() -> FakeSpawner:
    return FakeSpawner()


@pytest.fixture
def cwd_probe(spawner: FakeSpawner) -> FakeCwdProbe:
    return FakeCwdProbe(spawner)


@pytest.fixture
def websocket() -> FakeWebSocket:
    return FakeWebSocket()


@pytest.fixture
def wait_until():
    """``await wait_until(lambda: ...)`` polls until the condition holds."""
    return _wait_until
