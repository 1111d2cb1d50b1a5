"""Per-connection terminal session.

A :class:`TerminalSession` pairs one accepted WebSocket with one shell
process for its whole life:

    accept -> spawn shell -> report cwd -> relay (output, input, resize,
    ping, debounced cwd) -> exit frame / disconnect -> cleanup

Three event sources feed a session concurrently: shell output, inbound
frames and the cwd debounce timer. Output is relayed by a single task,
so chunks reach the client in the order the shell produced them.
Cleanup runs exactly once no matter how many termination paths fire.
"""

from __future__ import annotations

import asyncio
import codecs
import logging
import uuid
from typing import Protocol

from fastapi import WebSocket, WebSocketDisconnect
from pydantic import BaseModel

from shellbridge.config.settings import BridgeConfig, SessionEnvironment
from shellbridge.domain.models import (
    CwdMessage,
    ExitMessage,
    InputMessage,
    OutputMessage,
    PingMessage,
    PongMessage,
    ResizeMessage,
    ShellLaunch,
)
from shellbridge.protocol import clamp_geometry, encode_message, parse_client_message, submits_line
from shellbridge.terminal.cwd import CwdProbe, format_cwd_label
from shellbridge.terminal.launch import build_launch_profile
from shellbridge.terminal.process import PtyProcess, PtyProcessError, SpawnError

logger = logging.getLogger(__name__)

CLOSE_NORMAL = 1000
CLOSE_INTERNAL_ERROR = 1011

# Raised by Starlette/uvicorn when the peer is gone or the socket is closed.
TRANSPORT_ERRORS = (WebSocketDisconnect, RuntimeError, OSError)


class Spawner(Protocol):
    async def spawn(self, launch: ShellLaunch, cwd: str, cols: int, rows: int) -> PtyProcess: ...


class TerminalSession:
    """Bridges one WebSocket connection to one interactive shell."""

    def __init__(
        self,
        websocket: WebSocket,
        config: BridgeConfig,
        environment: SessionEnvironment,
        spawner: Spawner,
        cwd_probe: CwdProbe,
    ) -> None:
        self._websocket = websocket
        self._config = config
        self._environment = environment
        self._spawner = spawner
        self._cwd_probe = cwd_probe
        self._process: PtyProcess | None = None
        self._closed = False
        self._cwd_timer: asyncio.Task[None] | None = None
        self._send_lock = asyncio.Lock()
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self.session_id = uuid.uuid4().hex[:8]

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def process(self) -> PtyProcess | None:
        return self._process

    @property
    def workspace_root(self) -> str:
        return self._environment.workspace_root

    async def run(self) -> None:
        """Drive the session until the shell exits or the client leaves."""
        await self._websocket.accept()
        if not await self._spawn():
            return

        await self._emit_cwd()

        relay = asyncio.create_task(self._relay_output(), name=f"relay-{self.session_id}")
        receive = asyncio.create_task(self._receive_input(), name=f"receive-{self.session_id}")
        try:
            await asyncio.wait({relay, receive}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            for task in (relay, receive):
                task.cancel()
            self.cleanup()
            await asyncio.gather(relay, receive, return_exceptions=True)

    async def handle_frame(self, raw: str) -> None:
        """Apply one inbound text frame to the shell.

        Frames that are not valid control messages are written to the
        shell unchanged.

        Raises:
            PtyProcessError: If the shell's terminal rejects the write or resize.
        """
        if self._closed or self._process is None:
            return

        message = parse_client_message(raw)
        if message is None:
            self._process.write(_encode_input(raw))
        elif isinstance(message, InputMessage):
            self._process.write(_encode_input(message.data))
            if submits_line(message.data):
                self._schedule_cwd_probe()
        elif isinstance(message, ResizeMessage):
            cols, rows = clamp_geometry(
                message.cols, message.rows,
                min_cols=self._config.min_cols, min_rows=self._config.min_rows,
            )
            self._process.resize(cols, rows)
        elif isinstance(message, PingMessage):
            await self._send(PongMessage())

    def cleanup(self) -> None:
        """Cancel the cwd timer and kill the shell. Idempotent."""
        if self._closed:
            return
        self._closed = True

        if self._cwd_timer is not None:
            self._cwd_timer.cancel()
            self._cwd_timer = None

        if self._process is not None:
            try:
                if self._process.is_alive:
                    self._process.kill()
            except OSError as e:
                logger.debug("[%s] kill failed: %s", self.session_id, e)
            self._process.close()

        logger.info("[%s] Session closed", self.session_id)

    # -- lifecycle ---------------------------------------------------------

    async def _spawn(self) -> bool:
        launch = build_launch_profile(self._environment.shell)
        try:
            self._process = await self._spawner.spawn(
                launch,
                cwd=self._environment.workspace_root,
                cols=self._config.default_cols,
                rows=self._config.default_rows,
            )
        except SpawnError as e:
            logger.warning("[%s] %s", self.session_id, e)
            self._closed = True
            await self._close_socket(CLOSE_INTERNAL_ERROR, "Failed to start shell")
            return False
        logger.info(
            "[%s] Session opened (pid=%d, shell=%s)",
            self.session_id, self._process.pid, launch.command,
        )
        return True

    async def _relay_output(self) -> None:
        """Relay output until the shell exits, then report its exit code.

        The shell's exit ends the session even when background jobs keep
        the terminal open; output already in flight gets ``exit_drain``
        seconds to arrive.
        """
        process = self._process
        if process is None:
            return

        pump = asyncio.create_task(self._pump_output(process))
        waiter = asyncio.create_task(process.wait())
        try:
            await asyncio.wait({pump, waiter}, return_when=asyncio.FIRST_COMPLETED)
            if pump.done() and not pump.result():
                return
            if not waiter.done():
                await waiter
            elif not pump.done():
                await asyncio.wait({pump}, timeout=self._config.exit_drain)
                if not pump.done():
                    logger.debug("[%s] Output still open after shell exit", self.session_id)
                    pump.cancel()
                    await asyncio.gather(pump, return_exceptions=True)
                elif not pump.result():
                    return
        finally:
            for task in (pump, waiter):
                task.cancel()
            await asyncio.gather(pump, waiter, return_exceptions=True)

        tail = self._decoder.decode(b"", final=True)
        if tail and not await self._send(OutputMessage(data=tail)):
            return
        if self._closed:
            return

        code = waiter.result()
        logger.info("[%s] Shell exited with code %d", self.session_id, code)
        if await self._send(ExitMessage(code=code)):
            await self._close_socket(CLOSE_NORMAL, "Terminal process exited")

    async def _pump_output(self, process: PtyProcess) -> bool:
        """Send output frames until end of stream; False if a send failed."""
        while True:
            chunk = await process.read()
            if chunk is None:
                return True
            text = self._decoder.decode(chunk)
            if text and not await self._send(OutputMessage(data=text)):
                return False

    async def _receive_input(self) -> None:
        while not self._closed:
            try:
                message = await self._websocket.receive()
            except TRANSPORT_ERRORS as e:
                logger.debug("[%s] receive failed: %s", self.session_id, e)
                return

            if message["type"] == "websocket.disconnect":
                logger.info("[%s] Client disconnected", self.session_id)
                return

            text = message.get("text")
            if text is None:
                logger.debug("[%s] Ignoring binary frame", self.session_id)
                continue

            try:
                await self.handle_frame(text)
            except PtyProcessError as e:
                logger.warning("[%s] %s", self.session_id, e)
                return

    # -- cwd reporting -----------------------------------------------------

    def _schedule_cwd_probe(self) -> None:
        if self._cwd_timer is not None:
            self._cwd_timer.cancel()
        self._cwd_timer = asyncio.create_task(self._probe_cwd_later())

    async def _probe_cwd_later(self) -> None:
        await asyncio.sleep(self._config.cwd_debounce)
        self._cwd_timer = None
        if not self._closed:
            await self._emit_cwd()

    async def _emit_cwd(self) -> None:
        if self._process is None:
            return
        try:
            cwd = self._cwd_probe.read_cwd(self._process.pid)
        except OSError as e:
            logger.debug("[%s] cwd probe failed: %s", self.session_id, e)
            return
        if cwd is None:
            return
        label = format_cwd_label(cwd, self._environment.workspace_root, self._environment.home)
        await self._send(CwdMessage(path=label))

    # -- transport ---------------------------------------------------------

    async def _send(self, message: BaseModel) -> bool:
        if self._closed:
            return False
        try:
            async with self._send_lock:
                await self._websocket.send_text(encode_message(message))
        except TRANSPORT_ERRORS as e:
            logger.debug("[%s] send failed: %s", self.session_id, e)
            self.cleanup()
            return False
        return True

    async def _close_socket(self, code: int, reason: str) -> None:
        try:
            await self._websocket.close(code=code, reason=reason)
        except TRANSPORT_ERRORS as e:
            logger.debug("[%s] close failed: %s", self.session_id, e)


def _encode_input(data: str) -> bytes:
    return data.encode("utf-8", errors="replace")
