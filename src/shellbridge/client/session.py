"""Terminal client: binds a surface to one bridge session.

The client opens a single WebSocket, immediately reports the surface's
real geometry, then forwards keystrokes and resizes as control frames
while rendering the bridge's output. When the shell exits the surface
gets a final notice and is left as a read-only transcript; the client
never reconnects.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Awaitable, Callable

import httpx
import websockets
from pydantic import BaseModel

from shellbridge.client.shortcuts import ShortcutBar, ShortcutKey
from shellbridge.client.surface import Subscription, TerminalSurface
from shellbridge.config.settings import ClientConfig
from shellbridge.domain.models import (
    CwdMessage,
    ExitMessage,
    InputMessage,
    OutputMessage,
    PingMessage,
    PongMessage,
    ResizeMessage,
)
from shellbridge.protocol import encode_message, parse_server_message

logger = logging.getLogger(__name__)

Connector = Callable[..., Awaitable[Any]]


class TerminalClient:
    """Drives one remote terminal session for a :class:`TerminalSurface`.

    Example usage::

        surface = ConsoleSurface()
        surface.open()
        client = TerminalClient(surface, ClientConfig(url="ws://host:3100/api/terminal/ws"))
        exit_code = await client.run()
    """

    def __init__(
        self,
        surface: TerminalSurface,
        config: ClientConfig | None = None,
        connector: Connector | None = None,
    ) -> None:
        self._surface = surface
        self._config = config or ClientConfig()
        self._connector = connector or websockets.connect
        self._shortcuts = ShortcutBar()
        self._connection: Any = None
        self._subscriptions: list[Subscription] = []
        self._outbox: asyncio.Queue[str] = asyncio.Queue()
        self._sender_task: asyncio.Task[None] | None = None
        self._ping_task: asyncio.Task[None] | None = None
        self._disposed = False
        self.cwd: str | None = None
        self.exit_code: int | None = None
        self.last_pong: float | None = None

    @property
    def shortcuts(self) -> ShortcutBar:
        return self._shortcuts

    @property
    def exited(self) -> bool:
        return self.exit_code is not None

    @property
    def disposed(self) -> bool:
        return self._disposed

    async def run(self) -> int | None:
        """Connect, relay until the session ends, then dispose.

        Returns:
            The shell's exit code, or None if the connection dropped
            without an exit notice.
        """
        try:
            await self.connect()
            await self.serve()
        finally:
            await self.dispose()
        return self.exit_code

    async def check_health(self) -> None:
        """GET the bridge's liveness endpoint.

        Raises:
            ClientError: If the endpoint is unreachable or unhealthy.
        """
        url = self._config.health_url
        if not url:
            return
        try:
            async with httpx.AsyncClient(timeout=self._config.health_timeout) as http:
                resp = await http.get(url)
                resp.raise_for_status()
        except httpx.HTTPError as e:
            raise ClientError(f"Bridge health check failed: {e}") from e
        logger.debug("Bridge at %s is healthy", url)

    async def connect(self) -> None:
        """Open the WebSocket and wire the surface to it.

        Raises:
            ClientError: If the health check or the connection fails.
        """
        await self.check_health()
        try:
            self._connection = await self._connector(self._config.url, max_size=None)
        except (OSError, asyncio.TimeoutError, websockets.exceptions.WebSocketException) as e:
            raise ClientError(f"Failed to connect to {self._config.url}: {e}") from e
        logger.info("Connected to %s", self._config.url)

        # Match the bridge's PTY to the rendered size right away.
        cols, rows = self._surface.geometry()
        try:
            await self._connection.send(encode_message(ResizeMessage(cols=cols, rows=rows)))
        except websockets.exceptions.ConnectionClosed as e:
            raise ClientError(f"Connection closed during handshake: {e}") from e

        self._subscriptions = [
            self._surface.on_input(self._on_surface_input),
            self._surface.on_resize(self._on_surface_resize),
        ]
        self._sender_task = asyncio.create_task(self._pump_outbox())
        if self._config.ping_interval > 0:
            self._ping_task = asyncio.create_task(self._ping_loop())

    async def serve(self) -> None:
        """Render inbound frames until the bridge closes the connection."""
        if self._connection is None:
            raise ClientError("Not connected")
        try:
            async for raw in self._connection:
                if isinstance(raw, str):
                    self.handle_server_message(raw)
        except websockets.exceptions.ConnectionClosed as e:
            logger.debug("Connection closed: %s", e)
        if self.exit_code is None:
            logger.info("Connection dropped without an exit notice")

    def handle_server_message(self, raw: str) -> None:
        message = parse_server_message(raw)
        if message is None:
            logger.debug("Ignoring unrecognized frame: %s", raw[:80])
        elif isinstance(message, OutputMessage):
            self._surface.write(message.data)
        elif isinstance(message, CwdMessage):
            self.cwd = message.path
            self._surface.set_status(message.path)
        elif isinstance(message, ExitMessage):
            self.exit_code = message.code
            self._surface.write(f"\r\n[terminal exited (code {message.code})]\r\n")
        elif isinstance(message, PongMessage):
            self.last_pong = time.monotonic()

    def press_shortcut(self, key: ShortcutKey) -> None:
        """Inject a shortcut-bar key as if it had been typed."""
        data = self._shortcuts.press(key)
        if data:
            self._queue(InputMessage(data=data))

    def send_input(self, data: str) -> None:
        """Send typed text, applying an armed Ctrl modifier."""
        data = self._shortcuts.transform(data)
        if data:
            self._queue(InputMessage(data=data))

    def ping(self) -> None:
        self._queue(PingMessage())

    async def flush(self) -> None:
        """Wait until every queued frame has been handed to the socket."""
        await self._outbox.join()

    async def dispose(self) -> None:
        """Release socket, surface and subscriptions together. Idempotent."""
        if self._disposed:
            return
        self._disposed = True

        for subscription in self._subscriptions:
            subscription.dispose()
        self._subscriptions = []

        for task in (self._sender_task, self._ping_task):
            if task is not None:
                task.cancel()
        await asyncio.gather(
            *(t for t in (self._sender_task, self._ping_task) if t is not None),
            return_exceptions=True,
        )

        if self._connection is not None:
            try:
                await self._connection.close()
            except (OSError, websockets.exceptions.WebSocketException) as e:
                logger.debug("Close failed: %s", e)
        self._surface.dispose()

    def _on_surface_input(self, data: str) -> None:
        self.send_input(data)

    def _on_surface_resize(self, cols: int, rows: int) -> None:
        self._queue(ResizeMessage(cols=cols, rows=rows))

    def _queue(self, message: BaseModel) -> None:
        if self._disposed or self.exited or self._connection is None:
            return
        self._outbox.put_nowait(encode_message(message))

    async def _pump_outbox(self) -> None:
        while True:
            frame = await self._outbox.get()
            try:
                await self._connection.send(frame)
            except websockets.exceptions.ConnectionClosed as e:
                logger.debug("Dropping frame, connection closed: %s", e)
            finally:
                self._outbox.task_done()

    async def _ping_loop(self) -> None:
        while True:
            await asyncio.sleep(self._config.ping_interval)
            self.ping()


class ClientError(Exception):
    """Raised when the terminal client cannot reach the bridge."""
