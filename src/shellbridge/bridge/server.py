"""FastAPI server exposing the terminal WebSocket endpoint.

    GET  /api/health        -> {"status": "ok"}
    WS   /api/terminal/ws   -> one shell session per connection

The WebSocket path is configurable. Everything a session needs from the
environment (preferred shell, workspace root) is read when the
connection opens, not when the server starts.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from contextlib import asynccontextmanager
from typing import AsyncIterator

import uvicorn
from fastapi import FastAPI, WebSocket
from pydantic import BaseModel

from shellbridge import __version__
from shellbridge.bridge.session import Spawner, TerminalSession
from shellbridge.config.settings import BridgeConfig, SessionEnvironment
from shellbridge.terminal.cwd import CwdProbe, default_cwd_probe
from shellbridge.terminal.process import PtySpawner

logger = logging.getLogger(__name__)


class HealthResponse(BaseModel):
    status: str = "ok"


def create_app(
    config: BridgeConfig | None = None,
    spawner: Spawner | None = None,
    cwd_probe: CwdProbe | None = None,
    environ: Mapping[str, str] | None = None,
) -> FastAPI:
    """Create the bridge application.

    Args:
        config: Bridge settings. Defaults to ``BridgeConfig()``.
        spawner: Starts session shells. Defaults to a :class:`PtySpawner`.
        cwd_probe: Reads a shell's working directory. Defaults to the
                   probe supported by this platform.
        environ: Environment consulted at each session open
                 (defaults to ``os.environ``).
    """
    if config is None:
        config = BridgeConfig()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        logger.info("Terminal bridge listening for sessions on %s", config.ws_path)
        yield
        logger.info("Terminal bridge stopped")

    app = FastAPI(
        title="shellbridge",
        description="WebSocket bridge between a browser terminal and a server-side shell",
        version=__version__,
        lifespan=lifespan,
    )

    app.state.config = config
    app.state.spawner = spawner if spawner is not None else PtySpawner(term=config.term)
    app.state.cwd_probe = cwd_probe if cwd_probe is not None else default_cwd_probe()
    app.state.environ = environ

    @app.get("/api/health")
    async def health_check() -> HealthResponse:
        return HealthResponse()

    @app.websocket(config.ws_path)
    async def terminal_ws(websocket: WebSocket) -> None:
        environment = SessionEnvironment.from_environ(config, app.state.environ)
        session = TerminalSession(
            websocket,
            config=config,
            environment=environment,
            spawner=app.state.spawner,
            cwd_probe=app.state.cwd_probe,
        )
        await session.run()

    return app


def main(config: BridgeConfig | None = None) -> None:
    """Entry point for running the bridge server standalone."""
    if config is None:
        config = BridgeConfig()
    app = create_app(config)
    uvicorn.run(app, host=config.host, port=config.port)


if __name__ == "__main__":
    main()
