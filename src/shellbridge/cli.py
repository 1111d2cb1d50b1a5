"""Command-line interface for shellbridge.

Provides the main entry point for running the bridge server or attaching
the local terminal to a running bridge.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path

logger = logging.getLogger(__name__)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        prog="shellbridge",
        description="Remote terminal session bridge",
    )
    parser.add_argument(
        "-c", "--config",
        type=Path,
        default=None,
        help="Path to YAML configuration file (default: config/shellbridge.yaml)",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable debug logging",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    serve_parser = subparsers.add_parser("serve", help="Start the terminal bridge server")
    serve_parser.add_argument("--host", type=str, default=None, help="Bind address")
    serve_parser.add_argument("--port", type=int, default=None, help="Listen port")

    attach_parser = subparsers.add_parser(
        "attach",
        help="Attach this terminal to a running bridge",
    )
    attach_parser.add_argument(
        "--url", type=str, default=None,
        help="WebSocket URL of the terminal endpoint",
    )

    return parser.parse_args(argv)


async def _attach(settings, args) -> int | None:
    """Run a terminal client on the local console until the shell exits."""
    from shellbridge.client.session import ClientError, TerminalClient
    from shellbridge.client.surface import ConsoleSurface

    if not sys.stdin.isatty():
        raise ClientError("attach needs an interactive terminal on stdin")

    client_config = settings.client
    if args.url:
        client_config = client_config.model_copy(update={"url": args.url})

    surface = ConsoleSurface()
    surface.open()
    client = TerminalClient(surface, client_config)
    return await client.run()


def main(argv: list[str] | None = None) -> None:
    """Main entry point for the shellbridge CLI."""
    args = parse_args(argv)

    if args.command is None:
        parse_args(["--help"])
        return

    from shellbridge.config.settings import load_settings
    from shellbridge.utils.logging import setup_logging

    settings = load_settings(args.config)

    if args.verbose:
        settings.logging.level = "DEBUG"

    setup_logging(settings.logging)

    if args.command == "serve":
        from shellbridge.bridge.server import main as serve

        overrides = {k: v for k, v in (("host", args.host), ("port", args.port)) if v is not None}
        bridge_config = settings.bridge.model_copy(update=overrides)
        logger.info("Starting terminal bridge on %s:%d", bridge_config.host, bridge_config.port)
        serve(bridge_config)

    elif args.command == "attach":
        from shellbridge.client.session import ClientError

        try:
            code = asyncio.run(_attach(settings, args))
        except ClientError as e:
            logger.error("%s", e)
            sys.exit(1)
        sys.exit(code if code is not None and code >= 0 else 1)


if __name__ == "__main__":
    main()
