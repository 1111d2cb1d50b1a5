"""Server side of the terminal bridge.

One WebSocket connection maps to one :class:`TerminalSession`, which owns
one shell process for the lifetime of the connection.
"""

from shellbridge.bridge.session import TerminalSession

__all__ = ["TerminalSession", "create_app"]


def __getattr__(name: str) -> object:
    """Lazy import for the application factory (pulls in uvicorn)."""
    if name == "create_app":
        from shellbridge.bridge.server import create_app
        return create_app
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
