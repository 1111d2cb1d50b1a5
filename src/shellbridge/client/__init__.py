"""Terminal client for the shellbridge WebSocket protocol.

Binds a :class:`TerminalSurface` (what the user sees and types into) to
one bridge session, including the shortcut bar with its one-shot Ctrl
modifier.

Public API:
    TerminalClient -- WebSocket session driver
    TerminalSurface -- Abstract surface; ConsoleSurface for a local TTY
    ShortcutBar, ShortcutKey -- Auxiliary keys
"""

from shellbridge.client.shortcuts import ShortcutBar, ShortcutKey, apply_ctrl
from shellbridge.client.surface import ConsoleSurface, Subscription, TerminalSurface

__all__ = [
    "ClientError",
    "ConsoleSurface",
    "ShortcutBar",
    "ShortcutKey",
    "Subscription",
    "TerminalClient",
    "TerminalSurface",
    "apply_ctrl",
]


def __getattr__(name: str) -> type:
    """Lazy import for the session driver (pulls in websockets and httpx)."""
    if name in ("TerminalClient", "ClientError"):
        from shellbridge.client import session
        return getattr(session, name)
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
