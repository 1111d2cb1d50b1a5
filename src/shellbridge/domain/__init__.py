"""Domain models shared by the bridge server and the terminal client."""

from shellbridge.domain.models import (
    ClientMessage,
    CwdMessage,
    ExitMessage,
    InputMessage,
    OutputMessage,
    PingMessage,
    PongMessage,
    ResizeMessage,
    ServerMessage,
    ShellLaunch,
)

__all__ = [
    "ClientMessage",
    "CwdMessage",
    "ExitMessage",
    "InputMessage",
    "OutputMessage",
    "PingMessage",
    "PongMessage",
    "ResizeMessage",
    "ServerMessage",
    "ShellLaunch",
]
