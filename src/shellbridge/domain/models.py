"""Core domain models for shellbridge.

These models represent the data flowing over a terminal WebSocket: the
control messages each side may send, and the launch profile used to
start a session's shell.
"""

from __future__ import annotations

from typing import Annotated, Literal, Union

from pydantic import AllowInfNan, BaseModel, ConfigDict, Field, Strict, StrictInt

# JSON numbers only: no bools, no numeric strings, no NaN/Infinity.
Dimension = Union[StrictInt, Annotated[float, Strict(), AllowInfNan(False)]]


# ---------------------------------------------------------------------------
# Client -> server messages (discriminated union)
# ---------------------------------------------------------------------------


class InputMessage(BaseModel):
    """Keystrokes or pasted text to write to the shell verbatim."""

    model_config = ConfigDict(frozen=True)

    type: Literal["input"] = "input"
    data: str = Field(strict=True, description="Raw terminal input")


class ResizeMessage(BaseModel):
    """New viewport geometry reported by the client's terminal surface."""

    model_config = ConfigDict(frozen=True)

    type: Literal["resize"] = "resize"
    cols: Dimension = Field(description="Columns (may be fractional; floored by the bridge)")
    rows: Dimension = Field(description="Rows (may be fractional; floored by the bridge)")


class PingMessage(BaseModel):
    """Liveness probe; answered with a pong."""

    model_config = ConfigDict(frozen=True)

    type: Literal["ping"] = "ping"


ClientMessage = Annotated[
    Union[InputMessage, ResizeMessage, PingMessage],
    Field(discriminator="type"),
]


# ---------------------------------------------------------------------------
# Server -> client messages (discriminated union)
# ---------------------------------------------------------------------------


class OutputMessage(BaseModel):
    """A chunk of shell output, in production order."""

    model_config = ConfigDict(frozen=True)

    type: Literal["output"] = "output"
    data: str


class CwdMessage(BaseModel):
    """The shell's working directory, relativized for display."""

    model_config = ConfigDict(frozen=True)

    type: Literal["cwd"] = "cwd"
    path: str


class ExitMessage(BaseModel):
    """Sent once when the shell process terminates."""

    model_config = ConfigDict(frozen=True)

    type: Literal["exit"] = "exit"
    code: int


class PongMessage(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: Literal["pong"] = "pong"


ServerMessage = Annotated[
    Union[OutputMessage, CwdMessage, ExitMessage, PongMessage],
    Field(discriminator="type"),
]


# ---------------------------------------------------------------------------
# Process launch
# ---------------------------------------------------------------------------


class ShellLaunch(BaseModel):
    """How to start a session's shell.

    The argument list keeps the shell away from the user's rc files and
    ``env`` pins a plain prompt, so prompt customisations cannot confuse
    anything that inspects the session.
    """

    model_config = ConfigDict(frozen=True)

    command: str = Field(description="Shell executable (name or path)")
    args: tuple[str, ...] = Field(default=(), description="Arguments after argv[0]")
    env: dict[str, str] = Field(default_factory=dict, description="Overlay on the inherited environment")

    @property
    def argv(self) -> list[str]:
        return [self.command, *self.args]
