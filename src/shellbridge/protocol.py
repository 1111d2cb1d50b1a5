"""Wire framing for the terminal control protocol.

Every WebSocket text frame carries one JSON object tagged by ``type``.
Client frames that do not decode to a known client message are *not*
errors: the bridge writes them to the shell unchanged, so clients that
send unframed keystrokes keep working.

Client -> server::

    {"type": "input", "data": "ls\\r"}
    {"type": "resize", "cols": 120, "rows": 36}
    {"type": "ping"}

Server -> client::

    {"type": "output", "data": "..."}
    {"type": "cwd", "path": "~/src"}
    {"type": "exit", "code": 0}
    {"type": "pong"}
"""

from __future__ import annotations

import math

from pydantic import BaseModel, TypeAdapter, ValidationError

from shellbridge.domain.models import ClientMessage, ServerMessage

MIN_COLS = 20
MIN_ROWS = 8

_client_adapter: TypeAdapter[ClientMessage] = TypeAdapter(ClientMessage)
_server_adapter: TypeAdapter[ServerMessage] = TypeAdapter(ServerMessage)


def parse_client_message(raw: str) -> ClientMessage | None:
    """Decode a client frame, or return None if it should be raw input."""
    try:
        return _client_adapter.validate_json(raw)
    except ValidationError:
        return None


def parse_server_message(raw: str) -> ServerMessage | None:
    """Decode a server frame; unknown or malformed frames yield None."""
    try:
        return _server_adapter.validate_json(raw)
    except ValidationError:
        return None


def encode_message(message: BaseModel) -> str:
    """Serialize a control message as a compact, newline-free JSON frame."""
    return message.model_dump_json()


def clamp_geometry(
    cols: float,
    rows: float,
    min_cols: int = MIN_COLS,
    min_rows: int = MIN_ROWS,
) -> tuple[int, int]:
    """Floor a requested geometry and raise it to the minimum usable size."""
    return max(min_cols, math.floor(cols)), max(min_rows, math.floor(rows))


def submits_line(data: str) -> bool:
    """True if the input contains a carriage return or newline."""
    return "\r" in data or "\n" in data
