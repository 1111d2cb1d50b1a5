"""shellbridge -- Remote terminal session bridge.

Lets a terminal emulator running in a browser (or any WebSocket client)
drive a real interactive shell on the server. Each WebSocket connection
owns exactly one shell process attached to a pseudo-terminal; raw bytes
are multiplexed with a small JSON control protocol for resize, liveness
and working-directory updates.
"""

__version__ = "0.1.0"
