"""Terminal surfaces the client renders into.

A surface displays output, reports what the user types and tells
listeners when its geometry changes. Escape sequences are the surface's
business; the client passes text through untouched.
"""

from __future__ import annotations

import asyncio
import codecs
import logging
import os
import signal
import sys
import termios
import tty
from abc import ABC, abstractmethod
from typing import BinaryIO, Callable

logger = logging.getLogger(__name__)

InputListener = Callable[[str], None]
ResizeListener = Callable[[int, int], None]

DEFAULT_GEOMETRY = (80, 24)


class Subscription:
    """Handle returned by ``on_input``/``on_resize``; dispose to unsubscribe."""

    def __init__(self, listeners: list, listener: Callable) -> None:
        self._listeners = listeners
        self._listener = listener

    def dispose(self) -> None:
        if self._listener in self._listeners:
            self._listeners.remove(self._listener)


class TerminalSurface(ABC):
    """Abstract terminal display bound to one client session."""

    def __init__(self) -> None:
        self._input_listeners: list[InputListener] = []
        self._resize_listeners: list[ResizeListener] = []
        self._disposed = False

    @property
    def disposed(self) -> bool:
        return self._disposed

    @abstractmethod
    def write(self, text: str) -> None:
        """Render output text (may contain escape sequences)."""
        ...

    @abstractmethod
    def geometry(self) -> tuple[int, int]:
        """Current size as ``(cols, rows)``."""
        ...

    def set_status(self, label: str) -> None:
        """Show a short status label, e.g. the shell's working directory."""

    def on_input(self, listener: InputListener) -> Subscription:
        self._input_listeners.append(listener)
        return Subscription(self._input_listeners, listener)

    def on_resize(self, listener: ResizeListener) -> Subscription:
        self._resize_listeners.append(listener)
        return Subscription(self._resize_listeners, listener)

    def dispose(self) -> None:
        """Release the surface; no listener fires afterwards."""
        self._disposed = True
        self._input_listeners.clear()
        self._resize_listeners.clear()

    def _emit_input(self, data: str) -> None:
        for listener in list(self._input_listeners):
            listener(data)

    def _emit_resize(self, cols: int, rows: int) -> None:
        for listener in list(self._resize_listeners):
            listener(cols, rows)


class ConsoleSurface(TerminalSurface):
    """The local controlling terminal, switched to raw mode while open.

    Keystrokes are read from ``stdin_fd`` through the event loop, window
    size changes arrive via SIGWINCH, and the status label is shown as
    the window title.
    """

    def __init__(self, stdin_fd: int | None = None, stdout: BinaryIO | None = None) -> None:
        super().__init__()
        self._stdin_fd = sys.stdin.fileno() if stdin_fd is None else stdin_fd
        self._stdout = sys.stdout.buffer if stdout is None else stdout
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._saved_attrs: list | None = None
        self._loop: asyncio.AbstractEventLoop | None = None
        self._winch_installed = False

    def open(self) -> None:
        """Enter raw mode and start watching stdin and window size."""
        self._loop = asyncio.get_running_loop()
        self._saved_attrs = termios.tcgetattr(self._stdin_fd)
        tty.setraw(self._stdin_fd)
        self._loop.add_reader(self._stdin_fd, self._on_stdin_readable)
        try:
            self._loop.add_signal_handler(signal.SIGWINCH, self._on_winch)
            self._winch_installed = True
        except (NotImplementedError, RuntimeError):
            logger.debug("SIGWINCH handler unavailable; resize events disabled")

    def write(self, text: str) -> None:
        if self._disposed:
            return
        self._stdout.write(text.encode("utf-8", errors="replace"))
        self._stdout.flush()

    def geometry(self) -> tuple[int, int]:
        try:
            size = os.get_terminal_size(self._stdin_fd)
        except OSError:
            return DEFAULT_GEOMETRY
        return size.columns or DEFAULT_GEOMETRY[0], size.lines or DEFAULT_GEOMETRY[1]

    def set_status(self, label: str) -> None:
        self.write(f"\x1b]0;{label}\x07")

    def dispose(self) -> None:
        if self._disposed:
            return
        super().dispose()
        if self._loop is not None:
            self._loop.remove_reader(self._stdin_fd)
            if self._winch_installed:
                self._loop.remove_signal_handler(signal.SIGWINCH)
                self._winch_installed = False
        if self._saved_attrs is not None:
            termios.tcsetattr(self._stdin_fd, termios.TCSADRAIN, self._saved_attrs)
            self._saved_attrs = None

    def _on_stdin_readable(self) -> None:
        try:
            data = os.read(self._stdin_fd, 4096)
        except OSError as e:
            logger.debug("stdin read failed: %s", e)
            return
        if not data:
            # stdin closed; stop polling it
            if self._loop is not None:
                self._loop.remove_reader(self._stdin_fd)
            return
        text = self._decoder.decode(data)
        if text:
            self._emit_input(text)

    def _on_winch(self) -> None:
        cols, rows = self.geometry()
        self._emit_resize(cols, rows)
