"""Interactive shell processes attached to pseudo-terminals.

:class:`PtySpawner` starts a shell as the session leader of a fresh
pseudo-terminal, and :class:`PtyProcess` is the asyncio adapter around
the master side: output is read as the event loop reports it readable,
input is written without blocking the loop, and the process can be
resized, awaited and killed.
"""

from __future__ import annotations

import asyncio
import fcntl
import logging
import os
import pty
import shutil
import signal
import struct
import subprocess
import termios

from shellbridge.domain.models import ShellLaunch

logger = logging.getLogger(__name__)

READ_CHUNK = 65536
# Stop reading from the PTY while this many chunks are waiting to be relayed.
HIGH_WATER = 64
LOW_WATER = 16
MAX_DIMENSION = 0xFFFF


class PtyProcess:
    """A running shell and the master end of its pseudo-terminal.

    Must be created inside a running event loop. Output chunks are
    queued in the order the kernel delivers them; :meth:`read` returns
    None once the terminal reports end of stream.
    """

    def __init__(
        self,
        process: asyncio.subprocess.Process,
        master_fd: int,
        cols: int,
        rows: int,
    ) -> None:
        self._process = process
        self._master_fd = master_fd
        self._cols = cols
        self._rows = rows
        self._loop = asyncio.get_running_loop()
        self._chunks: asyncio.Queue[bytes | None] = asyncio.Queue()
        self._pending = bytearray()
        self._reading = False
        self._paused = False
        self._writing = False
        self._eof = False
        self._closed = False

        flags = fcntl.fcntl(master_fd, fcntl.F_GETFL)
        fcntl.fcntl(master_fd, fcntl.F_SETFL, flags | os.O_NONBLOCK)
        self._start_reading()

    @property
    def pid(self) -> int:
        return self._process.pid

    @property
    def returncode(self) -> int | None:
        return self._process.returncode

    @property
    def is_alive(self) -> bool:
        return self._process.returncode is None

    @property
    def cols(self) -> int:
        return self._cols

    @property
    def rows(self) -> int:
        return self._rows

    async def read(self) -> bytes | None:
        """Wait for the next chunk of output; None means end of stream."""
        if self._eof:
            return None
        chunk = await self._chunks.get()
        if chunk is None:
            self._eof = True
        elif self._paused and not self._closed and self._chunks.qsize() <= LOW_WATER:
            self._paused = False
            self._start_reading()
        return chunk

    def write(self, data: bytes) -> None:
        """Queue bytes for the shell's input, preserving order."""
        if self._closed:
            raise PtyProcessError("PTY is closed")
        self._pending += data
        self._flush()

    def resize(self, cols: int, rows: int) -> None:
        """Apply a new window size; the kernel signals the foreground job."""
        if self._closed:
            raise PtyProcessError("PTY is closed")
        cols = min(cols, MAX_DIMENSION)
        rows = min(rows, MAX_DIMENSION)
        try:
            _set_winsize(self._master_fd, rows, cols)
        except OSError as e:
            raise PtyProcessError(f"Failed to resize PTY: {e}") from e
        self._cols, self._rows = cols, rows
        logger.debug("Resized pid %d to %dx%d", self.pid, cols, rows)

    async def wait(self) -> int:
        """Wait for the shell to exit and return its exit code.

        A negative code means the shell was killed by that signal.
        """
        return await self._process.wait()

    def kill(self) -> None:
        """Unconditionally kill the shell (SIGKILL)."""
        try:
            self._process.kill()
        except ProcessLookupError:
            pass

    def close(self) -> None:
        """Kill what is left of the shell's session and release the master
        descriptor. Safe to call more than once.

        Background jobs outlive the shell but stay in its session; they
        are killed here so nothing keeps the terminal open.
        """
        if self._closed:
            return
        self._closed = True
        for pid in _session_members(self.pid):
            try:
                os.kill(pid, signal.SIGKILL)
            except (ProcessLookupError, PermissionError):
                pass
        self._stop_reading()
        if self._writing:
            self._loop.remove_writer(self._master_fd)
            self._writing = False
        self._pending.clear()
        try:
            os.close(self._master_fd)
        except OSError:
            pass
        if not self._eof:
            self._chunks.put_nowait(None)

    def _start_reading(self) -> None:
        self._loop.add_reader(self._master_fd, self._on_readable)
        self._reading = True

    def _stop_reading(self) -> None:
        if self._reading:
            self._loop.remove_reader(self._master_fd)
            self._reading = False

    def _on_readable(self) -> None:
        try:
            data = os.read(self._master_fd, READ_CHUNK)
        except BlockingIOError:
            return
        except OSError:
            # EIO: every slave descriptor is closed, i.e. the shell is gone
            data = b""
        if not data:
            self._stop_reading()
            self._chunks.put_nowait(None)
            return
        self._chunks.put_nowait(data)
        if self._chunks.qsize() >= HIGH_WATER:
            self._paused = True
            self._stop_reading()

    def _flush(self) -> None:
        while self._pending:
            try:
                written = os.write(self._master_fd, self._pending)
            except BlockingIOError:
                break
            except OSError as e:
                self._pending.clear()
                raise PtyProcessError(f"Failed to write to PTY: {e}") from e
            del self._pending[:written]
        if self._pending and not self._writing:
            self._loop.add_writer(self._master_fd, self._on_writable)
            self._writing = True
        elif not self._pending and self._writing:
            self._loop.remove_writer(self._master_fd)
            self._writing = False

    def _on_writable(self) -> None:
        try:
            self._flush()
        except PtyProcessError as e:
            logger.debug("Deferred PTY write failed: %s", e)


class PtySpawner:
    """Starts shells attached to new pseudo-terminals."""

    def __init__(self, term: str = "xterm-256color") -> None:
        self._term = term

    async def spawn(
        self,
        launch: ShellLaunch,
        cwd: str,
        cols: int,
        rows: int,
    ) -> PtyProcess:
        """Start ``launch`` in ``cwd`` on a ``cols`` x ``rows`` terminal.

        Raises:
            SpawnError: If the shell cannot be found or started.
        """
        executable = shutil.which(launch.command)
        if executable is None:
            raise SpawnError(f"Shell not found: {launch.command}")
        if not os.path.isdir(cwd):
            raise SpawnError(f"Working directory does not exist: {cwd}")

        env = os.environ.copy()
        env["TERM"] = self._term
        env.update(launch.env)

        master_fd, slave_fd = pty.openpty()
        try:
            _set_winsize(slave_fd, rows, cols)
            process = await asyncio.create_subprocess_exec(
                executable,
                *launch.args,
                stdin=slave_fd,
                stdout=slave_fd,
                stderr=slave_fd,
                cwd=cwd,
                env=env,
                start_new_session=True,
                preexec_fn=_acquire_controlling_tty,
            )
        except (OSError, ValueError, subprocess.SubprocessError) as e:
            os.close(master_fd)
            raise SpawnError(f"Failed to start {launch.command}: {e}") from e
        finally:
            os.close(slave_fd)

        logger.info(
            "Started shell %s (pid=%d, %dx%d, cwd=%s)",
            executable, process.pid, cols, rows, cwd,
        )
        return PtyProcess(process, master_fd, cols=cols, rows=rows)


def _set_winsize(fd: int, rows: int, cols: int) -> None:
    winsize = struct.pack("HHHH", rows, cols, 0, 0)
    fcntl.ioctl(fd, termios.TIOCSWINSZ, winsize)


def _session_members(sid: int, proc_root: str = "/proc") -> list[int]:
    """Pids whose session id is ``sid`` (empty where /proc is unavailable)."""
    try:
        entries = os.listdir(proc_root)
    except OSError:
        return []
    members = []
    for entry in entries:
        if not entry.isdigit():
            continue
        try:
            with open(os.path.join(proc_root, entry, "stat")) as f:
                stat = f.read()
        except OSError:
            continue
        # fields after "(comm)": state ppid pgrp session ...
        fields = stat.rpartition(")")[2].split()
        if len(fields) > 3 and fields[3] == str(sid):
            members.append(int(entry))
    return members


def _acquire_controlling_tty() -> None:
    # Runs in the child after setsid(); stdin is the PTY slave.
    fcntl.ioctl(0, termios.TIOCSCTTY, 0)


class SpawnError(Exception):
    """Raised when a shell process cannot be started."""


class PtyProcessError(Exception):
    """Raised when writing to or resizing a PTY fails."""
