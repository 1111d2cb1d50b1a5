"""Working-directory discovery for a running shell.

The shell has no channel for telling the bridge where it is, so the
directory is read from the operating system instead. Only Linux-style
``/proc`` introspection is implemented; other platforms get a probe that
always reports "unknown". Callers must treat a missing answer as normal.
"""

from __future__ import annotations

import logging
import os
import sys
from abc import ABC, abstractmethod
from pathlib import Path

logger = logging.getLogger(__name__)


class CwdProbe(ABC):
    """Capability for reading a process's current working directory."""

    @abstractmethod
    def read_cwd(self, pid: int) -> str | None:
        """Return the absolute working directory of ``pid``, or None.

        Implementations must not raise for ordinary failures (process
        gone, permission denied, unsupported platform).
        """
        ...


class ProcCwdProbe(CwdProbe):
    """Resolves ``/proc/<pid>/cwd``."""

    def __init__(self, proc_root: Path | str = "/proc") -> None:
        self._proc_root = Path(proc_root)

    def read_cwd(self, pid: int) -> str | None:
        try:
            return os.readlink(self._proc_root / str(pid) / "cwd")
        except OSError as e:
            logger.debug("cwd probe for pid %d failed: %s", pid, e)
            return None


class NullCwdProbe(CwdProbe):
    """Probe for platforms without a cwd introspection mechanism."""

    def read_cwd(self, pid: int) -> str | None:
        return None


def default_cwd_probe() -> CwdProbe:
    """Pick the probe supported by the running platform."""
    if sys.platform.startswith("linux") and os.path.isdir("/proc/self"):
        return ProcCwdProbe()
    return NullCwdProbe()


def format_cwd_label(cwd: str, workspace_root: str, home: str | None = None) -> str:
    """Shorten ``cwd`` for display.

    The workspace root is checked before the home directory; either one
    maps to ``~`` when matched exactly and to ``~/<rest>`` for paths
    beneath it. Anything else is returned unchanged.
    """
    for base in (workspace_root, home):
        if not base:
            continue
        if cwd == base:
            return "~"
        if cwd.startswith(f"{base}/"):
            return "~/" + cwd[len(base) + 1:]
    return cwd
