"""Shell process management for shellbridge.

Spawns interactive shells attached to pseudo-terminals, relays their
byte streams asynchronously, and inspects their working directory.
"""

from shellbridge.terminal.cwd import CwdProbe, NullCwdProbe, ProcCwdProbe, default_cwd_probe, format_cwd_label
from shellbridge.terminal.launch import build_launch_profile
from shellbridge.terminal.process import PtyProcess, PtyProcessError, PtySpawner, SpawnError

__all__ = [
    "CwdProbe",
    "NullCwdProbe",
    "ProcCwdProbe",
    "PtyProcess",
    "PtyProcessError",
    "PtySpawner",
    "SpawnError",
    "build_launch_profile",
    "default_cwd_probe",
    "format_cwd_label",
]
