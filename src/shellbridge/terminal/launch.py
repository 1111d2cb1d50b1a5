"""Shell launch profiles.

Each supported shell is started without its rc files and with a fixed,
minimal prompt so every session begins from the same predictable state.
"""

from __future__ import annotations

import os

from shellbridge.domain.models import ShellLaunch


def build_launch_profile(shell: str) -> ShellLaunch:
    """Return the argument list and environment overlay for ``shell``.

    Matching is done on the executable's base name, so ``/usr/bin/zsh``
    and ``zsh-5.9`` are both treated as zsh.
    """
    name = os.path.basename(shell)
    if "zsh" in name:
        return ShellLaunch(
            command=shell,
            args=("-f", "-i"),
            env={"PS1": "%# ", "PROMPT": "%# "},
        )
    if "bash" in name:
        return ShellLaunch(
            command=shell,
            args=("--noprofile", "--norc", "-i"),
            env={"PS1": "$ ", "PROMPT_COMMAND": ""},
        )
    return ShellLaunch(command=shell, args=("-i",), env={"PS1": "$ "})
