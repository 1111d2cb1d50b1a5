"""Tests for shell launch profiles."""

from __future__ import annotations

import pytest

from shellbridge.terminal.launch import build_launch_profile


class TestBuildLaunchProfile:
    @pytest.mark.parametrize("shell", ["zsh", "/bin/zsh", "/usr/local/bin/zsh-5.9"])
    def test_zsh(self, shell: str) -> None:
        launch = build_launch_profile(shell)
        assert launch.command == shell
        assert launch.args == ("-f", "-i")
        assert launch.env == {"PS1": "%# ", "PROMPT": "%# "}

    @pytest.mark.parametrize("shell", ["bash", "/bin/bash", "/opt/homebrew/bin/bash"])
    def test_bash(self, shell: str) -> None:
        launch = build_launch_profile(shell)
        assert launch.args == ("--noprofile", "--norc", "-i")
        assert launch.env == {"PS1": "$ ", "PROMPT_COMMAND": ""}

    @pytest.mark.parametrize("shell", ["sh", "/bin/dash", "/usr/bin/fish"])
    def test_other_shells(self, shell: str) -> None:
        launch = build_launch_profile(shell)
        assert launch.args == ("-i",)
        assert launch.env == {"PS1": "$ "}

    def test_match_uses_basename(self) -> None:
        """A directory named after a shell does not change the profile."""
        launch = build_launch_profile("/opt/zsh/bin/sh")
        assert launch.args == ("-i",)

    def test_argv(self) -> None:
        assert build_launch_profile("/bin/bash").argv == ["/bin/bash", "--noprofile", "--norc", "-i"]
