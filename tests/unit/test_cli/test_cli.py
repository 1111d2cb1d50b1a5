"""Tests for the shellbridge command-line interface."""

from __future__ import annotations

import logging
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from shellbridge.cli import main, parse_args


@pytest.fixture(autouse=True)
def isolated_cwd(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv("DASHBOARD_API_PORT", raising=False)
    yield
    for handler in list(logging.getLogger("shellbridge").handlers):
        logging.getLogger("shellbridge").removeHandler(handler)


class TestParseArgs:
    def test_serve_options(self) -> None:
        args = parse_args(["-v", "serve", "--host", "127.0.0.1", "--port", "4000"])
        assert args.verbose is True
        assert args.command == "serve"
        assert (args.host, args.port) == ("127.0.0.1", 4000)

    def test_attach_url(self) -> None:
        args = parse_args(["-c", "bridge.yaml", "attach", "--url", "ws://h:1/t"])
        assert args.config == Path("bridge.yaml")
        assert args.url == "ws://h:1/t"

    def test_no_command(self) -> None:
        assert parse_args([]).command is None


class TestMain:
    def test_no_command_prints_help(self, capsys: pytest.CaptureFixture[str]) -> None:
        with pytest.raises(SystemExit) as exc:
            main([])
        assert exc.value.code == 0
        assert "serve" in capsys.readouterr().out

    def test_serve_applies_overrides(self, tmp_path: Path) -> None:
        serve = MagicMock()
        with patch("shellbridge.bridge.server.main", serve):
            main(["-c", str(tmp_path / "missing.yaml"), "serve", "--port", "4001"])
        config = serve.call_args.args[0]
        assert config.port == 4001
        assert config.host == "0.0.0.0"

    def test_serve_reads_config_file(self, tmp_path: Path) -> None:
        path = tmp_path / "shellbridge.yaml"
        path.write_text("bridge:\n  port: 4200\n  ws_path: /term\n")
        serve = MagicMock()
        with patch("shellbridge.bridge.server.main", serve):
            main(["-c", str(path), "serve"])
        config = serve.call_args.args[0]
        assert config.port == 4200
        assert config.ws_path == "/term"

    def test_verbose_enables_debug(self, tmp_path: Path) -> None:
        with patch("shellbridge.bridge.server.main", MagicMock()):
            main(["-v", "-c", str(tmp_path / "missing.yaml"), "serve"])
        assert logging.getLogger("shellbridge").level == logging.DEBUG

    def test_attach_requires_tty(self, tmp_path: Path) -> None:
        with patch("sys.stdin") as stdin:
            stdin.isatty.return_value = False
            with pytest.raises(SystemExit) as exc:
                main(["-c", str(tmp_path / "missing.yaml"), "attach"])
        assert exc.value.code == 1
