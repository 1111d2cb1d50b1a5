"""Configuration management for shellbridge.

Loads settings from a YAML configuration file with environment variable
overrides. Supports .env files.

Session-level inputs (the user's preferred shell and the workspace root)
are not part of :class:`Settings`: they are read from the
process environment by :meth:`SessionEnvironment.from_environ` each time a
terminal session opens, so operators can change them between sessions
without restarting the bridge.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from pathlib import Path

import yaml
from pydantic import BaseModel, ConfigDict, Field
from pydantic_settings import BaseSettings

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path("config/shellbridge.yaml")

SHELL_ENV_VAR = "SHELL"
WORKSPACE_ROOT_ENV_VAR = "WORKSPACE_ROOT"


class BridgeConfig(BaseModel):
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=3100, ge=1, le=65535)
    ws_path: str = Field(default="/api/terminal/ws")
    default_cols: int = Field(default=120, gt=0, description="Initial PTY width before the client resizes")
    default_rows: int = Field(default=36, gt=0, description="Initial PTY height before the client resizes")
    min_cols: int = Field(default=20, gt=0)
    min_rows: int = Field(default=8, gt=0)
    cwd_debounce: float = Field(default=0.14, ge=0, description="Seconds to wait after a submitted line before probing cwd")
    exit_drain: float = Field(default=0.2, ge=0, description="Seconds to keep relaying output after the shell exits")
    term: str = Field(default="xterm-256color")
    default_shell: str = Field(default="bash", description="Used when $SHELL is unset")
    default_workspace_root: str | None = Field(
        default=None, description="Used when $WORKSPACE_ROOT is unset (None means the home directory)"
    )


class ClientConfig(BaseModel):
    url: str = Field(default="ws://localhost:3100/api/terminal/ws")
    health_url: str | None = Field(default=None, description="Checked with a GET before connecting")
    health_timeout: float = Field(default=5.0, gt=0)
    ping_interval: float = Field(default=0.0, ge=0, description="Seconds between liveness pings (0 disables)")


class LoggingConfig(BaseModel):
    level: str = Field(default="INFO")
    format: str = Field(
        default="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    file: str | None = Field(default=None)


class SessionEnvironment(BaseModel):
    """Per-session inputs resolved at session-open time."""

    model_config = ConfigDict(frozen=True)

    shell: str = Field(description="Shell executable to launch")
    workspace_root: str = Field(description="Initial directory and base for relative cwd labels")
    home: str | None = Field(default=None, description="User home directory for cwd labels")

    @classmethod
    def from_environ(
        cls,
        config: BridgeConfig,
        environ: Mapping[str, str] | None = None,
    ) -> SessionEnvironment:
        env = os.environ if environ is None else environ
        shell = env.get(SHELL_ENV_VAR) or config.default_shell
        workspace_root = (
            env.get(WORKSPACE_ROOT_ENV_VAR)
            or config.default_workspace_root
            or env.get("HOME")
            or str(Path.home())
        )
        return cls(shell=shell, workspace_root=workspace_root, home=env.get("HOME") or None)


class Settings(BaseSettings):
    """Root configuration for shellbridge.

    Loads from YAML file and supports environment variable overrides.
    Reads .env files automatically.
    """

    model_config = {
        "env_prefix": "SHELLBRIDGE_",
        "env_nested_delimiter": "__",
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }

    bridge: BridgeConfig = Field(default_factory=BridgeConfig)
    client: ClientConfig = Field(default_factory=ClientConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


def load_settings(config_path: Path | str | None = None) -> Settings:
    """Load settings from YAML + .env + environment variables.

    Priority: env vars > .env file > YAML file > defaults
    """
    path = Path(config_path) if config_path else DEFAULT_CONFIG_PATH

    # Load .env file manually for non-prefixed vars
    _load_dotenv()

    yaml_data = {}
    if path.exists():
        with open(path) as f:
            yaml_data = yaml.safe_load(f) or {}
        logger.info("Loaded configuration from %s", path)
    else:
        logger.warning("Config file %s not found, using defaults + env vars", path)

    _apply_env_overrides(yaml_data)

    return Settings(**yaml_data)


def _load_dotenv(env_path: Path = Path(".env")) -> None:
    """Load .env file into os.environ if it exists."""
    if not env_path.exists():
        return
    with open(env_path) as f:
        for line in f:
            line = line.strip()
            if not line or line.startswith("#"):
                continue
            if "=" in line:
                key, _, value = line.partition("=")
                key = key.strip()
                value = value.strip()
                if len(value) >= 2 and value[0] == value[-1] and value[0] in "\"'":
                    value = value[1:-1]
                if not os.environ.get(key):
                    os.environ[key] = value


def _apply_env_overrides(yaml_data: dict) -> None:
    """Apply environment variable overrides for non-prefixed vars."""
    port = os.environ.get("DASHBOARD_API_PORT", "")

    if "bridge" not in yaml_data:
        yaml_data["bridge"] = {}

    if port.isdigit() and not yaml_data["bridge"].get("port"):
        yaml_data["bridge"]["port"] = int(port)
