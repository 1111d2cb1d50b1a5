"""Configuration management for shellbridge.

Loads and validates YAML-based configuration with Pydantic models.
Per-session inputs (preferred shell, workspace root) are read from the
environment each time a session opens.
"""

from shellbridge.config.settings import (
    BridgeConfig,
    ClientConfig,
    SessionEnvironment,
    Settings,
    load_settings,
)

__all__ = [
    "BridgeConfig",
    "ClientConfig",
    "SessionEnvironment",
    "Settings",
    "load_settings",
]
