"""Server configuration loader and validation.

This module handles loading the server configuration from a YAML file.
Every setting has a default, so a file only needs the ``version`` field
and whatever it wants to change.
"""

from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

TRANSPORTS = ("stdio", "http")
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")

# Hosts for which the default origin policy only admits local origins
LOOPBACK_HOSTS = frozenset({"localhost", "127.0.0.1", "::1"})


class ConfigLoadError(Exception):
    """Raised when configuration loading or validation fails."""

    pass


def expand_env_vars(value: str) -> str:
    """Expand environment variables in a string.

    Supports ${VAR_NAME} syntax. Unknown variables are left unchanged.

    Args:
        value: String potentially containing environment variable references.

    Returns:
        String with known environment variables expanded.
    """
    pattern = re.compile(r"\$\{([^}]+)\}")

    def replacer(match: re.Match[str]) -> str:
        var_name = match.group(1)
        env_value = os.environ.get(var_name)
        if env_value is not None:
            return env_value
        # Special handling for HOME
        if var_name == "HOME":
            return os.path.expanduser("~")
        return match.group(0)  # Return unchanged if not found

    return pattern.sub(replacer, value)


@dataclass
class HttpConfig:
    """Settings of the HTTP transport."""

    host: str = "localhost"
    port: int = 8080
    path: str = "/mcp"
    keepalive_interval: float = 30.0
    max_body_bytes: int = 1_048_576
    allowed_origins: list[str] = field(default_factory=list)

    @property
    def is_loopback(self) -> bool:
        """True if the listener is bound to a loopback address."""
        return self.host in LOOPBACK_HOSTS

    @classmethod
    def from_dict(cls, config: dict[str, Any]) -> HttpConfig:
        """Create an HttpConfig from the ``http`` section of the YAML file."""
        defaults = cls()
        return cls(
            host=expand_env_vars(str(config.get("host", defaults.host))),
            port=config.get("port", defaults.port),
            path=expand_env_vars(str(config.get("path", defaults.path))),
            keepalive_interval=config.get("keepalive_interval", defaults.keepalive_interval),
            max_body_bytes=config.get("max_body_bytes", defaults.max_body_bytes),
            allowed_origins=list(config.get("allowed_origins") or []),
        )

    def validate(self) -> None:
        """Check the settings.

        Raises:
            ConfigLoadError: If a setting is out of range.
        """
        if isinstance(self.port, bool) or not isinstance(self.port, int):
            raise ConfigLoadError(f"http.port must be an integer, got {self.port!r}")
        if not 0 <= self.port <= 65535:
            raise ConfigLoadError(f"http.port out of range: {self.port}")
        if not self.path.startswith("/"):
            raise ConfigLoadError(f"http.path must start with '/': {self.path!r}")
        if not isinstance(self.keepalive_interval, int | float) or self.keepalive_interval <= 0:
            raise ConfigLoadError("http.keepalive_interval must be a positive number")
        if not isinstance(self.max_body_bytes, int) or self.max_body_bytes <= 0:
            raise ConfigLoadError("http.max_body_bytes must be a positive integer")


@dataclass
class LoggingConfig:
    """Settings of the diagnostic log."""

    level: str = "INFO"
    file: str = ""

    def validate(self) -> None:
        if self.level.upper() not in LOG_LEVELS:
            raise ConfigLoadError(f"logging.level must be one of {', '.join(LOG_LEVELS)}")

    @property
    def numeric_level(self) -> int:
        return logging.getLevelName(self.level.upper())


@dataclass
class ServerConfig:
    """Complete server configuration."""

    version: str = "1.0"
    name: str = "mcp-local-server"
    server_version: str = "1.0.0"
    transport: str = "stdio"
    http: HttpConfig = field(default_factory=HttpConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @property
    def server_info(self) -> dict[str, str]:
        """``serverInfo`` block reported by initialize."""
        return {"name": self.name, "version": self.server_version}

    @classmethod
    def from_dict(cls, config: dict[str, Any]) -> ServerConfig:
        """Create a ServerConfig from a configuration dictionary.

        Args:
            config: Dictionary parsed from YAML configuration.

        Returns:
            ServerConfig instance with all settings populated.

        Raises:
            ConfigLoadError: If a setting is invalid.
        """
        server = config.get("server") or {}
        http = config.get("http") or {}
        log = config.get("logging") or {}
        for section, value in (("server", server), ("http", http), ("logging", log)):
            if not isinstance(value, dict):
                raise ConfigLoadError(f"'{section}' must be a mapping")

        defaults = cls()
        result = cls(
            version=str(config.get("version", "")),
            name=str(server.get("name", defaults.name)),
            server_version=str(server.get("version", defaults.server_version)),
            transport=str(config.get("transport", defaults.transport)).lower(),
            http=HttpConfig.from_dict(http),
            logging=LoggingConfig(
                level=str(log.get("level", "INFO")),
                file=expand_env_vars(str(log.get("file") or "")),
            ),
        )
        result.validate()
        return result

    def validate(self) -> None:
        """Check every section.

        Raises:
            ConfigLoadError: If a setting is invalid.
        """
        if self.transport not in TRANSPORTS:
            raise ConfigLoadError(f"transport must be one of {', '.join(TRANSPORTS)}")
        self.http.validate()
        self.logging.validate()


def load_config(path: Path) -> ServerConfig:
    """Load server configuration from a YAML file.

    Args:
        path: Path to the configuration YAML file.

    Returns:
        ServerConfig instance.

    Raises:
        ConfigLoadError: If the file cannot be found, parsed, or validated.
    """
    if not path.exists():
        raise ConfigLoadError(f"Config file not found: {path}")

    try:
        with open(path, encoding="utf-8") as f:
            config = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigLoadError(f"Failed to parse config YAML: {e}") from e

    if not isinstance(config, dict):
        raise ConfigLoadError("Config must be a YAML mapping")

    if "version" not in config:
        raise ConfigLoadError("Config must include 'version' field")

    return ServerConfig.from_dict(config)
