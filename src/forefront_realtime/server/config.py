"""Configuration management for the real-time server."""

import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field


def get_forefront_home() -> Path:
    """Get the Forefront home directory."""
    return Path(os.environ.get("FOREFRONT_HOME", Path.home() / ".forefront"))


def ensure_forefront_home() -> Path:
    """Ensure the home directory exists with its log directory."""
    home = get_forefront_home()
    home.mkdir(parents=True, exist_ok=True)
    (home / "logs").mkdir(exist_ok=True)
    return home


class ServerSettings(BaseModel):
    """Server configuration."""
    host: str = "127.0.0.1"
    port: int = 8420
    cors_origins: list[str] = Field(default_factory=lambda: ["*"])
    # Open streams are cancelled after this many seconds on shutdown
    shutdown_timeout: float = 5.0


class RealtimeSettings(BaseModel):
    """Event stream configuration."""
    ping_interval: float = Field(default=30.0, gt=0)  # seconds


class LoggingSettings(BaseModel):
    """Logging configuration."""
    level: str = "INFO"
    format: str = "%(asctime)s %(levelname)s %(name)s: %(message)s"
    rich: bool = True


class Config(BaseModel):
    """Main configuration."""
    server: ServerSettings = Field(default_factory=ServerSettings)
    realtime: RealtimeSettings = Field(default_factory=RealtimeSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    @classmethod
    def load(cls, path: Path | None = None) -> "Config":
        """Load configuration from file."""
        if path is None:
            path = get_config_path()

        if not path.exists():
            return cls.model_validate(_apply_env_overrides({}))

        with open(path) as f:
            data = yaml.safe_load(f) or {}

        # Resolve environment variables
        data = _resolve_env_vars(data)

        return cls.model_validate(_apply_env_overrides(data))

    def save(self, path: Path | None = None) -> None:
        """Save configuration to file."""
        if path is None:
            path = get_config_path()

        path.parent.mkdir(parents=True, exist_ok=True)

        with open(path, "w") as f:
            yaml.dump(self.model_dump(mode="json"), f, default_flow_style=False, sort_keys=False)


def get_config_path() -> Path:
    return get_forefront_home() / "config.yml"


# FOREFRONT_* variables take precedence over the config file
ENV_OVERRIDES = {
    "FOREFRONT_HOST": ("server", "host"),
    "FOREFRONT_PORT": ("server", "port"),
    "FOREFRONT_PING_INTERVAL": ("realtime", "ping_interval"),
    "FOREFRONT_LOG_LEVEL": ("logging", "level"),
}


def _apply_env_overrides(data: dict) -> dict:
    for var_name, (section, key) in ENV_OVERRIDES.items():
        value = os.environ.get(var_name)
        if value:
            data.setdefault(section, {})[key] = value
    return data


def _resolve_env_vars(data: Any) -> Any:
    """Recursively resolve ${VAR} references in config."""
    if isinstance(data, str):
        if data.startswith("${") and data.endswith("}"):
            var_name = data[2:-1]
            return os.environ.get(var_name, "")
        return data
    elif isinstance(data, dict):
        return {k: _resolve_env_vars(v) for k, v in data.items()}
    elif isinstance(data, list):
        return [_resolve_env_vars(v) for v in data]
    return data


def get_default_config_template() -> str:
    """Get the default config file template with comments."""
    return '''# Forefront real-time server configuration
# Environment variables can be referenced as ${VAR_NAME}

server:
  host: "127.0.0.1"
  port: 8420
  # Origins allowed to open the event stream from a browser
  cors_origins: ["*"]
  # Seconds to wait for open streams before cancelling them on shutdown
  shutdown_timeout: 5

realtime:
  # Seconds between keep-alive pings on idle streams.
  # Keep this below your proxy's idle timeout.
  ping_interval: 30

logging:
  level: INFO
  # Use rich console output when attached to a terminal
  rich: true
'''
