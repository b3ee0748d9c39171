"""Configuration management for dsbox.

This module handles loading and accessing configuration from:
1. dsbox.toml file in the data directory
2. Environment variables (DSBOX_* prefix)
3. Default values

Environment variables override config file values, which override defaults.
"""

from __future__ import annotations

import os
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import toml

EXHAUSTION_POLICIES = ("warn", "abort")


def _default_volumes() -> dict[str, str]:
    return {
        "ds-conda-cache": "/opt/conda/pkgs",
        "ds-pip-cache": "/home/developer/.cache/pip",
        "ds-uv-cache": "/opt/shared-libs/uv-cache",
        "ds-jupyter-config": "/home/developer/.jupyter",
    }


@dataclass
class PortConfig:
    """Host port allocation configuration."""

    max_attempts: int = 50
    on_exhausted: str = "warn"  # "warn" or "abort"
    publish_host: str = "127.0.0.1"


@dataclass
class PathConfig:
    """Directory path configuration."""

    data_dir: Path | None = None
    log_dir: Path | None = None
    projects_dir: Path | None = None


@dataclass
class ContainerConfig:
    """Settings applied to every launched container."""

    default_image: str = "ds-minimal:latest"
    workspace: str = "/workspace/project"
    user: str = "developer"
    volumes: dict[str, str] = field(default_factory=_default_volumes)


@dataclass
class LoggingConfig:
    """Logging configuration."""

    log_level: str = "INFO"


@dataclass
class Config:
    """Main configuration container."""

    ports: PortConfig = field(default_factory=PortConfig)
    paths: PathConfig = field(default_factory=PathConfig)
    container: ContainerConfig = field(default_factory=ContainerConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    # Raw [profiles.*] tables; interpreted by dsbox.core.profiles
    profiles: dict[str, dict[str, Any]] = field(default_factory=dict)

    def __post_init__(self) -> None:
        """Resolve paths after initialization."""
        if self.paths.data_dir is None:
            self.paths.data_dir = _default_data_dir()
        if self.paths.log_dir is None:
            self.paths.log_dir = self.paths.data_dir / "logs"


def _default_data_dir() -> Path:
    data_dir_str = os.environ.get("DSBOX_DATA_DIR")
    if data_dir_str:
        return Path(data_dir_str)
    # Default: ~/.dsbox on Unix or %APPDATA%/dsbox on Windows
    if sys.platform == "win32":
        return Path(os.environ.get("APPDATA", "")) / "dsbox"
    return Path.home() / ".dsbox"


def _get_env_int(key: str, default: int) -> int:
    """Get integer from environment variable."""
    value = os.environ.get(key)
    if value is not None:
        try:
            return int(value)
        except ValueError:
            pass
    return default


def _get_env_str(key: str, default: str | None) -> str | None:
    """Get string from environment variable."""
    return os.environ.get(key, default)


def _get_env_path(key: str, default: Path | None) -> Path | None:
    """Get path from environment variable."""
    value = os.environ.get(key)
    if value:
        return Path(value)
    return default


def _load_config_file() -> dict[str, Any]:
    """Load configuration from dsbox.toml file."""
    config_path = _default_data_dir() / "dsbox.toml"
    if not config_path.exists():
        return {}

    try:
        with open(config_path, "r", encoding="utf-8") as f:
            return toml.load(f)
    except (OSError, toml.TomlDecodeError):
        return {}


def _apply_env_overrides(config: Config) -> Config:
    """Apply environment variable overrides to config."""
    config.ports.max_attempts = _get_env_int(
        "DSBOX_PORT_MAX_ATTEMPTS", config.ports.max_attempts
    )
    config.ports.on_exhausted = (
        _get_env_str("DSBOX_ON_EXHAUSTED", config.ports.on_exhausted)
        or config.ports.on_exhausted
    )
    config.ports.publish_host = (
        _get_env_str("DSBOX_PUBLISH_HOST", config.ports.publish_host)
        or config.ports.publish_host
    )

    config.paths.data_dir = _get_env_path("DSBOX_DATA_DIR", config.paths.data_dir)
    config.paths.log_dir = _get_env_path("DSBOX_LOG_DIR", config.paths.log_dir)
    config.paths.projects_dir = _get_env_path(
        "DSBOX_PROJECTS_DIR", config.paths.projects_dir
    )

    config.container.default_image = (
        _get_env_str("DSBOX_IMAGE", config.container.default_image)
        or config.container.default_image
    )
    config.container.user = (
        _get_env_str("DSBOX_CONTAINER_USER", config.container.user)
        or config.container.user
    )
    config.container.workspace = (
        _get_env_str("DSBOX_WORKSPACE", config.container.workspace)
        or config.container.workspace
    )

    config.logging.log_level = (
        _get_env_str("DSBOX_LOG_LEVEL", config.logging.log_level)
        or config.logging.log_level
    )

    return config


def _apply_file_config(config: Config, file_config: dict[str, Any]) -> Config:
    """Apply configuration from file to config object."""
    if "ports" in file_config:
        ports = file_config["ports"]
        config.ports.max_attempts = ports.get("max_attempts", config.ports.max_attempts)
        config.ports.on_exhausted = ports.get("on_exhausted", config.ports.on_exhausted)
        config.ports.publish_host = ports.get("publish_host", config.ports.publish_host)

    if "paths" in file_config:
        paths = file_config["paths"]
        if "data_dir" in paths:
            config.paths.data_dir = Path(paths["data_dir"])
        if "log_dir" in paths:
            config.paths.log_dir = Path(paths["log_dir"])
        if "projects_dir" in paths:
            config.paths.projects_dir = Path(paths["projects_dir"]).expanduser()

    if "container" in file_config:
        container = file_config["container"]
        config.container.default_image = container.get(
            "default_image", config.container.default_image
        )
        config.container.workspace = container.get(
            "workspace", config.container.workspace
        )
        config.container.user = container.get("user", config.container.user)
        if isinstance(container.get("volumes"), dict):
            config.container.volumes = dict(container["volumes"])

    if "logging" in file_config:
        logging = file_config["logging"]
        config.logging.log_level = logging.get("log_level", config.logging.log_level)

    if isinstance(file_config.get("profiles"), dict):
        config.profiles = dict(file_config["profiles"])

    return config


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _validate(config: Config) -> Config:
    """Replace mistyped or out-of-range values with their defaults."""
    if config.ports.on_exhausted not in EXHAUSTION_POLICIES:
        config.ports.on_exhausted = PortConfig.on_exhausted
    if not _is_int(config.ports.max_attempts) or config.ports.max_attempts < 1:
        config.ports.max_attempts = PortConfig.max_attempts
    if not isinstance(config.ports.publish_host, str):
        config.ports.publish_host = PortConfig.publish_host
    if not isinstance(config.container.default_image, str) or not config.container.default_image:
        config.container.default_image = ContainerConfig.default_image
    if not isinstance(config.container.user, str) or not config.container.user:
        config.container.user = ContainerConfig.user
    if not isinstance(config.container.workspace, str) or not config.container.workspace:
        config.container.workspace = ContainerConfig.workspace
    if not isinstance(config.logging.log_level, str):
        config.logging.log_level = LoggingConfig.log_level
    if not isinstance(config.profiles, dict):
        config.profiles = {}
    return config


def load_config() -> Config:
    """Load configuration from defaults, file, and environment.

    Priority (highest to lowest):
    1. Environment variables (DSBOX_*)
    2. dsbox.toml file
    3. Default values

    Returns:
        Config: The loaded configuration object
    """
    config = Config()

    file_config = _load_config_file()
    if file_config:
        config = _apply_file_config(config, file_config)

    config = _apply_env_overrides(config)

    return _validate(config)


# Global config instance
_config: Config | None = None


def get_config() -> Config:
    """Get the global configuration instance."""
    global _config
    if _config is None:
        _config = load_config()
    return _config


def reload_config() -> Config:
    """Reload configuration from file and environment."""
    global _config
    _config = load_config()
    return _config


__all__ = [
    "Config",
    "ContainerConfig",
    "EXHAUSTION_POLICIES",
    "LoggingConfig",
    "PathConfig",
    "PortConfig",
    "get_config",
    "load_config",
    "reload_config",
]
