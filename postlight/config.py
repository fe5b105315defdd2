"""Configuration loading for Postlight.

Settings are resolved in order, later sources winning:

1. DEFAULT_CONFIG
2. ``postlight.yaml`` in the project root
3. Environment: ``POSTLIGHT_ENV=development``, ``PORT``, ``POSTLIGHT_WS_PORT``
4. Explicit overrides (CLI options)

Key items:
- ServerConfig: Frozen dataclass with resolved settings.
- load_config: Resolve settings for a project root.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

CONFIG_FILE = "postlight.yaml"

DEFAULT_CONFIG: dict[str, Any] = {
    "content_dir": "content",
    "posts_dir": "posts",
    "host": "0.0.0.0",
    "port": 8080,
    "ws_port": None,
    "development": False,
    "debounce_ms": 200,
}


class ConfigError(ValueError):
    """A configuration value is invalid."""


@dataclass(frozen=True)
class ServerConfig:
    """Resolved server settings.

    Attributes:
        project_root: Directory the relative paths are resolved against.
        content_dir: Content directory (layout, fragments, posts, static).
        posts_dir: Name of the posts subdirectory of content_dir.
        host: Interface to bind.
        port: HTTP port.
        ws_port: Live reload websocket port.
        development: Whether live reload is enabled.
        debounce_ms: Watcher debounce window in milliseconds.
    """

    project_root: Path
    content_dir: Path
    posts_dir: str
    host: str
    port: int
    ws_port: int
    development: bool
    debounce_ms: int

    @property
    def static_dir(self) -> Path:
        return self.content_dir / "static"

    @property
    def debounce_seconds(self) -> float:
        return self.debounce_ms / 1000


def _read_config_file(project_root: Path) -> dict[str, Any]:
    config_path = project_root / CONFIG_FILE
    if not config_path.exists():
        return {}
    with open(config_path, encoding="utf-8") as f:
        try:
            loaded = yaml.safe_load(f) or {}
        except yaml.YAMLError as exc:
            raise ConfigError(f"Invalid {CONFIG_FILE}: {exc}") from exc
    if not isinstance(loaded, dict):
        raise ConfigError(f"{CONFIG_FILE} must contain a mapping")
    return loaded


def _read_environment(environ: Mapping[str, str]) -> dict[str, Any]:
    values: dict[str, Any] = {}
    env_name = environ.get("POSTLIGHT_ENV")
    if env_name:
        values["development"] = env_name.strip().lower() == "development"
    if environ.get("PORT"):
        values["port"] = environ["PORT"]
    if environ.get("POSTLIGHT_WS_PORT"):
        values["ws_port"] = environ["POSTLIGHT_WS_PORT"]
    return values


def _as_int(key: str, value: Any) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ConfigError(f"{key} must be an integer, got {value!r}") from None


def _as_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes", "on", "development")
    return bool(value)


def load_config(
    project_root: Path,
    overrides: Mapping[str, Any] | None = None,
    environ: Mapping[str, str] | None = None,
) -> ServerConfig:
    """Resolve the server configuration.

    Args:
        project_root: Root directory of the project.
        overrides: Values taking precedence over every other source; None
            values are ignored.
        environ: Environment mapping, defaults to os.environ.

    Returns:
        The resolved ServerConfig.

    Raises:
        ConfigError: If the config file or a value is invalid.
    """
    config = DEFAULT_CONFIG.copy()
    config.update(_read_config_file(project_root))
    config.update(_read_environment(os.environ if environ is None else environ))
    if overrides:
        config.update({k: v for k, v in overrides.items() if v is not None})

    port = _as_int("port", config["port"])
    ws_port = port + 1 if config.get("ws_port") is None else _as_int("ws_port", config["ws_port"])
    content_dir = Path(config["content_dir"])
    if not content_dir.is_absolute():
        content_dir = project_root / content_dir
    return ServerConfig(
        project_root=project_root,
        content_dir=content_dir,
        posts_dir=str(config["posts_dir"]),
        host=str(config["host"]),
        port=port,
        ws_port=ws_port,
        development=_as_bool(config["development"]),
        debounce_ms=_as_int("debounce_ms", config["debounce_ms"]),
    )
