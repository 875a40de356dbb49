"""Layered settings: a .env file, an optional config.yaml and the environment."""

from __future__ import annotations

import logging
import os
from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml
from dotenv import dotenv_values

log = logging.getLogger(__name__)

_CONFIG_NAMES = ("config.yaml", "config.yml")


def _as_string(value: Any) -> str:
    if value is None or isinstance(value, (dict, list)):
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _flatten(data: Mapping[Any, Any], prefix: str = "") -> Iterator[tuple[str, Any]]:
    for key, value in data.items():
        name = f"{prefix}{str(key).lower()}"
        if isinstance(value, Mapping):
            yield from _flatten(value, name + ".")
        else:
            yield name, value


@dataclass
class Settings:
    """Configuration values, with environment variables taking precedence."""

    values: dict[str, Any] = field(default_factory=dict)
    environ: Mapping[str, str] = field(default_factory=lambda: os.environ)

    def get(self, key: str, default: str = "") -> str:
        """Return the value for ``key`` (case-insensitive), or ``default``."""
        env_value = self.environ.get(key.upper())
        if env_value:
            return env_value
        name = key.lower()
        if name in self.values:
            return _as_string(self.values[name])
        return default

    def require(self, key: str) -> str:
        """Return the value for ``key``, logging a warning when it is unset."""
        value = self.get(key)
        if value == "":
            log.warning("%s not set in config or environment variables", key)
        return value


def _read_yaml(config_dir: Path) -> dict[str, Any] | None:
    for name in _CONFIG_NAMES:
        path = config_dir / name
        if not path.is_file():
            continue
        try:
            data = yaml.safe_load(path.read_text(encoding="utf-8"))
        except (OSError, yaml.YAMLError) as exc:
            log.warning("Could not read %s: %s", path, exc)
            return None
        if data is None:
            return {}
        if not isinstance(data, Mapping):
            log.warning("Ignoring %s: top level is not a mapping", path)
            return None
        return dict(_flatten(data))
    return None


def load_settings(env_file: str | os.PathLike[str] | None = ".env",
                  config_dir: str | os.PathLike[str] | None = None) -> Settings:
    """Read ``env_file`` and, when ``config_dir`` is given, its config.yaml on top."""
    values: dict[str, Any] = {}
    env_path = Path(env_file) if env_file is not None else None
    if env_path is not None and env_path.is_file():
        values.update(
            (key.lower(), value or "") for key, value in dotenv_values(env_path).items()
        )
    else:
        log.info("No .env file found, continuing...")

    if config_dir is not None:
        yaml_values = _read_yaml(Path(config_dir))
        if yaml_values is None:
            log.info("config.yaml not found, continuing...")
        else:
            values.update(yaml_values)

    return Settings(values)