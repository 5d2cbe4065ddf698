"""Application settings loaded from a configuration file."""

from __future__ import annotations

import json
import tomllib
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

_PARSERS: dict[str, Callable[[str], Any]] = {
    ".toml": tomllib.loads,
    ".json": json.loads,
    ".yaml": yaml.safe_load,
    ".yml": yaml.safe_load,
}


class ConfigError(Exception):
    """Raised when the configuration cannot be found, read or understood."""


@dataclass(frozen=True)
class ServerConfig:
    rest_port: int
    xds_port: int
    host: str


@dataclass(frozen=True)
class EnvoyConfig:
    config_dir: Path
    admin_port: int


@dataclass(frozen=True)
class LoggingConfig:
    level: str


def _section(data: Mapping[str, Any], key: str) -> Mapping[str, Any]:
    if key not in data:
        raise ConfigError(f"missing field {key!r}")
    value = data[key]
    if not isinstance(value, Mapping):
        raise ConfigError(f"field {key!r} must be a table")
    return value


def _string(data: Mapping[str, Any], key: str, where: str) -> str:
    if key not in data:
        raise ConfigError(f"missing field {where}.{key}")
    value = data[key]
    if not isinstance(value, (str, int, float)) or isinstance(value, bool):
        raise ConfigError(f"field {where}.{key} must be a string")
    return str(value)


def _port(data: Mapping[str, Any], key: str, where: str) -> int:
    if key not in data:
        raise ConfigError(f"missing field {where}.{key}")
    value = data[key]
    if isinstance(value, bool):
        raise ConfigError(f"field {where}.{key} must be an integer")
    if isinstance(value, str):
        try:
            value = int(value.strip())
        except ValueError as exc:
            raise ConfigError(f"field {where}.{key} must be an integer") from exc
    if not isinstance(value, int):
        raise ConfigError(f"field {where}.{key} must be an integer")
    if not 0 <= value <= 65535:
        raise ConfigError(f"field {where}.{key} is out of range for a port")
    return value


@dataclass(frozen=True)
class AppConfig:
    server: ServerConfig
    envoy: EnvoyConfig
    logging: LoggingConfig

    @classmethod
    def from_dict(cls, data: Any) -> AppConfig:
        """Build the settings from parsed configuration data."""
        if not isinstance(data, Mapping):
            raise ConfigError("configuration must be a table")
        server = _section(data, "server")
        envoy = _section(data, "envoy")
        logging_section = _section(data, "logging")
        return cls(
            server=ServerConfig(
                rest_port=_port(server, "rest_port", "server"),
                xds_port=_port(server, "xds_port", "server"),
                host=_string(server, "host", "server"),
            ),
            envoy=EnvoyConfig(
                config_dir=Path(_string(envoy, "config_dir", "envoy")),
                admin_port=_port(envoy, "admin_port", "envoy"),
            ),
            logging=LoggingConfig(level=_string(logging_section, "level", "logging")),
        )

    @classmethod
    def load(cls, name: str | Path = "config") -> AppConfig:
        """Load settings from ``name`` plus a supported extension (toml, json, yaml, yml)."""
        base = Path(name)
        if base.suffix.lower() in _PARSERS and base.is_file():
            candidates = [base]
        else:
            candidates = [base.parent / f"{base.name}{ext}" for ext in _PARSERS]
        for path in candidates:
            if not path.is_file():
                continue
            parser = _PARSERS[path.suffix.lower()]
            try:
                data = parser(path.read_text(encoding="utf-8"))
            except (OSError, ValueError, yaml.YAMLError) as exc:
                raise ConfigError(f"cannot read {path}: {exc}") from exc
            return cls.from_dict(data)
        raise ConfigError(f"configuration file {str(name)!r} not found")