"""Configuration loading, environment-variable interpolation, and validation.

Resolution order for ``${VAR}`` placeholders:
    CLI overrides → environment variables → raw config value.

``${VAR}`` (no default) raises if unresolvable.
``${VAR:-default}`` falls back to *default*.
"""

from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import jsonschema
import orjson

logger = logging.getLogger(__name__)

_VAR_RE = re.compile(r"\$\{([A-Za-z_][A-Za-z0-9_]*)(?::-(.*?))?\}")

_SCHEMA_PATH = Path(__file__).resolve().parent.parent.parent / "config" / "config.schema.json"


@dataclass
class RegistryConfig:
    """Known devices for the in-memory registry."""

    devices: dict[str, int] = field(default_factory=dict)
    register_unknown: bool = False


@dataclass
class FilterConfig:
    """Position filtering rules."""

    drop_invalid: bool = False
    drop_device_ids: list[str] = field(default_factory=list)
    keep_device_ids: list[str] = field(default_factory=list)


@dataclass
class RotationConfig:
    """File rotation thresholds."""

    interval_seconds: int = 600
    max_size_bytes: int = 52428800


@dataclass
class FileOutputConfig:
    """File-mode output settings."""

    output_dir: str = "/var/lib/pt502/data"
    file_prefix: str = "positions"
    rotation: RotationConfig = field(default_factory=RotationConfig)


@dataclass
class OutputConfig:
    """Output section wrapper."""

    file: FileOutputConfig = field(default_factory=FileOutputConfig)


@dataclass
class LogFileConfig:
    """Optional rotating log file, written in addition to stderr."""

    enabled: bool = False
    path: str = "/var/log/pt502-decoder/app.log"
    max_size_bytes: int = 10485760   # 10 MB
    backup_count: int = 5


@dataclass
class LoggingConfig:
    """Logging settings."""

    level: str = "info"
    file: LogFileConfig = field(default_factory=LogFileConfig)


@dataclass
class AppConfig:
    """Top-level application configuration."""

    instance_id: str = "decoder-01"
    registry: RegistryConfig = field(default_factory=RegistryConfig)
    filter: FilterConfig = field(default_factory=FilterConfig)
    output: OutputConfig = field(default_factory=OutputConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


def _interpolate_value(value: str, overrides: dict[str, str] | None = None) -> str:
    """Replace ``${VAR}`` / ``${VAR:-default}`` in *value*."""

    def _replacer(match: re.Match) -> str:
        var_name = match.group(1)
        default = match.group(2)  # None when no ``:-`` present

        if overrides and var_name in overrides:
            return overrides[var_name]
        env_val = os.environ.get(var_name)
        if env_val is not None:
            return env_val
        if default is not None:
            return default

        raise ValueError(
            f"Required variable ${{{var_name}}} is not set in environment or CLI overrides"
        )

    return _VAR_RE.sub(_replacer, value)


def _walk_and_interpolate(obj: Any, overrides: dict[str, str] | None = None) -> Any:
    """Recursively interpolate all string values in a JSON-like structure."""
    if isinstance(obj, str):
        return _interpolate_value(obj, overrides)
    if isinstance(obj, dict):
        return {k: _walk_and_interpolate(v, overrides) for k, v in obj.items()}
    if isinstance(obj, list):
        return [_walk_and_interpolate(item, overrides) for item in obj]
    return obj


def _pick(cls: type, raw: dict[str, Any]) -> dict[str, Any]:
    """Keep only the keys of *raw* that are fields of dataclass *cls*."""
    return {k: raw[k] for k in raw if k in cls.__dataclass_fields__}


def _dict_to_config(raw: dict[str, Any]) -> AppConfig:
    """Convert a raw dict into a typed :class:`AppConfig`."""
    registry_raw = raw.get("registry", {})
    filter_raw = raw.get("filter", {})
    file_raw = raw.get("output", {}).get("file", {})
    logging_raw = raw.get("logging", {})

    return AppConfig(
        instance_id=raw.get("instance_id", "decoder-01"),
        registry=RegistryConfig(
            devices={str(k): int(v) for k, v in registry_raw.get("devices", {}).items()},
            register_unknown=registry_raw.get("register_unknown", False),
        ),
        filter=FilterConfig(**_pick(FilterConfig, filter_raw)),
        output=OutputConfig(
            file=FileOutputConfig(
                output_dir=file_raw.get("output_dir", "/var/lib/pt502/data"),
                file_prefix=file_raw.get("file_prefix", "positions"),
                rotation=RotationConfig(**_pick(RotationConfig, file_raw.get("rotation", {}))),
            ),
        ),
        logging=LoggingConfig(
            level=logging_raw.get("level", "info"),
            file=LogFileConfig(**_pick(LogFileConfig, logging_raw.get("file", {}))),
        ),
    )


def load_config(
    path: str | Path,
    overrides: dict[str, str] | None = None,
    schema_path: str | Path | None = None,
) -> AppConfig:
    """Load, interpolate, validate, and return the application config.

    Parameters
    ----------
    path:
        Filesystem path to ``config.json``.
    overrides:
        CLI-supplied variable overrides.
    schema_path:
        Path to the JSON Schema file.  Defaults to
        ``config/config.schema.json`` relative to the project root.

    Raises
    ------
    ValueError
        If a required ``${VAR}`` cannot be resolved.
    jsonschema.ValidationError
        If the config fails schema validation.
    """
    raw: dict[str, Any] = orjson.loads(Path(path).read_bytes())

    interpolated = _walk_and_interpolate(raw, overrides=overrides)

    sp = Path(schema_path) if schema_path else _SCHEMA_PATH
    if sp.exists():
        schema = orjson.loads(sp.read_bytes())
        jsonschema.validate(instance=interpolated, schema=schema)
        logger.debug("Config passed schema validation")
    else:
        logger.warning("Schema file not found at %s, skipping validation", sp)

    return _dict_to_config(interpolated)
