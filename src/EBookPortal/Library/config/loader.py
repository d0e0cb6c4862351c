"""
Configuration Loading with File/Env/CLI Precedence

Implements three-level config composition:
1. **File level** (YAML/JSON) as the base configuration
2. **Environment level**: EBP_* prefixed variables override file
3. **CLI level**: programmatic overrides win

Environment variables use double-underscore notation:
  EBP_STORAGE__BUCKET="ebooks"  →  storage.bucket="ebooks"
  EBP_ALIGNMENT__PLACEHOLDER_MARKERS='["placeholder","temp"]'  →  alignment.placeholder_markers=[...]

JSON arrays and objects are parsed; other values stay strings for pydantic to coerce.
"""

from __future__ import annotations

import json
import logging
import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import yaml

from .models import LibraryConfig

_LOGGER = logging.getLogger(__name__)

DEFAULT_ENV_PREFIX = "EBP_"


def _read_file(path: str) -> dict[str, Any]:
    """
    Read YAML or JSON config file.

    Args:
        path: File path (suffix determines format: .yaml/.yml or .json)

    Returns:
        Parsed config dictionary

    Raises:
        ValueError: If file cannot be read or parsed
    """
    p = Path(path)
    if not p.exists():
        raise ValueError(f"Config file not found: {path}")

    try:
        text = p.read_text(encoding="utf-8")
    except OSError as e:
        raise ValueError(f"Cannot read config file {path}: {e}") from e

    suffix = p.suffix.lower()

    if suffix in (".yaml", ".yml"):
        try:
            data = yaml.safe_load(text) or {}
        except yaml.YAMLError as e:
            raise ValueError(f"Invalid YAML in {path}: {e}") from e
    elif suffix == ".json":
        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid JSON in {path}: {e}") from e
    else:
        raise ValueError(f"Unsupported file format: {suffix}. Use .yaml or .json")

    if not isinstance(data, dict):
        raise ValueError(f"Config file {path} must contain a mapping at the top level")
    return data


def _assign_nested(data: dict[str, Any], dotted_key: str, value: Any) -> None:
    """
    Assign value to nested dict using dot notation.

    Example:
        _assign_nested(data, "storage.bucket", "ebooks")
        → data["storage"]["bucket"] = "ebooks"
    """
    keys = dotted_key.split(".")
    current = data

    for key in keys[:-1]:
        if not isinstance(current.get(key), dict):
            current[key] = {}
        current = current[key]

    current[keys[-1]] = value


def _coerce_env_value(value: str) -> Any:
    """
    Attempt to coerce environment variable string to appropriate type.

    Only JSON arrays and objects are decoded, and ``null`` becomes None.
    Scalars stay strings so pydantic converts them per field; an all-digit
    bucket name must not become an int.
    """
    stripped = value.strip()
    if stripped[:1] in ("[", "{"):
        try:
            return json.loads(stripped)
        except json.JSONDecodeError:
            return value

    if stripped == "null":
        return None

    return value


def _merge_env_overrides(
    data: dict[str, Any], env_prefix: str = DEFAULT_ENV_PREFIX
) -> dict[str, Any]:
    """
    Overlay environment variables onto config dict.

    Looks for EBP_* prefixed variables and maps double-underscore
    notation to nested dicts.

    Args:
        data: Base config dict (will be modified)
        env_prefix: Environment variable prefix (default: EBP_)

    Returns:
        Modified data dict
    """
    for env_key, env_value in sorted(os.environ.items()):
        if not env_key.startswith(env_prefix):
            continue

        relative_key = env_key[len(env_prefix) :].lower()
        dotted_key = relative_key.replace("__", ".")
        coerced_value = _coerce_env_value(env_value)

        _assign_nested(data, dotted_key, coerced_value)
        _LOGGER.debug(f"Environment override: {env_key} → {dotted_key}")

    return data


def _merge_cli_overrides(
    data: dict[str, Any], cli_overrides: Mapping[str, Any] | None
) -> dict[str, Any]:
    """
    Recursively merge CLI overrides into base config dict.

    Later values win (standard dict.update() semantics).
    """
    if not cli_overrides:
        return data

    for key, value in cli_overrides.items():
        if isinstance(value, Mapping) and isinstance(data.get(key), dict):
            data[key] = _merge_cli_overrides(data[key], value)
        else:
            data[key] = dict(value) if isinstance(value, Mapping) else value
        _LOGGER.debug(f"CLI override: {key}")

    return data


def load_config(
    path: str | None = None,
    env_prefix: str = DEFAULT_ENV_PREFIX,
    cli_overrides: Mapping[str, Any] | None = None,
) -> LibraryConfig:
    """
    Load LibraryConfig from file, environment, and CLI with proper precedence.

    **Precedence:** file < environment < CLI

    Args:
        path: Path to YAML/JSON config file (optional)
        env_prefix: Environment variable prefix (default: EBP_)
        cli_overrides: CLI overrides dict (optional)

    Returns:
        Validated LibraryConfig instance

    Raises:
        ValueError: If config is invalid or file cannot be read
    """
    data: dict[str, Any] = {}

    if path:
        try:
            data = _read_file(path)
            _LOGGER.info(f"Loaded config from {path}")
        except ValueError as e:
            _LOGGER.error(f"Failed to load config: {e}")
            raise

    data = _merge_env_overrides(data, env_prefix)
    data = _merge_cli_overrides(data, cli_overrides)

    try:
        config = LibraryConfig.model_validate(data)
    except ValueError as e:
        _LOGGER.error(f"Configuration validation failed: {e}")
        raise

    _LOGGER.info(f"Configuration validated. Config hash: {config.config_hash()[:8]}...")
    return config


def validate_config_file(path: str) -> bool:
    """
    Validate a config file, including any environment overrides in effect.

    Raises:
        ValueError: If invalid
    """
    load_config(path=path)
    return True


def export_config_schema() -> dict[str, Any]:
    """Export JSON Schema for LibraryConfig."""
    return LibraryConfig.model_json_schema()
