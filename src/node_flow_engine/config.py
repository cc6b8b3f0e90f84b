"""Configuration for node-flow-engine.

Resolution order: built-in defaults from ``settings``, overridden by
``config.local.yaml`` (or the file given on the command line). Nested
sections are merged key by key, so a file only needs the keys it changes.
"""

from __future__ import annotations

import copy
import logging
from pathlib import Path
from typing import Any, Optional

import yaml

from . import settings
from .core.flow_runner import FlowRunner
from .core.host import HostDependencies

logger = logging.getLogger(__name__)

PROJECT_ROOT = Path(__file__).resolve().parents[2]
LOCAL_CONFIG_PATH = PROJECT_ROOT / "config.local.yaml"

DIRECTORY_KEYS = ("data_dir", "cache_dir", "flows_dir")

# section -> key -> (json type, minimum, maximum)
SECTION_FIELDS: dict[str, dict[str, tuple[str, int | None, int | None]]] = {
    "server": {
        "host": ("string", None, None),
        "port": ("integer", 1, 65535),
    },
    "engine": {
        "max_depth": ("integer", 1, None),
        "history_limit": ("integer", 0, None),
    },
}


def config_defaults() -> dict:
    """Fresh copy of the built-in configuration."""
    return {
        "data_dir": str(settings.data_dir),
        "cache_dir": str(settings.cache_dir),
        "flows_dir": str(settings.flows_dir),
        "server": {
            "host": settings.server_host,
            "port": settings.server_port,
        },
        "engine": {
            "max_depth": settings.engine_max_depth,
            "history_limit": settings.engine_history_limit,
        },
    }


def _field_schema(json_type: str, minimum: int | None, maximum: int | None) -> dict:
    schema: dict[str, Any] = {"type": json_type}
    if minimum is not None:
        schema["minimum"] = minimum
    if maximum is not None:
        schema["maximum"] = maximum
    return schema


def config_schema() -> dict:
    """JSON Schema describing config.local.yaml."""
    properties: dict[str, Any] = {key: {"type": "string"} for key in DIRECTORY_KEYS}
    for section, fields in SECTION_FIELDS.items():
        properties[section] = {
            "type": "object",
            "properties": {key: _field_schema(*spec) for key, spec in fields.items()},
            "additionalProperties": False,
        }
    return {
        "$schema": "https://json-schema.org/draft/2020-12/schema",
        "type": "object",
        "properties": properties,
        "additionalProperties": False,
    }


def _merge(defaults: dict, overrides: dict) -> dict:
    result = copy.deepcopy(defaults)
    for key, value in overrides.items():
        current = result.get(key)
        result[key] = _merge(current, value) if isinstance(current, dict) and isinstance(value, dict) else value
    return result


def read_config_file(path: Path) -> dict:
    """Parsed mapping from a YAML file; {} if it is missing or unusable."""
    if not path.exists():
        return {}
    try:
        loaded = yaml.safe_load(path.read_text())
    except (OSError, yaml.YAMLError) as e:
        logger.warning(f"Ignoring unreadable config file {path}: {e}")
        return {}
    if loaded is None:
        return {}
    if not isinstance(loaded, dict):
        logger.warning(f"Ignoring config file {path}: top level is not a mapping")
        return {}
    return loaded


def load_config(config_path: Optional[Path] = None) -> dict:
    """Defaults with the config file merged over them."""
    return _merge(config_defaults(), read_config_file(config_path or LOCAL_CONFIG_PATH))


def _range_error(name: str, minimum: int | None, maximum: int | None) -> str:
    if minimum is not None and maximum is not None:
        return f"{name} must be an integer between {minimum} and {maximum}"
    if minimum == 1:
        return f"{name} must be a positive integer"
    if minimum == 0:
        return f"{name} must be a non-negative integer"
    return f"{name} must be an integer"


def _check_field(name: str, value: Any, spec: tuple[str, int | None, int | None]) -> str | None:
    json_type, minimum, maximum = spec
    if json_type == "string":
        return None if isinstance(value, str) else f"{name} must be a string"

    if isinstance(value, bool) or not isinstance(value, int):
        return _range_error(name, minimum, maximum)
    if (minimum is not None and value < minimum) or (maximum is not None and value > maximum):
        return _range_error(name, minimum, maximum)
    return None


def validate_config_dict(data: Any) -> list[str]:
    """Every problem found in a config mapping (empty = valid)."""
    if not isinstance(data, dict):
        return ["Config must be a mapping/object"]

    errors: list[str] = []
    for key, value in data.items():
        if key in DIRECTORY_KEYS:
            if not isinstance(value, str):
                errors.append(f"{key} must be a string")
            continue

        fields = SECTION_FIELDS.get(key)
        if fields is None:
            errors.append(f"Unknown config key: {key}")
            continue
        if not isinstance(value, dict):
            errors.append(f"{key} must be an object")
            continue

        for field_name, field_value in value.items():
            spec = fields.get(field_name)
            if spec is None:
                errors.append(f"Unknown {key} key: {field_name}")
                continue
            error = _check_field(f"{key}.{field_name}", field_value, spec)
            if error:
                errors.append(error)
    return errors


def validate_config_file(config_path: Optional[Path] = None) -> list[str]:
    """Validate a config file on disk. A missing file is valid."""
    path = config_path or LOCAL_CONFIG_PATH
    if not path.exists():
        return []
    return validate_config_dict(read_config_file(path))


def build_runner(config: dict | None = None, host: HostDependencies | None = None) -> FlowRunner:
    """FlowRunner configured from the ``engine`` section."""
    config = load_config() if config is None else config
    engine = config.get("engine", {})
    return FlowRunner(
        host=host,
        max_depth=engine.get("max_depth", settings.engine_max_depth),
        history_limit=engine.get("history_limit", settings.engine_history_limit),
    )
