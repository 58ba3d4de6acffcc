"""
Configuration loading and persistence utilities.

Design goals:
    - Deterministic loading & fallback
    - Strict schema validation
    - Stable persistence format (camelCase on disk, snake_case in memory)
"""

from __future__ import annotations

import json
import re
from pathlib import Path
from typing import Any, Callable

from loguru import logger
from pydantic import ValidationError

from warelay.config.schema import Config
from warelay.utils.helpers import RUNTIME_PATHS


# =============================
# Paths
# =============================

def get_config_path() -> Path:
    """
    Return default configuration file path.

    Default:
        ~/.warelay/config.json
    """
    return RUNTIME_PATHS.config_file


# =============================
# Load & Save
# =============================

def load_config(config_path: Path | None = None) -> Config:
    """
    Load configuration from disk or fallback to defaults.

    Flow:
        1. Read raw JSON
        2. camelCase → snake_case
        3. Pydantic validation (environment still wins over file values)
    """
    path = config_path or get_config_path()

    if not path.exists():
        logger.warning("Config file not found, using defaults | path={}", path)
        return Config()

    try:
        with path.open("r", encoding="utf-8") as f:
            raw = json.load(f)

        config = Config(**_file_values(convert_keys(raw)))

        logger.success("Config loaded | path={}", path)
        return config

    except json.JSONDecodeError as e:
        logger.error("Invalid JSON in config | path={} err={}", path, e)

    except ValidationError as e:
        logger.error("Invalid config values | path={} err={}", path, e)

    logger.warning("Falling back to default configuration")
    return Config()


def save_config(config: Config, config_path: Path | None = None) -> None:
    """
    Persist configuration to disk.

    Behavior:
        - snake_case → camelCase
        - Pretty JSON formatting
        - Write to temp file, then replace
    """
    path = config_path or get_config_path()
    path.parent.mkdir(parents=True, exist_ok=True)

    data = convert_to_camel(config.model_dump())
    tmp = path.with_suffix(".tmp")

    with tmp.open("w", encoding="utf-8") as f:
        json.dump(data, f, indent=2, ensure_ascii=False)
    tmp.replace(path)

    logger.success("Config saved | path={}", path)


def _file_values(data: Any) -> dict[str, Any]:
    if not isinstance(data, dict):
        logger.warning("Config root is not an object, ignoring file contents")
        return {}
    return {k: v for k, v in data.items() if k in Config.model_fields}


# =============================
# Key Conversion
# =============================

_CAMEL_BOUNDARY = re.compile(r"(?<!^)(?=[A-Z])")


def _rename_keys(data: Any, rename: Callable[[str], str]) -> Any:
    if isinstance(data, dict):
        return {rename(k): _rename_keys(v, rename) for k, v in data.items()}
    if isinstance(data, list):
        return [_rename_keys(item, rename) for item in data]
    return data


def convert_keys(data: Any) -> Any:
    """On-disk camelCase keys → snake_case field names, recursively."""
    return _rename_keys(data, camel_to_snake)


def convert_to_camel(data: Any) -> Any:
    """snake_case field names → camelCase keys for the file, recursively."""
    return _rename_keys(data, snake_to_camel)


def camel_to_snake(name: str) -> str:
    """
    Example:
        operatorChatId → operator_chat_id
    """
    return _CAMEL_BOUNDARY.sub("_", name).lower()


def snake_to_camel(name: str) -> str:
    """
    Example:
        operator_chat_id → operatorChatId
    """
    head, *tail = name.split("_")
    return head + "".join(part.title() for part in tail)
