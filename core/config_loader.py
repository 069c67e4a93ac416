"""
Configuration loader for the Gemini search server.

This module loads settings from config/gemini_search.yaml and supports
environment variable overrides.
"""

import copy
import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from core.logger import get_logger

logger = get_logger("gemini_search.config_loader")

DEFAULT_CONFIG_PATH = Path(__file__).parent.parent / "config" / "gemini_search.yaml"

DEFAULT_CONFIG: Dict[str, Any] = {
    "gemini": {"executable": "gemini"},
    "cache": {"ttl_seconds": 3600},
    "history": {"max_records": 100},
    "validation": {"max_query_length": 500},
    "logging": {"level": "INFO"},
}

# env var -> (section, key)
_INT_OVERRIDES = {
    "GEMINI_SEARCH_CACHE_TTL": ("cache", "ttl_seconds"),
    "GEMINI_SEARCH_MAX_HISTORY": ("history", "max_records"),
}

# Settings that must be integers >= 1
_POSITIVE_INT_KEYS = [
    ("cache", "ttl_seconds"),
    ("history", "max_records"),
    ("validation", "max_query_length"),
]


def _positive_int(value: Any) -> Optional[int]:
    """Convert value to an integer >= 1, or None if that is not possible."""
    if isinstance(value, bool):
        return None
    try:
        number = int(value)
    except (TypeError, ValueError):
        return None
    if isinstance(value, float) and number != value:
        return None
    return number if number >= 1 else None


def _merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """
    Merge override into base section by section.

    Sections that are not mappings (e.g. a section whose keys are all
    commented out, which loads as None) are skipped.
    """
    merged = copy.deepcopy(base)
    for section, values in override.items():
        if not isinstance(values, dict):
            logger.warning(f"Ignoring config section '{section}': expected a mapping, got {values!r}")
            continue
        merged.setdefault(section, {}).update(values)

    for section, key in _POSITIVE_INT_KEYS:
        raw = merged[section].get(key)
        value = _positive_int(raw)
        if value is None:
            default = base[section][key]
            logger.warning(f"Invalid {section}.{key} value: {raw!r}, using {default}")
            value = default
        merged[section][key] = value

    return merged


def load_search_config(config_path: Optional[Path] = None) -> Dict[str, Any]:
    """
    Load search configuration from YAML file with environment variable overrides.

    Environment variable overrides:
    - GEMINI_CLI_PATH: Path or name of the gemini executable
    - GEMINI_SEARCH_CACHE_TTL: Cache TTL in seconds
    - GEMINI_SEARCH_MAX_HISTORY: Maximum number of history records
    - GEMINI_SEARCH_LOG_LEVEL: Log level name (DEBUG, INFO, ...)

    Args:
        config_path: Path to YAML file (default: config/gemini_search.yaml)

    Returns:
        Dictionary containing search configuration

    Raises:
        yaml.YAMLError: If YAML parsing fails
    """
    if config_path is None:
        config_path = DEFAULT_CONFIG_PATH

    if config_path.exists():
        with open(config_path, "r", encoding="utf-8") as f:
            file_config = yaml.safe_load(f) or {}
        if not isinstance(file_config, dict):
            logger.warning(f"Search config file is not a mapping: {config_path}, using defaults")
            file_config = {}
        config = _merge(DEFAULT_CONFIG, file_config)
    else:
        logger.warning(f"Search config file not found: {config_path}, using defaults")
        config = copy.deepcopy(DEFAULT_CONFIG)

    if executable := os.environ.get("GEMINI_CLI_PATH"):
        config["gemini"]["executable"] = executable
        logger.info(f"Gemini executable overridden via environment: {executable}")

    for env_name, (section, key) in _INT_OVERRIDES.items():
        raw = os.environ.get(env_name)
        if not raw:
            continue
        value = _positive_int(raw)
        if value is None:
            logger.warning(f"Invalid {env_name} value: {raw}")
            continue
        config[section][key] = value
        logger.info(f"{section}.{key} overridden via environment: {value}")

    if log_level := os.environ.get("GEMINI_SEARCH_LOG_LEVEL"):
        config["logging"]["level"] = log_level.upper()

    return config


def get_log_level(config: Dict[str, Any]) -> int:
    """Resolve the configured log level name, falling back to INFO."""
    level_name = str(config.get("logging", {}).get("level", "INFO")).upper()
    level = logging.getLevelName(level_name)
    if not isinstance(level, int):
        logger.warning(f"Unknown log level: {level_name}, using INFO")
        return logging.INFO
    return level
