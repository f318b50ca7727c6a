"""
Configuration management module for budget reporting.

This module handles loading and saving configuration values such as the
default base currency, the default reporting period, the snapshot source
and logging settings.
"""

import copy
import logging
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml

from exceptions import ConfigError

logger = logging.getLogger(__name__)

# Default configuration values
DEFAULT_CONFIG: Dict[str, Any] = {
    'base_currency': 'USD',
    'reporting': {
        'default_period': 'month',
        'default_type': 'all',
    },
    'snapshot': {
        'source': 'csv',
        'data_dir': 'data',
    },
    'database': {
        'connection_string': None,
        'data_dir': 'data',
        'path': 'finance.db',
    },
    'logging': {
        'level': 'INFO',
        'format': '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        'file': None,
    },
}

CONFIG_FILE = 'config.yaml'


def _merge(defaults: Dict[str, Any], overrides: Dict[str, Any]) -> Dict[str, Any]:
    """Merge overrides onto defaults, descending into nested sections."""
    merged = copy.deepcopy(defaults)
    for key, value in overrides.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def load_config(config_path: Optional[Union[str, Path]] = None) -> Dict[str, Any]:
    """
    Load configuration from a YAML file merged over the defaults.

    Args:
        config_path: Path to the YAML file (default: config.yaml)

    Returns:
        Configuration dictionary with defaults for missing values

    Raises:
        ConfigError: If the file is not valid YAML or not a mapping
    """
    path = Path(config_path or CONFIG_FILE)
    if not path.exists():
        logger.info("Config file %s not found; using defaults", path)
        return copy.deepcopy(DEFAULT_CONFIG)

    try:
        with open(path, 'r', encoding='utf-8') as f:
            loaded = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        logger.error(f"Error loading configuration: {e}", exc_info=True)
        raise ConfigError(
            "Unable to read configuration file",
            details={"config_path": str(path)},
            original_error=e
        ) from e

    if not isinstance(loaded, dict):
        raise ConfigError(
            "Configuration file must contain a mapping",
            details={"config_path": str(path), "type": type(loaded).__name__}
        )

    config = _merge(DEFAULT_CONFIG, loaded)
    logger.info("Configuration loaded successfully from %s", path)
    return config


def save_config(config: Dict[str, Any], config_path: Optional[Union[str, Path]] = None) -> bool:
    """
    Save configuration values, preserving settings already in the file.

    Args:
        config: Configuration dictionary to save
        config_path: Path to the YAML file (default: config.yaml)

    Returns:
        True if successful, False otherwise
    """
    path = Path(config_path or CONFIG_FILE)
    try:
        existing_config: Dict[str, Any] = {}
        if path.exists():
            with open(path, 'r', encoding='utf-8') as f:
                existing_config = yaml.safe_load(f) or {}

        updated = _merge(existing_config, config)

        with open(path, 'w', encoding='utf-8') as f:
            yaml.safe_dump(updated, f, default_flow_style=False, sort_keys=False)

        logger.info("Configuration saved successfully")
        return True

    except (OSError, yaml.YAMLError) as e:
        logger.error(f"Error saving configuration: {e}", exc_info=True)
        return False


def get_base_currency(config: Dict[str, Any]) -> str:
    """Configured base currency, upper-cased."""
    return str(config.get('base_currency') or DEFAULT_CONFIG['base_currency']).upper()


def get_reporting_preference(config: Dict[str, Any], key: str, default: Any = None) -> Any:
    """
    Get a value from the ``reporting`` section.

    Args:
        config: Loaded configuration
        key: Preference key (e.g. ``default_period``)
        default: Value returned when the key is absent
    """
    return (config.get('reporting') or {}).get(key, default)
