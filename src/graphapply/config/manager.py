"""Layered configuration manager (defaults + user + project + explicit file)."""

import yaml
from pathlib import Path
from typing import Dict, Any, Optional
from .paths import DEFAULTS_PATH, get_user_config_path, get_project_config_path
from ..utils.errors import ConfigError
from ..utils.logging import get_logger

logger = get_logger("config.manager")


def read_yaml_file(path: Path) -> Dict[str, Any]:
    """
    Read a YAML mapping from disk.

    Raises:
        ConfigError: If the file is missing, is not valid YAML or is not a mapping
    """
    if not path.exists():
        raise ConfigError(f"Config file not found: {path}")

    try:
        with open(path, 'r', encoding='utf-8') as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in config file {path}: {e}")
    except OSError as e:
        raise ConfigError(f"Error reading config file {path}: {e}")

    if not isinstance(data, dict):
        raise ConfigError(f"Config file {path} must contain a dictionary")
    return data


def load_config(config_path: Optional[str] = None) -> Dict[str, Any]:
    """
    Load full config tree.

    Layers, later wins: packaged defaults, user config, project config,
    then the explicit config_path if given.

    Returns:
        Merged configuration dictionary
    """
    config = read_yaml_file(DEFAULTS_PATH)

    user_config_path = get_user_config_path()
    if user_config_path.exists():
        try:
            _deep_merge(config, read_yaml_file(user_config_path))
            logger.debug(f"Loaded user config from {user_config_path}")
        except ConfigError as e:
            logger.warning(f"Could not load user config from {user_config_path}: {e}")

    project_config_path = get_project_config_path()
    if project_config_path:
        try:
            _deep_merge(config, read_yaml_file(project_config_path))
            logger.info(f"Loaded project config from {project_config_path}")
        except ConfigError as e:
            logger.warning(f"Could not load project config from {project_config_path}: {e}")

    # Explicit file errors propagate.
    if config_path is not None:
        _deep_merge(config, read_yaml_file(Path(config_path)))
        logger.info(f"Loaded configuration from {config_path}")

    return config


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> None:
    """Deep merge override into base (mutates base)."""
    for key, value in override.items():
        if key in base and isinstance(base[key], dict) and isinstance(value, dict):
            _deep_merge(base[key], value)
        else:
            base[key] = value
