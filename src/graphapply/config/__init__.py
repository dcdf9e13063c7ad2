"""Configuration module: load and validate engine settings."""

from typing import Dict, Any, Mapping, Optional
from pydantic import ValidationError
from ..utils.errors import ConfigError
from ..utils.logging import get_logger
from .environment import apply_environment_overrides
from .manager import load_config
from .paths import get_config_path, get_user_config_path, get_project_config_path
from .settings import EngineSettings, RetrySettings, RefreshSettings, StateSettings

logger = get_logger("config")


def load_engine_settings(
    config_path: Optional[str] = None,
    overrides: Optional[Dict[str, Any]] = None,
    environ: Optional[Mapping[str, str]] = None
) -> EngineSettings:
    """
    Load engine settings from all configuration layers.

    Args:
        config_path: Optional explicit YAML config file
        overrides: Values applied last (e.g. CLI flags); None values are ignored
        environ: Environment mapping for GRAPHAPPLY_* overrides

    Returns:
        Validated EngineSettings

    Raises:
        ConfigError: If any layer is invalid
    """
    config = load_config(config_path)
    apply_environment_overrides(config, environ)

    for key, value in (overrides or {}).items():
        if value is not None:
            config[key] = value

    try:
        settings = EngineSettings(**config)
    except ValidationError as e:
        raise ConfigError(f"Invalid engine configuration: {e}")

    logger.debug(
        f"Engine settings: concurrency={settings.concurrency}, "
        f"max_attempts={settings.retry.max_attempts}, "
        f"providers={sorted(settings.providers)}"
    )
    return settings


__all__ = [
    "EngineSettings",
    "RetrySettings",
    "RefreshSettings",
    "StateSettings",
    "load_engine_settings",
    "get_config_path",
    "get_user_config_path",
    "get_project_config_path",
]
