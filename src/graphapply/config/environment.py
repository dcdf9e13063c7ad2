"""Environment variable overrides for engine configuration."""

import os
from typing import Dict, Any, Mapping, Optional
from ..utils.errors import ConfigError
from ..utils.logging import get_logger

logger = get_logger("config.environment")

# Variable name -> (config section path, value parser)
ENV_OVERRIDES = {
    "GRAPHAPPLY_CONCURRENCY": (("concurrency",), int),
    "GRAPHAPPLY_STATE_PATH": (("state", "path"), str),
    "GRAPHAPPLY_STALE_AFTER": (("refresh", "stale_after_seconds"), float),
    "GRAPHAPPLY_MAX_ATTEMPTS": (("retry", "max_attempts"), int),
}


def apply_environment_overrides(config: Dict[str, Any], environ: Optional[Mapping[str, str]] = None) -> Dict[str, Any]:
    """
    Apply GRAPHAPPLY_* environment variables on top of a loaded config.

    Args:
        config: Merged configuration dictionary (mutated in place)
        environ: Environment mapping (defaults to os.environ)

    Returns:
        The same configuration dictionary

    Raises:
        ConfigError: If a variable holds a value of the wrong type
    """
    if environ is None:
        environ = os.environ

    for var_name, (path, parser) in ENV_OVERRIDES.items():
        raw = environ.get(var_name)
        if raw is None or raw.strip() == "":
            continue
        try:
            value = parser(raw.strip())
        except ValueError:
            raise ConfigError(f"Invalid value for {var_name}: {raw!r}")

        section = config
        for key in path[:-1]:
            section = section.setdefault(key, {})
        section[path[-1]] = value
        logger.debug(f"Config override from {var_name}: {'.'.join(path)}={value!r}")

    return config
