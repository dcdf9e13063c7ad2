"""Provider adapters and the registry that maps resource kinds to them."""

from typing import Any, Dict, Mapping
from ..utils.errors import ConfigError
from ..utils.logging import get_logger
from .base import ProviderAdapter
from .memory import InMemoryProvider
from .registry import ProviderRegistry
from .rest import RestProvider

logger = get_logger("providers")

PROVIDER_TYPES = {
    "memory": InMemoryProvider,
    "rest": RestProvider,
}


def build_registry(providers_config: Mapping[str, Dict[str, Any]]) -> ProviderRegistry:
    """
    Build a registry from the 'providers' config section.

    Args:
        providers_config: Mapping of resource kind to adapter options; each
            entry needs a 'type' ('memory' or 'rest') and that adapter's
            keyword arguments

    Returns:
        Populated ProviderRegistry

    Raises:
        ConfigError: If an entry names an unknown type or has bad options
    """
    registry = ProviderRegistry()
    for kind, options in providers_config.items():
        if not isinstance(options, dict):
            raise ConfigError(f"Provider config for '{kind}' must be a dictionary")
        options = dict(options)
        provider_type = options.pop("type", None)
        if provider_type not in PROVIDER_TYPES:
            raise ConfigError(
                f"Unknown provider type '{provider_type}' for kind '{kind}'. "
                f"Supported types: {', '.join(sorted(PROVIDER_TYPES))}"
            )
        try:
            adapter = PROVIDER_TYPES[provider_type](kind=kind, **options)
        except TypeError as e:
            raise ConfigError(f"Invalid options for {provider_type} provider '{kind}': {e}")
        registry.register(adapter)

    logger.info(f"Registered {len(registry.kinds())} provider adapters")
    return registry


__all__ = [
    "ProviderAdapter",
    "ProviderRegistry",
    "InMemoryProvider",
    "RestProvider",
    "build_registry",
]
