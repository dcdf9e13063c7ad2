"""Registry of provider adapters keyed by resource kind."""

from typing import Dict, Iterable, List, Optional
from ..utils.errors import ProviderNotFoundError
from ..utils.logging import get_logger
from .base import ProviderAdapter

logger = get_logger("providers.registry")


class ProviderRegistry:
    """One adapter per resource kind, registered before a run."""

    def __init__(self, adapters: Optional[Iterable[ProviderAdapter]] = None):
        self._adapters: Dict[str, ProviderAdapter] = {}
        for adapter in adapters or []:
            self.register(adapter)

    def register(self, adapter: ProviderAdapter, kind: Optional[str] = None) -> None:
        """Register adapter for kind (defaults to adapter.kind); replaces any earlier one."""
        kind = kind or adapter.kind
        if not kind:
            raise ValueError(f"Adapter {adapter!r} has no kind")
        if kind in self._adapters:
            logger.warning(f"Replacing provider adapter for kind {kind}")
        self._adapters[kind] = adapter
        logger.debug(f"Registered provider adapter {adapter!r} for kind {kind}")

    def get(self, kind: str) -> ProviderAdapter:
        """
        Raises:
            ProviderNotFoundError: If no adapter is registered for kind
        """
        try:
            return self._adapters[kind]
        except KeyError:
            raise ProviderNotFoundError(
                f"No provider adapter registered for resource kind '{kind}'. "
                f"Registered kinds: {', '.join(self.kinds()) or 'none'}"
            )

    def kinds(self) -> List[str]:
        return sorted(self._adapters)

    def __contains__(self, kind: str) -> bool:
        return kind in self._adapters
