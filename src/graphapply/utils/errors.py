"""Custom exception classes for GraphApply."""

from typing import Iterable, List, Optional


class GraphApplyError(Exception):
    """Base exception for all GraphApply errors."""
    pass


class ConfigError(GraphApplyError):
    """Raised when engine configuration is invalid or missing."""
    pass


class ConfigLoadError(GraphApplyError):
    """Raised when a desired-state document cannot be loaded or is invalid."""
    pass


class GraphConstructionError(GraphApplyError):
    """Raised when the resource graph cannot be built."""
    pass


class CycleError(GraphConstructionError):
    """Raised when resource dependencies form a cycle."""

    def __init__(self, cycle: Iterable[str], message: Optional[str] = None):
        self.cycle: List[str] = list(cycle)
        if message is None:
            path = " -> ".join(self.cycle + self.cycle[:1])
            message = f"Dependency cycle detected: {path}"
        super().__init__(message)


class PlanError(GraphApplyError):
    """Raised when a plan cannot be produced for the desired state."""
    pass


class StateStoreError(GraphApplyError):
    """Raised when the state store cannot be read or written."""
    pass


class ReferenceResolutionError(GraphApplyError):
    """Raised when a reference token cannot be resolved against known state."""
    pass


class ProviderNotFoundError(GraphApplyError):
    """Raised when no provider adapter is registered for a resource kind."""
    pass


class ProviderError(GraphApplyError):
    """Raised by provider adapters when a remote operation fails."""

    def __init__(self, message: str, transient: bool = False):
        super().__init__(message)
        self.transient = transient

    @property
    def permanent(self) -> bool:
        return not self.transient


class NotFoundError(ProviderError):
    """Raised by read when the resource no longer exists (deleted out-of-band)."""

    def __init__(self, message: str):
        super().__init__(message, transient=False)


class UnsupportedUpdateError(ProviderError):
    """Raised by update when an attribute change requires replacement."""

    def __init__(self, attributes: Iterable[str], message: Optional[str] = None):
        self.attributes: List[str] = sorted(attributes)
        if message is None:
            message = f"In-place update not supported for: {', '.join(self.attributes)}"
        super().__init__(message, transient=False)
