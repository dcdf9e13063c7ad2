"""Abstract base class for provider adapters."""

from abc import ABC, abstractmethod
from typing import Any, Dict, FrozenSet, Tuple


class ProviderAdapter(ABC):
    """
    Capability contract for one resource kind.

    Adapters perform the real create/read/update/delete calls. They never
    touch the state store; the executor records what they return.

    Failure contract:
    - create/update/delete raise ProviderError (transient=True to be retried)
    - read raises NotFoundError when the resource was deleted out-of-band
    - update raises UnsupportedUpdateError when a change needs replacement
    - delete of an already-absent resource returns normally
    """

    #: Resource kind this adapter manages.
    kind: str = ""

    #: Replace ordering. False means the old object must be deleted first.
    create_before_destroy: bool = True

    #: Attributes whose change can never be applied in place.
    force_new_attributes: FrozenSet[str] = frozenset()

    def requires_replacement(self, attribute: str) -> bool:
        """Whether changing attribute forces a Replace."""
        return attribute in self.force_new_attributes

    @abstractmethod
    def create(self, desired: Dict[str, Any]) -> Tuple[str, Dict[str, Any]]:
        """
        Create the resource.

        Args:
            desired: Fully resolved desired attributes

        Returns:
            (provider_id, actual attributes)
        """
        pass

    @abstractmethod
    def read(self, provider_id: str) -> Dict[str, Any]:
        """Return the actual attributes of an existing resource."""
        pass

    @abstractmethod
    def update(self, provider_id: str, diff: Dict[str, Any]) -> Dict[str, Any]:
        """
        Apply changed attributes in place.

        Args:
            provider_id: Identifier returned by create
            diff: Changed attributes mapped to their new values (None = unset)

        Returns:
            Actual attributes after the update
        """
        pass

    @abstractmethod
    def delete(self, provider_id: str) -> None:
        """Delete the resource; succeeds if it is already gone."""
        pass

    def __repr__(self) -> str:
        return f"{type(self).__name__}(kind={self.kind!r})"
