"""In-memory provider adapter (reference implementation and test double)."""

import copy
import itertools
import threading
from collections import defaultdict
from typing import Any, Dict, Iterable, List, Optional, Tuple
from ..utils.errors import NotFoundError, UnsupportedUpdateError
from ..utils.logging import get_logger
from .base import ProviderAdapter

logger = get_logger("providers.memory")

OPERATIONS = ("create", "read", "update", "delete")


class InMemoryProvider(ProviderAdapter):
    """
    Dict-backed adapter.

    Supports fault injection (fail_next), out-of-band drift and a call log,
    so engine behaviour can be exercised without any remote system.
    """

    def __init__(
        self,
        kind: str,
        force_new: Iterable[str] = (),
        create_before_destroy: bool = True,
        computed: Optional[Dict[str, str]] = None,
        reject_updates: Iterable[str] = ()
    ):
        """
        Args:
            kind: Resource kind served
            force_new: Attributes advertised as requiring replacement
            create_before_destroy: Replace ordering capability flag
            computed: Extra output attributes as format strings over {id}, {kind}
            reject_updates: Attributes refused at update time with UnsupportedUpdateError
                even though they are not advertised in force_new
        """
        self.kind = kind
        self.force_new_attributes = frozenset(force_new)
        self.create_before_destroy = create_before_destroy
        self.computed = dict(computed or {})
        self.reject_updates = frozenset(reject_updates)
        self.resources: Dict[str, Dict[str, Any]] = {}
        self.calls: List[Tuple[str, Optional[str]]] = []
        self._faults: Dict[str, List[Exception]] = defaultdict(list)
        self._ids = itertools.count(1)
        self._lock = threading.Lock()

    def fail_next(self, operation: str, *errors: Exception) -> None:
        """Queue errors raised by the next calls to operation, one per call."""
        if operation not in OPERATIONS:
            raise ValueError(f"Unknown operation: {operation}")
        with self._lock:
            self._faults[operation].extend(errors)

    def call_count(self, operation: Optional[str] = None) -> int:
        with self._lock:
            return sum(1 for op, _ in self.calls if operation is None or op == operation)

    def destroy_out_of_band(self, provider_id: str) -> None:
        """Remove a resource behind the engine's back."""
        with self._lock:
            self.resources.pop(provider_id, None)

    def modify_out_of_band(self, provider_id: str, **attributes: Any) -> None:
        """Change attributes behind the engine's back."""
        with self._lock:
            self.resources[provider_id].update(attributes)

    def _record(self, operation: str, target: Optional[str]) -> None:
        with self._lock:
            self.calls.append((operation, target))
            faults = self._faults[operation]
            error = faults.pop(0) if faults else None
        if error is not None:
            logger.debug(f"Injected {type(error).__name__} on {self.kind} {operation}")
            raise error

    def create(self, desired: Dict[str, Any]) -> Tuple[str, Dict[str, Any]]:
        self._record("create", None)
        with self._lock:
            provider_id = f"{self.kind}-{next(self._ids):04d}"
            actual = copy.deepcopy(desired)
            actual["id"] = provider_id
            for attr, template in self.computed.items():
                actual[attr] = template.format(id=provider_id, kind=self.kind)
            self.resources[provider_id] = actual
            return provider_id, copy.deepcopy(actual)

    def read(self, provider_id: str) -> Dict[str, Any]:
        self._record("read", provider_id)
        with self._lock:
            if provider_id not in self.resources:
                raise NotFoundError(f"{self.kind} {provider_id} does not exist")
            return copy.deepcopy(self.resources[provider_id])

    def update(self, provider_id: str, diff: Dict[str, Any]) -> Dict[str, Any]:
        self._record("update", provider_id)
        rejected = self.reject_updates.intersection(diff)
        if rejected:
            raise UnsupportedUpdateError(rejected)
        with self._lock:
            if provider_id not in self.resources:
                raise NotFoundError(f"{self.kind} {provider_id} does not exist")
            actual = self.resources[provider_id]
            for attr, value in diff.items():
                if value is None:
                    actual.pop(attr, None)
                else:
                    actual[attr] = copy.deepcopy(value)
            return copy.deepcopy(actual)

    def delete(self, provider_id: str) -> None:
        self._record("delete", provider_id)
        with self._lock:
            self.resources.pop(provider_id, None)
