"""Pydantic models for planned operations."""

from enum import Enum
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field


class OperationKind(str, Enum):
    """What the plan does to a resource."""
    CREATE = "CREATE"
    UPDATE = "UPDATE"
    REPLACE = "REPLACE"
    DELETE = "DELETE"
    NO_OP = "NO_OP"


class ActionType(str, Enum):
    """Provider call an operation performs."""
    CREATE = "CREATE"
    UPDATE = "UPDATE"
    DELETE = "DELETE"
    NONE = "NONE"


class AttributeChange(BaseModel):
    """One differing attribute."""
    name: str = Field(..., description="Attribute name")
    before: Any = Field(default=None, description="Recorded value (None if absent)")
    after: Any = Field(default=None, description="Desired value (None if removed or unknown)")
    after_unknown: bool = Field(default=False, description="Desired value depends on an output known only after apply")
    requires_replace: bool = Field(default=False, description="Provider cannot change this attribute in place")


class Operation(BaseModel):
    """A single step of a plan, consumed exactly once by the executor."""
    op_id: str = Field(..., description="Unique id: <node_id>:<step>")
    node_id: str = Field(..., description="Target resource node id")
    kind: OperationKind = Field(..., description="Planned change kind")
    action: ActionType = Field(..., description="Provider call performed")
    resource_kind: str = Field(..., description="Resource kind (selects the adapter)")
    diff: List[AttributeChange] = Field(default_factory=list, description="Attribute changes")
    depends_on: List[str] = Field(default_factory=list, description="Operation ids that must be applied first")
    desired: Dict[str, Any] = Field(default_factory=dict, description="Unresolved desired attributes")
    resource_depends_on: List[str] = Field(default_factory=list, description="Node dependencies recorded into state")
    provider_id: Optional[str] = Field(default=None, description="Existing provider id targeted by update/delete")
    create_before_destroy: bool = Field(default=True, description="Replace ordering for this node")
    reason: str = Field(default="", description="Why this operation was planned")

    @property
    def is_create_phase(self) -> bool:
        """Produces the node's new state (create, update, replace-create)."""
        return self.action in (ActionType.CREATE, ActionType.UPDATE)

    @property
    def is_delete_phase(self) -> bool:
        """Removes an old object (delete, replace-delete)."""
        return self.action == ActionType.DELETE


class Plan(BaseModel):
    """Ordered operation list. Dependencies always precede dependents."""
    operations: List[Operation] = Field(default_factory=list)
    destroy: bool = Field(default=False, description="Plan tears down every recorded resource")

    def get(self, op_id: str) -> Optional[Operation]:
        for op in self.operations:
            if op.op_id == op_id:
                return op
        return None

    def for_node(self, node_id: str) -> List[Operation]:
        return [op for op in self.operations if op.node_id == node_id]

    def changes(self) -> List[Operation]:
        return [op for op in self.operations if op.kind != OperationKind.NO_OP]

    @property
    def has_changes(self) -> bool:
        return bool(self.changes())

    def summary(self) -> Dict[str, int]:
        """Count nodes per operation kind (a Replace counts once)."""
        counts = {kind.value: 0 for kind in OperationKind}
        seen = set()
        for op in self.operations:
            key = (op.node_id, op.kind)
            if key in seen:
                continue
            seen.add(key)
            counts[op.kind.value] += 1
        return counts
