"""Pydantic models for the run outcome report."""

from enum import Enum
from typing import Dict, List, Optional
from pydantic import BaseModel, Field, computed_field
from ..planning.models import ActionType, OperationKind


class OperationStatus(str, Enum):
    """Terminal status of a planned operation."""
    APPLIED = "APPLIED"
    FAILED = "FAILED"
    SKIPPED = "SKIPPED"
    NO_OP = "NO_OP"
    REPLANNED = "REPLANNED"


SUCCESS_STATUSES = (OperationStatus.APPLIED, OperationStatus.NO_OP)


class OperationResult(BaseModel):
    """Outcome of one operation."""
    op_id: str = Field(..., description="Operation id")
    node_id: str = Field(..., description="Resource node id")
    kind: OperationKind = Field(..., description="Planned change kind")
    action: ActionType = Field(..., description="Provider call performed")
    status: OperationStatus = Field(..., description="Terminal status")
    error: Optional[str] = Field(default=None, description="Error detail for FAILED/SKIPPED/REPLANNED")
    attempts: int = Field(default=0, ge=0, description="Adapter calls made")
    provider_id: Optional[str] = Field(default=None, description="Provider id after the operation")
    duration_seconds: float = Field(default=0.0, ge=0)


class RunReport(BaseModel):
    """Every planned operation's outcome, in plan order."""
    version: str = Field(default="1.0.0", description="Report contract version")
    results: List[OperationResult] = Field(default_factory=list)
    cancelled: bool = Field(default=False, description="Run stopped dispatching early")

    @computed_field
    @property
    def success(self) -> bool:
        """Process-level outcome: true iff no operation failed."""
        return not any(
            r.status in (OperationStatus.FAILED, OperationStatus.REPLANNED) for r in self.results
        )

    def get(self, op_id: str) -> Optional[OperationResult]:
        for result in self.results:
            if result.op_id == op_id:
                return result
        return None

    def for_node(self, node_id: str) -> List[OperationResult]:
        return [r for r in self.results if r.node_id == node_id]

    def with_status(self, status: OperationStatus) -> List[OperationResult]:
        return [r for r in self.results if r.status == status]

    def counts(self) -> Dict[str, int]:
        counts = {status.value: 0 for status in OperationStatus}
        for result in self.results:
            counts[result.status.value] += 1
        return counts
