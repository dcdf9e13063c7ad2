"""Pydantic model for persisted per-resource state."""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class StateRecord(BaseModel):
    """Last-applied snapshot of one resource plus its provider identifier."""
    node_id: str = Field(..., description="Resource node id (kind.name)")
    kind: str = Field(..., description="Resource kind")
    name: str = Field(..., description="Logical resource name")
    provider_id: str = Field(..., description="Identifier assigned by the provider on create")
    attributes: Dict[str, Any] = Field(default_factory=dict, description="Actual attributes as last applied or refreshed")
    declared: List[str] = Field(default_factory=list, description="Attribute names declared at last apply")
    depends_on: List[str] = Field(default_factory=list, description="Dependencies at last apply (orders deletes)")
    create_before_destroy: bool = Field(default=True, description="Replace ordering in effect at last apply")
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
    refreshed_at: datetime = Field(default_factory=utcnow)

    def is_stale(self, stale_after_seconds: float, now: Optional[datetime] = None) -> bool:
        """Whether the record should be re-read from the provider."""
        if stale_after_seconds <= 0:
            return True
        now = now or utcnow()
        return (now - self.refreshed_at).total_seconds() > stale_after_seconds
