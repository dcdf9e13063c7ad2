"""Pydantic models for the declared desired-state graph."""

from typing import List, Optional, Dict, Any
from pydantic import BaseModel, Field, field_validator


class Lifecycle(BaseModel):
    """Per-resource lifecycle controls."""
    prevent_destroy: bool = Field(default=False, description="Refuse plans that would delete or replace this resource")
    create_before_destroy: Optional[bool] = Field(default=None, description="Override the provider's replacement ordering")
    ignore_changes: List[str] = Field(default_factory=list, description="Attributes excluded from drift comparison")


class ResourceSpec(BaseModel):
    """A single declared resource."""
    kind: str = Field(..., min_length=1, description="Resource kind (selects the provider adapter)")
    name: str = Field(..., min_length=1, description="Logical name, unique per kind")
    attributes: Dict[str, Any] = Field(default_factory=dict, description="Desired attributes; values may embed ${kind.name.attr} references")
    depends_on: List[str] = Field(default_factory=list, description="Explicit dependencies as node ids (kind.name)")
    lifecycle: Lifecycle = Field(default_factory=Lifecycle)

    @field_validator("kind", "name")
    @classmethod
    def _no_dots(cls, value: str) -> str:
        if "." in value:
            raise ValueError(f"'{value}' must not contain '.'")
        return value

    @property
    def node_id(self) -> str:
        return f"{self.kind}.{self.name}"


class DesiredState(BaseModel):
    """Declared desired state - the full set of resources to converge on."""
    version: str = Field(default="1", description="Document format version")
    resources: List[ResourceSpec] = Field(default_factory=list, description="Declared resources")

    def node_ids(self) -> List[str]:
        return [r.node_id for r in self.resources]
