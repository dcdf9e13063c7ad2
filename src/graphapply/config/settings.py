"""Pydantic models for engine settings."""

from typing import Dict, Any
from pydantic import BaseModel, Field


class RetrySettings(BaseModel):
    """Bounded exponential backoff for transient provider errors."""
    max_attempts: int = Field(default=3, ge=1, description="Total adapter calls per operation, including the first")
    base_delay_seconds: float = Field(default=0.5, ge=0, description="Delay before the second attempt")
    max_delay_seconds: float = Field(default=8.0, ge=0, description="Upper bound for any single delay")
    multiplier: float = Field(default=2.0, ge=1, description="Growth factor between consecutive delays")


class RefreshSettings(BaseModel):
    """When the planner re-reads recorded state from providers."""
    stale_after_seconds: float = Field(default=300, ge=0, description="Refresh records older than this (0 = always)")


class StateSettings(BaseModel):
    """State store location."""
    path: str = Field(default="graphapply.state.json", description="Path of the JSON state file")


class EngineSettings(BaseModel):
    """Validated engine configuration."""
    concurrency: int = Field(default=4, ge=1, description="Maximum operations applied at once")
    allow_replace: bool = Field(default=True, description="Re-plan unsupported updates as replacements")
    retry: RetrySettings = Field(default_factory=RetrySettings)
    refresh: RefreshSettings = Field(default_factory=RefreshSettings)
    state: StateSettings = Field(default_factory=StateSettings)
    providers: Dict[str, Dict[str, Any]] = Field(default_factory=dict, description="Provider adapter definitions keyed by resource kind")
