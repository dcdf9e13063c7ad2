"""GraphApply - Dependency-aware declarative resource-graph reconciler."""

from typing import Any, Dict, Optional
from .utils.logging import setup_logging, get_logger

__version__ = "0.1.0"

setup_logging()
logger = get_logger("graphapply")

from .config import load_engine_settings
from .config.settings import EngineSettings
from .engine import ApplyResult, Reconciler
from .execution.cancellation import CancellationToken
from .planning.models import Plan
from .providers import build_registry
from .state.store import FileStateStore

__all__ = ["Reconciler", "ApplyResult", "CancellationToken", "build_reconciler", "plan", "apply"]


def build_reconciler(
    config_path: Optional[str] = None,
    state_path: Optional[str] = None,
    overrides: Optional[Dict[str, Any]] = None,
    settings: Optional[EngineSettings] = None
) -> Reconciler:
    """
    Wire a Reconciler from configuration.

    Args:
        config_path: Optional explicit engine config file
        state_path: State file path (defaults to settings.state.path)
        overrides: Top-level settings applied after every config layer
        settings: Pre-built settings; skips config loading when given

    Returns:
        Reconciler backed by a FileStateStore and the configured providers
    """
    if settings is None:
        settings = load_engine_settings(config_path, overrides=overrides)
    registry = build_registry(settings.providers)
    store = FileStateStore(state_path or settings.state.path)
    return Reconciler(registry, store, settings)


def plan(
    desired_path: str,
    config_path: Optional[str] = None,
    state_path: Optional[str] = None,
    refresh: bool = False,
    destroy: bool = False
) -> Plan:
    """Plan the changes needed to converge on a desired-state file."""
    reconciler = build_reconciler(config_path, state_path)
    return reconciler.plan(desired_path, refresh=refresh, destroy=destroy)


def apply(
    desired_path: str,
    config_path: Optional[str] = None,
    state_path: Optional[str] = None,
    refresh: bool = False,
    destroy: bool = False,
    cancel_token: Optional[CancellationToken] = None
) -> ApplyResult:
    """Converge providers onto a desired-state file and record the outcome."""
    reconciler = build_reconciler(config_path, state_path)
    logger.info(f"Applying desired state: {desired_path}")
    return reconciler.apply(desired_path, refresh=refresh, destroy=destroy, cancel_token=cancel_token)
