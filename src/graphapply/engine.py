"""Reconciliation engine: desired state -> graph -> plan -> execute."""

from dataclasses import dataclass, field
from typing import List, Optional, Union
from .config.settings import EngineSettings
from .execution.cancellation import CancellationToken
from .execution.executor import Executor
from .execution.report import OperationResult, OperationStatus, RunReport
from .execution.retry import RetryPolicy
from .graph.resource_graph import ResourceGraph
from .ingest.desired_loader import load_desired_state
from .ingest.models import DesiredState
from .planning.models import Plan
from .planning.planner import Planner
from .providers.registry import ProviderRegistry
from .state.store import StateStore
from .utils.logging import get_logger

logger = get_logger("engine")

DesiredInput = Union[str, DesiredState, ResourceGraph]

# First-run outcomes that a re-plan run may supersede
_SUPERSEDED = (OperationStatus.REPLANNED, OperationStatus.SKIPPED, OperationStatus.NO_OP)


@dataclass
class ApplyResult:
    """Plans executed during one apply (one, or two after a re-plan) and the merged report."""
    plans: List[Plan]
    report: RunReport
    graph: Optional[ResourceGraph] = None
    replanned: List[str] = field(default_factory=list)

    @property
    def plan(self) -> Plan:
        return self.plans[0]

    @property
    def success(self) -> bool:
        return self.report.success


class Reconciler:
    """
    Converges providers onto a desired-state graph and records the result.

    Collaborators are injected so embedders can pair any registry with any
    state store.
    """

    def __init__(
        self,
        registry: ProviderRegistry,
        state_store: StateStore,
        settings: Optional[EngineSettings] = None,
        retry_policy: Optional[RetryPolicy] = None
    ):
        self.registry = registry
        self.state_store = state_store
        self.settings = settings or EngineSettings()
        self.retry_policy = retry_policy or RetryPolicy.from_settings(self.settings.retry)
        self.planner = Planner(registry, state_store, self.settings, self.retry_policy)
        self.executor = Executor(registry, state_store, self.settings, self.retry_policy)

    def build_graph(self, desired: DesiredInput) -> ResourceGraph:
        """
        Build a resource graph from a file path, a parsed document or an existing graph.

        Raises:
            ConfigLoadError: If a desired-state file cannot be loaded
            GraphConstructionError: If a reference or dependency is undeclared
        """
        if isinstance(desired, ResourceGraph):
            graph = desired
        else:
            if isinstance(desired, str):
                desired = load_desired_state(desired)
            graph = ResourceGraph.from_desired_state(desired)
        self._sync_current(graph)
        return graph

    def plan(self, desired: DesiredInput, refresh: bool = False, destroy: bool = False) -> Plan:
        graph = self.build_graph(desired)
        return self.planner.plan(graph, refresh=refresh, destroy=destroy)

    def apply(
        self,
        desired: DesiredInput,
        refresh: bool = False,
        destroy: bool = False,
        cancel_token: Optional[CancellationToken] = None
    ) -> ApplyResult:
        """
        Plan and execute; unsupported updates are re-planned once as replacements.

        Args:
            desired: Desired-state file path, DesiredState or ResourceGraph
            refresh: Re-read recorded state from providers before planning
            destroy: Tear down every recorded resource
            cancel_token: Optional run-level cancellation signal

        Returns:
            ApplyResult with the executed plan(s) and the merged RunReport
        """
        cancel_token = cancel_token or CancellationToken()
        graph = self.build_graph(desired)
        plan = self.planner.plan(graph, refresh=refresh, destroy=destroy)
        report = self.executor.execute(plan, cancel_token=cancel_token)
        result = ApplyResult(plans=[plan], report=report, graph=graph)

        replanned = sorted({r.node_id for r in report.with_status(OperationStatus.REPLANNED)})
        if replanned and not cancel_token.cancelled:
            if self.settings.allow_replace:
                logger.info(f"Re-planning as replacements: {', '.join(replanned)}")
                failed = {r.node_id for r in report.with_status(OperationStatus.FAILED)}
                second_plan = self.planner.plan(graph, force_replace=replanned, destroy=destroy)
                second_report = self.executor.execute(second_plan, cancel_token=cancel_token, blocked=failed)
                result.plans.append(second_plan)
                result.report = _merge_reports(report, second_report)
                result.replanned = replanned
            else:
                result.report = _fail_replanned(report)
        elif replanned:
            result.report = _fail_replanned(report)

        self._sync_current(graph)
        return result

    def _sync_current(self, graph: ResourceGraph) -> None:
        for node in graph.nodes():
            record = self.state_store.load(node.node_id)
            node.current = dict(record.attributes) if record else None


def _fail_replanned(report: RunReport) -> RunReport:
    results = []
    for result in report.results:
        if result.status == OperationStatus.REPLANNED:
            result = result.model_copy(update={
                "status": OperationStatus.FAILED,
                "error": f"{result.error} (replacement disabled)"
            })
        results.append(result)
    return RunReport(results=results, cancelled=report.cancelled)


def _merge_reports(first: RunReport, second: RunReport) -> RunReport:
    """First-run outcomes, superseded per node by the re-plan run where it took over."""
    superseded = {r.node_id for r in first.results}
    for r in first.results:
        if r.status not in _SUPERSEDED:
            superseded.discard(r.node_id)
    second_by_node = {}
    for r in second.results:
        second_by_node.setdefault(r.node_id, []).append(r)

    merged: List[OperationResult] = []
    emitted = set()
    for r in first.results:
        if r.node_id in superseded and r.node_id in second_by_node:
            if r.node_id not in emitted:
                merged.extend(second_by_node[r.node_id])
                emitted.add(r.node_id)
            continue
        merged.append(r)
        emitted.add(r.node_id)

    for node_id, results in second_by_node.items():
        if node_id not in emitted:
            merged.extend(results)
            emitted.add(node_id)

    return RunReport(results=merged, cancelled=first.cancelled or second.cancelled)
