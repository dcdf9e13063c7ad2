"""Compute the operations that move recorded state to desired state."""

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Set
import networkx as nx
from ..config.settings import EngineSettings
from ..execution.retry import RetryPolicy
from ..graph.resource_graph import ResourceGraph, ResourceNode
from ..ingest.references import UNKNOWN, Reference, attribute_value, contains_unknown, resolve_references
from ..providers.base import ProviderAdapter
from ..providers.registry import ProviderRegistry
from ..state.models import StateRecord, utcnow
from ..state.store import StateStore
from ..utils.errors import CycleError, NotFoundError, PlanError, ProviderError
from ..utils.logging import get_logger
from .models import ActionType, AttributeChange, Operation, OperationKind, Plan

logger = get_logger("planning.planner")

# Tie-break between operations of the same node
_PHASE_RANK = {
    "replace-delete-first": 0,
    "create": 1,
    "update": 1,
    "noop": 1,
    "replace-create": 1,
    "replace-delete": 2,
    "delete": 3,
}


@dataclass
class _Decision:
    node_id: str
    kind: OperationKind
    diff: List[AttributeChange] = field(default_factory=list)
    record: Optional[StateRecord] = None
    create_before_destroy: bool = True
    reason: str = ""


class Planner:
    """
    Diffs a resource graph against the state store.

    The state store is passed in rather than looked up globally, so an
    in-memory store substitutes for tests and embedding.
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

    def plan(
        self,
        graph: ResourceGraph,
        refresh: bool = False,
        force_replace: Iterable[str] = (),
        destroy: bool = False
    ) -> Plan:
        """
        Produce an ordered plan.

        Args:
            graph: Desired-state graph
            refresh: Re-read every record from its provider first
            force_replace: Node ids planned as Replace whatever their diff
            destroy: Plan deletion of every recorded resource

        Raises:
            CycleError: If the graph is cyclic (before any provider call)
            PlanError: If a protected resource would be destroyed
        """
        graph.check_acyclic()
        ordered = list(graph.topological_order())
        force_replace = set(force_replace)

        records = self._refresh(self.state_store.all(), refresh)

        decisions: Dict[str, _Decision] = {}
        pending: Dict[str, Optional[Dict[str, Any]]] = {}

        if not destroy:
            for node in ordered:
                decision = self._decide(graph, node, records, pending, node.node_id in force_replace, decisions)
                decisions[node.node_id] = decision

        for node_id, record in records.items():
            if node_id in decisions:
                continue
            node = graph.get_node(node_id)
            if node is not None and node.lifecycle.prevent_destroy:
                raise PlanError(f"{node_id} has prevent_destroy set but the plan would destroy it")
            decisions[node_id] = _Decision(
                node_id=node_id,
                kind=OperationKind.DELETE,
                record=record,
                reason="destroy requested" if destroy else "removed from desired state"
            )

        operations = self._build_operations(graph, decisions)
        plan = Plan(operations=self._order(ordered, operations, records), destroy=destroy)

        counts = ", ".join(f"{count} {kind.lower()}" for kind, count in plan.summary().items() if count)
        logger.info(f"Plan: {counts or 'nothing declared or recorded'}")
        return plan

    def _refresh(self, records: Dict[str, StateRecord], force: bool) -> Dict[str, StateRecord]:
        """
        Re-read stale records. Records whose resource is gone are dropped (drift).

        A read that fails for any other reason keeps the recorded attributes
        and leaves refreshed_at untouched, so the next plan tries again.
        """
        stale_after = self.settings.refresh.stale_after_seconds
        refreshed = {}
        for node_id, record in records.items():
            if not (force or record.is_stale(stale_after)):
                refreshed[node_id] = record
                continue

            adapter = self.registry.get(record.kind)
            try:
                actual, _ = self.retry_policy.call(
                    lambda: adapter.read(record.provider_id),
                    f"read {node_id}"
                )
            except NotFoundError:
                logger.warning(f"Drift: {node_id} ({record.provider_id}) no longer exists; it will be recreated")
                self.state_store.delete(node_id)
                continue
            except ProviderError as e:
                logger.warning(f"Could not refresh {node_id}: {e}; planning against recorded state")
                refreshed[node_id] = record
                continue

            if actual != record.attributes:
                changed = sorted(
                    key for key in set(actual) | set(record.attributes)
                    if actual.get(key) != record.attributes.get(key)
                )
                logger.warning(f"Drift: {node_id} attributes changed out-of-band: {', '.join(changed)}")
            record.attributes = actual
            record.refreshed_at = utcnow()
            self.state_store.save(node_id, record)
            refreshed[node_id] = record
        return refreshed

    def _decide(
        self,
        graph: ResourceGraph,
        node: ResourceNode,
        records: Dict[str, StateRecord],
        pending: Dict[str, Optional[Dict[str, Any]]],
        forced: bool,
        decisions: Dict[str, _Decision]
    ) -> _Decision:
        node_id = node.node_id
        adapter = self.registry.get(node.kind)
        record = records.get(node_id)
        resolved = resolve_references(node.desired, lambda ref: self._lookup(ref, records, pending))

        cbd = node.lifecycle.create_before_destroy
        if cbd is None:
            cbd = adapter.create_before_destroy

        if record is None:
            pending[node_id] = None
            diff = [
                AttributeChange(
                    name=key,
                    after=None if contains_unknown(value) else value,
                    after_unknown=contains_unknown(value)
                )
                for key, value in resolved.items()
            ]
            return _Decision(node_id, OperationKind.CREATE, diff, None, cbd, "not in state")

        diff = self._diff(resolved, record, adapter, node.lifecycle.ignore_changes)

        if forced or any(change.requires_replace for change in diff):
            if node.lifecycle.prevent_destroy:
                raise PlanError(f"{node_id} has prevent_destroy set but the plan would replace it")
            # A replaced dependency that must be destroyed first forces the same
            # ordering here, otherwise old/new objects wait on each other.
            for dep_id in graph.dependencies_of(node_id):
                dep = decisions.get(dep_id)
                if dep and dep.kind == OperationKind.REPLACE and not dep.create_before_destroy:
                    cbd = False
            pending[node_id] = None
            forcing = [c.name for c in diff if c.requires_replace]
            reason = "replacement forced" if forced else f"requires replacement: {', '.join(forcing)}"
            return _Decision(node_id, OperationKind.REPLACE, diff, record, cbd, reason)

        if not diff:
            return _Decision(node_id, OperationKind.NO_OP, [], record, cbd, "up to date")

        pending[node_id] = {
            change.name: UNKNOWN if change.after_unknown else change.after
            for change in diff
        }
        return _Decision(
            node_id, OperationKind.UPDATE, diff, record, cbd,
            f"update in place: {', '.join(c.name for c in diff)}"
        )

    def _lookup(
        self,
        ref: Reference,
        records: Dict[str, StateRecord],
        pending: Dict[str, Optional[Dict[str, Any]]]
    ) -> Any:
        """Value of a reference as known at plan time."""
        if ref.node_id in pending:
            overlay = pending[ref.node_id]
            if overlay is None:
                return UNKNOWN
            top = ref.attribute.split('.')[0]
            if top in overlay:
                if contains_unknown(overlay[top]):
                    return UNKNOWN
                return attribute_value(overlay, None, ref)

        record = records.get(ref.node_id)
        if record is None:
            return UNKNOWN
        return attribute_value(record.attributes, record.provider_id, ref)

    def _diff(
        self,
        resolved: Dict[str, Any],
        record: StateRecord,
        adapter: ProviderAdapter,
        ignore_changes: List[str]
    ) -> List[AttributeChange]:
        """Compare declared attributes (current and previously declared) with recorded ones."""
        keys = list(resolved) + [k for k in record.declared if k not in resolved]
        changes = []
        for key in keys:
            if key in ignore_changes:
                continue
            before = record.attributes.get(key)
            if key in resolved:
                after = resolved[key]
                unknown = contains_unknown(after)
                if not unknown and before == after and (key in record.attributes or after is None):
                    continue
            else:
                if key not in record.attributes:
                    continue
                after, unknown = None, False
            changes.append(AttributeChange(
                name=key,
                before=before,
                after=None if unknown else after,
                after_unknown=unknown,
                requires_replace=adapter.requires_replacement(key)
            ))
        return changes

    def _build_operations(self, graph: ResourceGraph, decisions: Dict[str, _Decision]) -> Dict[str, Operation]:
        operations: Dict[str, Operation] = {}
        create_op: Dict[str, str] = {}
        delete_op: Dict[str, str] = {}

        for node_id, decision in decisions.items():
            node = graph.get_node(node_id)
            record = decision.record
            resource_kind = node.kind if node else record.kind
            common = dict(
                node_id=node_id,
                kind=decision.kind,
                resource_kind=resource_kind,
                diff=decision.diff,
                desired=dict(node.desired) if node else {},
                resource_depends_on=graph.dependencies_of(node_id) if node else list(record.depends_on),
                provider_id=record.provider_id if record else None,
                create_before_destroy=decision.create_before_destroy,
                reason=decision.reason,
            )

            if decision.kind == OperationKind.NO_OP:
                op = Operation(op_id=f"{node_id}:noop", action=ActionType.NONE, **common)
                create_op[node_id] = op.op_id
                operations[op.op_id] = op
            elif decision.kind == OperationKind.CREATE:
                op = Operation(op_id=f"{node_id}:create", action=ActionType.CREATE, **common)
                create_op[node_id] = op.op_id
                operations[op.op_id] = op
            elif decision.kind == OperationKind.UPDATE:
                op = Operation(op_id=f"{node_id}:update", action=ActionType.UPDATE, **common)
                create_op[node_id] = op.op_id
                operations[op.op_id] = op
            elif decision.kind == OperationKind.DELETE:
                op = Operation(op_id=f"{node_id}:delete", action=ActionType.DELETE, **common)
                delete_op[node_id] = op.op_id
                operations[op.op_id] = op
            else:
                new = Operation(op_id=f"{node_id}:replace-create", action=ActionType.CREATE, **common)
                old = Operation(op_id=f"{node_id}:replace-delete", action=ActionType.DELETE, **common)
                if decision.create_before_destroy:
                    old.depends_on.append(new.op_id)
                else:
                    new.depends_on.append(old.op_id)
                create_op[node_id] = new.op_id
                delete_op[node_id] = old.op_id
                operations[new.op_id] = new
                operations[old.op_id] = old

        node_ops: Dict[str, List[str]] = {}
        for op in operations.values():
            if op.kind != OperationKind.NO_OP:
                node_ops.setdefault(op.node_id, []).append(op.op_id)

        # New state is produced after the new state of every dependency.
        # Unchanged nodes stay in the chain so ordering and failures pass through them.
        for node_id, op_id in create_op.items():
            for dep_id in graph.dependencies_of(node_id):
                if dep_id in create_op:
                    _add_dependency(operations[op_id], create_op[dep_id])

        # Old objects go away after everything that referenced them has moved on.
        for node_id, op_id in delete_op.items():
            op = operations[op_id]
            decision = decisions[node_id]
            destroy_first = decision.kind == OperationKind.REPLACE and not decision.create_before_destroy
            for dependent_id in self._old_dependents(graph, decisions, node_id):
                if destroy_first:
                    if dependent_id in delete_op:
                        _add_dependency(op, delete_op[dependent_id])
                else:
                    for dependent_op in node_ops.get(dependent_id, []):
                        _add_dependency(op, dependent_op)

        return operations

    def _old_dependents(self, graph: ResourceGraph, decisions: Dict[str, _Decision], node_id: str) -> Set[str]:
        """Nodes that depend on node_id now or did at their last apply."""
        dependents = set(graph.dependents_of(node_id)) if node_id in graph else set()
        for other_id, decision in decisions.items():
            if decision.record is not None and node_id in decision.record.depends_on:
                dependents.add(other_id)
        dependents.discard(node_id)
        return dependents

    def _order(
        self,
        ordered: List[ResourceNode],
        operations: Dict[str, Operation],
        records: Dict[str, StateRecord]
    ) -> List[Operation]:
        """Stable topological order of the operation graph."""
        op_graph = nx.DiGraph()
        for op_id, op in operations.items():
            op_graph.add_node(op_id)
            for dep_op_id in op.depends_on:
                op_graph.add_edge(dep_op_id, op_id)

        try:
            cycle_edges = nx.find_cycle(op_graph)
        except nx.NetworkXNoCycle:
            cycle_edges = []
        if cycle_edges:
            raise CycleError([source for source, _ in cycle_edges])

        node_rank = {node.node_id: i for i, node in enumerate(ordered)}
        for node_id in records:
            node_rank.setdefault(node_id, len(node_rank))

        def sort_key(op_id: str):
            op = operations[op_id]
            step = op_id.rsplit(":", 1)[1]
            if step == "replace-delete" and not op.create_before_destroy:
                step = "replace-delete-first"
            return (node_rank[op.node_id], _PHASE_RANK[step])

        return [operations[op_id] for op_id in nx.lexicographical_topological_sort(op_graph, key=sort_key)]


def _add_dependency(op: Operation, dep_op_id: str) -> None:
    if dep_op_id != op.op_id and dep_op_id not in op.depends_on:
        op.depends_on.append(dep_op_id)
