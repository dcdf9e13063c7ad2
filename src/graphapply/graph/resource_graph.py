"""Directed resource graph built from declared resources."""

from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional, Set
import networkx as nx
from ..ingest.models import DesiredState, Lifecycle
from ..ingest.references import find_references
from ..utils.errors import CycleError, GraphConstructionError
from ..utils.logging import get_logger

logger = get_logger("graph.resource_graph")


@dataclass
class ResourceNode:
    """A declared resource plus what is currently known about it."""
    kind: str
    name: str
    desired: Dict[str, Any] = field(default_factory=dict)
    explicit_deps: List[str] = field(default_factory=list)
    lifecycle: Lifecycle = field(default_factory=Lifecycle)
    current: Optional[Dict[str, Any]] = None

    @property
    def node_id(self) -> str:
        return f"{self.kind}.{self.name}"


class ResourceGraph:
    """
    Directed dependency graph: nodes=resources, edges=dependencies.

    An edge A -> B means A depends on B, so B is applied first.
    """

    def __init__(self):
        self.graph = nx.DiGraph()
        self._nodes: Dict[str, ResourceNode] = {}
        self._insertion: Dict[str, int] = {}

    def __contains__(self, node_id: str) -> bool:
        return node_id in self._nodes

    def __len__(self) -> int:
        return len(self._nodes)

    def add_node(
        self,
        kind: str,
        name: str,
        desired_attrs: Optional[Dict[str, Any]] = None,
        explicit_deps: Optional[List[str]] = None,
        lifecycle: Optional[Lifecycle] = None
    ) -> ResourceNode:
        """Add a resource node. Edges to dependencies declared later are added by add_reference_edges."""
        node = ResourceNode(
            kind=kind,
            name=name,
            desired=dict(desired_attrs or {}),
            explicit_deps=list(explicit_deps or []),
            lifecycle=lifecycle or Lifecycle()
        )
        node_id = node.node_id
        if node_id in self._nodes:
            raise GraphConstructionError(f"Resource declared twice: {node_id}")

        self._nodes[node_id] = node
        self._insertion[node_id] = len(self._insertion)
        self.graph.add_node(node_id, node=node)

        for dep_id in node.explicit_deps:
            if dep_id in self._nodes:
                self._add_edge(node_id, dep_id, "explicit")
        return node

    def add_reference_edges(self) -> int:
        """
        Materialize every dependency edge.

        Runs after all nodes exist: scans desired attributes for reference
        tokens and re-checks explicit dependencies, so declaration order
        never matters.

        Returns:
            Number of edges in the graph

        Raises:
            GraphConstructionError: If a dependency names an undeclared resource
        """
        for node_id, node in self._nodes.items():
            for dep_id in node.explicit_deps:
                if dep_id not in self._nodes:
                    raise GraphConstructionError(
                        f"{node_id} depends on undeclared resource {dep_id}"
                    )
                if not self.graph.has_edge(node_id, dep_id):
                    self._add_edge(node_id, dep_id, "explicit")

            for ref in find_references(node.desired):
                if ref.node_id not in self._nodes:
                    raise GraphConstructionError(
                        f"{node_id} references undeclared resource {ref.node_id} (via {ref.token})"
                    )
                if not self.graph.has_edge(node_id, ref.node_id):
                    self._add_edge(node_id, ref.node_id, "reference")

        return self.graph.number_of_edges()

    def _add_edge(self, node_id: str, dep_id: str, reason: str) -> None:
        self.graph.add_edge(node_id, dep_id, reason=reason)
        logger.debug(f"Added {reason} dependency edge: {node_id} -> {dep_id}")

    def check_acyclic(self) -> None:
        """
        Raises:
            CycleError: Naming the nodes of one cycle if the graph has any
        """
        try:
            cycle_edges = nx.find_cycle(self.graph)
        except nx.NetworkXNoCycle:
            return
        raise CycleError([source for source, _ in cycle_edges])

    def topological_order(self) -> Iterator[ResourceNode]:
        """
        Lazily yield nodes, dependencies first.

        Nodes that become ready together keep insertion order, so identical
        input always yields the identical sequence. The cycle check is eager.
        """
        self.check_acyclic()
        dependencies_first = self.graph.reverse(copy=False)
        ordered_ids = nx.lexicographical_topological_sort(dependencies_first, key=self._insertion.__getitem__)
        return (self._nodes[node_id] for node_id in ordered_ids)

    def index(self, node_id: str) -> int:
        """Insertion index of a node."""
        return self._insertion[node_id]

    def dependencies_of(self, node_id: str) -> List[str]:
        """Direct dependencies of a node."""
        return sorted(self.graph.successors(node_id), key=self.index)

    def dependents_of(self, node_id: str) -> List[str]:
        """Nodes that directly depend on a node."""
        return sorted(self.graph.predecessors(node_id), key=self.index)

    def get_downstream_resources(self, node_id: str) -> Set[str]:
        """Get all resources that depend on the given resource, transitively."""
        if node_id not in self.graph:
            return set()
        return set(nx.ancestors(self.graph, node_id))

    def get_upstream_resources(self, node_id: str) -> Set[str]:
        """Get all resources the given resource depends on, transitively."""
        if node_id not in self.graph:
            return set()
        return set(nx.descendants(self.graph, node_id))

    def get_node(self, node_id: str) -> Optional[ResourceNode]:
        """Get resource node by ID."""
        return self._nodes.get(node_id)

    def nodes(self) -> List[ResourceNode]:
        """All nodes in insertion order."""
        return list(self._nodes.values())

    @classmethod
    def from_desired_state(cls, desired: DesiredState) -> "ResourceGraph":
        """Two-pass build: add every node, then materialize edges."""
        graph = cls()
        for spec in desired.resources:
            graph.add_node(spec.kind, spec.name, spec.attributes, spec.depends_on, spec.lifecycle)
        graph.add_reference_edges()
        logger.info(
            f"Built resource graph with {graph.graph.number_of_nodes()} nodes "
            f"and {graph.graph.number_of_edges()} edges"
        )
        return graph
