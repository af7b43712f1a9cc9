"""Mutable component graph with copy-based transactions.

The plan is an arena of :class:`PlanNode` objects addressed by stable integer
handles. Nodes themselves are immutable, so a :class:`Transaction` only copies
the edge tables and can share node objects with the plan it was opened on.
"""

from __future__ import annotations

import logging
import types
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Callable, Dict, Iterable, Iterator, Mapping, Tuple

if TYPE_CHECKING:  # pragma: no cover - typing aid only
    from ..models.base import ComponentModel

LOGGER = logging.getLogger(__name__)

PortPair = Tuple[str, str]


@dataclass(slots=True, frozen=True)
class PlanNode:
    """A component instance inside a plan.

    Attributes:
        handle: Identity of the node, stable across transactions.
        model: Component model the node instantiates.
        arguments: Read-only constructor arguments bound to the instance.
    """

    handle: int
    model: "ComponentModel" = field(compare=False)
    arguments: Mapping[str, Any] = field(compare=False, default_factory=dict)

    @property
    def abstract(self) -> bool:
        """Whether the node still refers to an abstract model."""
        return self.model.abstract

    @property
    def com_bus(self) -> str | None:
        """Name of the communication bus the node is attached to, if any."""
        return self.arguments.get("com_bus")

    @property
    def bus_name(self) -> str | None:
        """Role name used when wiring the node's generic bus ports."""
        return self.arguments.get("bus_name")

    def __str__(self) -> str:
        return f"{self.model.name}<{self.handle}>"


@dataclass(slots=True, frozen=True)
class DataFlowEdge:
    """Port-level connection between two nodes."""

    source: int
    sink: int
    output_port: str
    input_port: str
    policy: Mapping[str, Any]


class Plan:
    """Graph of component instances, dependency edges and data-flow edges."""

    def __init__(self) -> None:
        self._nodes: Dict[int, PlanNode] = {}
        self._next_handle = 1
        self._permanent: Dict[int, None] = {}
        self._children: Dict[int, Dict[int, frozenset[str]]] = {}
        self._flows: Dict[tuple[int, int], Dict[PortPair, Mapping[str, Any]]] = {}
        self._names: Dict[str, int] = {}

    # ------------------------------------------------------------------
    # Nodes
    # ------------------------------------------------------------------

    def add_node(self, model: "ComponentModel", arguments: Mapping[str, Any] | None = None) -> PlanNode:
        """Create a node for ``model`` and return it."""
        node = PlanNode(
            handle=self._next_handle,
            model=model,
            arguments=types.MappingProxyType(dict(arguments or {})),
        )
        self._next_handle += 1
        self._nodes[node.handle] = node
        self._children[node.handle] = {}
        return node

    def node(self, handle: int) -> PlanNode:
        """Return the node registered under ``handle``."""
        return self._nodes[handle]

    def nodes(self) -> list[PlanNode]:
        """Return every node ordered by handle."""
        return [self._nodes[handle] for handle in sorted(self._nodes)]

    def find_nodes(self, predicate: Callable[[PlanNode], bool]) -> list[PlanNode]:
        """Return the nodes matching ``predicate`` ordered by handle."""
        return [node for node in self.nodes() if predicate(node)]

    def abstract_nodes(self) -> list[PlanNode]:
        """Return the nodes whose model is still abstract."""
        return self.find_nodes(lambda node: node.abstract)

    def __contains__(self, node: object) -> bool:
        handle = node.handle if isinstance(node, PlanNode) else node
        return handle in self._nodes

    def __len__(self) -> int:
        return len(self._nodes)

    def __iter__(self) -> Iterator[PlanNode]:
        return iter(self.nodes())

    def remove_node(self, node: PlanNode | int) -> None:
        """Remove a node along with every edge and name that refers to it."""
        handle = self._handle(node)
        self._nodes.pop(handle)
        self._permanent.pop(handle, None)
        self._children.pop(handle, None)
        for children in self._children.values():
            children.pop(handle, None)
        for key in [key for key in self._flows if handle in key]:
            del self._flows[key]
        for name in [name for name, target in self._names.items() if target == handle]:
            del self._names[name]

    # ------------------------------------------------------------------
    # Roots and names
    # ------------------------------------------------------------------

    def add_permanent(self, node: PlanNode | int) -> None:
        """Mark a node as a root that must survive garbage collection."""
        self._permanent.setdefault(self._handle(node), None)

    def is_permanent(self, node: PlanNode | int) -> bool:
        return self._handle(node) in self._permanent

    def permanent_nodes(self) -> list[PlanNode]:
        """Return the roots in the order they were added."""
        return [self._nodes[handle] for handle in self._permanent]

    def set_name(self, name: str, node: PlanNode | int) -> None:
        """Register ``name`` as an alias of a node."""
        self._names[name] = self._handle(node)

    def named(self, name: str) -> PlanNode | None:
        """Return the node registered under ``name``, if any."""
        handle = self._names.get(name)
        if handle is None:
            return None
        return self._nodes[handle]

    def names(self) -> Mapping[str, int]:
        return types.MappingProxyType(self._names)

    # ------------------------------------------------------------------
    # Dependencies
    # ------------------------------------------------------------------

    def depends_on(self, parent: PlanNode | int, child: PlanNode | int, role: str | None = None) -> None:
        """Add a structural dependency from ``parent`` to ``child``."""
        parent_handle = self._handle(parent)
        child_handle = self._handle(child)
        if parent_handle == child_handle:
            raise ValueError(f"{self._nodes[parent_handle]} cannot depend on itself")
        roles = self._children[parent_handle].get(child_handle, frozenset())
        if role is not None:
            roles = roles | {role}
        self._children[parent_handle][child_handle] = roles

    def has_dependency(self, parent: PlanNode | int, child: PlanNode | int) -> bool:
        return self._handle(child) in self._children.get(self._handle(parent), {})

    def children(self, node: PlanNode | int) -> frozenset[int]:
        """Return the handles of the direct children of a node."""
        return frozenset(self._children.get(self._handle(node), {}))

    def parents(self, node: PlanNode | int) -> frozenset[int]:
        handle = self._handle(node)
        return frozenset(
            parent for parent, children in self._children.items() if handle in children
        )

    def child_roles(self, parent: PlanNode | int, child: PlanNode | int) -> frozenset[str]:
        return self._children[self._handle(parent)].get(self._handle(child), frozenset())

    def dependency_edges(self) -> list[tuple[int, int, frozenset[str]]]:
        """Return ``(parent, child, roles)`` triples in handle order."""
        return [
            (parent, child, self._children[parent][child])
            for parent in sorted(self._children)
            for child in sorted(self._children[parent])
        ]

    # ------------------------------------------------------------------
    # Data flow
    # ------------------------------------------------------------------

    def connect(
        self,
        source: PlanNode | int,
        sink: PlanNode | int,
        mappings: Mapping[PortPair, Mapping[str, Any]],
    ) -> None:
        """Add port connections from ``source`` outputs to ``sink`` inputs."""
        key = (self._handle(source), self._handle(sink))
        ports = self._flows.setdefault(key, {})
        for port_pair, policy in mappings.items():
            ports[port_pair] = types.MappingProxyType(dict(policy or {}))

    def data_flow_inputs(self, node: PlanNode | int) -> frozenset[int]:
        """Return the handles of the nodes feeding data into ``node``."""
        handle = self._handle(node)
        return frozenset(source for source, sink in self._flows if sink == handle)

    def data_flow_outputs(self, node: PlanNode | int) -> frozenset[int]:
        handle = self._handle(node)
        return frozenset(sink for source, sink in self._flows if source == handle)

    def connections(self, source: PlanNode | int, sink: PlanNode | int) -> Mapping[PortPair, Mapping[str, Any]]:
        key = (self._handle(source), self._handle(sink))
        return types.MappingProxyType(dict(self._flows.get(key, {})))

    def data_flow_edges(self) -> list[DataFlowEdge]:
        """Return every port-level connection in a stable order."""
        edges: list[DataFlowEdge] = []
        for source, sink in sorted(self._flows):
            for (output_port, input_port), policy in sorted(self._flows[(source, sink)].items()):
                edges.append(DataFlowEdge(source, sink, output_port, input_port, policy))
        return edges

    # ------------------------------------------------------------------
    # Replacement
    # ------------------------------------------------------------------

    def replace_node(self, target: PlanNode | int, replacement: PlanNode | int) -> None:
        """Move every relation of ``target`` onto ``replacement`` and drop ``target``."""
        old = self._handle(target)
        new = self._handle(replacement)
        if old == new:
            return

        for parent in sorted(self.parents(old)):
            roles = self._children[parent].pop(old)
            if parent == new:
                continue
            merged = self._children[parent].get(new, frozenset()) | roles
            self._children[parent][new] = merged
        for child, roles in self._children.pop(old, {}).items():
            if child == new:
                continue
            merged = self._children[new].get(child, frozenset()) | roles
            self._children[new][child] = merged
        self._children[old] = {}

        for source, sink in sorted(key for key in self._flows if old in key):
            ports = self._flows.pop((source, sink))
            new_key = (new if source == old else source, new if sink == old else sink)
            if new_key[0] == new_key[1]:
                continue
            self._flows.setdefault(new_key, {}).update(ports)

        if old in self._permanent:
            self._permanent.setdefault(new, None)
        for name, handle in list(self._names.items()):
            if handle == old:
                self._names[name] = new
        self.remove_node(old)

    # ------------------------------------------------------------------
    # Transactions
    # ------------------------------------------------------------------

    def in_transaction(self) -> "Transaction":
        """Open a transaction on a copy of this plan."""
        return Transaction(self)

    def _assign(self, other: "Plan") -> None:
        """Copy the tables of ``other``, sharing its immutable node objects."""
        self._nodes = dict(other._nodes)
        self._next_handle = other._next_handle
        self._permanent = dict(other._permanent)
        self._children = {parent: dict(children) for parent, children in other._children.items()}
        self._flows = {key: dict(ports) for key, ports in other._flows.items()}
        self._names = dict(other._names)

    def structure(self) -> tuple:
        """Return a handle-independent description of the graph.

        Handles are renumbered by rank, so two plans built the same way compare
        equal even if one of them was built after earlier runs.
        """
        rank = {handle: index for index, handle in enumerate(sorted(self._nodes))}
        nodes = tuple(
            (rank[node.handle], node.model.name, tuple(sorted((k, repr(v)) for k, v in node.arguments.items())))
            for node in self.nodes()
        )
        roots = tuple(rank[handle] for handle in self._permanent)
        dependencies = tuple(
            (rank[parent], rank[child], tuple(sorted(roles)))
            for parent, child, roles in self.dependency_edges()
        )
        flows = tuple(
            (rank[edge.source], rank[edge.sink], edge.output_port, edge.input_port)
            for edge in self.data_flow_edges()
        )
        names = tuple(sorted((name, rank[handle]) for name, handle in self._names.items()))
        return nodes, roots, dependencies, flows, names

    def _handle(self, node: PlanNode | int) -> int:
        handle = node.handle if isinstance(node, PlanNode) else int(node)
        if handle not in self._nodes:
            raise KeyError(f"node {handle} is not part of this plan")
        return handle


class Transaction(Plan):
    """Working copy of a plan committed back on success.

    Used as a context manager, the transaction commits when the block exits
    cleanly and is discarded when it raises.
    """

    def __init__(self, plan: Plan) -> None:
        super().__init__()
        self._assign(plan)
        self._plan = plan
        self._finished = False

    @property
    def plan(self) -> Plan:
        """The plan this transaction will be committed into."""
        return self._plan

    @property
    def finished(self) -> bool:
        return self._finished

    def commit_transaction(self) -> None:
        """Swap the transaction's tables into the underlying plan."""
        self._check_open()
        self._plan._assign(self)
        self._finished = True
        LOGGER.debug("Committed transaction with %d nodes", len(self))

    def discard_transaction(self) -> None:
        """Abandon every change made in the transaction."""
        self._check_open()
        self._finished = True
        LOGGER.debug("Discarded transaction")

    def _check_open(self) -> None:
        if self._finished:
            raise RuntimeError("transaction already committed or discarded")

    def __enter__(self) -> "Transaction":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        if self._finished:
            return
        if exc_type is None:
            self.commit_transaction()
        else:
            self.discard_transaction()


def describe_edges(plan: Plan, edges: Iterable[DataFlowEdge]) -> list[str]:
    """Render data-flow edges as ``source.port => sink.port`` strings."""
    return [
        f"{plan.node(edge.source)}.{edge.output_port} => {plan.node(edge.sink)}.{edge.input_port}"
        for edge in edges
    ]
