"""Composite task models made of child roles and port connections."""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Iterable, Mapping

from .base import ComponentModel
from .tasks import TaskModel

if TYPE_CHECKING:  # pragma: no cover - typing aid only
    from ..engine.context import ResolutionContext
    from ..plan.graph import PlanNode

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class CompositionConnection:
    """Connection between two child roles of a composition."""

    source_role: str
    output_port: str
    sink_role: str
    input_port: str
    policy: Mapping[str, Any] = field(default_factory=dict, compare=False)


def _split_endpoint(endpoint: str) -> tuple[str, str]:
    role, sep, port = endpoint.partition(".")
    if not sep or not role or not port:
        raise ValueError(f"connection endpoint '{endpoint}' must have the form 'role.port'")
    return role, port


class CompositionModel(TaskModel):
    """Task model whose instances depend on one child per declared role."""

    def __init__(
        self,
        name: str,
        *,
        children: Mapping[str, ComponentModel] | None = None,
        autoconnect: bool = True,
        **options: Any,
    ) -> None:
        super().__init__(name, **options)
        self._children: dict[str, ComponentModel] = dict(children or {})
        self._connections: list[CompositionConnection] = []
        self._autoconnections: tuple[CompositionConnection, ...] = ()
        self.autoconnect = autoconnect

    def add_child(self, role: str, model: ComponentModel) -> None:
        if role in self._children:
            raise ValueError(f"composition {self.name} already has a child named '{role}'")
        self._children[role] = model

    def each_child(self) -> tuple[tuple[str, ComponentModel], ...]:
        return tuple(self._children.items())

    def connect(self, source: str, sink: str, policy: Mapping[str, Any] | None = None) -> CompositionConnection:
        """Declare a ``"role.port"`` to ``"role.port"`` connection."""
        source_role, output_port = _split_endpoint(source)
        sink_role, input_port = _split_endpoint(sink)
        for role in (source_role, sink_role):
            if role not in self._children:
                raise ValueError(f"composition {self.name} has no child named '{role}'")
        if self._children[source_role].find_output_port(output_port) is None:
            raise ValueError(f"{self._children[source_role].name} has no output port '{output_port}'")
        if self._children[sink_role].find_input_port(input_port) is None:
            raise ValueError(f"{self._children[sink_role].name} has no input port '{input_port}'")
        connection = CompositionConnection(
            source_role, output_port, sink_role, input_port, dict(policy or {})
        )
        self._connections.append(connection)
        return connection

    def each_explicit_connection(self) -> tuple[CompositionConnection, ...]:
        return tuple(self._connections)

    def each_connection(self) -> tuple[CompositionConnection, ...]:
        return tuple(self._connections) + self._autoconnections

    def compute_autoconnection(self) -> tuple[CompositionConnection, ...]:
        """Connect child ports whose message type is unique on both sides.

        Ports already used by an explicit connection are left alone. The
        result replaces any previously computed auto-connections.
        """
        if not self.autoconnect:
            self._autoconnections = ()
            return ()

        used_outputs = {(c.source_role, c.output_port) for c in self._connections}
        used_inputs = {(c.sink_role, c.input_port) for c in self._connections}
        outputs: dict[str, list[tuple[str, str]]] = defaultdict(list)
        inputs: dict[str, list[tuple[str, str]]] = defaultdict(list)
        for role, model in self._children.items():
            for port in model.each_output_port():
                if (role, port.name) not in used_outputs:
                    outputs[port.type_name].append((role, port.name))
            for port in model.each_input_port():
                if (role, port.name) not in used_inputs:
                    inputs[port.type_name].append((role, port.name))

        connections: list[CompositionConnection] = []
        for type_name in sorted(outputs):
            sinks = inputs.get(type_name, [])
            if not sinks:
                continue
            sources = outputs[type_name]
            if len(sources) != 1 or len(sinks) != 1:
                LOGGER.debug(
                    "%s: not auto-connecting ports of type %s (outputs=%s, inputs=%s)",
                    self.name,
                    type_name,
                    sources,
                    sinks,
                )
                continue
            (source_role, output_port), (sink_role, input_port) = sources[0], sinks[0]
            if source_role == sink_role:
                continue
            connections.append(CompositionConnection(source_role, output_port, sink_role, input_port))
        self._autoconnections = tuple(connections)
        return self._autoconnections

    def instantiate(self, context: "ResolutionContext", arguments: Mapping[str, Any] | None = None) -> "PlanNode":
        args = dict(self.default_arguments)
        args.update(arguments or {})
        selection = dict(args.pop("selection", None) or {})
        node = context.plan.add_node(self, args)

        child_nodes: dict[str, PlanNode] = {}
        for role, model in self._children.items():
            child = context.instantiate_child(role, model, selection)
            context.plan.depends_on(node, child, role=role)
            child_nodes[role] = child

        for connection in self.each_connection():
            context.plan.connect(
                child_nodes[connection.source_role],
                child_nodes[connection.sink_role],
                {(connection.output_port, connection.input_port): connection.policy},
            )
        return node


def compositions_in(models: Iterable[ComponentModel]) -> list[CompositionModel]:
    return [model for model in models if isinstance(model, CompositionModel)]
