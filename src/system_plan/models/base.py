"""Component model abstractions shared by capabilities, tasks and compositions."""

from __future__ import annotations

import abc
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Iterable, Mapping

if TYPE_CHECKING:  # pragma: no cover - typing aid only
    from ..engine.context import ResolutionContext
    from ..plan.graph import Plan, PlanNode


@dataclass(slots=True, frozen=True)
class PortDescriptor:
    """Name and message type of a component port."""

    name: str
    type_name: str


def _ports(ports: Mapping[str, str] | Iterable[PortDescriptor] | None) -> tuple[PortDescriptor, ...]:
    if ports is None:
        return ()
    if isinstance(ports, Mapping):
        return tuple(PortDescriptor(str(name), str(type_name)) for name, type_name in ports.items())
    return tuple(ports)


class ComponentModel(abc.ABC):
    """Description of a component type the resolver can reason about.

    Every variant answers the same small set of questions: which capabilities
    it fulfills, whether two of its instances can be merged, how to merge
    them and how to create an instance in a plan.
    """

    abstract: bool = False

    def __init__(
        self,
        name: str,
        *,
        inputs: Mapping[str, str] | Iterable[PortDescriptor] | None = None,
        outputs: Mapping[str, str] | Iterable[PortDescriptor] | None = None,
    ) -> None:
        if not name:
            raise ValueError("component models must have a name")
        self.name = str(name)
        self._inputs = _ports(inputs)
        self._outputs = _ports(outputs)

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} {self.name}>"

    def __str__(self) -> str:
        return self.name

    # ------------------------------------------------------------------
    # Interface
    # ------------------------------------------------------------------

    @abc.abstractmethod
    def fulfills(self, capability: "ComponentModel") -> bool:
        """Return whether instances of this model can stand for ``capability``."""

    def can_merge(self, task: "PlanNode", target: "PlanNode") -> bool:
        """Whether ``task`` (an instance of this model) can replace ``target``.

        The default requires ``task`` to fulfill the target's model and to set
        every argument of ``target`` to the same value, so that no
        configuration is lost when ``target`` is dropped.
        """
        if not self.fulfills(target.model):
            return False
        for key, value in target.arguments.items():
            if key not in task.arguments or task.arguments[key] != value:
                return False
        return True

    def merge(self, plan: "Plan", task: "PlanNode", target: "PlanNode") -> None:
        """Replace ``target`` by ``task`` in ``plan``."""
        plan.replace_node(target, task)

    def instantiate(self, context: "ResolutionContext", arguments: Mapping[str, Any] | None = None) -> "PlanNode":
        """Add an instance of this model to the context's working plan."""
        args = dict(arguments or {})
        args.pop("selection", None)
        return context.plan.add_node(self, args)

    # ------------------------------------------------------------------
    # Ports and data sources
    # ------------------------------------------------------------------

    def each_input_port(self) -> tuple[PortDescriptor, ...]:
        return self._inputs

    def each_output_port(self) -> tuple[PortDescriptor, ...]:
        return self._outputs

    def find_input_port(self, name: str) -> PortDescriptor | None:
        return next((port for port in self.each_input_port() if port.name == name), None)

    def find_output_port(self, name: str) -> PortDescriptor | None:
        return next((port for port in self.each_output_port() if port.name == name), None)

    def each_data_source(self) -> tuple[tuple[str, "Capability"], ...]:
        """Return ``(name, capability)`` pairs for every declared data source."""
        return ()

    def each_root_data_source(self) -> tuple[tuple[str, "Capability"], ...]:
        """Return the data sources that are not children of another source."""
        return tuple((name, model) for name, model in self.each_data_source() if "." not in name)


class Capability(ComponentModel):
    """Abstract model describing something a component can provide.

    Capabilities form a hierarchy through ``parents``; device types are the
    capabilities that fulfill :data:`DEVICE_DRIVER`.
    """

    abstract = True

    def __init__(
        self,
        name: str,
        *,
        parents: Iterable["Capability"] = (),
        inputs: Mapping[str, str] | Iterable[PortDescriptor] | None = None,
        outputs: Mapping[str, str] | Iterable[PortDescriptor] | None = None,
    ) -> None:
        super().__init__(name, inputs=inputs, outputs=outputs)
        self.parents: tuple[Capability, ...] = tuple(parents)

    def fulfills(self, capability: ComponentModel) -> bool:
        if capability is self:
            return True
        return any(parent.fulfills(capability) for parent in self.parents)

    @property
    def is_device(self) -> bool:
        return self is not DEVICE_DRIVER and self.fulfills(DEVICE_DRIVER)


DEVICE_DRIVER = Capability("DeviceDriver")
