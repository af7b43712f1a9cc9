"""Concrete task models, including drivers for communication busses."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Iterable, Mapping

from ..errors import AmbiguousResolutionError
from .base import Capability, ComponentModel, PortDescriptor

if TYPE_CHECKING:  # pragma: no cover - typing aid only
    from ..engine.context import ResolutionContext
    from ..plan.graph import PlanNode


class TaskModel(ComponentModel):
    """Instantiable component with ports, data sources and provided capabilities.

    Args:
        name: Unique model name.
        inputs: Mapping of input port name to message type.
        outputs: Mapping of output port name to message type.
        data_sources: Mapping of data source name to the capability it
            provides. Dotted names (``"imu.gyro"``) declare child sources.
        provides: Additional capabilities fulfilled by the task itself.
        parent: Task model this one specializes. Ports, data sources,
            provided capabilities and default arguments are inherited.
        arguments: Default constructor arguments.
        abstract: Mark the model as non-instantiable.
    """

    def __init__(
        self,
        name: str,
        *,
        inputs: Mapping[str, str] | Iterable[PortDescriptor] | None = None,
        outputs: Mapping[str, str] | Iterable[PortDescriptor] | None = None,
        data_sources: Mapping[str, Capability] | None = None,
        provides: Iterable[Capability] = (),
        parent: "TaskModel | None" = None,
        arguments: Mapping[str, Any] | None = None,
        abstract: bool = False,
    ) -> None:
        super().__init__(name, inputs=inputs, outputs=outputs)
        self.parent = parent
        self.abstract = bool(abstract)
        self._data_sources = dict(data_sources or {})
        self._provides = tuple(provides)
        self._default_arguments = dict(arguments or {})

    # ------------------------------------------------------------------
    # Model relations
    # ------------------------------------------------------------------

    def specializes(self, other: ComponentModel) -> bool:
        """Whether ``other`` is a strict ancestor of this model."""
        ancestor = self.parent
        while ancestor is not None:
            if ancestor is other:
                return True
            ancestor = ancestor.parent
        return False

    def provided_capabilities(self) -> tuple[Capability, ...]:
        inherited = self.parent.provided_capabilities() if self.parent is not None else ()
        return inherited + self._provides + tuple(model for _, model in self.each_data_source())

    def fulfills(self, capability: ComponentModel) -> bool:
        if capability is self or self.specializes(capability):
            return True
        return any(model.fulfills(capability) for model in self.provided_capabilities())

    # ------------------------------------------------------------------
    # Ports and data sources
    # ------------------------------------------------------------------

    def each_input_port(self) -> tuple[PortDescriptor, ...]:
        inherited = self.parent.each_input_port() if self.parent is not None else ()
        return inherited + self._inputs

    def each_output_port(self) -> tuple[PortDescriptor, ...]:
        inherited = self.parent.each_output_port() if self.parent is not None else ()
        return inherited + self._outputs

    def each_data_source(self) -> tuple[tuple[str, Capability], ...]:
        sources: dict[str, Capability] = {}
        if self.parent is not None:
            sources.update(self.parent.each_data_source())
        sources.update(self._data_sources)
        return tuple(sources.items())

    def data_source_name(self, capability: Capability) -> str:
        """Return the root data source through which ``capability`` is provided.

        Models that fulfill the capability directly, without a matching data
        source, use the capability name.
        """
        matches = [
            name for name, model in self.each_root_data_source() if model.fulfills(capability)
        ]
        if len(matches) > 1:
            raise AmbiguousResolutionError(
                f"{self.name} provides {capability.name} through multiple data sources: "
                + ", ".join(matches),
                candidates=matches,
            )
        if matches:
            return matches[0]
        return capability.name

    def each_child_data_source(self, source_name: str) -> tuple[tuple[str, Capability], ...]:
        """Return ``(child_name, capability)`` for the children of a data source."""
        prefix = f"{source_name}."
        return tuple(
            (name[len(prefix):], model)
            for name, model in self.each_data_source()
            if name.startswith(prefix)
        )

    @property
    def default_arguments(self) -> Mapping[str, Any]:
        inherited = dict(self.parent.default_arguments) if self.parent is not None else {}
        inherited.update(self._default_arguments)
        return inherited

    def instantiate(self, context: "ResolutionContext", arguments: Mapping[str, Any] | None = None) -> "PlanNode":
        args = dict(self.default_arguments)
        args.update(arguments or {})
        args.pop("selection", None)
        return context.plan.add_node(self, args)


class CommunicationBusModel(TaskModel):
    """Driver task multiplexing a message type for the devices attached to it.

    The ports used to talk to a given client are created at runtime, so they
    are only described by the naming rules ``output_name_for`` and
    ``input_name_for``.
    """

    def __init__(
        self,
        name: str,
        *,
        message_type: str,
        output_pattern: str = "{client}",
        input_pattern: str = "w{client}",
        **options: Any,
    ) -> None:
        super().__init__(name, **options)
        self.message_type = str(message_type)
        self._output_pattern = output_pattern
        self._input_pattern = input_pattern

    def output_name_for(self, client: str) -> str:
        """Name of the bus output that carries messages for ``client``."""
        return self._output_pattern.format(client=client)

    def input_name_for(self, client: str) -> str:
        """Name of the bus input that receives messages from ``client``."""
        return self._input_pattern.format(client=client)
