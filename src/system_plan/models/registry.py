"""Registry mapping names to component models."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Iterable, Iterator, Mapping

from .base import DEVICE_DRIVER, Capability, ComponentModel, PortDescriptor
from .compositions import CompositionModel, compositions_in
from .tasks import CommunicationBusModel, TaskModel

if TYPE_CHECKING:  # pragma: no cover - typing aid only
    from ..engine.context import ResolutionContext
    from ..plan.graph import PlanNode


class ModelRegistry:
    """Name-indexed collection of capabilities and task models.

    The registry answers the model-level questions asked during resolution:
    which concrete models implement a capability, which device types exist,
    and what ports and data sources a model exposes.
    """

    def __init__(self) -> None:
        self._models: dict[str, ComponentModel] = {}
        self.register(DEVICE_DRIVER)

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def register(self, model: ComponentModel) -> ComponentModel:
        """Add ``model`` to the registry under its name."""
        existing = self._models.get(model.name)
        if existing is not None and existing is not model:
            raise ValueError(f"a model named '{model.name}' is already registered")
        self._models[model.name] = model
        return model

    def define_data_source(self, name: str, *, parents: Iterable[str | Capability] = (), **ports: Any) -> Capability:
        """Register an abstract data source capability."""
        return self.register(Capability(name, parents=self._capabilities(parents), **ports))  # type: ignore[return-value]

    def define_device_type(self, name: str, *, parents: Iterable[str | Capability] = (), **ports: Any) -> Capability:
        """Register a device type, i.e. a capability fulfilling ``DeviceDriver``."""
        resolved = self._capabilities(parents)
        if not any(parent.fulfills(DEVICE_DRIVER) for parent in resolved):
            resolved = (DEVICE_DRIVER,) + resolved
        return self.register(Capability(name, parents=resolved, **ports))  # type: ignore[return-value]

    def define_task(self, name: str, **options: Any) -> TaskModel:
        """Register a concrete task model."""
        return self.register(TaskModel(name, **self._task_options(options)))  # type: ignore[return-value]

    def define_com_bus_driver(self, name: str, *, message_type: str, **options: Any) -> CommunicationBusModel:
        """Register the driver task of a communication bus."""
        model = CommunicationBusModel(name, message_type=message_type, **self._task_options(options))
        return self.register(model)  # type: ignore[return-value]

    def define_composition(
        self,
        name: str,
        *,
        children: Mapping[str, str | ComponentModel] | None = None,
        **options: Any,
    ) -> CompositionModel:
        """Register a composition whose children are given by model or name."""
        resolved = {role: self._model(child) for role, child in (children or {}).items()}
        model = CompositionModel(name, children=resolved, **self._task_options(options))
        return self.register(model)  # type: ignore[return-value]

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    def __contains__(self, name: object) -> bool:
        return name in self._models

    def __iter__(self) -> Iterator[ComponentModel]:
        return iter(self._models.values())

    def find(self, name: str) -> ComponentModel | None:
        return self._models.get(name)

    def get(self, name: str) -> ComponentModel:
        """Return the model named ``name`` or raise :class:`KeyError`."""
        try:
            return self._models[name]
        except KeyError:
            raise KeyError(f"no model named '{name}' is registered") from None

    def task_model(self, name: str) -> TaskModel | None:
        """Return the concrete task model named ``name``, if any."""
        model = self._models.get(name)
        if isinstance(model, TaskModel) and not model.abstract:
            return model
        return None

    def capability(self, name: str) -> Capability | None:
        model = self._models.get(name)
        return model if isinstance(model, Capability) else None

    def device_type(self, name: str) -> Capability | None:
        """Return the capability registered for the device type ``name``."""
        model = self.capability(name)
        if model is not None and model.is_device:
            return model
        return None

    def task_models(self) -> list[TaskModel]:
        """Return the concrete task models sorted by name."""
        return sorted(
            (m for m in self._models.values() if isinstance(m, TaskModel) and not m.abstract),
            key=lambda model: model.name,
        )

    def compositions(self) -> list[CompositionModel]:
        return sorted(compositions_in(self._models.values()), key=lambda model: model.name)

    # ------------------------------------------------------------------
    # Model queries
    # ------------------------------------------------------------------

    @staticmethod
    def fulfills(model: ComponentModel, capability: ComponentModel) -> bool:
        return model.fulfills(capability)

    def models_fulfilling(self, capability: ComponentModel) -> list[TaskModel]:
        """Return every concrete task model that fulfills ``capability``."""
        return [model for model in self.task_models() if model.fulfills(capability)]

    def implementation_for(self, capability: ComponentModel) -> TaskModel | None:
        """Return the single concrete implementation of ``capability``, if unique."""
        candidates = self.models_fulfilling(capability)
        if len(candidates) == 1:
            return candidates[0]
        return None

    @staticmethod
    def each_output_port(model: ComponentModel) -> tuple[PortDescriptor, ...]:
        return model.each_output_port()

    @staticmethod
    def each_input_port(model: ComponentModel) -> tuple[PortDescriptor, ...]:
        return model.each_input_port()

    @staticmethod
    def each_root_data_source(model: ComponentModel) -> tuple[tuple[str, Capability], ...]:
        return model.each_root_data_source()

    @staticmethod
    def instantiate(
        model: ComponentModel,
        context: "ResolutionContext",
        arguments: Mapping[str, Any] | None = None,
    ) -> "PlanNode":
        return model.instantiate(context, arguments)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _model(self, model: str | ComponentModel) -> ComponentModel:
        if isinstance(model, ComponentModel):
            return model
        return self.get(model)

    def _capabilities(self, capabilities: Iterable[str | Capability]) -> tuple[Capability, ...]:
        resolved: list[Capability] = []
        for entry in capabilities:
            model = self._model(entry)
            if not isinstance(model, Capability):
                raise ValueError(f"'{model.name}' is not a capability")
            resolved.append(model)
        return tuple(resolved)

    def _task_options(self, options: Mapping[str, Any]) -> dict[str, Any]:
        resolved = dict(options)
        if resolved.get("data_sources"):
            resolved["data_sources"] = {
                source: self._capabilities([capability])[0]
                for source, capability in resolved["data_sources"].items()
            }
        if resolved.get("provides"):
            resolved["provides"] = self._capabilities(resolved["provides"])
        parent = resolved.get("parent")
        if parent is not None:
            parent_model = self._model(parent)
            if not isinstance(parent_model, TaskModel):
                raise ValueError(f"'{parent_model.name}' is not a task model")
            resolved["parent"] = parent_model
        return resolved
