"""State shared by the engine passes during one resolution run."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Mapping, Sequence

from ..errors import IncompatibleCapabilityError, UnknownModelError
from ..models.base import Capability, ComponentModel
from ..models.registry import ModelRegistry
from ..plan.graph import Plan, PlanNode
from ..robot.declarations import Robot
from .requests import InstanciatedComponent

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class ResolutionContext:
    """Registry, declarations and working plan of a single ``resolve()`` call."""

    registry: ModelRegistry
    robot: Robot
    plan: Plan
    instances: Sequence[InstanciatedComponent] = ()

    def subsystem(self, name: str) -> PlanNode | None:
        """Return the node built so far under ``name``."""
        return self.plan.named(name)

    def register(self, name: str, node: PlanNode) -> None:
        self.plan.set_name(name, node)

    def apply_selection(self, seed: Any) -> ComponentModel | PlanNode | None:
        """Turn a selection entry into a model or an already built node.

        Names are looked up, in order, as a concrete task model, a subsystem
        or device built in this run, any registered model, and finally a
        capability mapped to its single concrete implementation. Capabilities
        without a unique implementation are returned as-is.
        """
        if isinstance(seed, (ComponentModel, PlanNode)):
            return seed

        name = str(seed)
        selected: ComponentModel | PlanNode | None = self.registry.task_model(name) or self.subsystem(name)
        if selected is not None:
            return selected

        model = self.registry.find(name)
        if model is None:
            return None
        if not isinstance(model, Capability):
            return model

        implementation = self.registry.implementation_for(model)
        if implementation is None:
            LOGGER.debug("No unique implementation for %s, keeping it abstract", name)
            return model
        return implementation

    def instantiate_child(
        self,
        role: str,
        model: ComponentModel,
        selection: Mapping[str, Any],
    ) -> PlanNode:
        """Create, or select, the node filling ``role`` in a composition."""
        seed = selection.get(role, selection.get(model.name))
        if seed is None:
            return model.instantiate(self, {"selection": selection})

        selected = self.apply_selection(seed)
        if selected is None:
            raise UnknownModelError(f"cannot find '{seed}' selected for child '{role}'")
        selected_model = selected.model if isinstance(selected, PlanNode) else selected
        if not selected_model.fulfills(model):
            raise IncompatibleCapabilityError(
                f"'{seed}' selected for child '{role}' does not fulfill {model.name}"
            )
        if isinstance(selected, PlanNode):
            return selected
        return selected.instantiate(self, {"selection": selection})
