"""Expansion of devices and explicit requests into plan nodes."""

from __future__ import annotations

import logging

from ..errors import UnknownModelError, UnresolvedAbstractNodeError
from ..plan.export import format_plan
from ..plan.graph import Plan, PlanNode
from .context import ResolutionContext
from .requests import InstanciatedComponent

LOGGER = logging.getLogger(__name__)


def instantiate(context: ResolutionContext) -> list[PlanNode]:
    """Populate the working plan with one root per device and request.

    Returns:
        list[PlanNode]: The roots, devices first, in declaration order.
    """
    for composition in context.registry.compositions():
        composition.compute_autoconnection()

    roots: list[PlanNode] = []
    for name, device in context.robot.devices.items():
        node = context.subsystem(name)
        if node is None:
            resolved = context.robot.resolve_device_model(device)
            node = resolved.task_model.instantiate(context, resolved.instance_arguments())
            context.register(name, node)
            for alias in resolved.aliases():
                context.register(alias, node)
        context.plan.add_permanent(node)
        roots.append(node)

    for instance in context.instances:
        node = _instantiate_request(context, instance)
        if instance.name:
            context.register(instance.name, node)
        context.plan.add_permanent(node)
        roots.append(node)

    if LOGGER.isEnabledFor(logging.DEBUG):
        LOGGER.debug("%s", format_plan(context.plan))
    return roots


def _instantiate_request(context: ResolutionContext, instance: InstanciatedComponent) -> PlanNode:
    selected = context.apply_selection(instance.model)
    if selected is None:
        raise UnknownModelError(f"cannot find a model or subsystem named '{instance.model}'")
    if isinstance(selected, PlanNode):
        return selected
    return selected.instantiate(context, instance.instance_arguments())


def validate_result(plan: Plan) -> None:
    """Fail if abstract nodes are left in ``plan``."""
    still_abstract = plan.abstract_nodes()
    if still_abstract:
        raise UnresolvedAbstractNodeError(
            "there are ambiguities left in the plan: "
            + ", ".join(str(node) for node in still_abstract),
            nodes=still_abstract,
        )
