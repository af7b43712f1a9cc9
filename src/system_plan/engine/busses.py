"""Wiring of device drivers to the communication busses they are attached to."""

from __future__ import annotations

import logging
from typing import Any, Dict, Mapping

from ..errors import (
    AmbiguousResolutionError,
    MissingBusRoleError,
    NoBusConnectionPossibleError,
    UnknownBusError,
)
from ..models.base import DEVICE_DRIVER, PortDescriptor
from ..models.tasks import CommunicationBusModel
from ..plan.graph import Plan, PlanNode

LOGGER = logging.getLogger(__name__)

Connections = Dict[tuple[str, str], Mapping[str, Any]]


def bus_clients(plan: Plan) -> list[PlanNode]:
    """Return the device drivers that declare a communication bus."""
    return plan.find_nodes(lambda node: node.model.fulfills(DEVICE_DRIVER) and bool(node.com_bus))


def link_to_busses(plan: Plan) -> int:
    """Connect every bus client to its bus.

    Returns:
        int: Number of drivers that were linked during this call.
    """
    linked = 0
    for task in bus_clients(plan):
        com_bus = plan.named(task.com_bus)
        if com_bus is None:
            raise UnknownBusError(f"there is no communication bus named {task.com_bus}")
        if not isinstance(com_bus.model, CommunicationBusModel):
            raise UnknownBusError(
                f"{task} is attached to {task.com_bus}, but {com_bus} is not a communication bus"
            )
        if plan.has_dependency(task, com_bus):
            continue
        _link(plan, task, com_bus)
        linked += 1
    return linked


def _link(plan: Plan, task: PlanNode, com_bus: PlanNode) -> None:
    bus_model: CommunicationBusModel = com_bus.model  # type: ignore[assignment]
    message_type = bus_model.message_type
    out_candidates = [p for p in task.model.each_output_port() if p.type_name == message_type]
    in_candidates = [p for p in task.model.each_input_port() if p.type_name == message_type]
    if not out_candidates and not in_candidates:
        raise NoBusConnectionPossibleError(
            f"{task} is supposed to be connected to {com_bus}, but {task.model.name} has no "
            f"ports of type {message_type} that would allow to connect to it"
        )

    plan.depends_on(task, com_bus)

    in_connections: Connections = {}
    out_connections: Connections = {}
    used_ports: set[str] = set()
    for source_name, _ in task.model.each_root_data_source():
        in_ports = [p for p in in_candidates if source_name in p.name]
        out_ports = [p for p in out_candidates if source_name in p.name]
        if len(in_ports) > 1:
            raise AmbiguousResolutionError(
                f"there are multiple options to connect {com_bus} to {source_name} in {task}: "
                + ", ".join(p.name for p in in_ports),
                candidates=[p.name for p in in_ports],
            )
        if len(out_ports) > 1:
            raise AmbiguousResolutionError(
                f"there are multiple options to connect {source_name} in {task} to {com_bus}: "
                + ", ".join(p.name for p in out_ports),
                candidates=[p.name for p in out_ports],
            )
        if in_ports:
            used_ports.add(in_ports[0].name)
            in_connections[(bus_model.output_name_for(source_name), in_ports[0].name)] = {}
        if out_ports:
            used_ports.add(out_ports[0].name)
            out_connections[(out_ports[0].name, bus_model.input_name_for(source_name))] = {}

    in_left = [p for p in in_candidates if p.name not in used_ports]
    out_left = [p for p in out_candidates if p.name not in used_ports]
    generic_in = _generic_port(task, com_bus, in_left, "input")
    if generic_in is not None:
        in_connections[(bus_model.output_name_for(task.bus_name), generic_in.name)] = {}
    generic_out = _generic_port(task, com_bus, out_left, "output")
    if generic_out is not None:
        out_connections[(generic_out.name, bus_model.input_name_for(task.bus_name))] = {}

    if not in_connections and not out_connections:
        raise NoBusConnectionPossibleError(
            f"no ports of {task} allow connecting it to {com_bus}"
        )
    if in_connections:
        plan.connect(com_bus, task, in_connections)
    if out_connections:
        plan.connect(task, com_bus, out_connections)
    LOGGER.debug(
        "Linked %s to %s: in=%s out=%s", task, com_bus, sorted(in_connections), sorted(out_connections)
    )


def _generic_port(
    task: PlanNode,
    com_bus: PlanNode,
    candidates: list[PortDescriptor],
    direction: str,
) -> PortDescriptor | None:
    """Return the single port left after data source matching, if any."""
    if len(candidates) > 1:
        raise AmbiguousResolutionError(
            f"ports {', '.join(p.name for p in candidates)} are not used while connecting "
            f"{task} to {com_bus}",
            candidates=[p.name for p in candidates],
        )
    if not candidates:
        return None
    if not task.bus_name:
        raise MissingBusRoleError(
            f"{task} has one generic {direction} port '{candidates[0].name}' but no bus name"
        )
    return candidates[0]
