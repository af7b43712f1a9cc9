"""Tests for wiring device drivers to their communication busses."""

from __future__ import annotations

from typing import Any

import pytest

from system_plan.engine.busses import bus_clients, link_to_busses
from system_plan.errors import (
    AmbiguousResolutionError,
    MissingBusRoleError,
    NoBusConnectionPossibleError,
    UnknownBusError,
)
from system_plan.models import ModelRegistry
from system_plan.plan import Plan

CAN_MESSAGE = "/canbus/Message"


@pytest.fixture
def registry() -> ModelRegistry:
    reg = ModelRegistry()
    reg.define_device_type("can")
    reg.define_device_type("motor")
    reg.define_com_bus_driver("can_driver", message_type=CAN_MESSAGE, data_sources={"can": "can"})
    return reg


def _plan_with_bus(registry: ModelRegistry) -> Plan:
    plan = Plan()
    bus = plan.add_node(registry.get("can_driver"), {"can_name": "can0", "com_bus": None})
    plan.set_name("can0", bus)
    return plan


def _add_client(plan: Plan, model: Any, name: str, **arguments: Any):
    node = plan.add_node(model, {"motor_name": name, "com_bus": "can0", **arguments})
    plan.set_name(name, node)
    return node


def test_generic_ports_use_the_bus_name(registry: ModelRegistry) -> None:
    """Ports not matching a data source are wired through the bus name."""
    driver = registry.define_task(
        "motor_driver",
        inputs={"can_in": CAN_MESSAGE},
        outputs={"can_out": CAN_MESSAGE, "status": "/base/Status"},
        data_sources={"motor": "motor"},
    )
    plan = _plan_with_bus(registry)
    bus = plan.named("can0")
    task = _add_client(plan, driver, "left", bus_name="left")

    assert bus_clients(plan) == [task]
    assert link_to_busses(plan) == 1
    assert plan.has_dependency(task, bus)
    assert dict(plan.connections(bus, task)) == {("left", "can_in"): {}}
    assert dict(plan.connections(task, bus)) == {("can_out", "wleft"): {}}


def test_ports_matching_data_sources(registry: ModelRegistry) -> None:
    """Each root data source gets the ports whose name contains it."""
    driver = registry.define_task(
        "dual_driver",
        inputs={"left_in": CAN_MESSAGE, "right_in": CAN_MESSAGE},
        outputs={"left_out": CAN_MESSAGE, "right_out": CAN_MESSAGE},
        data_sources={"left": "motor", "right": "motor"},
    )
    plan = _plan_with_bus(registry)
    bus = plan.named("can0")
    task = _add_client(plan, driver, "wheels")

    link_to_busses(plan)
    assert dict(plan.connections(bus, task)) == {("left", "left_in"): {}, ("right", "right_in"): {}}
    assert dict(plan.connections(task, bus)) == {("left_out", "wleft"): {}, ("right_out", "wright"): {}}


def test_already_linked_drivers_are_skipped(registry: ModelRegistry) -> None:
    driver = registry.define_task(
        "motor_driver",
        inputs={"can_in": CAN_MESSAGE},
        data_sources={"motor": "motor"},
    )
    plan = _plan_with_bus(registry)
    _add_client(plan, driver, "left", bus_name="left")
    assert link_to_busses(plan) == 1
    edges = plan.data_flow_edges()
    assert link_to_busses(plan) == 0
    assert plan.data_flow_edges() == edges


def test_several_ports_for_one_data_source_are_ambiguous(registry: ModelRegistry) -> None:
    driver = registry.define_task(
        "motor_driver",
        inputs={"motor_cmd": CAN_MESSAGE, "motor_cfg": CAN_MESSAGE},
        data_sources={"motor": "motor"},
    )
    plan = _plan_with_bus(registry)
    _add_client(plan, driver, "left", bus_name="left")
    with pytest.raises(AmbiguousResolutionError) as excinfo:
        link_to_busses(plan)
    assert excinfo.value.candidates == ("motor_cmd", "motor_cfg")


def test_several_generic_ports_are_ambiguous(registry: ModelRegistry) -> None:
    driver = registry.define_task(
        "motor_driver",
        outputs={"can_a": CAN_MESSAGE, "can_b": CAN_MESSAGE},
        data_sources={"motor": "motor"},
    )
    plan = _plan_with_bus(registry)
    _add_client(plan, driver, "left", bus_name="left")
    with pytest.raises(AmbiguousResolutionError):
        link_to_busses(plan)


def test_generic_port_requires_a_bus_name(registry: ModelRegistry) -> None:
    driver = registry.define_task(
        "motor_driver",
        inputs={"can_in": CAN_MESSAGE},
        data_sources={"motor": "motor"},
    )
    plan = _plan_with_bus(registry)
    _add_client(plan, driver, "left")
    with pytest.raises(MissingBusRoleError):
        link_to_busses(plan)


def test_driver_without_bus_ports(registry: ModelRegistry) -> None:
    driver = registry.define_task(
        "motor_driver",
        inputs={"command": "/base/Command"},
        data_sources={"motor": "motor"},
    )
    plan = _plan_with_bus(registry)
    _add_client(plan, driver, "left", bus_name="left")
    with pytest.raises(NoBusConnectionPossibleError):
        link_to_busses(plan)


def test_unknown_or_invalid_bus(registry: ModelRegistry) -> None:
    """The bus must exist in the plan and be driven by a bus model."""
    driver = registry.define_task(
        "motor_driver",
        inputs={"can_in": CAN_MESSAGE},
        data_sources={"motor": "motor"},
    )
    plan = Plan()
    plan.add_node(driver, {"motor_name": "left", "com_bus": "nope"})
    with pytest.raises(UnknownBusError):
        link_to_busses(plan)

    plan = Plan()
    other = plan.add_node(driver, {"motor_name": "right", "com_bus": None})
    plan.set_name("can0", other)
    _add_client(plan, driver, "left", bus_name="left")
    with pytest.raises(UnknownBusError):
        link_to_busses(plan)
