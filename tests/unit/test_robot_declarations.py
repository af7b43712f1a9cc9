"""Tests for device and communication bus declarations."""

from __future__ import annotations

import pytest

from system_plan.errors import (
    AmbiguousResolutionError,
    DuplicateDeclarationError,
    IncompatibleCapabilityError,
    NoImplementationFoundError,
    SpecError,
    UnknownBusError,
    UnknownDeviceTypeError,
    UnknownModelError,
)
from system_plan.models import ModelRegistry
from system_plan.robot import Robot

CAN_MESSAGE = "/canbus/Message"


@pytest.fixture
def registry() -> ModelRegistry:
    reg = ModelRegistry()
    reg.define_device_type("can")
    reg.define_com_bus_driver("can_driver", message_type=CAN_MESSAGE, data_sources={"can": "can"})
    reg.define_device_type("motor")
    reg.define_task(
        "motor_driver",
        inputs={"can_in": CAN_MESSAGE},
        outputs={"can_out": CAN_MESSAGE},
        data_sources={"motor": "motor"},
    )
    reg.define_data_source("pose")
    reg.define_device_type("imu")
    reg.define_data_source("gyro")
    reg.define_task("xsens_driver", data_sources={"imu": "imu", "imu.gyro": "gyro"})
    return reg


@pytest.fixture
def robot(registry: ModelRegistry) -> Robot:
    return Robot(registry)


def test_bus_is_also_a_device(robot: Robot) -> None:
    """Declaring a bus registers both the bus and a device of the same name."""
    bus = robot.declare_bus("can", name="can0")
    assert robot.com_busses["can0"] is bus
    assert robot.devices["can0"].device_type == "can"
    assert robot.devices["can0"].com_bus is None


def test_names_default_to_the_device_type(robot: Robot) -> None:
    robot.declare_bus("can")
    robot.declare_device("imu")
    assert list(robot.devices) == ["can", "imu"]


def test_duplicate_names_are_rejected(robot: Robot) -> None:
    """Device names are unique across devices and busses."""
    robot.declare_bus("can", name="can0")
    with pytest.raises(DuplicateDeclarationError):
        robot.declare_device("motor", name="can0")
    with pytest.raises(DuplicateDeclarationError):
        robot.declare_bus("can", name="can0")


def test_through_sets_the_com_bus(robot: Robot) -> None:
    """Devices declared in a through block are attached to that bus."""
    robot.declare_bus("can", name="can0")
    with robot.through("can0") as bus:
        robot.declare_device("motor", name="left", bus_name="left")
        bus.device("motor", name="right")
    robot.declare_device("imu", name="imu0")
    assert robot.devices["left"].com_bus == "can0"
    assert robot.devices["left"].bus_name == "left"
    assert robot.devices["right"].com_bus == "can0"
    assert robot.devices["imu0"].com_bus is None
    assert bus.members == ["left", "right"]


def test_through_rejects_explicit_com_bus(robot: Robot) -> None:
    robot.declare_bus("can", name="can0")
    with robot.through("can0"):
        with pytest.raises(SpecError):
            robot.declare_device("motor", com_bus="can0")


def test_unknown_bus_references_fail_immediately(robot: Robot) -> None:
    """Both through blocks and com_bus options require a declared bus."""
    with pytest.raises(UnknownBusError):
        with robot.through("can1"):
            pass
    with pytest.raises(UnknownBusError):
        robot.declare_device("motor", com_bus="can1")
    assert "motor" not in robot.devices


def test_resolve_device_model_picks_the_single_implementation(robot: Robot) -> None:
    """A unique implementation is selected with its data source and aliases."""
    device = robot.declare_device("imu", name="imu0", rate=100)
    resolved = robot.resolve_device_model(device)
    assert resolved.task_model.name == "xsens_driver"
    assert resolved.data_source == "imu"
    assert resolved.instance_arguments() == {"imu_name": "imu0", "com_bus": None, "rate": 100}
    assert resolved.aliases() == ["imu0.gyro"]


def test_resolve_device_model_unknown_type(robot: Robot) -> None:
    device = robot.declare_device("sonar")
    with pytest.raises(UnknownDeviceTypeError):
        robot.resolve_device_model(device)


def test_resolve_device_model_requires_expected_capability(robot: Robot) -> None:
    """Data sources are not device drivers."""
    device = robot.declare_device("imu", name="pose_source", model="pose")
    with pytest.raises(IncompatibleCapabilityError):
        robot.resolve_device_model(device)


def test_resolve_device_model_without_implementation(registry: ModelRegistry, robot: Robot) -> None:
    registry.define_device_type("lidar")
    device = robot.declare_device("lidar")
    with pytest.raises(NoImplementationFoundError):
        robot.resolve_device_model(device)


def test_resolve_device_model_ambiguity_names_all_candidates(registry: ModelRegistry, robot: Robot) -> None:
    """Two equally concrete implementations require an explicit model."""
    registry.define_task("mti_driver", data_sources={"imu": "imu"})
    device = robot.declare_device("imu", name="imu0")
    with pytest.raises(AmbiguousResolutionError) as excinfo:
        robot.resolve_device_model(device)
    assert excinfo.value.candidates == ("mti_driver", "xsens_driver")
    assert "mti_driver" in str(excinfo.value)
    assert "xsens_driver" in str(excinfo.value)

    explicit = robot.declare_device("imu", name="imu1", model="mti_driver")
    assert robot.resolve_device_model(explicit).task_model.name == "mti_driver"


def test_resolve_device_model_prefers_specializations(registry: ModelRegistry, robot: Robot) -> None:
    """A model that another candidate specializes is discarded."""
    registry.define_task("xsens_mk4_driver", parent="xsens_driver")
    device = robot.declare_device("imu", name="imu0")
    resolved = robot.resolve_device_model(device)
    assert resolved.task_model.name == "xsens_mk4_driver"
    assert resolved.aliases() == ["imu0.gyro"]


def test_resolve_device_model_unknown_explicit_model(robot: Robot) -> None:
    device = robot.declare_device("imu", model="missing_driver")
    with pytest.raises(UnknownModelError):
        robot.resolve_device_model(device)


def test_bus_name_is_forwarded_to_the_driver(robot: Robot) -> None:
    robot.declare_bus("can", name="can0")
    device = robot.declare_device("motor", name="left", com_bus="can0", bus_name="left_wheel")
    arguments = robot.resolve_device_model(device).instance_arguments()
    assert arguments == {"motor_name": "left", "com_bus": "can0", "bus_name": "left_wheel"}


def test_explicit_model_for_unregistered_type_names_the_device_type(registry: ModelRegistry, robot: Robot) -> None:
    """The name argument is keyed by the declared type, not by the driver."""
    registry.define_task("servo_driver", data_sources={"motor": "motor"})
    device = robot.declare_device("servo", name="pan", model="servo_driver")
    resolved = robot.resolve_device_model(device)
    assert resolved.data_source == "servo"
    assert resolved.instance_arguments() == {"servo_name": "pan", "com_bus": None}


def test_ambiguity_is_only_reported_when_resolving(registry: ModelRegistry, robot: Robot) -> None:
    registry.define_task("mti_driver", data_sources={"imu": "imu"})
    device = robot.declare_device("imu", name="imu0")
    assert robot.devices["imu0"] is device
    with pytest.raises(AmbiguousResolutionError):
        robot.resolve_device_model(device)
