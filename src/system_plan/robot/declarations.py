"""Per-robot store of declared devices and communication busses."""

from __future__ import annotations

import contextlib
import logging
from dataclasses import dataclass, field
from typing import Any, Iterator, Mapping

from ..errors import (
    AmbiguousResolutionError,
    DuplicateDeclarationError,
    IncompatibleCapabilityError,
    NoImplementationFoundError,
    SpecError,
    UnknownBusError,
    UnknownDeviceTypeError,
    UnknownModelError,
)
from ..models.base import DEVICE_DRIVER, Capability, ComponentModel
from ..models.registry import ModelRegistry
from ..models.tasks import TaskModel

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class Device:
    """A named request for a component implementing a device type.

    Attributes:
        name: Unique name of the device on the robot.
        device_type: Name of the requested device type.
        model: Explicit model overriding the registry lookup.
        expected_model: Capability the device model must fulfill.
        com_bus: Name of the communication bus the device is attached to.
        bus_name: Role name used for the driver's generic bus ports.
        arguments: Additional constructor arguments.
    """

    name: str
    device_type: str
    model: ComponentModel | str | None = None
    expected_model: ComponentModel = DEVICE_DRIVER
    com_bus: str | None = None
    bus_name: str | None = None
    arguments: dict[str, Any] = field(default_factory=dict)


@dataclass(slots=True)
class ResolvedDevice:
    """Concrete task model selected for a device, with its data source."""

    device: Device
    task_model: TaskModel
    data_source: str

    def instance_arguments(self) -> dict[str, Any]:
        """Arguments used to instantiate the device driver."""
        arguments: dict[str, Any] = {
            f"{self.data_source}_name": self.device.name,
            "com_bus": self.device.com_bus,
        }
        if self.device.bus_name is not None:
            arguments["bus_name"] = self.device.bus_name
        arguments.update(self.device.arguments)
        return arguments

    def aliases(self) -> list[str]:
        """Names under which the device node is registered besides its own."""
        return [
            f"{self.device.name}.{child}"
            for child, _ in self.task_model.each_child_data_source(self.data_source)
        ]


class CommunicationBus:
    """A device that multiplexes a message type for other devices."""

    def __init__(self, robot: "Robot", name: str, device_type: str) -> None:
        self.robot = robot
        self.name = name
        self.device_type = device_type
        self.members: list[str] = []

    def device(self, device_type: str, **options: Any) -> Device:
        """Declare a device attached to this bus."""
        if options.get("com_bus") is not None:
            raise SpecError("cannot use the 'com_bus' option in a through block")
        options["com_bus"] = self.name
        return self.robot._declare(device_type, **options)

    def __repr__(self) -> str:
        return f"<CommunicationBus {self.name} ({self.device_type})>"


class Robot:
    """Registry of the devices and busses available on a robot.

    Declarations are recorded as they are made; only name clashes and unknown
    bus references are reported immediately. Model selection happens in
    :meth:`resolve_device_model`, during resolution.
    """

    def __init__(self, registry: ModelRegistry) -> None:
        self.registry = registry
        self._devices: dict[str, Device] = {}
        self._com_busses: dict[str, CommunicationBus] = {}
        self._through: list[CommunicationBus] = []

    @property
    def devices(self) -> Mapping[str, Device]:
        """Declared devices, in declaration order."""
        return dict(self._devices)

    @property
    def com_busses(self) -> Mapping[str, CommunicationBus]:
        return dict(self._com_busses)

    # ------------------------------------------------------------------
    # Declarations
    # ------------------------------------------------------------------

    def declare_bus(self, device_type: str, name: str | None = None, **options: Any) -> CommunicationBus:
        """Declare a communication bus, which is also declared as a device."""
        bus_name = str(name or device_type)
        if bus_name in self._devices:
            raise DuplicateDeclarationError(f"device {bus_name} is already defined")
        bus = CommunicationBus(self, bus_name, str(device_type))
        self._declare(device_type, name=bus_name, **options)
        self._com_busses[bus_name] = bus
        return bus

    def declare_device(self, device_type: str, **options: Any) -> Device:
        """Declare a device, attached to the active ``through`` bus if any.

        Only name clashes and unknown busses fail here. Selecting the driver
        model, including :class:`AmbiguousResolutionError` when several
        models qualify, happens in ``resolve()`` so that it aborts the plan
        transaction.
        """
        if self._through:
            return self._through[-1].device(device_type, **options)
        return self._declare(device_type, **options)

    @contextlib.contextmanager
    def through(self, bus_name: str) -> Iterator[CommunicationBus]:
        """Attach every device declared in the block to ``bus_name``."""
        bus = self._com_busses.get(bus_name)
        if bus is None:
            raise UnknownBusError(f"communication bus {bus_name} does not exist")
        self._through.append(bus)
        try:
            yield bus
        finally:
            self._through.pop()

    def _declare(
        self,
        device_type: str,
        *,
        name: str | None = None,
        model: ComponentModel | str | None = None,
        expected_model: ComponentModel = DEVICE_DRIVER,
        com_bus: str | None = None,
        bus_name: str | None = None,
        **arguments: Any,
    ) -> Device:
        device_name = str(name or device_type)
        if device_name in self._devices:
            raise DuplicateDeclarationError(f"device {device_name} is already defined")
        if com_bus is not None:
            bus = self._com_busses.get(com_bus)
            if bus is None:
                raise UnknownBusError(f"communication bus {com_bus} does not exist")
            bus.members.append(device_name)
        device = Device(
            name=device_name,
            device_type=str(device_type),
            model=model,
            expected_model=expected_model,
            com_bus=com_bus,
            bus_name=bus_name,
            arguments=dict(arguments),
        )
        self._devices[device_name] = device
        LOGGER.debug("Declared device %s of type %s", device_name, device_type)
        return device

    # ------------------------------------------------------------------
    # Model resolution
    # ------------------------------------------------------------------

    def resolve_device_model(self, device: Device) -> ResolvedDevice:
        """Select the concrete task model driving ``device``."""
        device_model = self._requested_model(device)
        if not device_model.fulfills(device.expected_model):
            raise IncompatibleCapabilityError(
                f"device {device.name} ({device_model.name}) is not a {device.expected_model.name}"
            )

        if isinstance(device_model, TaskModel) and not device_model.abstract:
            candidates = [device_model]
        else:
            candidates = self.registry.models_fulfilling(device_model)
        candidates = [
            model
            for model in candidates
            if not any(other is not model and other.specializes(model) for other in candidates)
        ]
        if not candidates:
            raise NoImplementationFoundError(
                f"no task can handle devices of type '{device.device_type}'"
            )
        if len(candidates) > 1:
            names = [model.name for model in candidates]
            raise AmbiguousResolutionError(
                f"{', '.join(names)} can all handle '{device.name}', please select one "
                "explicitly with the 'model' option",
                candidates=names,
            )

        task_model = candidates[0]
        source_model = self.registry.device_type(device.device_type)
        if source_model is None and isinstance(device_model, Capability):
            source_model = device_model
        if source_model is None:
            data_source = device.device_type
        else:
            data_source = task_model.data_source_name(source_model)
        return ResolvedDevice(device=device, task_model=task_model, data_source=data_source)

    def _requested_model(self, device: Device) -> ComponentModel:
        if device.model is not None:
            if isinstance(device.model, ComponentModel):
                return device.model
            model = self.registry.find(device.model)
            if model is None:
                raise UnknownModelError(
                    f"model '{device.model}' selected for device {device.name} is not registered"
                )
            return model
        device_model = self.registry.device_type(device.device_type)
        if device_model is None:
            raise UnknownDeviceTypeError(f"unknown device type '{device.device_type}'")
        return device_model
