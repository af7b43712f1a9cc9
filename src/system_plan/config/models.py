"""Declarative bindings parsed from system profiles.

This layer stays declarative; models and plan nodes are only created when a
profile is turned into an engine.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass(slots=True)
class CapabilityBinding:
    """Describe a data source or device type."""

    name: str
    device: bool = False
    parents: tuple[str, ...] = ()
    inputs: dict[str, str] = field(default_factory=dict)
    outputs: dict[str, str] = field(default_factory=dict)


@dataclass(slots=True)
class TaskBinding:
    """Describe a concrete task model, a bus driver when ``message_type`` is set."""

    name: str
    inputs: dict[str, str] = field(default_factory=dict)
    outputs: dict[str, str] = field(default_factory=dict)
    data_sources: dict[str, str] = field(default_factory=dict)
    provides: tuple[str, ...] = ()
    parent: str | None = None
    arguments: dict[str, Any] = field(default_factory=dict)
    abstract: bool = False
    message_type: str | None = None

    @property
    def is_bus_driver(self) -> bool:
        return self.message_type is not None


@dataclass(slots=True)
class ConnectionBinding:
    """``role.port`` to ``role.port`` connection inside a composition."""

    source: str
    sink: str
    policy: dict[str, Any] = field(default_factory=dict)


@dataclass(slots=True)
class CompositionBinding:
    """Describe a composition and its children."""

    name: str
    children: dict[str, str]
    connections: tuple[ConnectionBinding, ...] = ()
    autoconnect: bool = True
    arguments: dict[str, Any] = field(default_factory=dict)


@dataclass(slots=True)
class BusBinding:
    """A communication bus declared on the robot."""

    device_type: str
    name: str
    options: dict[str, Any] = field(default_factory=dict)


@dataclass(slots=True)
class DeviceBinding:
    """A device declared on the robot."""

    device_type: str
    name: str
    model: str | None = None
    com_bus: str | None = None
    bus_name: str | None = None
    arguments: dict[str, Any] = field(default_factory=dict)


@dataclass(slots=True)
class InstanceBinding:
    """An explicit component request."""

    model: str
    name: str | None = None
    arguments: dict[str, Any] = field(default_factory=dict)
    selection: dict[str, Any] = field(default_factory=dict)


@dataclass(slots=True)
class SystemProfile:
    """Top-level system description assembled from a YAML profile."""

    name: str
    capabilities: tuple[CapabilityBinding, ...] = ()
    tasks: tuple[TaskBinding, ...] = ()
    compositions: tuple[CompositionBinding, ...] = ()
    busses: tuple[BusBinding, ...] = ()
    devices: tuple[DeviceBinding, ...] = ()
    instances: tuple[InstanceBinding, ...] = ()

    def device_names(self) -> list[str]:
        """Return bus and device names in declaration order."""
        return [bus.name for bus in self.busses] + [device.name for device in self.devices]

    def validate(self) -> None:
        """Check name uniqueness and that attached busses are declared."""
        names = self.device_names()
        duplicates = sorted({name for name in names if names.count(name) > 1})
        if duplicates:
            raise ValueError(f"Profile '{self.name}' declares devices more than once: {', '.join(duplicates)}")
        bus_names = {bus.name for bus in self.busses}
        for device in self.devices:
            if device.com_bus is not None and device.com_bus not in bus_names:
                raise ValueError(
                    f"Device '{device.name}' references unknown communication bus '{device.com_bus}'"
                )
