"""Profile loader and engine factory rolled into a single module."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Mapping

import yaml  # type: ignore[import-untyped]

from system_plan.engine.engine import Engine
from system_plan.models.registry import ModelRegistry
from system_plan.plan.graph import Plan

from .models import (
    BusBinding,
    CapabilityBinding,
    CompositionBinding,
    ConnectionBinding,
    DeviceBinding,
    InstanceBinding,
    SystemProfile,
    TaskBinding,
)

LOGGER = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Profile loading
# ---------------------------------------------------------------------------


def load_system_profile(path: str | Path) -> SystemProfile:
    """Load and validate a YAML system profile.

    Args:
        path: Filesystem path to the profile YAML file.

    Returns:
        SystemProfile: Parsed profile ready to be turned into an engine.

    Raises:
        FileNotFoundError: If the profile path does not exist.
        ValueError: When required sections or fields are missing or malformed.
    """
    profile_path = Path(path)
    if not profile_path.exists():
        raise FileNotFoundError(profile_path)
    with profile_path.open("r", encoding="utf-8") as handle:
        raw = yaml.safe_load(handle) or {}
    return parse_system_profile(raw, default_name=profile_path.stem)


def parse_system_profile(raw: Mapping[str, Any], *, default_name: str = "system") -> SystemProfile:
    """Build a :class:`SystemProfile` from an already parsed document.

    Devices are declared in the order busses, ``robot.devices``, then the
    ``robot.through`` blocks bus by bus. A profile cannot interleave plain
    devices with bus-attached ones.
    """
    if not isinstance(raw, Mapping):
        raise ValueError("Profile YAML must be a mapping")
    system_section = _optional_mapping(raw.get("system"), "system")
    profile_name = str(system_section.get("name", default_name))

    models_section = _optional_mapping(raw.get("models"), "models")
    capabilities = _parse_capabilities(
        _optional_mapping(models_section.get("data_sources"), "models['data_sources']"),
        device=False,
    ) + _parse_capabilities(
        _optional_mapping(models_section.get("devices"), "models['devices']"),
        device=True,
    )
    tasks = _parse_tasks(_optional_mapping(models_section.get("tasks"), "models['tasks']"))
    compositions = _parse_compositions(
        _optional_mapping(models_section.get("compositions"), "models['compositions']")
    )

    robot_section = _optional_mapping(raw.get("robot"), "robot")
    busses = _parse_busses(robot_section.get("busses", []))
    devices = _parse_devices(robot_section.get("devices", []), "robot['devices']")
    through_section = _optional_mapping(robot_section.get("through"), "robot['through']")
    for bus_name, entries in through_section.items():
        label = f"robot['through']['{bus_name}']"
        for device in _parse_devices(entries, label):
            if device.com_bus is not None:
                raise ValueError(f"{label}: cannot use the 'com_bus' option in a through block")
            device.com_bus = str(bus_name)
            devices.append(device)

    instances = _parse_instances(raw.get("instances", []))

    profile = SystemProfile(
        name=profile_name,
        capabilities=tuple(capabilities),
        tasks=tuple(tasks),
        compositions=tuple(compositions),
        busses=tuple(busses),
        devices=tuple(devices),
        instances=tuple(instances),
    )
    profile.validate()
    return profile


# ---------------------------------------------------------------------------
# Engine construction
# ---------------------------------------------------------------------------


def build_registry(profile: SystemProfile) -> ModelRegistry:
    """Register every model described by ``profile``, in declaration order."""
    registry = ModelRegistry()
    for capability in profile.capabilities:
        define = registry.define_device_type if capability.device else registry.define_data_source
        define(
            capability.name,
            parents=capability.parents,
            inputs=capability.inputs,
            outputs=capability.outputs,
        )
    for task in profile.tasks:
        options: dict[str, Any] = {
            "inputs": task.inputs,
            "outputs": task.outputs,
            "data_sources": task.data_sources,
            "provides": task.provides,
            "parent": task.parent,
            "arguments": task.arguments,
            "abstract": task.abstract,
        }
        if task.is_bus_driver:
            registry.define_com_bus_driver(task.name, message_type=str(task.message_type), **options)
        else:
            registry.define_task(task.name, **options)
    for binding in profile.compositions:
        composition = registry.define_composition(
            binding.name,
            children=binding.children,
            autoconnect=binding.autoconnect,
            arguments=binding.arguments,
        )
        for connection in binding.connections:
            composition.connect(connection.source, connection.sink, connection.policy)
    return registry


def build_engine(profile: SystemProfile, plan: Plan | None = None) -> Engine:
    """Create an engine with the models, devices and requests of ``profile``."""
    engine = Engine(build_registry(profile), plan=plan)
    for bus in profile.busses:
        engine.robot.declare_bus(bus.device_type, name=bus.name, **bus.options)
    for device in profile.devices:
        engine.robot.declare_device(
            device.device_type,
            name=device.name,
            model=device.model,
            com_bus=device.com_bus,
            bus_name=device.bus_name,
            **device.arguments,
        )
    for instance in profile.instances:
        engine.add(instance.model, name=instance.name, **instance.arguments).use(instance.selection)
    LOGGER.debug(
        "Built engine for profile '%s': %d devices, %d requests",
        profile.name,
        len(profile.device_names()),
        len(profile.instances),
    )
    return engine


def load_engine(path: str | Path, plan: Plan | None = None) -> Engine:
    """Load a profile and build its engine in one step."""
    return build_engine(load_system_profile(path), plan=plan)


# ---------------------------------------------------------------------------
# Parsing helpers
# ---------------------------------------------------------------------------


def _optional_mapping(value: Any, label: str) -> Mapping[str, Any]:
    if value is None:
        return {}
    if not isinstance(value, Mapping):
        raise ValueError(f"Profile YAML '{label}' must be a mapping")
    return value


def _string_map(value: Any, label: str) -> dict[str, str]:
    return {str(key): str(item) for key, item in _optional_mapping(value, label).items()}


def _string_tuple(value: Any, label: str) -> tuple[str, ...]:
    if value is None:
        return ()
    if isinstance(value, str):
        return (value,)
    if not isinstance(value, list):
        raise ValueError(f"Profile YAML '{label}' must be a list")
    return tuple(str(item) for item in value)


def _parse_capabilities(raw: Mapping[str, Any], *, device: bool) -> list[CapabilityBinding]:
    section = "devices" if device else "data_sources"
    capabilities: list[CapabilityBinding] = []
    for name, payload in raw.items():
        label = f"models['{section}']['{name}']"
        mapping = _optional_mapping(payload, label)
        capabilities.append(
            CapabilityBinding(
                name=str(name),
                device=device,
                parents=_string_tuple(mapping.get("parents"), f"{label}['parents']"),
                inputs=_string_map(mapping.get("inputs"), f"{label}['inputs']"),
                outputs=_string_map(mapping.get("outputs"), f"{label}['outputs']"),
            )
        )
    return capabilities


def _parse_tasks(raw: Mapping[str, Any]) -> list[TaskBinding]:
    tasks: list[TaskBinding] = []
    for name, payload in raw.items():
        label = f"models['tasks']['{name}']"
        mapping = _optional_mapping(payload, label)
        message_type = mapping.get("message_type")
        tasks.append(
            TaskBinding(
                name=str(name),
                inputs=_string_map(mapping.get("inputs"), f"{label}['inputs']"),
                outputs=_string_map(mapping.get("outputs"), f"{label}['outputs']"),
                data_sources=_string_map(mapping.get("data_sources"), f"{label}['data_sources']"),
                provides=_string_tuple(mapping.get("provides"), f"{label}['provides']"),
                parent=str(mapping["parent"]) if mapping.get("parent") else None,
                arguments=dict(_optional_mapping(mapping.get("arguments"), f"{label}['arguments']")),
                abstract=bool(mapping.get("abstract", False)),
                message_type=str(message_type) if message_type is not None else None,
            )
        )
    return tasks


def _parse_compositions(raw: Mapping[str, Any]) -> list[CompositionBinding]:
    compositions: list[CompositionBinding] = []
    for name, payload in raw.items():
        label = f"models['compositions']['{name}']"
        mapping = _optional_mapping(payload, label)
        children = _string_map(mapping.get("children"), f"{label}['children']")
        if not children:
            raise ValueError(f"Composition '{name}' must define non-empty 'children'")
        connections_raw = mapping.get("connections", [])
        if not isinstance(connections_raw, list):
            raise ValueError(f"Composition '{name}' connections must be a list")
        connections: list[ConnectionBinding] = []
        for idx, entry in enumerate(connections_raw):
            if not isinstance(entry, Mapping):
                raise ValueError(f"Composition '{name}' connection #{idx} must be a mapping")
            source = entry.get("from")
            sink = entry.get("to")
            if source is None or sink is None:
                raise ValueError(f"Composition '{name}' connection #{idx} needs 'from' and 'to'")
            connections.append(
                ConnectionBinding(
                    source=str(source),
                    sink=str(sink),
                    policy=dict(_optional_mapping(entry.get("policy"), f"{label} connection #{idx}")),
                )
            )
        compositions.append(
            CompositionBinding(
                name=str(name),
                children=children,
                connections=tuple(connections),
                autoconnect=bool(mapping.get("autoconnect", True)),
                arguments=dict(_optional_mapping(mapping.get("arguments"), f"{label}['arguments']")),
            )
        )
    return compositions


def _parse_busses(raw: Any) -> list[BusBinding]:
    if not isinstance(raw, list):
        raise ValueError("'busses' entry in robot must be a list")
    busses: list[BusBinding] = []
    for idx, entry in enumerate(raw):
        if not isinstance(entry, Mapping):
            raise ValueError(f"robot['busses'] entry #{idx} must be a mapping")
        device_type = entry.get("type")
        if device_type is None:
            raise ValueError(f"robot['busses'] entry #{idx} missing 'type'")
        options = {key: value for key, value in entry.items() if key not in {"type", "name"}}
        busses.append(
            BusBinding(
                device_type=str(device_type),
                name=str(entry.get("name", device_type)),
                options=options,
            )
        )
    return busses


def _parse_devices(raw: Any, label: str) -> list[DeviceBinding]:
    if not isinstance(raw, list):
        raise ValueError(f"'{label}' must be a list")
    devices: list[DeviceBinding] = []
    for idx, entry in enumerate(raw):
        if not isinstance(entry, Mapping):
            raise ValueError(f"{label} entry #{idx} must be a mapping")
        device_type = entry.get("type")
        if device_type is None:
            raise ValueError(f"{label} entry #{idx} missing 'type'")
        arguments = dict(_optional_mapping(entry.get("arguments"), f"{label} entry #{idx} arguments"))
        devices.append(
            DeviceBinding(
                device_type=str(device_type),
                name=str(entry.get("name", device_type)),
                model=str(entry["model"]) if entry.get("model") else None,
                com_bus=str(entry["com_bus"]) if entry.get("com_bus") else None,
                bus_name=str(entry["bus_name"]) if entry.get("bus_name") else None,
                arguments=arguments,
            )
        )
    return devices


def _parse_instances(raw: Any) -> list[InstanceBinding]:
    if not isinstance(raw, list):
        raise ValueError("'instances' must be a list")
    instances: list[InstanceBinding] = []
    for idx, entry in enumerate(raw):
        if isinstance(entry, str):
            instances.append(InstanceBinding(model=entry))
            continue
        if not isinstance(entry, Mapping):
            raise ValueError(f"'instances' entry #{idx} must be a mapping or string")
        model = entry.get("model")
        if model is None:
            raise ValueError(f"'instances' entry #{idx} missing 'model'")
        instances.append(
            InstanceBinding(
                model=str(model),
                name=str(entry["name"]) if entry.get("name") else None,
                arguments=dict(_optional_mapping(entry.get("arguments"), f"instances #{idx} arguments")),
                selection=dict(_optional_mapping(entry.get("use"), f"instances #{idx} use")),
            )
        )
    return instances
