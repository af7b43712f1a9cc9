"""Convenience exports for profile loading and engine construction."""

from __future__ import annotations

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
from .profile import (
    build_engine,
    build_registry,
    load_engine,
    load_system_profile,
    parse_system_profile,
)

__all__ = [
    "load_system_profile",
    "parse_system_profile",
    "build_registry",
    "build_engine",
    "load_engine",
    "SystemProfile",
    "CapabilityBinding",
    "TaskBinding",
    "CompositionBinding",
    "ConnectionBinding",
    "BusBinding",
    "DeviceBinding",
    "InstanceBinding",
]
