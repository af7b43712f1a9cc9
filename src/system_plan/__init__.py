"""Resolve robot device and component declarations into a deployment plan."""

from .engine import Engine, InstanciatedComponent, ResolutionContext
from .errors import (
    AmbiguousResolutionError,
    IncompatibleCapabilityError,
    MissingBusRoleError,
    NoBusConnectionPossibleError,
    NoImplementationFoundError,
    ResolutionError,
    SpecError,
    UnknownBusError,
    UnknownDeviceTypeError,
    UnresolvedAbstractNodeError,
    UnsupportedCyclicMergeError,
)
from .models import DEVICE_DRIVER, ModelRegistry
from .plan import Plan, PlanNode
from .robot import Robot

__all__ = [
    "Engine",
    "InstanciatedComponent",
    "ResolutionContext",
    "ModelRegistry",
    "DEVICE_DRIVER",
    "Plan",
    "PlanNode",
    "Robot",
    "ResolutionError",
    "SpecError",
    "AmbiguousResolutionError",
    "IncompatibleCapabilityError",
    "MissingBusRoleError",
    "NoBusConnectionPossibleError",
    "NoImplementationFoundError",
    "UnknownBusError",
    "UnknownDeviceTypeError",
    "UnresolvedAbstractNodeError",
    "UnsupportedCyclicMergeError",
]
