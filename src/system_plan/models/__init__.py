"""Component models and the registry used to look them up."""

from .base import DEVICE_DRIVER, Capability, ComponentModel, PortDescriptor
from .compositions import CompositionConnection, CompositionModel
from .registry import ModelRegistry
from .tasks import CommunicationBusModel, TaskModel

__all__ = [
    "ComponentModel",
    "Capability",
    "PortDescriptor",
    "DEVICE_DRIVER",
    "TaskModel",
    "CommunicationBusModel",
    "CompositionModel",
    "CompositionConnection",
    "ModelRegistry",
]
