"""Device and communication bus declarations."""

from .declarations import CommunicationBus, Device, ResolvedDevice, Robot

__all__ = ["Robot", "Device", "CommunicationBus", "ResolvedDevice"]
