"""Exceptions raised while resolving a system description into a plan."""

from __future__ import annotations

from typing import Iterable


class ResolutionError(RuntimeError):
    """Base class for every failure that aborts a resolution run."""


class SpecError(ResolutionError):
    """Raised when the declarative description is inconsistent."""


class DuplicateDeclarationError(SpecError):
    """Raised when a device or bus name is declared twice."""


class UnknownDeviceTypeError(SpecError):
    """Raised when a device type has no registered capability model."""


class UnknownModelError(SpecError):
    """Raised when a model name cannot be found by the selection lookup."""


class IncompatibleCapabilityError(SpecError):
    """Raised when a model does not fulfill the capability it is used for."""


class NoImplementationFoundError(SpecError):
    """Raised when no concrete task model implements a device type."""


class UnknownBusError(SpecError):
    """Raised when a device references a communication bus that does not exist."""


class MissingBusRoleError(SpecError):
    """Raised when a driver has a generic bus port but no bus name."""


class NoBusConnectionPossibleError(SpecError):
    """Raised when a driver has no port of the bus message type."""


class AmbiguousResolutionError(ResolutionError):
    """Raised when several equally valid candidates exist.

    Attributes:
        candidates: Names of every candidate that could have been selected.
    """

    def __init__(self, message: str, candidates: Iterable[str] = ()) -> None:
        super().__init__(message)
        self.candidates: tuple[str, ...] = tuple(candidates)


class UnresolvedAbstractNodeError(ResolutionError):
    """Raised when abstract nodes are left in the plan after instantiation."""

    def __init__(self, message: str, nodes: Iterable[object] = ()) -> None:
        super().__init__(message)
        self.nodes = tuple(nodes)


class UnsupportedCyclicMergeError(ResolutionError, NotImplementedError):
    """Raised when the merge pass stalls on nodes that form dependency cycles."""

    def __init__(self, message: str, nodes: Iterable[object] = ()) -> None:
        super().__init__(message)
        self.nodes = tuple(nodes)


__all__ = [
    "ResolutionError",
    "SpecError",
    "DuplicateDeclarationError",
    "UnknownDeviceTypeError",
    "UnknownModelError",
    "IncompatibleCapabilityError",
    "NoImplementationFoundError",
    "UnknownBusError",
    "MissingBusRoleError",
    "NoBusConnectionPossibleError",
    "AmbiguousResolutionError",
    "UnresolvedAbstractNodeError",
    "UnsupportedCyclicMergeError",
]
