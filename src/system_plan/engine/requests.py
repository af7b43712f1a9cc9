"""Explicit component instantiation requests."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping

from ..models.base import ComponentModel


@dataclass(slots=True)
class InstanciatedComponent:
    """A component the user asked for explicitly, outside of any device.

    Attributes:
        model: Model object, or name resolved through the selection lookup.
        name: Optional name under which the instance is registered.
        arguments: Constructor arguments.
        selection: Mapping of child role or model name to the chosen model,
            device or subsystem name.
    """

    model: ComponentModel | str
    name: str | None = None
    arguments: dict[str, Any] = field(default_factory=dict)
    selection: dict[str, Any] = field(default_factory=dict)

    def use(self, mapping: Mapping[str, Any] | None = None, **selection: Any) -> "InstanciatedComponent":
        """Add entries to the selection map and return ``self`` for chaining."""
        self.selection.update(mapping or {})
        self.selection.update(selection)
        return self

    def instance_arguments(self) -> dict[str, Any]:
        arguments = dict(self.arguments)
        arguments["selection"] = dict(self.selection)
        return arguments
