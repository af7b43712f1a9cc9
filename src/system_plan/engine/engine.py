"""Resolution driver: instantiate, validate, merge and link inside a transaction."""

from __future__ import annotations

import logging
from typing import Any

from ..models.base import ComponentModel
from ..models.registry import ModelRegistry
from ..plan.graph import Plan, PlanNode
from ..robot.declarations import Robot
from .busses import link_to_busses
from .context import ResolutionContext
from .instantiation import instantiate, validate_result
from .merge import merge_equivalent_nodes
from .requests import InstanciatedComponent

LOGGER = logging.getLogger(__name__)


class Engine:
    """Turn robot declarations and explicit requests into a concrete plan.

    Each call to :meth:`resolve` rebuilds the engine's part of the plan from
    scratch inside a transaction. The plan is only modified when every pass
    succeeds.
    """

    def __init__(
        self,
        registry: ModelRegistry,
        plan: Plan | None = None,
        robot: Robot | None = None,
    ) -> None:
        self.registry = registry
        self.plan = plan if plan is not None else Plan()
        self.robot = robot if robot is not None else Robot(registry)
        self.instances: list[InstanciatedComponent] = []
        self._owned: set[int] = set()

    def add(self, model: ComponentModel | str, name: str | None = None, **arguments: Any) -> InstanciatedComponent:
        """Request an explicit instance of ``model``.

        Returns:
            InstanciatedComponent: The request, whose ``use`` method sets the
            selection used for its children.
        """
        instance = InstanciatedComponent(model=model, name=name, arguments=dict(arguments))
        self.instances.append(instance)
        return instance

    def subsystem(self, name: str) -> PlanNode | None:
        """Return the committed node registered under ``name``."""
        return self.plan.named(name)

    def roots(self) -> list[PlanNode]:
        return self.plan.permanent_nodes()

    def resolve(self) -> Plan:
        """Compute the plan, committing it only if every step succeeds.

        Raises:
            ResolutionError: On any failure; the plan is left untouched.
        """
        with self.plan.in_transaction() as trsc:
            for handle in sorted(self._owned):
                if handle in trsc:
                    trsc.remove_node(handle)
            existing = {node.handle for node in trsc.nodes()}

            context = ResolutionContext(
                registry=self.registry,
                robot=self.robot,
                plan=trsc,
                instances=tuple(self.instances),
            )
            instantiate(context)
            validate_result(trsc)
            removed = merge_equivalent_nodes(trsc)
            linked = link_to_busses(trsc)
            owned = {node.handle for node in trsc.nodes()} - existing

        self._owned = owned
        LOGGER.info(
            "Resolved plan: %d nodes (%d merged), %d connections, %d drivers linked to busses",
            len(self.plan),
            removed,
            len(self.plan.data_flow_edges()),
            linked,
        )
        return self.plan
