"""Collapsing of structurally equivalent plan nodes."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from ..errors import UnsupportedCyclicMergeError
from ..plan.graph import Plan, PlanNode

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class _Candidate:
    node: PlanNode
    inputs: frozenset[int]
    children: frozenset[int]


def can_replace(plan: Plan, task: _Candidate, target: _Candidate) -> bool:
    """Whether ``task`` can stand for ``target`` everywhere in ``plan``."""
    if not target.children <= task.children:
        return False
    if task.inputs != target.inputs:
        return False
    return task.node.model.can_merge(task.node, target.node)


def merge_equivalent_nodes(plan: Plan) -> int:
    """Merge duplicated nodes until no more replacements are possible.

    Nodes are processed in rounds. Each round only looks at the nodes whose
    data-flow inputs and children have all been processed already, so that
    their mergeability no longer changes.

    Returns:
        int: Number of nodes removed from the plan.

    Raises:
        UnsupportedCyclicMergeError: If the remaining nodes form cycles.
    """
    remaining = {node.handle for node in plan.nodes()}
    removed = 0
    rank = 1
    old_size: int | None = None
    while remaining and old_size != len(remaining):
        old_size = len(remaining)
        rank += 1

        roots: list[_Candidate] = []
        for handle in sorted(remaining):
            inputs = plan.data_flow_inputs(handle)
            if inputs & remaining:
                continue
            children = plan.children(handle)
            if children & remaining:
                continue
            roots.append(_Candidate(plan.node(handle), inputs, children))
        remaining -= {candidate.node.handle for candidate in roots}
        LOGGER.debug("Merge rank %d: %s", rank, ", ".join(str(c.node) for c in roots))

        merges: dict[int, list[int]] = {}
        for task in roots:
            for target in roots:
                if target.node == task.node:
                    continue
                if can_replace(plan, task, target):
                    merges.setdefault(task.node.handle, []).append(target.node.handle)
                    LOGGER.debug("  %s => %s", task.node, target.node)

        removed += _apply_merges(plan, merges)
    if remaining:
        leftovers = [plan.node(handle) for handle in sorted(remaining)]
        raise UnsupportedCyclicMergeError(
            "cannot merge nodes involved in dependency cycles: "
            + ", ".join(str(node) for node in leftovers),
            nodes=leftovers,
        )
    return removed


def _apply_merges(plan: Plan, merges: dict[int, list[int]]) -> int:
    """Greedily apply the largest replacement sets first."""
    removed = 0
    while merges:
        handle = min(merges, key=lambda h: (-len(merges[h]), h))
        targets = merges.pop(handle)
        task = plan.node(handle)
        for target_handle in targets:
            task.model.merge(plan, task, plan.node(target_handle))
            removed += 1

        replaced = set(targets)
        for pending in list(merges):
            if pending in replaced:
                del merges[pending]
                continue
            merges[pending] = [t for t in merges[pending] if t not in replaced]
            if not merges[pending]:
                del merges[pending]
    return removed
