"""Tests for the merge pass collapsing equivalent plan nodes."""

from __future__ import annotations

import pytest

from system_plan.engine.merge import merge_equivalent_nodes
from system_plan.errors import UnsupportedCyclicMergeError
from system_plan.models import TaskModel
from system_plan.plan import Plan

SOURCE = TaskModel("source", outputs={"out": "/Msg"})
FILTER = TaskModel("filter", inputs={"in": "/Msg"}, outputs={"out": "/Msg"})
LEAF = TaskModel("leaf")
OTHER_LEAF = TaskModel("other_leaf")
PARENT = TaskModel("parent")


class RecordingModel(TaskModel):
    """Task model recording the merges applied through its hook."""

    def __init__(self, name: str) -> None:
        super().__init__(name)
        self.merged: list[tuple[int, int]] = []

    def merge(self, plan, task, target) -> None:
        self.merged.append((task.handle, target.handle))
        super().merge(plan, task, target)


def test_identical_nodes_are_merged() -> None:
    plan = Plan()
    first = plan.add_node(SOURCE, {"rate": 10})
    plan.add_node(SOURCE, {"rate": 10})
    assert merge_equivalent_nodes(plan) == 1
    assert plan.nodes() == [first]


def test_differing_arguments_prevent_merge() -> None:
    plan = Plan()
    plan.add_node(SOURCE, {"rate": 10})
    plan.add_node(SOURCE, {"rate": 20})
    assert merge_equivalent_nodes(plan) == 0
    assert len(plan) == 2


def test_merges_cascade_through_data_flow() -> None:
    """Once the sources are merged, their consumers have the same inputs."""
    plan = Plan()
    first_source = plan.add_node(SOURCE)
    second_source = plan.add_node(SOURCE)
    first_filter = plan.add_node(FILTER)
    second_filter = plan.add_node(FILTER)
    plan.connect(first_source, first_filter, {("out", "in"): {}})
    plan.connect(second_source, second_filter, {("out", "in"): {}})
    plan.add_permanent(second_filter)

    assert merge_equivalent_nodes(plan) == 2
    assert plan.nodes() == [first_source, first_filter]
    assert plan.data_flow_inputs(first_filter) == {first_source.handle}
    assert plan.permanent_nodes() == [first_filter]


def test_inputs_must_be_exactly_equal() -> None:
    """A consumer of a superset of inputs is not a replacement."""
    plan = Plan()
    fast = plan.add_node(SOURCE, {"rate": 100})
    slow = plan.add_node(SOURCE, {"rate": 1})
    single = plan.add_node(FILTER)
    both = plan.add_node(FILTER)
    plan.connect(fast, single, {("out", "in"): {}})
    plan.connect(fast, both, {("out", "in"): {}})
    plan.connect(slow, both, {("out", "in"): {}})
    assert merge_equivalent_nodes(plan) == 0
    assert len(plan) == 4


def test_children_only_need_to_be_a_subset() -> None:
    """The node with more children replaces the one with fewer, not the reverse."""
    plan = Plan()
    leaf = plan.add_node(LEAF)
    other = plan.add_node(OTHER_LEAF)
    small = plan.add_node(PARENT)
    large = plan.add_node(PARENT)
    plan.depends_on(small, leaf, role="a")
    plan.depends_on(large, leaf, role="a")
    plan.depends_on(large, other, role="b")
    plan.set_name("small", small)

    assert merge_equivalent_nodes(plan) == 1
    assert small not in plan
    assert plan.named("small") == large
    assert plan.children(large) == {leaf.handle, other.handle}


def test_largest_replacement_set_wins_and_ties_keep_smallest_handle() -> None:
    plan = Plan()
    nodes = [plan.add_node(SOURCE) for _ in range(3)]
    assert merge_equivalent_nodes(plan) == 2
    assert plan.nodes() == [nodes[0]]


def test_merge_is_idempotent() -> None:
    plan = Plan()
    source = plan.add_node(SOURCE)
    plan.add_node(SOURCE)
    sink = plan.add_node(FILTER)
    plan.connect(source, sink, {("out", "in"): {}})
    merge_equivalent_nodes(plan)
    after_first = plan.structure()
    assert merge_equivalent_nodes(plan) == 0
    assert plan.structure() == after_first


def test_model_merge_hook_is_used() -> None:
    model = RecordingModel("recorder")
    plan = Plan()
    first = plan.add_node(model)
    second = plan.add_node(model)
    merge_equivalent_nodes(plan)
    assert model.merged == [(first.handle, second.handle)]


def test_cycles_raise_instead_of_dropping_nodes() -> None:
    plan = Plan()
    first = plan.add_node(FILTER)
    second = plan.add_node(FILTER)
    plan.connect(first, second, {("out", "in"): {}})
    plan.connect(second, first, {("out", "in"): {}})
    with pytest.raises(UnsupportedCyclicMergeError) as excinfo:
        merge_equivalent_nodes(plan)
    assert isinstance(excinfo.value, NotImplementedError)
    assert excinfo.value.nodes == (first, second)
    assert len(plan) == 2


def test_node_missing_target_arguments_cannot_replace_it() -> None:
    """Only the node carrying every argument of the other one survives."""
    plan = Plan()
    bare = plan.add_node(SOURCE)
    configured = plan.add_node(SOURCE, {"rate": 10})
    assert merge_equivalent_nodes(plan) == 1
    assert bare not in plan
    assert plan.nodes() == [configured]
