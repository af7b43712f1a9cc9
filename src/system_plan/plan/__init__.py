"""Plan graph, transactions and tabular export."""

from .export import connections_frame, format_plan, nodes_frame, write_plan_tables
from .graph import DataFlowEdge, Plan, PlanNode, Transaction

__all__ = [
    "Plan",
    "PlanNode",
    "DataFlowEdge",
    "Transaction",
    "format_plan",
    "nodes_frame",
    "connections_frame",
    "write_plan_tables",
]
