"""Tabular and textual dumps of a resolved plan."""

from __future__ import annotations

import logging
from pathlib import Path

import pandas as pd

from .graph import Plan, describe_edges

LOGGER = logging.getLogger(__name__)

NODE_COLUMNS = ("handle", "model", "abstract", "permanent", "names", "children", "arguments")
CONNECTION_COLUMNS = ("source", "source_model", "output_port", "sink", "sink_model", "input_port", "policy")


def nodes_frame(plan: Plan) -> pd.DataFrame:
    """Return one row per plan node."""
    aliases: dict[int, list[str]] = {}
    for name, handle in sorted(plan.names().items()):
        aliases.setdefault(handle, []).append(name)
    rows = [
        {
            "handle": node.handle,
            "model": node.model.name,
            "abstract": node.abstract,
            "permanent": plan.is_permanent(node),
            "names": ",".join(aliases.get(node.handle, ())),
            "children": ",".join(str(child) for child in sorted(plan.children(node))),
            "arguments": ";".join(f"{key}={value}" for key, value in sorted(node.arguments.items())),
        }
        for node in plan.nodes()
    ]
    return pd.DataFrame(rows, columns=list(NODE_COLUMNS))


def connections_frame(plan: Plan) -> pd.DataFrame:
    """Return one row per port-level data-flow connection."""
    rows = [
        {
            "source": edge.source,
            "source_model": plan.node(edge.source).model.name,
            "output_port": edge.output_port,
            "sink": edge.sink,
            "sink_model": plan.node(edge.sink).model.name,
            "input_port": edge.input_port,
            "policy": ";".join(f"{key}={value}" for key, value in sorted(edge.policy.items())),
        }
        for edge in plan.data_flow_edges()
    ]
    return pd.DataFrame(rows, columns=list(CONNECTION_COLUMNS))


def write_plan_tables(plan: Plan, directory: str | Path) -> tuple[Path, Path]:
    """Write ``nodes.csv`` and ``connections.csv`` into ``directory``."""
    root = Path(directory).expanduser()
    root.mkdir(parents=True, exist_ok=True)
    nodes_path = root / "nodes.csv"
    connections_path = root / "connections.csv"
    nodes_frame(plan).to_csv(nodes_path, index=False)
    connections_frame(plan).to_csv(connections_path, index=False)
    LOGGER.info("Wrote plan tables to %s", root)
    return nodes_path, connections_path


def format_plan(plan: Plan, title: str = "Instanciation Results") -> str:
    """Render the tasks and connections of a plan as a text report."""
    lines = [f"========== {title} ==========", "-- Tasks"]
    for node in plan.nodes():
        children = [str(plan.node(child)) for child in sorted(plan.children(node))]
        lines.append(f"  {node} {children}")
    lines.append("-- Connections")
    lines.extend(f"  {entry}" for entry in describe_edges(plan, plan.data_flow_edges()))
    return "\n".join(lines)
