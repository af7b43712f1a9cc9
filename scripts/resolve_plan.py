"""Convenience CLI resolving a system profile and reporting the plan."""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Sequence

# Ensure local sources are importable without installation
REPO_ROOT = Path(__file__).resolve().parents[1]
SRC_DIR = REPO_ROOT / "src"
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

from system_plan.config import load_engine  # noqa: E402
from system_plan.errors import ResolutionError  # noqa: E402
from system_plan.plan import format_plan, write_plan_tables  # noqa: E402
from system_plan.utils.logging import configure_logging  # noqa: E402

LOGGER = logging.getLogger("system_plan.scripts.resolve_plan")

DEFAULT_PROFILE_PATH = Path(__file__).with_name("example_system.yaml")


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    """Parse CLI arguments for the resolution helper."""
    parser = argparse.ArgumentParser(description="Resolve a system profile into a plan")
    parser.add_argument(
        "--config",
        type=Path,
        default=DEFAULT_PROFILE_PATH,
        help="Path to the system profile YAML",
    )
    parser.add_argument(
        "--export",
        type=str,
        default=None,
        help="Directory receiving nodes.csv and connections.csv; pass 'none' to disable",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable debug logging",
    )
    return parser.parse_args(argv)


def _normalise_export_root(raw: str | None) -> Path | None:
    if raw is None:
        return None
    value = raw.strip()
    if not value or value.lower() == "none":
        return None
    return Path(value).expanduser().resolve()


def main(argv: Sequence[str] | None = None) -> int:
    """Entry point for ``python scripts/resolve_plan.py``."""
    args = parse_args(argv)
    configure_logging(logging.INFO, package_level=logging.DEBUG if args.verbose else None)

    engine = load_engine(args.config)
    try:
        plan = engine.resolve()
    except ResolutionError as exc:
        LOGGER.error("Resolution of %s failed: %s", args.config, exc)
        return 1

    print(format_plan(plan, title=f"Plan for {args.config.name}"))
    export_root = _normalise_export_root(args.export)
    if export_root is not None:
        write_plan_tables(plan, export_root)
    return 0


if __name__ == "__main__":
    sys.exit(main())
