"""Logging configuration helpers."""

from __future__ import annotations

import logging

PACKAGE_LOGGER = "system_plan"


def _level(value: int | str) -> int:
    if isinstance(value, int):
        return value
    resolved = logging.getLevelName(str(value).upper())
    if not isinstance(resolved, int):
        raise ValueError(f"Unknown logging level '{value}'")
    return resolved


def configure_logging(level: int | str = logging.INFO, *, package_level: int | str | None = None) -> None:
    """Configure the global logging output format and default level.

    Args:
        level: Root level, as a number or a name such as ``"debug"``.
        package_level: Level for the ``system_plan`` loggers only, used to
            trace merge rounds and bus wiring without third-party debug output.
    """
    logging.basicConfig(
        level=_level(level),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    if package_level is not None:
        logging.getLogger(PACKAGE_LOGGER).setLevel(_level(package_level))
