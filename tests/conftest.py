"""Pytest configuration ensuring the project src directory is importable."""

import logging
import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))


@pytest.fixture
def example_profile() -> Path:
    """Path of the profile bundled with the command line helper."""
    return ROOT / "scripts" / "example_system.yaml"


@pytest.fixture(autouse=True)
def _reset_package_log_level():
    """Undo level changes made through ``configure_logging``."""
    logger = logging.getLogger("system_plan")
    level = logger.level
    yield
    logger.setLevel(level)
