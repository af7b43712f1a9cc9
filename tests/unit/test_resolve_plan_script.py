"""Tests for the ``scripts/resolve_plan.py`` command line helper."""

from __future__ import annotations

import importlib.util
import logging
from pathlib import Path

import pytest

SCRIPTS_DIR = Path(__file__).resolve().parents[2] / "scripts"


@pytest.fixture(scope="module")
def resolve_plan():
    spec = importlib.util.spec_from_file_location("resolve_plan", SCRIPTS_DIR / "resolve_plan.py")
    module = importlib.util.module_from_spec(spec)
    assert spec.loader is not None
    spec.loader.exec_module(module)
    return module


def test_example_profile_is_reported_and_exported(resolve_plan, tmp_path: Path, capsys) -> None:
    status = resolve_plan.main(["--export", str(tmp_path)])
    assert status == 0
    output = capsys.readouterr().out
    assert "Plan for example_system.yaml" in output
    assert "-- Connections" in output
    assert (tmp_path / "nodes.csv").exists()
    assert (tmp_path / "connections.csv").exists()


def test_verbose_flag_enables_package_debug_logging(resolve_plan, example_profile: Path) -> None:
    assert resolve_plan.main(["--config", str(example_profile), "--export", "none", "--verbose"]) == 0
    assert logging.getLogger("system_plan").level == logging.DEBUG


def test_configure_logging_accepts_level_names(resolve_plan) -> None:
    resolve_plan.configure_logging("warning", package_level="info")
    assert logging.getLogger("system_plan").level == logging.INFO
    with pytest.raises(ValueError):
        resolve_plan.configure_logging("chatty")


def test_resolution_failure_returns_non_zero(resolve_plan, tmp_path: Path) -> None:
    profile = tmp_path / "broken.yaml"
    profile.write_text("models:\n  devices:\n    lidar: {}\nrobot:\n  devices:\n    - {type: lidar}\n", encoding="utf-8")
    assert resolve_plan.main(["--config", str(profile), "--export", "none"]) == 1
