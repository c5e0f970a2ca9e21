"""Pytest configuration for repository test runs."""

from __future__ import annotations

import sys
from pathlib import Path

import pytest


def pytest_sessionstart() -> None:
    """Add src directory to sys.path for test imports."""
    project_root = Path(__file__).resolve().parent.parent
    src_path = project_root / "src"
    if str(src_path) not in sys.path:
        sys.path.insert(0, str(src_path))


@pytest.fixture(autouse=True)
def isolated_cast_environment(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    """Keep user-level Cast settings out of every test."""
    monkeypatch.delenv("CAST_STORE", raising=False)
    monkeypatch.delenv("CAST_WORK_ROOT", raising=False)
    monkeypatch.setenv("CAST_CONFIG_FILE", str(tmp_path / "absent-config.yaml"))


@pytest.fixture
def store_root(tmp_path: Path) -> Path:
    """Absolute storage root inside the test directory."""
    return tmp_path / "cast-root"
