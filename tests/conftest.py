"""Pytest configuration helpers for the test suite."""

from __future__ import annotations

import os
from pathlib import Path

import pytest


@pytest.fixture(autouse=True)
def _isolate_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    """Drop any HEALTHPROBES_* variables inherited from the developer shell."""
    for key in list(os.environ):
        if key.startswith("HEALTHPROBES_"):
            monkeypatch.delenv(key, raising=False)


@pytest.fixture
def probe_env(tmp_path: Path) -> dict[str, str]:
    """Return CLI environment pointing config and logs into *tmp_path*."""
    return {
        "HEALTHPROBES_CONFIG_FILE": str(tmp_path / "config.yml"),
        "HEALTHPROBES_LOGS_DIR": str(tmp_path / "logs"),
    }
