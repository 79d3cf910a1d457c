"""Shared pytest fixtures."""

from __future__ import annotations

from pathlib import Path

import pytest


@pytest.fixture(autouse=True)
def _log_dir(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> Path:
    """Keep any log files a test triggers out of the user's home directory."""
    target = tmp_path / "logs"
    monkeypatch.setenv("INKLOOP_LOG_DIR", str(target))
    return target
