"""Shared fixtures for testgen tests."""

from pathlib import Path

import pytest


@pytest.fixture(autouse=True)
def isolated_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Keep user config and environment overrides out of tests."""
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setenv("HOME", str(home))
    for var in ("TESTGEN_CONFIG", "TESTGEN_MODE", "TESTGEN_LOG_LEVEL"):
        monkeypatch.delenv(var, raising=False)
    return home
