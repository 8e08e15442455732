from pathlib import Path

import pytest
from loguru import logger


@pytest.fixture(autouse=True)
def isolated_env(tmp_path: Path, monkeypatch):
    """Silence logging and keep HOME, cache and config inside tmp_path."""
    logger.remove()
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.setenv("TAB_SWITCHES_CACHE_DIR", str(tmp_path / "cache"))
    monkeypatch.delenv("TAB_SWITCHES_CONFIG", raising=False)
    monkeypatch.setenv("XDG_STATE_HOME", str(tmp_path / "state"))
    yield home


@pytest.fixture
def home(isolated_env) -> Path:
    return isolated_env
