from __future__ import annotations

from collections.abc import Iterator
from pathlib import Path

import pytest

from loopflow.config import CONFIG_ENV_OVERRIDES, LoopFlowConfig
from loopflow.store import LoopFlowStore


@pytest.fixture(autouse=True)
def _isolate_config(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv("LOOPFLOW_CONFIG", str(tmp_path / "config" / "config.json"))
    for env_var in CONFIG_ENV_OVERRIDES.values():
        monkeypatch.delenv(env_var, raising=False)


@pytest.fixture
def repo(tmp_path: Path) -> Path:
    path = tmp_path / "repo"
    path.mkdir()
    return path


@pytest.fixture
def store(repo: Path) -> Iterator[LoopFlowStore]:
    handle = LoopFlowStore(repo, config=LoopFlowConfig(auto_import=False))
    try:
        yield handle
    finally:
        handle.close()
