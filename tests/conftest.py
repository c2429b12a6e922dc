"""Pytest configuration and fixtures."""

from concurrent.futures import Executor, Future
from pathlib import Path

import pytest

from cortex.config import CortexConfig
from cortex.diagnostics import DiagnosticLog
from cortex.storage.gateway import PersistenceGateway
from cortex.tree.forest import Forest
from cortex.tree.store import create_node
from cortex.workspace import Workspace


class InlineExecutor(Executor):
    """Runs submitted work immediately, so saves are visible right away."""

    def submit(self, fn, /, *args, **kwargs):
        future: Future = Future()
        try:
            future.set_result(fn(*args, **kwargs))
        except Exception as e:
            future.set_exception(e)
        return future


@pytest.fixture
def data_dir(tmp_path: Path) -> Path:
    """Empty data directory."""
    return tmp_path / "cortex"


@pytest.fixture
def config(data_dir: Path) -> CortexConfig:
    return CortexConfig(data_dir=data_dir)


@pytest.fixture
def gateway(data_dir: Path) -> PersistenceGateway:
    return PersistenceGateway(data_dir, diagnostics=DiagnosticLog())


@pytest.fixture
def sample_forest() -> Forest:
    """Work > Plan (links to Budget), plus a root Budget note."""
    forest, work = create_node(Forest(), "folder", None, {"title": "Work"}, now=1_000)
    forest, _ = create_node(forest, "note", work.id, {"title": "Plan", "content": "See [[Budget]]"}, now=2_000)
    forest, _ = create_node(forest, "note", None, {"title": "Budget"}, now=3_000)
    return forest


@pytest.fixture
def inline_executor() -> Executor:
    return InlineExecutor()


@pytest.fixture
def workspace(config: CortexConfig, inline_executor: Executor) -> Workspace:
    """Fresh seeded workspace whose saves run inline."""
    ws = Workspace.open(config, executor=inline_executor)
    yield ws
    ws.close()
