# tests/conftest.py
"""
Fixtures compartilhados para testes do Atlas CI.

Este módulo define fixtures reutilizáveis que fornecem:
- RunContext determinístico (run_id e timestamp fixos)
- Artifact Store em memória
- registro de actions com as embutidas + actions de teste
- publisher de release em memória
- a definição de pipeline de wheels (tests/fixtures/pipelines/wheels.yaml)

Decisões arquiteturais:
    - Fixtures são mantidas simples e explícitas
    - Nenhuma fixture executa pipeline real
    - Actions de teste vivem em tests/fixtures/actions.py

Limites explícitos:
    - Não substituir testes de integração (ver tests/e2e)
"""

from datetime import datetime, timezone
from pathlib import Path

import pytest

from atlas_ci.actions import InMemoryReleasePublisher
from atlas_ci.core.artifacts.store import ArtifactStore, InMemoryTransport
from atlas_ci.core.pipeline.action import ActionRegistry
from atlas_ci.core.pipeline.context import RunContext
from atlas_ci.core.pipeline.loader import load_pipeline
from atlas_ci.core.pipeline.types import Event, EventKind

from tests.fixtures.actions import register_test_actions


FIXTURES_DIR = Path(__file__).parent / "fixtures"
FIXED_TS = datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def fixed_clock():
    """Relógio determinístico para manifest e StepOutcome."""
    return lambda: FIXED_TS


@pytest.fixture
def make_ctx():
    """
    Fábrica de RunContext com run_id e timestamp fixos.

    Returns:
        Callable[..., RunContext]
    """

    def _make(event=None, config=None, run_id="run-test"):
        return RunContext(
            run_id=run_id,
            created_at=FIXED_TS,
            event=event or Event(EventKind.PUSH, "refs/heads/master"),
            config=config if config is not None else {"engine": {"log_level": "DEBUG"}},
        )

    return _make


@pytest.fixture
def ctx(make_ctx):
    return make_ctx()


@pytest.fixture
def store():
    return ArtifactStore(InMemoryTransport())


@pytest.fixture
def publisher():
    return InMemoryReleasePublisher()


@pytest.fixture
def registry(publisher):
    """Actions embutidas + actions de teste (emit, echo, fail, raise, wait, wheel/sdist)."""
    reg = ActionRegistry.with_builtins(publisher=publisher)
    register_test_actions(reg)
    return reg


@pytest.fixture
def wheels_definition():
    return load_pipeline(FIXTURES_DIR / "pipelines" / "wheels.yaml")
