# tests/core/engine/test_engine_facade.py
"""
Testes da fachada Engine (evento → runs → relatórios).

Este módulo valida a integração entre Trigger Evaluator, planner,
Scheduler e Manifest através da API pública do Engine.

Os testes asseguram que:
- cada definição admitida produz uma run independente
- eventos sem definição casando não criam runs
- definições inválidas são rejeitadas antes de qualquer run
- o Manifest da run é mantido em memória e, quando configurado,
  persistido junto do report.md
- configurações inválidas do engine falham na construção

Limites explícitos:
    - O cenário completo de wheels é coberto em tests/e2e
"""

import pytest

from atlas_ci.core.config.errors import InvalidEngineSettingError
from atlas_ci.core.engine.engine import Engine
from atlas_ci.core.exceptions import DefinitionError
from atlas_ci.core.pipeline.definition import PipelineDefinition, Stage, StepTemplate, TriggerRule
from atlas_ci.core.pipeline.types import Event, EventKind, RunStatus
from atlas_ci.core.traceability.manifest import load_manifest


def _definition(name, uses="test.record", kinds=(EventKind.PUSH,)):
    return PipelineDefinition(
        name=name,
        stages=(Stage(name="build", steps=(StepTemplate(id="s", uses=uses),)),),
        triggers=(TriggerRule(kinds=frozenset(kinds)),),
    )


def test_dispatch_runs_each_admitted_definition(registry, fixed_clock):
    engine = Engine([_definition("a"), _definition("b"), _definition("c", kinds=(EventKind.MANUAL,))],
                    actions=registry, clock=fixed_clock)

    reports = engine.dispatch(Event(EventKind.PUSH, "refs/heads/master"))

    assert [r.pipeline for r in reports] == ["a", "b"]
    assert len({r.run_id for r in reports}) == 2
    assert all(r.status is RunStatus.SUCCEEDED for r in reports)
    assert set(engine.manifests) == {r.run_id for r in reports}


def test_dispatch_without_match_creates_no_run(registry):
    engine = Engine([_definition("a")], actions=registry)

    assert engine.dispatch(Event(EventKind.PULL_REQUEST, "refs/pull/1/merge")) == []
    assert engine.manifests == {}


def test_invalid_definition_is_rejected_before_any_run(registry):
    engine = Engine([_definition("ok"), _definition("broken", uses="missing.action")], actions=registry)

    with pytest.raises(DefinitionError):
        engine.dispatch(Event(EventKind.PUSH, "refs/heads/master"))

    assert registry.get("test.record").jobs() == []
    assert engine.manifests == {}


def test_validate_checks_every_definition(registry):
    engine = Engine([_definition("broken", uses="missing.action")], actions=registry)

    with pytest.raises(DefinitionError):
        engine.validate()


def test_report_meta_carries_traceability_hashes(registry, fixed_clock):
    engine = Engine([_definition("a")], actions=registry, clock=fixed_clock)

    (report,) = engine.dispatch(Event(EventKind.PUSH, "refs/heads/master"))

    manifest = engine.manifests[report.run_id]
    assert report.meta["config_hash"] == manifest.inputs["config_hash"]
    assert report.meta["definition_hash"] == manifest.inputs["definition_hash"]
    assert manifest.events[0]["event_type"] == "run_started"
    assert manifest.events[-1]["event_type"] == "run_finished"
    assert manifest.run["status"] == "succeeded"


def test_manifest_and_report_are_persisted(tmp_path, registry, fixed_clock):
    engine = Engine([_definition("a")], actions=registry, clock=fixed_clock, manifest_dir=tmp_path)

    (report,) = engine.dispatch(Event(EventKind.PUSH, "refs/heads/master"))

    run_dir = tmp_path / report.run_id
    restored = load_manifest(run_dir / "manifest.json")
    assert restored.to_dict() == engine.manifests[report.run_id].to_dict()
    assert (run_dir / "report.md").read_text(encoding="utf-8").startswith("# Run Report")


def test_artifacts_root_selects_local_dir_transport(tmp_path, registry):
    engine = Engine([_definition("a")], actions=registry, config={"artifacts": {"root": str(tmp_path)}})

    assert type(engine.store.transport).__name__ == "LocalDirTransport"
    assert engine.store.transport.root == tmp_path


def test_invalid_engine_setting_fails_on_construction(registry):
    with pytest.raises(InvalidEngineSettingError):
        Engine([_definition("a")], actions=registry, config={"engine": {"max_concurrency": 0}})
