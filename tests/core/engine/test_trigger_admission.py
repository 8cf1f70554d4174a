# tests/core/engine/test_trigger_admission.py
"""
Testes do Trigger Evaluator (admissão de eventos).

Os testes asseguram que:
- cada definição admitida corresponde a uma run independente
- tipo e ref do evento são avaliados pela regra de topo
- nenhuma definição casando produz lista vazia (não é erro)
- definições sem regras só aceitam eventos manuais
"""

from atlas_ci.core.engine.trigger import TriggerEvaluator, definition_matches
from atlas_ci.core.pipeline.definition import PipelineDefinition, Stage, StepTemplate, TriggerRule
from atlas_ci.core.pipeline.types import Event, EventKind


def _definition(name, *rules):
    return PipelineDefinition(
        name=name,
        stages=(Stage(name="noop", steps=(StepTemplate(id="s", uses="test.echo"),)),),
        triggers=tuple(rules),
    )


def test_wheels_definition_admits_tag_and_branch_pushes(wheels_definition):
    evaluator = TriggerEvaluator([wheels_definition])

    assert evaluator.admit(Event(EventKind.TAG_CREATE, "refs/tags/v0.4.18")) == [wheels_definition]
    assert evaluator.admit(Event(EventKind.PUSH, "refs/heads/master")) == [wheels_definition]
    assert evaluator.admit(Event(EventKind.PUSH, "refs/heads/0.4.X")) == [wheels_definition]


def test_unmatched_event_admits_nothing(wheels_definition):
    evaluator = TriggerEvaluator([wheels_definition])

    assert evaluator.admit(Event(EventKind.PULL_REQUEST, "refs/pull/7/merge")) == []
    assert evaluator.admit(Event(EventKind.PUSH, "refs/heads/feature/x")) == []
    assert evaluator.admit(Event(EventKind.TAG_CREATE, "refs/tags/release-1")) == []


def test_each_matching_definition_is_admitted_in_registration_order():
    ci = _definition("ci", TriggerRule(kinds=frozenset({EventKind.PUSH})))
    docs = _definition("docs", TriggerRule(refs=("master",)))
    nightly = _definition("nightly", TriggerRule(kinds=frozenset({EventKind.MANUAL})))

    admitted = TriggerEvaluator([ci, docs, nightly]).admit(Event(EventKind.PUSH, "refs/heads/master"))

    assert [d.name for d in admitted] == ["ci", "docs"]


def test_short_event_ref_matches_full_ref_filter():
    definition = _definition("ci", TriggerRule(refs=("refs/heads/master",)))

    assert definition_matches(definition, Event(EventKind.PUSH, "master")) is True
    assert definition_matches(definition, Event(EventKind.TAG_CREATE, "master")) is False


def test_definition_without_triggers_only_accepts_manual_events():
    definition = _definition("adhoc")

    assert definition_matches(definition, Event(EventKind.MANUAL)) is True
    assert definition_matches(definition, Event(EventKind.PUSH, "refs/heads/master")) is False


def test_event_kind_accepts_canonical_text():
    assert Event("tag-create", "refs/tags/v1").kind is EventKind.TAG_CREATE
