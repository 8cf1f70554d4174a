# tests/core/engine/test_planner_stage_graph.py
"""
Testes do planner de Stages (validação estrutural + ordem topológica).

Este módulo valida que apenas definições que formam um DAG executável
são aceitas, e que a ordem produzida é determinística.

Os testes asseguram que:
- dependências inexistentes e ciclos são rejeitados
- gates só podem ler predecessores transitivos
- Steps duplicados, actions desconhecidas e namespaces inválidos falham
- valores de matrix não hasháveis falham antes de qualquer run
- empates na ordem topológica são resolvidos lexicograficamente

Invariantes:
    - Qualquer erro estrutural é `DefinitionError`
    - Nenhum plano parcial é devolvido

Limites explícitos:
    - Não executa Jobs
"""

import pytest

try:
    from atlas_ci.core.engine.gate import StageOutcomeIs
    from atlas_ci.core.engine.matrix import MatrixSpec
    from atlas_ci.core.engine.planner import plan_stages, transitive_predecessors
    from atlas_ci.core.exceptions import DefinitionError
    from atlas_ci.core.pipeline.definition import PipelineDefinition, Stage, StepTemplate
    from atlas_ci.core.pipeline.types import StageOutcome
except Exception as e:  # noqa: BLE001
    plan_stages = None
    _IMPORT_ERR = e
else:
    _IMPORT_ERR = None


def _require_imports():
    """
    Garante que o planner e seus contratos de erro estejam disponíveis.

    Falha imediatamente (sem fallback) quando `plan_stages` ou
    `DefinitionError` não podem ser importados.
    """
    if _IMPORT_ERR is not None:
        pytest.fail(f"""Missing planner. Implement:
- atlas_ci.core.engine.planner.plan_stages
- atlas_ci.core.exceptions.DefinitionError
Import error: {_IMPORT_ERR}
""")


def _step(step_id="s", uses="test.echo", **with_):
    return StepTemplate(id=step_id, uses=uses, with_=with_)


def _pipeline(*stages):
    return PipelineDefinition(name="p", stages=tuple(stages))


def test_toposort_respects_needs_and_breaks_ties_lexicographically():
    _require_imports()
    definition = _pipeline(
        Stage(name="release", needs=("wheels", "sdist"), steps=(_step(),)),
        Stage(name="wheels", steps=(_step(),)),
        Stage(name="sdist", steps=(_step(),)),
        Stage(name="docs", needs=("sdist",), steps=(_step(),)),
    )

    order = [s.name for s in plan_stages(definition)]

    assert order == ["sdist", "docs", "wheels", "release"]
    assert order == [s.name for s in plan_stages(definition)]


def test_wheels_definition_plans(wheels_definition, registry):
    _require_imports()
    order = [s.name for s in plan_stages(wheels_definition, actions=registry)]

    assert order == ["build_sdist", "build_wheels", "release_assets"]


def test_unknown_dependency_is_rejected():
    _require_imports()
    with pytest.raises(DefinitionError) as info:
        plan_stages(_pipeline(Stage(name="a", needs=("x",), steps=(_step(),))))

    assert info.value.details["needs"] == "x"


def test_cycle_is_rejected_with_remaining_stages():
    _require_imports()
    definition = _pipeline(
        Stage(name="a", needs=("c",), steps=(_step(),)),
        Stage(name="b", needs=("a",), steps=(_step(),)),
        Stage(name="c", needs=("b",), steps=(_step(),)),
        Stage(name="d", steps=(_step(),)),
    )

    with pytest.raises(DefinitionError) as info:
        plan_stages(definition)

    assert info.value.details["stages"] == ["a", "b", "c"]


def test_duplicate_stage_name_is_rejected():
    _require_imports()
    with pytest.raises(DefinitionError):
        plan_stages(_pipeline(Stage(name="a"), Stage(name="a")))


def test_gate_referencing_non_predecessor_is_rejected():
    """
    Um gate só pode ler o outcome de predecessores transitivos.

    `release` referencia `docs`, que executa em paralelo: o outcome não
    estaria garantidamente resolvido quando o gate fosse avaliado.
    """
    _require_imports()
    definition = _pipeline(
        Stage(name="build", steps=(_step(),)),
        Stage(name="docs", steps=(_step(),)),
        Stage(
            name="release",
            needs=("build",),
            condition=StageOutcomeIs("docs", frozenset({StageOutcome.SUCCEEDED})),
            steps=(_step(),),
        ),
    )

    with pytest.raises(DefinitionError) as info:
        plan_stages(definition)

    assert info.value.details["referenced"] == ["docs"]


def test_gate_referencing_transitive_predecessor_is_accepted():
    _require_imports()
    definition = _pipeline(
        Stage(name="build", steps=(_step(),)),
        Stage(name="test", needs=("build",), steps=(_step(),)),
        Stage(
            name="release",
            needs=("test",),
            condition=StageOutcomeIs("build", frozenset({StageOutcome.SUCCEEDED})),
            steps=(_step(),),
        ),
    )

    assert [s.name for s in plan_stages(definition)] == ["build", "test", "release"]


def test_duplicate_step_id_is_rejected():
    _require_imports()
    with pytest.raises(DefinitionError):
        plan_stages(_pipeline(Stage(name="a", steps=(_step("x"), _step("x")))))


def test_unknown_action_is_rejected_when_registry_given(registry):
    _require_imports()
    definition = _pipeline(Stage(name="a", steps=(_step(uses="cibuildwheel@v2"),)))

    plan_stages(definition)
    with pytest.raises(DefinitionError) as info:
        plan_stages(definition, actions=registry)

    assert info.value.details["uses"] == "cibuildwheel@v2"


def test_unknown_interpolation_namespace_is_rejected():
    _require_imports()
    definition = _pipeline(Stage(name="a", steps=(_step(token="${{ secrets.TOKEN }}"),)))

    with pytest.raises(DefinitionError):
        plan_stages(definition)


def test_display_name_only_accepts_matrix_namespace():
    _require_imports()
    definition = _pipeline(Stage(name="a", display_name="Build ${{ event.ref }}", steps=(_step(),)))

    with pytest.raises(DefinitionError):
        plan_stages(definition)


def test_unhashable_matrix_value_is_rejected():
    _require_imports()
    matrix = MatrixSpec.from_mapping({"python": [37, [38]]})

    with pytest.raises(DefinitionError) as info:
        plan_stages(_pipeline(Stage(name="a", matrix=matrix, steps=(_step(),))))

    assert info.value.details["where"] == "matrix.python"


def test_transitive_closures():
    _require_imports()
    definition = _pipeline(
        Stage(name="build"),
        Stage(name="test", needs=("build",)),
        Stage(name="release", needs=("test",)),
        Stage(name="docs"),
    )

    preds = transitive_predecessors(definition)

    assert preds["release"] == frozenset({"build", "test"})
    assert preds["docs"] == frozenset()


def test_definition_validate_delegates_to_planner():
    _require_imports()
    with pytest.raises(DefinitionError):
        _pipeline(Stage(name="a", needs=("a",))).validate()
