"""
Loader de definições de pipeline (YAML / JSON → PipelineDefinition).

Formato do documento (v1):

    name: wheels
    on:
      - kinds: [push]
        refs: [master, "[0-9]+.[0-9]+.X"]
      - kinds: [tag-create]
        refs: ["v*"]
    stages:
      build:
        name: "Build cp${{ matrix.python }}"
        needs: []
        fail_fast: true
        matrix:
          python: [37, 38, 39]
          include: [...]
          exclude: [...]
        if: {ref: "refs/tags/v*"}
        steps:
          - id: build
            uses: wheel.build@v1
            with: {python: "${{ matrix.python }}"}
            continue_on_error: false

Decisões arquiteturais:
    - A ordem de `stages` no documento é a ordem declarada
    - Chaves desconhecidas são erro (conjunto fechado), nunca ignoradas
    - PyYAML (YAML 1.1) lê a chave `on` como booleano `True`; ambas as
      grafias são aceitas
    - Toda falha de leitura ou de forma vira `DefinitionError`

Limites explícitos:
    - Validação de grafo (ciclos, gates, actions) ocorre no planner
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union

from atlas_ci.core.config.errors import ConfigError
from atlas_ci.core.config.loader import read_document
from atlas_ci.core.engine.gate import condition_from_dict
from atlas_ci.core.engine.matrix import MatrixSpec
from atlas_ci.core.exceptions import DefinitionError

from .definition import PipelineDefinition, Stage, StepTemplate, TriggerRule
from .types import EventKind, FailurePolicy

STAGE_KEYS = frozenset({"name", "needs", "matrix", "fail_fast", "policy", "if", "steps"})
STEP_KEYS = frozenset({"id", "uses", "with", "continue_on_error", "continue-on-error", "name"})
TRIGGER_KEYS = frozenset({"kinds", "refs"})


def _strings(value: Any, *, field: str, stage: Optional[str] = None) -> Tuple[str, ...]:
    if value is None:
        return ()
    if isinstance(value, str):
        return (value,)
    if isinstance(value, (list, tuple)) and all(isinstance(v, str) for v in value):
        return tuple(value)
    raise DefinitionError(
        f"'{field}' deve ser string ou lista de strings",
        details={"stage": stage, "field": field, "received": repr(value)},
    )


def _unknown_keys(data: Mapping[str, Any], allowed: frozenset, *, where: str) -> None:
    unknown = sorted(str(k) for k in data if k not in allowed)
    if unknown:
        raise DefinitionError(
            f"Chaves desconhecidas em {where}: {unknown}",
            details={"where": where, "unknown": unknown, "allowed": sorted(allowed)},
        )


def _trigger_from_dict(data: Any) -> TriggerRule:
    if not isinstance(data, dict):
        raise DefinitionError("Cada regra de `on` deve ser um mapa {kinds, refs}")
    _unknown_keys(data, TRIGGER_KEYS, where="on")
    try:
        kinds = frozenset(EventKind(k) for k in _strings(data.get("kinds"), field="kinds"))
    except ValueError as exc:
        raise DefinitionError(f"Tipo de evento inválido em `on`: {exc}") from exc
    return TriggerRule(kinds=kinds, refs=_strings(data.get("refs"), field="refs"))


def _matrix_from_dict(data: Any, *, stage: str) -> Optional[MatrixSpec]:
    if data is None:
        return None
    if not isinstance(data, dict):
        raise DefinitionError("`matrix` deve ser um mapa", details={"stage": stage})

    axes: Dict[str, List[Any]] = {}
    for key, values in data.items():
        if key in ("include", "exclude"):
            continue
        if not isinstance(values, list):
            raise DefinitionError(
                f"Eixo de matrix '{key}' deve ser uma lista de valores",
                details={"stage": stage, "axis": key},
            )
        axes[str(key)] = values

    entries: Dict[str, List[Dict[str, Any]]] = {}
    for key in ("include", "exclude"):
        raw = data.get(key) or []
        if not isinstance(raw, list) or not all(isinstance(e, dict) for e in raw):
            raise DefinitionError(
                f"`matrix.{key}` deve ser uma lista de mapas",
                details={"stage": stage},
            )
        entries[key] = raw

    return MatrixSpec.from_mapping(axes, include=entries["include"], exclude=entries["exclude"])


def _step_from_dict(data: Any, *, stage: str, position: int) -> StepTemplate:
    if not isinstance(data, dict):
        raise DefinitionError("Cada step deve ser um mapa", details={"stage": stage, "position": position})
    _unknown_keys(data, STEP_KEYS, where=f"stages.{stage}.steps[{position}]")
    if not isinstance(data.get("uses"), str):
        raise DefinitionError(
            "Step sem referência `uses`",
            details={"stage": stage, "position": position},
        )
    params = data.get("with") or {}
    if not isinstance(params, dict):
        raise DefinitionError("`with` deve ser um mapa", details={"stage": stage, "position": position})

    continue_on_error = data.get("continue_on_error", data.get("continue-on-error", False))
    return StepTemplate(
        id=str(data.get("id") or f"step{position + 1}"),
        uses=data["uses"],
        with_=dict(params),
        continue_on_error=bool(continue_on_error),
        name=data.get("name"),
    )


def _policy(data: Mapping[str, Any], *, stage: str) -> FailurePolicy:
    if "policy" in data:
        try:
            return FailurePolicy(data["policy"])
        except ValueError as exc:
            raise DefinitionError(f"Política inválida: {exc}", details={"stage": stage}) from exc
    fail_fast = data.get("fail_fast", True)
    if not isinstance(fail_fast, bool):
        raise DefinitionError("`fail_fast` deve ser booleano", details={"stage": stage})
    return FailurePolicy.FAIL_FAST if fail_fast else FailurePolicy.FAIL_OPEN


def _stage_from_dict(name: str, data: Any) -> Stage:
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise DefinitionError(f"Stage '{name}' deve ser um mapa", details={"stage": name})
    _unknown_keys(data, STAGE_KEYS, where=f"stages.{name}")

    steps = data.get("steps") or []
    if not isinstance(steps, list):
        raise DefinitionError("`steps` deve ser uma lista", details={"stage": name})

    condition = None
    if data.get("if") is not None:
        condition = condition_from_dict(data["if"])

    return Stage(
        name=name,
        steps=tuple(_step_from_dict(s, stage=name, position=i) for i, s in enumerate(steps)),
        needs=_strings(data.get("needs"), field="needs", stage=name),
        matrix=_matrix_from_dict(data.get("matrix"), stage=name),
        condition=condition,
        policy=_policy(data, stage=name),
        display_name=data.get("name"),
    )


def definition_from_dict(data: Mapping[str, Any]) -> PipelineDefinition:
    """
    Constrói uma PipelineDefinition a partir do documento já carregado.

    Raises:
        DefinitionError: forma inválida do documento.
    """
    if not isinstance(data, Mapping):
        raise DefinitionError("Definição de pipeline deve ser um mapa")

    name = data.get("name")
    if not isinstance(name, str) or not name.strip():
        raise DefinitionError("Definição de pipeline requer `name` não vazio")

    raw_on = data["on"] if "on" in data else data.get(True)
    if raw_on is None:
        raw_on = []
    if isinstance(raw_on, dict):
        raw_on = [raw_on]
    if not isinstance(raw_on, list):
        raise DefinitionError("`on` deve ser uma lista de regras", details={"pipeline": name})

    stages = data.get("stages") or {}
    if not isinstance(stages, dict):
        raise DefinitionError("`stages` deve ser um mapa nome → stage", details={"pipeline": name})

    return PipelineDefinition(
        name=name,
        stages=tuple(_stage_from_dict(str(stage_name), body) for stage_name, body in stages.items()),
        triggers=tuple(_trigger_from_dict(rule) for rule in raw_on),
    )


def load_pipeline(path: Union[str, Path]) -> PipelineDefinition:
    """
    Lê e constrói uma PipelineDefinition a partir de um arquivo YAML/JSON.

    Raises:
        DefinitionError: arquivo ausente, formato não suportado, raiz
            inválida ou forma inválida do documento.
    """
    try:
        data = read_document(path)
    except ConfigError as exc:
        raise DefinitionError(str(exc), details={"path": str(path)}) from exc
    return definition_from_dict(data)
