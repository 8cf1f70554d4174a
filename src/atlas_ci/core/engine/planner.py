# src/atlas_ci/core/engine/planner.py
"""
Planejador de execução do pipeline (DAG de Stages).

Este módulo é responsável por validar a estrutura de uma definição de
pipeline e produzir uma ordem topológica determinística dos Stages
declarados.

O planner opera exclusivamente em nível estrutural, analisando:
    - nomes de Stages (não vazios e únicos)
    - dependências declaradas em `needs`
    - formação de ciclos
    - referências de gates (apenas predecessores transitivos)
    - Steps (ids únicos por Stage, referências de action resolvíveis)
    - valores de matrix (hasháveis) e namespaces de interpolação

Princípios fundamentais:
    - O pipeline deve formar um DAG válido
    - A ordenação é determinística para a mesma entrada
    - Validação estrutural ocorre antes de qualquer run
    - Toda falha estrutural é um `DefinitionError` (fatal)

Decisões arquiteturais:
    - Utiliza ordenação topológica determinística (Kahn modificado)
    - Empates são resolvidos por ordem lexicográfica do nome do Stage
    - Um gate que referencia um Stage fora do fecho de predecessores é
      rejeitado aqui, nunca em tempo de run

Invariantes:
    - Nenhum Stage aparece antes de suas dependências
    - Todos os Stages aparecem exatamente uma vez
    - A mesma definição produz sempre a mesma ordem

Limites explícitos:
    - Não executa Jobs
    - Não interage com RunContext
    - Não expande matrix (ver `engine.matrix`)
"""

from __future__ import annotations

from typing import Dict, FrozenSet, List, Optional, Set

from atlas_ci.core.exceptions import DefinitionError
from atlas_ci.core.pipeline.action import ActionRegistry
from atlas_ci.core.pipeline.definition import PipelineDefinition, Stage

from .interpolation import NAMESPACES, referenced_namespaces


def _fail(message: str, *, pipeline: str, stage: Optional[str] = None, **details) -> DefinitionError:
    payload = {"pipeline": pipeline, "stage": stage}
    payload.update(details)
    return DefinitionError(message, details=payload)


def _check_hashable(value, *, pipeline: str, stage: str, where: str) -> None:
    try:
        hash(value)
    except TypeError:
        raise _fail(
            f"Valor de matrix não hashável em {where}: {value!r}",
            pipeline=pipeline,
            stage=stage,
            where=where,
        ) from None


def _validate_matrix(stage: Stage, pipeline: str) -> None:
    spec = stage.matrix
    if spec is None:
        return
    seen: Set[str] = set()
    for axis, values in spec.axes:
        if not isinstance(axis, str) or not axis.strip():
            raise _fail("Nome de eixo de matrix inválido", pipeline=pipeline, stage=stage.name)
        if axis in seen:
            raise _fail(f"Eixo de matrix duplicado: {axis}", pipeline=pipeline, stage=stage.name)
        seen.add(axis)
        for value in values:
            _check_hashable(value, pipeline=pipeline, stage=stage.name, where=f"matrix.{axis}")
    for label, entries in (("include", spec.include), ("exclude", spec.exclude)):
        for entry in entries:
            for key, value in entry.items():
                _check_hashable(value, pipeline=pipeline, stage=stage.name, where=f"{label}.{key}")


def _validate_steps(stage: Stage, pipeline: str, actions: Optional[ActionRegistry]) -> None:
    seen: Set[str] = set()
    for step in stage.steps:
        if not isinstance(step.id, str) or not step.id.strip():
            raise _fail("step.id must be a non-empty string", pipeline=pipeline, stage=stage.name)
        if step.id in seen:
            raise _fail(f"Duplicate step id: {step.id}", pipeline=pipeline, stage=stage.name, step=step.id)
        seen.add(step.id)

        if not isinstance(step.uses, str) or not step.uses.strip():
            raise _fail(f"Step '{step.id}' sem referência de action", pipeline=pipeline, stage=stage.name)
        if actions is not None and not actions.has(step.uses):
            raise _fail(
                f"Step '{step.id}' referencia action desconhecida '{step.uses}'",
                pipeline=pipeline,
                stage=stage.name,
                step=step.id,
                uses=step.uses,
            )

        unknown = referenced_namespaces(dict(step.with_)) - NAMESPACES
        if unknown:
            raise _fail(
                f"Step '{step.id}' referencia namespaces desconhecidos: {sorted(unknown)}",
                pipeline=pipeline,
                stage=stage.name,
                step=step.id,
            )

    if stage.display_name and referenced_namespaces(stage.display_name) - {"matrix"}:
        raise _fail(
            "display_name aceita apenas interpolação de `matrix.*`",
            pipeline=pipeline,
            stage=stage.name,
        )


def transitive_predecessors(definition: PipelineDefinition) -> Dict[str, FrozenSet[str]]:
    """
    Fecho transitivo de `needs` por Stage.

    Assume um grafo já validado como acíclico (ver `plan_stages`).
    """
    direct = {s.name: tuple(s.needs) for s in definition.stages}
    closure: Dict[str, FrozenSet[str]] = {}

    def visit(name: str) -> FrozenSet[str]:
        if name in closure:
            return closure[name]
        acc: Set[str] = set()
        for dep in direct.get(name, ()):
            acc.add(dep)
            acc |= visit(dep)
        closure[name] = frozenset(acc)
        return closure[name]

    for name in direct:
        visit(name)
    return closure


def plan_stages(definition: PipelineDefinition, *, actions: Optional[ActionRegistry] = None) -> List[Stage]:
    """
    Valida e produz uma ordem de execução topológica determinística de Stages.

    Sempre que múltiplos Stages estiverem prontos, a escolha é feita por
    ordem lexicográfica do nome (variação determinística de Kahn).

    Args:
        definition (PipelineDefinition): Definição a validar.
        actions (Optional[ActionRegistry]): Quando fornecido, toda referência
            `uses` precisa ser resolvível neste registro.

    Returns:
        List[Stage]: Stages em ordem topológica determinística.

    Raises:
        DefinitionError: nome inválido ou duplicado, dependência
            inexistente, ciclo, gate fora do fecho de predecessores,
            action desconhecida, step duplicado ou matrix inválida.
    """
    pipeline = definition.name
    if not isinstance(pipeline, str) or not pipeline.strip():
        raise DefinitionError("pipeline name must be a non-empty string")

    by_name: Dict[str, Stage] = {}
    for s in definition.stages:
        if not isinstance(s.name, str) or not s.name.strip():
            raise _fail("stage name must be a non-empty string", pipeline=pipeline)
        if s.name in by_name:
            raise _fail(f"Duplicate stage name: {s.name}", pipeline=pipeline, stage=s.name)
        by_name[s.name] = s

    for name, s in by_name.items():
        for dep in s.needs:
            if dep not in by_name:
                raise _fail(
                    f"Stage '{name}' depends on unknown stage '{dep}'",
                    pipeline=pipeline,
                    stage=name,
                    needs=dep,
                )

    # Kahn's algorithm (deterministic)
    incoming_count: Dict[str, int] = {name: 0 for name in by_name}
    outgoing: Dict[str, Set[str]] = {name: set() for name in by_name}
    for name, s in by_name.items():
        deps = set(s.needs)
        incoming_count[name] = len(deps)
        for dep in deps:
            outgoing[dep].add(name)

    ready: List[str] = sorted(name for name, c in incoming_count.items() if c == 0)
    order: List[str] = []
    while ready:
        name = ready.pop(0)
        order.append(name)
        for child in sorted(outgoing[name]):
            incoming_count[child] -= 1
            if incoming_count[child] == 0:
                ready.append(child)
                ready.sort()

    if len(order) != len(by_name):
        remaining = sorted(set(by_name) - set(order))
        raise _fail(
            "Cycle detected in stage dependency graph",
            pipeline=pipeline,
            stages=remaining,
        )

    preds = transitive_predecessors(definition)
    for name in order:
        s = by_name[name]
        if s.condition is not None:
            unreachable = sorted(s.condition.referenced_stages() - preds[name])
            if unreachable:
                raise _fail(
                    f"Gate do stage '{name}' referencia stages que não são predecessores: {unreachable}",
                    pipeline=pipeline,
                    stage=name,
                    referenced=unreachable,
                )
        _validate_matrix(s, pipeline)
        _validate_steps(s, pipeline, actions)

    return [by_name[name] for name in order]
