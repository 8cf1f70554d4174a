"""
Estruturas declarativas de uma definição de pipeline.

Este módulo define o modelo em memória que o engine interpreta:

    PipelineDefinition
      ├── triggers: TriggerRule...      (quando uma run é criada)
      └── stages:   Stage...            (o que executar)
            ├── matrix: MatrixSpec      (fan-out em Jobs)
            ├── steps:  StepTemplate... (pipeline sequencial de cada Job)
            ├── needs:  nomes de Stages (arestas do DAG)
            ├── condition: Condition    (gate de elegibilidade)
            └── policy: FailurePolicy

Princípios fundamentais:
    - Estruturas imutáveis (frozen); a definição nunca muda durante a run
    - Dependências e condições são explícitas e declarativas
    - Validação estrutural acontece no planner, antes de qualquer run

Limites explícitos:
    - Não executa nem planeja
    - Não interpreta expressões (ver `engine.gate`)
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, FrozenSet, Mapping, Optional, Tuple

from atlas_ci.core.engine.gate import Condition
from atlas_ci.core.engine.matrix import MatrixSpec
from atlas_ci.core.engine.refs import match_ref_filters

from .types import Event, EventKind, FailurePolicy


@dataclass(frozen=True)
class StepTemplate:
    """
    Template de um Step: instanciado uma vez por Job.

    Campos:
        - id: identificador único dentro do Stage
        - uses: referência da action (ex.: `artifact.upload@v2`)
        - with_: mapa de parâmetros; strings aceitam interpolação `${{ ... }}`
        - continue_on_error: falha registrada mas não aborta o Job
        - name: rótulo opcional para relatório
    """
    id: str
    uses: str
    with_: Mapping[str, Any] = field(default_factory=dict)
    continue_on_error: bool = False
    name: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "uses": self.uses,
            "with": dict(self.with_),
            "continue_on_error": self.continue_on_error,
            "name": self.name,
        }


@dataclass(frozen=True)
class Stage:
    """
    Fase nomeada do pipeline, possivelmente expandida em vários Jobs.

    `display_name` aceita interpolação de `matrix.*` e é renderizado por Job.
    """
    name: str
    steps: Tuple[StepTemplate, ...] = ()
    needs: Tuple[str, ...] = ()
    matrix: Optional[MatrixSpec] = None
    condition: Optional[Condition] = None
    policy: FailurePolicy = FailurePolicy.FAIL_FAST
    display_name: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "needs": list(self.needs),
            "matrix": self.matrix.to_dict() if self.matrix is not None else None,
            "if": self.condition.to_dict() if self.condition is not None else None,
            "policy": self.policy.value,
            "display_name": self.display_name,
            "steps": [s.to_dict() for s in self.steps],
        }


@dataclass(frozen=True)
class TriggerRule:
    """
    Predicado de disparo de topo.

    - kinds vazio ⇒ qualquer tipo de evento
    - refs vazio ⇒ qualquer ref; caso contrário, filtros ordenados com `!`
    """
    kinds: FrozenSet[EventKind] = frozenset()
    refs: Tuple[str, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "kinds", frozenset(EventKind(k) for k in self.kinds))

    def matches(self, event: Event) -> bool:
        if self.kinds and event.kind not in self.kinds:
            return False
        if not self.refs:
            return True
        return match_ref_filters(self.refs, event.qualified_ref)

    def to_dict(self) -> Dict[str, Any]:
        return {"kinds": sorted(k.value for k in self.kinds), "refs": list(self.refs)}


@dataclass(frozen=True)
class PipelineDefinition:
    """Definição completa: stages em ordem declarada + regras de disparo."""
    name: str
    stages: Tuple[Stage, ...]
    triggers: Tuple[TriggerRule, ...] = ()

    def stage(self, name: str) -> Stage:
        for s in self.stages:
            if s.name == name:
                return s
        raise KeyError(name)

    @property
    def stage_names(self) -> Tuple[str, ...]:
        return tuple(s.name for s in self.stages)

    def validate(self, actions: Optional[Any] = None) -> None:
        """Raises DefinitionError se a definição não formar um pipeline executável."""
        from atlas_ci.core.engine.planner import plan_stages  # planner depende deste módulo

        plan_stages(self, actions=actions)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "triggers": [t.to_dict() for t in self.triggers],
            "stages": [s.to_dict() for s in self.stages],
        }
