"""
Conditional Gate — predicados de elegibilidade de Stages.

Este módulo define o conjunto FECHADO de predicados que podem condicionar
a execução de um Stage e o avaliador que os aplica sobre o RunContext.

Predicados disponíveis:
    - Always          → sempre verdadeiro (default de Stages sem condição)
    - EventIs         → tipo do evento pertence a um conjunto
    - RefMatches      → ref do evento casa com um padrão de filtro
    - StageOutcomeIs  → resultado agregado de um Stage pertence a um conjunto
    - AllOf / AnyOf / Not → composição booleana

Composição idiomática:

    RefMatches("refs/tags/v*") & ~EventIs({EventKind.PULL_REQUEST})

Decisões arquiteturais:
    - Não existe interpretador de expressões: apenas os predicados acima
    - Predicados são dataclasses imutáveis, sem efeitos colaterais
    - A avaliação lê uma visão congelada (`GateView`) do RunContext
    - O resultado de cada gate é avaliado uma única vez e cacheado na run

Invariantes:
    - `evaluate` é função pura da `GateView`
    - `referenced_stages` lista todos os Stages lidos pelo predicado; o
      planner exige que sejam predecessores transitivos do Stage gated

Limites explícitos:
    - Não executa Jobs
    - Não decide ordem de execução
"""

from __future__ import annotations

from dataclasses import dataclass
from types import MappingProxyType
from typing import TYPE_CHECKING, Any, Dict, FrozenSet, Iterable, Mapping, Tuple

from atlas_ci.core.exceptions import DefinitionError
from atlas_ci.core.pipeline.types import Event, EventKind, StageOutcome

from .refs import ref_matches

if TYPE_CHECKING:  # pragma: no cover
    from atlas_ci.core.pipeline.context import RunContext
    from atlas_ci.core.pipeline.definition import Stage


@dataclass(frozen=True)
class GateView:
    """Visão somente-leitura do RunContext consumida pelos predicados."""

    event: Event
    outcomes: Mapping[str, StageOutcome]

    def outcome_of(self, stage: str) -> StageOutcome:
        return self.outcomes.get(stage, StageOutcome.PENDING)


class Condition:
    """Base dos predicados de gate."""

    def evaluate(self, view: GateView) -> bool:
        raise NotImplementedError

    def referenced_stages(self) -> FrozenSet[str]:
        return frozenset()

    def to_dict(self) -> Dict[str, Any]:
        raise NotImplementedError

    def __and__(self, other: "Condition") -> "Condition":
        return AllOf((self, other))

    def __or__(self, other: "Condition") -> "Condition":
        return AnyOf((self, other))

    def __invert__(self) -> "Condition":
        return Not(self)


@dataclass(frozen=True)
class Always(Condition):
    def evaluate(self, view: GateView) -> bool:
        return True

    def to_dict(self) -> Dict[str, Any]:
        return {"always": True}


@dataclass(frozen=True)
class EventIs(Condition):
    kinds: FrozenSet[EventKind]

    def __post_init__(self) -> None:
        object.__setattr__(self, "kinds", frozenset(EventKind(k) for k in self.kinds))

    def evaluate(self, view: GateView) -> bool:
        return view.event.kind in self.kinds

    def to_dict(self) -> Dict[str, Any]:
        return {"event": sorted(k.value for k in self.kinds)}


@dataclass(frozen=True)
class RefMatches(Condition):
    pattern: str

    def evaluate(self, view: GateView) -> bool:
        return ref_matches(self.pattern, view.event.qualified_ref)

    def to_dict(self) -> Dict[str, Any]:
        return {"ref": self.pattern}


@dataclass(frozen=True)
class StageOutcomeIs(Condition):
    stage: str
    outcomes: FrozenSet[StageOutcome]

    def __post_init__(self) -> None:
        object.__setattr__(self, "outcomes", frozenset(StageOutcome(o) for o in self.outcomes))

    def evaluate(self, view: GateView) -> bool:
        current = view.outcome_of(self.stage)
        if not current.is_resolved:
            raise DefinitionError(
                f"Gate avaliado antes do stage '{self.stage}' ser resolvido",
                details={"stage": self.stage},
            )
        return current in self.outcomes

    def referenced_stages(self) -> FrozenSet[str]:
        return frozenset({self.stage})

    def to_dict(self) -> Dict[str, Any]:
        return {"outcome": {"stage": self.stage, "is": sorted(o.value for o in self.outcomes)}}


@dataclass(frozen=True)
class AllOf(Condition):
    conditions: Tuple[Condition, ...]

    def evaluate(self, view: GateView) -> bool:
        return all(c.evaluate(view) for c in self.conditions)

    def referenced_stages(self) -> FrozenSet[str]:
        return frozenset().union(*(c.referenced_stages() for c in self.conditions))

    def to_dict(self) -> Dict[str, Any]:
        return {"all": [c.to_dict() for c in self.conditions]}


@dataclass(frozen=True)
class AnyOf(Condition):
    conditions: Tuple[Condition, ...]

    def evaluate(self, view: GateView) -> bool:
        return any(c.evaluate(view) for c in self.conditions)

    def referenced_stages(self) -> FrozenSet[str]:
        return frozenset().union(*(c.referenced_stages() for c in self.conditions))

    def to_dict(self) -> Dict[str, Any]:
        return {"any": [c.to_dict() for c in self.conditions]}


@dataclass(frozen=True)
class Not(Condition):
    condition: Condition

    def evaluate(self, view: GateView) -> bool:
        return not self.condition.evaluate(view)

    def referenced_stages(self) -> FrozenSet[str]:
        return self.condition.referenced_stages()

    def to_dict(self) -> Dict[str, Any]:
        return {"not": self.condition.to_dict()}


ALWAYS = Always()


def _as_list(value: Any) -> Iterable[Any]:
    if isinstance(value, (list, tuple, set, frozenset)):
        return value
    return [value]


def condition_from_dict(data: Any) -> Condition:
    """
    Constrói um predicado a partir do mapeamento declarativo fechado.

    Formas aceitas (exatamente uma chave por nível):
        {"always": true}
        {"event": "tag-create"} | {"event": ["push", "manual"]}
        {"ref": "refs/tags/v*"}
        {"outcome": {"stage": "build", "is": ["succeeded"]}}
        {"all": [...]} | {"any": [...]} | {"not": {...}}

    Raises:
        DefinitionError: forma desconhecida ou valor inválido.
    """
    if isinstance(data, Condition):
        return data
    if not isinstance(data, dict) or len(data) != 1:
        raise DefinitionError(
            "Condição deve ser um mapa com exatamente uma chave",
            details={"received": repr(data)},
        )

    (key, value), = data.items()
    try:
        if key == "always":
            return ALWAYS if value else Not(ALWAYS)
        if key == "event":
            return EventIs(frozenset(EventKind(v) for v in _as_list(value)))
        if key == "ref":
            if not isinstance(value, str) or not value:
                raise DefinitionError("Condição 'ref' requer um padrão não vazio")
            return RefMatches(value)
        if key == "outcome":
            if not isinstance(value, dict) or "stage" not in value:
                raise DefinitionError("Condição 'outcome' requer 'stage'")
            wanted = value.get("is", [StageOutcome.SUCCEEDED.value])
            return StageOutcomeIs(
                str(value["stage"]),
                frozenset(StageOutcome(v) for v in _as_list(wanted)),
            )
        if key == "all":
            return AllOf(tuple(condition_from_dict(c) for c in _as_list(value)))
        if key == "any":
            return AnyOf(tuple(condition_from_dict(c) for c in _as_list(value)))
        if key == "not":
            return Not(condition_from_dict(value))
    except ValueError as exc:
        raise DefinitionError(
            f"Valor inválido na condição '{key}': {exc}",
            details={"key": key},
        ) from exc

    raise DefinitionError(
        f"Predicado de condição desconhecido: '{key}'",
        details={"key": key, "allowed": ["always", "event", "ref", "outcome", "all", "any", "not"]},
    )


def evaluate_gate(stage: "Stage", ctx: "RunContext") -> bool:
    """
    Avalia (uma única vez) a condição de um Stage para a run corrente.

    O resultado é cacheado no RunContext; consultas seguintes devolvem o
    valor cacheado sem reavaliar o predicado.

    Raises:
        DefinitionError: um Stage referenciado ainda não foi resolvido
            (erro de programação do engine: o planner deveria ter rejeitado).
    """
    cached = ctx.gate_result(stage.name)
    if cached is not None:
        return cached

    condition = stage.condition or ALWAYS
    for ref in sorted(condition.referenced_stages()):
        if not ctx.stage_outcome(ref).is_resolved:
            raise DefinitionError(
                f"Gate do stage '{stage.name}' referencia stage não resolvido '{ref}'",
                details={"stage": stage.name, "referenced": ref},
            )

    view = GateView(event=ctx.event, outcomes=MappingProxyType(ctx.stage_outcomes()))
    return ctx.record_gate(stage.name, condition.evaluate(view))
