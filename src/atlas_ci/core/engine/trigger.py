"""
Trigger Evaluator — admissão de eventos.

Dado um evento `(kind, ref)`, devolve as definições cujo predicado de
disparo de topo casa. Cada definição admitida gera uma run independente.

Regras:
    - uma definição casa se QUALQUER uma de suas `TriggerRule` casar
    - definição sem regras só casa eventos `manual`
    - nenhuma definição casando ⇒ lista vazia (não é erro)
"""

from __future__ import annotations

from typing import Iterable, List, Tuple

from atlas_ci.core.pipeline.definition import PipelineDefinition
from atlas_ci.core.pipeline.types import Event, EventKind


def definition_matches(definition: PipelineDefinition, event: Event) -> bool:
    if not definition.triggers:
        return event.kind is EventKind.MANUAL
    return any(rule.matches(event) for rule in definition.triggers)


class TriggerEvaluator:
    """Avaliador de disparo sobre um conjunto fixo de definições."""

    def __init__(self, definitions: Iterable[PipelineDefinition]) -> None:
        self.definitions: Tuple[PipelineDefinition, ...] = tuple(definitions)

    def admit(self, event: Event) -> List[PipelineDefinition]:
        """Definições admitidas, na ordem em que foram registradas."""
        return [d for d in self.definitions if definition_matches(d, event)]
