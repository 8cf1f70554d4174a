"""
Matrix Expander — expansão determinística de eixos em bindings de Jobs.

Este módulo transforma uma `MatrixSpec` (eixos + include/exclude) em uma
lista ordenada e deduplicada de bindings, cada uma representando um Job
concreto do Stage.

Algoritmo (v1):
    1. Produto cartesiano dos valores dos eixos, na ordem declarada dos
       eixos (o primeiro eixo varia mais devagar).
    2. `exclude`: remove toda entrada do produto que casa com TODOS os
       campos de algum padrão de exclusão.
    3. `include`: para cada entrada de inclusão,
        - estende toda entrada do produto cujos valores de eixo concordam
          com os campos de eixo da inclusão, adicionando apenas os campos
          que não são eixos (valores originais de eixo nunca são
          sobrescritos);
        - se nenhuma entrada do produto casar, a inclusão é anexada como
          nova binding, a menos que uma binding igual já exista.

As operações são expressas como diferença/união de conjuntos sobre
tuplas de binding, não como casamento textual.

Invariantes:
    - A mesma MatrixSpec sempre produz a mesma lista, na mesma ordem
    - Nenhuma binding aparece duas vezes
    - Campos introduzidos por `include` só aparecem nos Jobs casados
    - Qualquer eixo com zero valores ⇒ lista vazia (Stage vazio)

Limites explícitos:
    - Nunca falha em tempo de run; validação de tipos ocorre no planner
    - Não cria Jobs nem identidades além de `job_id_for`
"""

from __future__ import annotations

from dataclasses import dataclass, field
from itertools import product
from typing import Any, Dict, List, Mapping, Sequence, Tuple

from atlas_ci.core.pipeline.types import MatrixBinding


@dataclass(frozen=True)
class MatrixSpec:
    """
    Conjunto de eixos da matrix de um Stage.

    Campos:
        - axes: pares (eixo, valores) em ordem declarada
        - include: bindings parciais ou completas a mesclar/anexar
        - exclude: padrões parciais a remover do produto
    """
    axes: Tuple[Tuple[str, Tuple[Any, ...]], ...] = ()
    include: Tuple[Mapping[str, Any], ...] = field(default_factory=tuple)
    exclude: Tuple[Mapping[str, Any], ...] = field(default_factory=tuple)

    @classmethod
    def from_mapping(
        cls,
        axes: Mapping[str, Sequence[Any]],
        *,
        include: Sequence[Mapping[str, Any]] = (),
        exclude: Sequence[Mapping[str, Any]] = (),
    ) -> "MatrixSpec":
        return cls(
            axes=tuple((str(name), tuple(values)) for name, values in axes.items()),
            include=tuple(dict(entry) for entry in include),
            exclude=tuple(dict(entry) for entry in exclude),
        )

    @property
    def axis_names(self) -> Tuple[str, ...]:
        return tuple(name for name, _ in self.axes)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "axes": {name: list(values) for name, values in self.axes},
            "include": [dict(e) for e in self.include],
            "exclude": [dict(e) for e in self.exclude],
        }


def _matches(binding: Dict[str, Any], pattern: Mapping[str, Any]) -> bool:
    return all(key in binding and binding[key] == value for key, value in pattern.items())


def _freeze(binding: Dict[str, Any]) -> MatrixBinding:
    return tuple(binding.items())


def expand_matrix(spec: MatrixSpec) -> List[MatrixBinding]:
    """
    Expande a matrix em bindings ordenadas e deduplicadas.

    Args:
        spec (MatrixSpec): Eixos e regras de include/exclude.

    Returns:
        List[MatrixBinding]: Bindings na ordem de expansão.
    """
    if not spec.axes:
        # sem eixos: cada include é um Job próprio; nenhum include ⇒ um Job sem parâmetros
        if not spec.include:
            return [()]
        return _dedup([_freeze(dict(entry)) for entry in spec.include])

    if any(len(values) == 0 for _, values in spec.axes):
        return []

    names = spec.axis_names
    base: List[Dict[str, Any]] = [
        dict(zip(names, combo)) for combo in product(*(values for _, values in spec.axes))
    ]

    base = [b for b in base if not any(_matches(b, pattern) for pattern in spec.exclude)]

    axis_set = set(names)
    extra: List[Dict[str, Any]] = []
    for entry in spec.include:
        axis_fields = {k: v for k, v in entry.items() if k in axis_set}
        added_fields = {k: v for k, v in entry.items() if k not in axis_set}

        hit = False
        for binding in base:
            if _matches(binding, axis_fields):
                binding.update(added_fields)
                hit = True
        if not hit:
            extra.append(dict(entry))

    return _dedup([_freeze(b) for b in base] + [_freeze(e) for e in extra])


def _dedup(bindings: List[MatrixBinding]) -> List[MatrixBinding]:
    seen = set()
    out: List[MatrixBinding] = []
    for binding in bindings:
        # identidade por conteúdo, independente da ordem dos campos
        key = frozenset(binding)
        if key in seen:
            continue
        seen.add(key)
        out.append(binding)
    return out


def job_id_for(stage: str, binding: MatrixBinding) -> str:
    """Identidade estável de um Job: `stage` ou `stage (eixo=valor, ...)`."""
    if not binding:
        return stage
    params = ", ".join(f"{k}={v}" for k, v in binding)
    return f"{stage} ({params})"
