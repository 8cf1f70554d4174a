"""
Interpolação de parâmetros de Step: `${{ <namespace>.<campo> }}`.

Namespaces (conjunto fechado):
    - matrix.<eixo>                 → valor da binding do Job
    - steps.<id>.outputs.<nome>     → output de um Step anterior do mesmo Job
    - event.kind / event.ref        → evento disparador
    - run.id                        → identificador da run
    - job.id / stage.name           → identidade do Job corrente

Uma string composta apenas por uma expressão devolve o valor bruto
(ex.: `37` como int); expressões embutidas em texto são convertidas
para string. Campos ausentes resolvem para string vazia.
"""

from __future__ import annotations

import re
from typing import Any, Dict, Mapping

EXPRESSION = re.compile(r"\$\{\{\s*([A-Za-z0-9_.\-]+)\s*\}\}")

NAMESPACES = frozenset({"matrix", "steps", "event", "run", "job", "stage"})


def referenced_namespaces(value: Any) -> set:
    """Namespaces referenciados por um valor (strings, listas e mapas aninhados)."""
    found: set = set()
    if isinstance(value, str):
        for match in EXPRESSION.finditer(value):
            found.add(match.group(1).split(".", 1)[0])
    elif isinstance(value, Mapping):
        for v in value.values():
            found |= referenced_namespaces(v)
    elif isinstance(value, (list, tuple)):
        for v in value:
            found |= referenced_namespaces(v)
    return found


def _lookup(path: str, scope: Mapping[str, Any]) -> Any:
    current: Any = scope
    for part in path.split("."):
        if isinstance(current, Mapping) and part in current:
            current = current[part]
        else:
            return ""
    return current


def render(value: Any, scope: Mapping[str, Any]) -> Any:
    if isinstance(value, str):
        whole = EXPRESSION.fullmatch(value.strip())
        if whole is not None:
            return _lookup(whole.group(1), scope)
        return EXPRESSION.sub(lambda m: str(_lookup(m.group(1), scope)), value)
    if isinstance(value, Mapping):
        return {k: render(v, scope) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [render(v, scope) for v in value]
    return value


def build_scope(
    *,
    matrix: Mapping[str, Any],
    step_outputs: Mapping[str, Mapping[str, Any]],
    event: Mapping[str, Any],
    run_id: str,
    job_id: str,
    stage: str,
) -> Dict[str, Any]:
    return {
        "matrix": dict(matrix),
        "steps": {sid: {"outputs": dict(out)} for sid, out in step_outputs.items()},
        "event": dict(event),
        "run": {"id": run_id},
        "job": {"id": job_id},
        "stage": {"name": stage},
    }
