"""
Casamento de refs git contra padrões de filtro.

Sintaxe de padrão (compatível com filtros de branch/tag de workflows):
    - `*`   → zero ou mais caracteres, exceto `/`
    - `**`  → zero ou mais caracteres quaisquer
    - `?`   → zero ou uma ocorrência do caractere anterior
    - `+`   → uma ou mais ocorrências do caractere anterior
    - `[..]`→ um caractere da classe (ex.: `[0-9]`)
    - `!`   → prefixo de negação (apenas em listas de filtros)

Exemplos:
    - `v*`                → `v1.2.3`, `refs/tags/v1.2.3`
    - `[0-9]+.[0-9]+.X`   → `1.2.X`, `10.0.X`

Refs curtas do evento são qualificadas pelo tipo (`qualify_ref`) antes do
casamento. Um padrão casa se casar a ref completa ou o nome curto
(`refs/heads/` e `refs/tags/` removidos).
"""

from __future__ import annotations

import re
from functools import lru_cache
from typing import Iterable, List, Pattern

_SHORT_PREFIXES = ("refs/heads/", "refs/tags/", "refs/remotes/")

# prefixo de qualificação de refs curtas, por tipo de evento
_QUALIFIERS = {
    "push": "refs/heads/",
    "pull-request": "refs/heads/",
    "tag-create": "refs/tags/",
}


def short_ref(ref: str) -> str:
    for prefix in _SHORT_PREFIXES:
        if ref.startswith(prefix):
            return ref[len(prefix):]
    return ref


def qualify_ref(ref: str, kind: str) -> str:
    """
    Forma completa de uma ref para o tipo de evento `kind`.

    `v1.2.3` em `tag-create` → `refs/tags/v1.2.3`; `master` em `push` →
    `refs/heads/master`. Refs já completas, vazias ou de eventos `manual`
    são devolvidas sem alteração.
    """
    prefix = _QUALIFIERS.get(kind)
    if not ref or prefix is None or ref.startswith("refs/"):
        return ref
    return prefix + ref


def release_id_from_ref(ref: str) -> str:
    """Identificador de release: último segmento da ref (`refs/tags/v1.2.3` → `v1.2.3`)."""
    return ref.rstrip("/").rsplit("/", 1)[-1]


@lru_cache(maxsize=256)
def compile_ref_pattern(pattern: str) -> Pattern[str]:
    pieces: List[str] = []
    # a última peça emitida aceita quantificador (`+` / `?`)?
    quantifiable = False
    i = 0
    n = len(pattern)
    while i < n:
        ch = pattern[i]
        if ch == "*":
            if i + 1 < n and pattern[i + 1] == "*":
                pieces.append(".*")
                i += 2
            else:
                pieces.append("[^/]*")
                i += 1
            quantifiable = False
            continue
        if ch in "+?" and quantifiable:
            pieces[-1] = f"(?:{pieces[-1]}){ch}"
            quantifiable = False
            i += 1
            continue
        if ch == "[":
            end = pattern.find("]", i + 1)
            if end != -1:
                body = pattern[i + 1:end].replace("\\", "\\\\")
                pieces.append(f"[{body}]")
                quantifiable = True
                i = end + 1
                continue
        pieces.append(re.escape(ch))
        quantifiable = True
        i += 1
    return re.compile("".join(pieces))


def ref_matches(pattern: str, ref: str) -> bool:
    """Retorna True se `ref` (completa ou curta) casa com `pattern`."""
    regex = compile_ref_pattern(pattern)
    if regex.fullmatch(ref):
        return True
    short = short_ref(ref)
    return short != ref and regex.fullmatch(short) is not None


def match_ref_filters(patterns: Iterable[str], ref: str) -> bool:
    """
    Avalia uma lista ordenada de filtros com negação.

    Os padrões são avaliados em ordem e o último que casar decide:
    positivo inclui, `!` exclui. Nenhum padrão casando ⇒ False.
    """
    matched = False
    for pattern in patterns:
        if pattern.startswith("!"):
            if ref_matches(pattern[1:], ref):
                matched = False
        elif ref_matches(pattern, ref):
            matched = True
    return matched
