# src/atlas_ci/core/config/merge.py
"""
Deep-merge determinístico de configuração do engine.

Usado por `load_config` para aplicar o override local sobre os defaults
e por `resolve_engine_settings` para completar chaves ausentes com os
valores canônicos do engine.
"""

from __future__ import annotations

from copy import deepcopy
from typing import Any, Dict

from .errors import ConfigTypeConflictError


def deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """
    Realiza um deep-merge determinístico entre dois dicionários de configuração.

    Política de merge (v1):
        - dict + dict → merge recursivo por chave
        - list        → sobrescrita total (sem merge elemento a elemento)
        - None        → valor "não definido"; aceita e é aceito por qualquer tipo
        - escalar     → sobrescrita direta pelo override
        - conflito de tipos → erro estrutural explícito

    O tratamento de `None` existe porque as chaves opcionais do engine
    (ex.: `engine.max_concurrency: null`) são declaradas nos defaults
    como ausência explícita de valor.

    Invariantes:
        - Os inputs nunca são mutados
        - Chaves não presentes no override são preservadas da base
        - O mesmo par (base, override) sempre produz o mesmo resultado

    Args:
        base (Dict[str, Any]): Configuração base (ex.: defaults).
        override (Dict[str, Any]): Overrides explícitos da configuração.

    Returns:
        Dict[str, Any]: Nova configuração resultante do deep-merge.

    Raises:
        ConfigTypeConflictError: Se ocorrer conflito de tipo entre base e override.
    """
    if not isinstance(base, dict) or not isinstance(override, dict):
        raise ConfigTypeConflictError(
            f"Deep-merge requer dicts no nível raiz, recebido: "
            f"{type(base).__name__} vs {type(override).__name__}"
        )

    result: Dict[str, Any] = deepcopy(base)

    for key, override_value in override.items():
        if key not in result:
            result[key] = deepcopy(override_value)
            continue

        base_value = result[key]

        if isinstance(base_value, dict) and isinstance(override_value, dict):
            result[key] = deep_merge(base_value, override_value)
            continue

        if isinstance(override_value, list):
            result[key] = deepcopy(override_value)
            continue

        if base_value is None or override_value is None:
            result[key] = deepcopy(override_value)
            continue

        # bool é subclasse de int; ambos precisam bater exatamente
        if type(base_value) is not type(override_value):
            raise ConfigTypeConflictError(
                f"Conflito de tipo na chave '{key}': "
                f"{type(base_value).__name__} vs {type(override_value).__name__}"
            )

        result[key] = deepcopy(override_value)

    return result
