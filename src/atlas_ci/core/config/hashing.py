# src/atlas_ci/core/config/hashing.py
"""
Hashing canônico para rastreabilidade.

Dois hashes identificam uma run no Manifest:
    - config_hash     → identidade da configuração efetiva do engine
    - definition_hash → identidade estrutural da definição do pipeline

Política de hashing (v1):
    - Serialização JSON canônica (chaves ordenadas, separadores compactos)
    - Codificação UTF-8
    - SHA-256, representação hexadecimal de 64 caracteres
"""

from __future__ import annotations

import hashlib
import json
from typing import Any, Dict


def _sha256_canonical(data: Any) -> str:
    canonical_json = json.dumps(
        data,
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
        default=str,
    )
    return hashlib.sha256(canonical_json.encode("utf-8")).hexdigest()


def compute_config_hash(config: Dict[str, Any]) -> str:
    """
    Gera um hash determinístico da configuração efetiva do engine.

    Configurações estruturalmente equivalentes produzem o mesmo hash,
    independentemente da ordem original das chaves.

    Raises:
        TypeError: Se o objeto fornecido não for um dicionário.
    """
    if not isinstance(config, dict):
        raise TypeError(
            f"Config para hashing deve ser dict, recebido: {type(config).__name__}"
        )
    return _sha256_canonical(config)


def compute_definition_hash(definition: Any) -> str:
    """
    Gera um hash determinístico da definição de pipeline.

    Aceita qualquer objeto com `to_dict()` (ex.: `PipelineDefinition`)
    ou um dicionário já serializável. Diferente da configuração, a ordem
    de stages e steps é parte da identidade: listas não são reordenadas.
    """
    if hasattr(definition, "to_dict"):
        data = definition.to_dict()
    elif isinstance(definition, dict):
        data = definition
    else:
        raise TypeError(
            f"Definição para hashing deve expor to_dict() ou ser dict, recebido: "
            f"{type(definition).__name__}"
        )
    return _sha256_canonical(data)
