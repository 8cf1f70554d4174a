# src/atlas_ci/core/config/loader.py
"""
Loader canônico de configuração do Atlas CI.

A configuração do engine é resolvida a partir de:
    - um arquivo de defaults (obrigatório)
    - um arquivo local de overrides (opcional)

Responsabilidades do módulo:
    - Carregar documentos estruturados em YAML ou JSON
    - Validar requisitos estruturais mínimos (tipo raiz)
    - Resolver a configuração final via deep-merge determinístico

Invariantes:
    - O arquivo de defaults é obrigatório
    - O resultado é sempre um dicionário puro (`dict`)
    - Overrides nunca mutam os defaults

Limites explícitos:
    - Não valida semântica das chaves (ver `settings.resolve_engine_settings`)
    - Não persiste configuração ou hash
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml  # PyYAML

from .errors import (
    DefaultsNotFoundError,
    InvalidConfigRootTypeError,
    UnsupportedConfigFormatError,
)
from .merge import deep_merge


def read_document(path: Union[str, Path]) -> Dict[str, Any]:
    """
    Lê um documento estruturado (YAML ou JSON) e valida sua raiz.

    Utilitário compartilhado entre o loader de configuração e o loader
    de definições de pipeline: ambos exigem um mapa chave-valor na raiz.

    Decisões arquiteturais:
        - Arquivos vazios são interpretados como dicionários vazios
        - O formato é decidido pela extensão, nunca pelo conteúdo
        - YAML é lido com `safe_load` (sem construção de objetos arbitrários)

    Args:
        path (Union[str, Path]): Caminho do documento.

    Returns:
        Dict[str, Any]: Conteúdo carregado.

    Raises:
        DefaultsNotFoundError: Se o arquivo não existir.
        UnsupportedConfigFormatError: Se a extensão não for suportada.
        InvalidConfigRootTypeError: Se a raiz não for um dicionário.
    """
    path = Path(path)
    if not path.exists():
        raise DefaultsNotFoundError(f"Arquivo não encontrado: {path}")

    suffix = path.suffix.lower()
    if suffix in {".yaml", ".yml"}:
        with path.open("r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    elif suffix == ".json":
        with path.open("r", encoding="utf-8") as f:
            data = json.load(f)
    else:
        raise UnsupportedConfigFormatError(f"Formato não suportado: {path.suffix}")

    if data is None:
        data = {}

    if not isinstance(data, dict):
        raise InvalidConfigRootTypeError(
            f"Documento root deve ser dict, recebido: {type(data).__name__}"
        )

    return data


def load_config(
    *,
    defaults_path: str,
    local_path: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Carrega e resolve a configuração efetiva do engine.

    Política de resolução:
        - O arquivo de defaults é obrigatório
        - O arquivo local é opcional; se o caminho não existir é ignorado
        - Quando presente, o local sempre tem prioridade sobre defaults

    Args:
        defaults_path (str): Caminho para o arquivo de configuração base.
        local_path (Optional[str]): Caminho opcional para overrides locais.

    Returns:
        Dict[str, Any]: Configuração final resolvida.

    Raises:
        DefaultsNotFoundError: Se o arquivo de defaults não existir.
        UnsupportedConfigFormatError: Se o formato do arquivo não for suportado.
        InvalidConfigRootTypeError: Se o conteúdo não for um dicionário.
        ConfigTypeConflictError: Se ocorrer conflito estrutural durante o merge.
    """
    defaults_file = Path(defaults_path)
    if not defaults_file.exists():
        raise DefaultsNotFoundError(f"Arquivo de defaults não encontrado: {defaults_file}")
    effective = read_document(defaults_file)

    if local_path is not None:
        local_file = Path(local_path)
        if local_file.exists():
            effective = deep_merge(effective, read_document(local_file))

    return effective
