# src/atlas_ci/core/config/__init__.py

"""
Camada de configuração do Atlas CI.

Este pacote contém as estruturas e utilitários responsáveis por carregar,
mesclar, validar estruturalmente e identificar a configuração do engine
de orquestração (concorrência, nível de log, persistência de manifest e
transporte de artefatos).

A configuração do engine é separada da definição do pipeline:
    - a definição descreve O QUE executar (stages, matrix, gates)
    - a configuração descreve COMO o engine executa (limites, destinos)

Responsabilidades do pacote:
    - Carregamento de arquivos de configuração (defaults + overrides locais)
    - Resolução de configuração final via deep-merge determinístico
    - Validação estrutural das chaves reconhecidas pelo engine
    - Geração de hash canônico para rastreabilidade no Manifest

Invariantes:
    - A configuração final é um dicionário puro (dict)
    - A mesma entrada sempre produz a mesma configuração final
    - Conflitos estruturais são tratados como erro

Limites explícitos:
    - Não interpreta a definição do pipeline
    - Não executa Jobs
"""

from .errors import (
    ConfigError,
    ConfigTypeConflictError,
    DefaultsNotFoundError,
    InvalidConfigRootTypeError,
    InvalidEngineSettingError,
    UnsupportedConfigFormatError,
)
from .hashing import compute_config_hash, compute_definition_hash
from .loader import load_config
from .merge import deep_merge
from .settings import EngineSettings, resolve_engine_settings

__all__ = [
    "ConfigError",
    "ConfigTypeConflictError",
    "DefaultsNotFoundError",
    "InvalidConfigRootTypeError",
    "InvalidEngineSettingError",
    "UnsupportedConfigFormatError",
    "compute_config_hash",
    "compute_definition_hash",
    "load_config",
    "deep_merge",
    "EngineSettings",
    "resolve_engine_settings",
]
