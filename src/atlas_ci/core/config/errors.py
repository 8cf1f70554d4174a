# src/atlas_ci/core/config/errors.py
"""
Exceções canônicas da camada de configuração do Atlas CI.

As exceções aqui definidas representam violações estruturais da
configuração do engine, detectadas antes de qualquer run ser criada.
Elas não se confundem com `DefinitionError` (definição do pipeline)
nem com falhas de Step (execução).

Invariantes:
    - Todas as exceções de configuração herdam de `ConfigError`
    - Nenhuma exceção representa erro de execução de Job
"""


class ConfigError(Exception):
    """
    Exceção base para erros relacionados à configuração do Atlas CI.

    Permite captura genérica de erros de configuração e distinção clara
    entre falhas estruturais e falhas de execução do pipeline.
    """


class DefaultsNotFoundError(ConfigError):
    """
    Arquivo de configuração base (defaults) não encontrado.

    O arquivo de defaults é obrigatório: sem ele não existe configuração
    efetiva válida e nenhum default é inferido automaticamente.
    """


class UnsupportedConfigFormatError(ConfigError):
    """
    Formato de arquivo de configuração não suportado.

    Formatos suportados (v1):
        - YAML (.yaml, .yml)
        - JSON (.json)
    """


class InvalidConfigRootTypeError(ConfigError):
    """
    Conteúdo raiz da configuração não é um dicionário (`dict`).

    Listas ou valores escalares no root são rejeitados sem normalização.
    """


class ConfigTypeConflictError(ConfigError):
    """
    Conflito de tipos durante o deep-merge.

    Exemplo de conflito:
        - base:     {"engine": {"max_concurrency": 4}}
        - override: {"engine": "serial"}

    Nenhum merge parcial é produzido em caso de conflito.
    """


class InvalidEngineSettingError(ConfigError):
    """
    Valor inválido em uma chave reconhecida pelo engine.

    Exemplos:
        - engine.max_concurrency <= 0
        - engine.log_level fora de DEBUG/INFO/WARNING/ERROR
    """
