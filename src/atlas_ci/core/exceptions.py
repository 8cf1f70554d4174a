"""
Atlas CI — Canonical Exceptions (v1)

Este módulo define exceções tipadas internas do Atlas CI.

Objetivo:
- Permitir que actions, executor e scheduler levantem exceções semânticas tipadas
- Facilitar o mapeamento determinístico para AtlasErrorPayload
- Separar falhas de definição (fatais, antes da run) de falhas de execução
  (locais ao Job)

Regras:
- Exceções carregam apenas dados estruturados (serializáveis) em `details`.
- Nenhuma exceção aqui é recuperada automaticamente pelo core.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from .errors import (
    AtlasErrorPayload,
    ARTIFACT_DUPLICATE,
    ARTIFACT_NOT_READY,
    DEFINITION_ERROR,
    ENGINE_EXECUTION_ERROR,
    JOB_CANCELLED,
    STEP_FAILURE,
)


@dataclass(frozen=True)
class AtlasException(Exception):
    """Base class para exceções internas do Atlas CI.

    Importante:
    - Sempre carregar dados estruturados em `details`
    - Não embedar stack trace em payloads de erro
    - Mensagem deve ser curta e humana
    """

    message: str
    details: Dict[str, Any] = field(default_factory=dict)
    hint: Optional[str] = None

    error_type = ENGINE_EXECUTION_ERROR

    def __str__(self) -> str:  # pragma: no cover
        return self.message

    def to_payload(self) -> AtlasErrorPayload:
        return AtlasErrorPayload(
            type=self.error_type,
            message=self.message,
            details=dict(self.details),
            hint=self.hint,
        )


# ---------------------------------------------------------------------------
# Definição
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class DefinitionError(AtlasException):
    """Definição de pipeline malformada (ciclo, dependência ou gate inválido)."""

    error_type = DEFINITION_ERROR


# ---------------------------------------------------------------------------
# Execução
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class StepFailure(AtlasException):
    """A execução delegada de um Step retornou falha."""

    error_type = STEP_FAILURE


@dataclass(frozen=True)
class CancellationError(AtlasException):
    """
    Job interrompido por falha de um irmão sob política fail-fast.

    Levantada pelo executor ao observar o sinal do Stage e por actions via
    `ActionRequest.raise_if_cancelled()`; o executor a converte no payload
    `JOB_CANCELLED` e o Job termina CANCELLED.
    """

    error_type = JOB_CANCELLED


@dataclass(frozen=True)
class IllegalTransitionError(AtlasException):
    """Transição de estado de Job fora da máquina Pending → Running → terminal."""


# ---------------------------------------------------------------------------
# Artefatos
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class NotReadyError(AtlasException):
    """Fetch de artefatos antes da barreira do stage produtor."""

    error_type = ARTIFACT_NOT_READY


@dataclass(frozen=True)
class DuplicateArtifactError(AtlasException):
    """Segunda escrita sob a mesma chave de artefato (store é append-only)."""

    error_type = ARTIFACT_DUPLICATE
