"""
Atlas CI — Canonical Error Structures (v1)

Este módulo define o padrão canônico de erros do Atlas CI.
Erros são artefatos de execução e fazem parte do relatório final da run,
devendo ser:

- explícitos
- serializáveis
- rastreáveis
- acionáveis

Nenhuma falha é recuperada silenciosamente: o payload de erro sempre
acompanha o Step/Job que a produziu.
"""

from __future__ import annotations

from dataclasses import dataclass, asdict
from typing import Any, Dict, List, Optional


# ---------------------------------------------------------------------------
# Payload canônico
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class AtlasErrorPayload:
    """
    Payload canônico de erro do Atlas CI.

    Campos:
    - type: código estável do erro (não é texto livre)
    - message: mensagem curta, humana e objetiva
    - details: dados estruturados relevantes para diagnóstico
    - hint: ação sugerida ao operador (onde corrigir)
    """

    type: str
    message: str
    details: Dict[str, Any]
    hint: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Retorna representação serializável do erro."""
        return asdict(self)


# ---------------------------------------------------------------------------
# Catálogo canônico de tipos de erro (v1)
# ---------------------------------------------------------------------------

# Definição do pipeline
DEFINITION_ERROR = "DEFINITION_ERROR"

# Execução de Steps / Jobs
STEP_FAILURE = "STEP_FAILURE"
JOB_CANCELLED = "JOB_CANCELLED"

# Artefatos
ARTIFACT_NOT_READY = "ARTIFACT_NOT_READY"
ARTIFACT_DUPLICATE = "ARTIFACT_DUPLICATE"

# Engine / Execução
ENGINE_EXECUTION_ERROR = "ENGINE_EXECUTION_ERROR"


# ---------------------------------------------------------------------------
# Helpers de fábrica
# ---------------------------------------------------------------------------

def step_failure(
    *,
    step: str,
    job: Optional[str] = None,
    exit_status: Optional[int] = None,
    message: str = "Step retornou status de falha",
    hint: str = "Inspecione a saída registrada do Step. O core não aplica retry automático.",
) -> AtlasErrorPayload:
    return AtlasErrorPayload(
        type=STEP_FAILURE,
        message=message,
        details={"step": step, "job": job, "exit_status": exit_status},
        hint=hint,
    )


def job_cancelled(
    *,
    job: str,
    stage: str,
    skipped_steps: Optional[List[str]] = None,
) -> AtlasErrorPayload:
    return AtlasErrorPayload(
        type=JOB_CANCELLED,
        message="Job cancelado por falha de um job irmão (fail-fast)",
        details={
            "job": job,
            "stage": stage,
            "skipped_steps": list(skipped_steps or []),
        },
        hint=None,
    )


def engine_execution_error(
    *,
    step: Optional[str] = None,
    exc_type: Optional[str] = None,
    exc_message: Optional[str] = None,
    hint: str = "Verifique a action invocada pelo Step. Nenhum fallback é aplicado automaticamente.",
) -> AtlasErrorPayload:
    return AtlasErrorPayload(
        type=ENGINE_EXECUTION_ERROR,
        message="Falha inesperada durante a execução do Step",
        details={
            "step": step,
            "exc_type": exc_type,
            "exc_message": exc_message,
        },
        hint=hint,
    )
