"""
Tipos canônicos do pipeline do Atlas CI.

Este módulo define as estruturas e enums fundamentais que padronizam
a comunicação entre Trigger Evaluator, Scheduler, Step Executor e as
camadas de rastreabilidade e relatório.

Componentes principais:
    - EventKind     → tipos de evento aceitos pelo Trigger Evaluator
    - Event         → descritor imutável do evento que dispara a run
    - JobState      → máquina de estados de um Job
    - StageOutcome  → resultado agregado de um Stage
    - RunStatus     → status final de uma run
    - FailurePolicy → política de falha de um Stage (fail-fast / fail-open)
    - Job           → ponto concreto da matrix pertencente a um Stage
    - StepOutcome   → resultado imutável da execução de um Step
    - JobResult     → resultado imutável da execução de um Job
    - StageResult   → resultado agregado de um Stage

Princípios fundamentais:
    - Enums possuem valores textuais canônicos (serializáveis em JSON)
    - Resultados são imutáveis (frozen) e seguros contra mutação acidental
    - Nenhuma lógica de execução vive neste módulo

Limites explícitos:
    - Não executa Steps nem Jobs
    - Não decide políticas de execução
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional, Tuple

from atlas_ci.core.engine.refs import qualify_ref


# Uma binding é um ponto da matrix: pares (eixo, valor) em ordem declarada.
MatrixBinding = Tuple[Tuple[str, Any], ...]


class EventKind(str, Enum):
    """
    Tipos de evento que podem disparar uma run.

    Os valores seguem a grafia canônica dos descritores externos
    (webhook/dispatcher), permitindo construir um `EventKind` direto
    a partir do texto recebido: `EventKind("tag-create")`.
    """
    PUSH = "push"
    TAG_CREATE = "tag-create"
    PULL_REQUEST = "pull-request"
    MANUAL = "manual"


@dataclass(frozen=True)
class Event:
    """
    Descritor imutável do evento que dispara uma run.

    Campos:
        - kind: tipo do evento
        - ref: referência git completa ou curta (ex.: `refs/tags/v1.2.3`, `master`)
        - payload: dados adicionais do dispatcher, não interpretados pelo core
    """
    kind: EventKind
    ref: str = ""
    payload: Dict[str, Any] = field(default_factory=dict, compare=False)

    def __post_init__(self) -> None:
        if not isinstance(self.kind, EventKind):
            object.__setattr__(self, "kind", EventKind(self.kind))

    @property
    def qualified_ref(self) -> str:
        """Ref completa (`refs/heads/...` ou `refs/tags/...`) conforme o tipo do evento."""
        return qualify_ref(self.ref, self.kind.value)

    def to_dict(self) -> Dict[str, Any]:
        return {"kind": self.kind.value, "ref": self.ref}


class JobState(str, Enum):
    """
    Estados de um Job.

    Máquina de estados:
        PENDING → RUNNING → {SUCCEEDED, FAILED, CANCELLED}
        PENDING → CANCELLED (cancelado antes de iniciar)

    Estados terminais nunca retornam a RUNNING.
    """
    PENDING = "pending"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (JobState.SUCCEEDED, JobState.FAILED, JobState.CANCELLED)


# Transições permitidas pela máquina de estados de Job
JOB_TRANSITIONS: Dict[JobState, Tuple[JobState, ...]] = {
    JobState.PENDING: (JobState.RUNNING, JobState.CANCELLED),
    JobState.RUNNING: (JobState.SUCCEEDED, JobState.FAILED, JobState.CANCELLED),
    JobState.SUCCEEDED: (),
    JobState.FAILED: (),
    JobState.CANCELLED: (),
}


class StageOutcome(str, Enum):
    """
    Resultado agregado de um Stage.

    - PENDING: ainda não resolvido (predecessores ou Jobs em andamento)
    - SUCCEEDED: todos os Jobs com sucesso (ou conjunto vazio de Jobs)
    - FAILED: ao menos um Job falhou
    - CANCELLED: não executado por falha fail-fast de um predecessor
    - SKIPPED: gate avaliado como falso; nenhum Job executado
    """
    PENDING = "pending"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    CANCELLED = "cancelled"
    SKIPPED = "skipped"

    @property
    def is_resolved(self) -> bool:
        return self is not StageOutcome.PENDING


class RunStatus(str, Enum):
    """Status final de uma run, exposto no relatório externo."""
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    CANCELLED = "cancelled"


class FailurePolicy(str, Enum):
    """
    Política de falha de um Stage.

    - FAIL_FAST: a primeira falha de Job cancela os irmãos ainda não terminais
    - FAIL_OPEN: irmãos executam até o fim independentemente de falhas
    """
    FAIL_FAST = "fail-fast"
    FAIL_OPEN = "fail-open"


@dataclass(frozen=True)
class Job:
    """
    Ponto concreto da matrix pertencente a exatamente um Stage.

    A identidade (`job_id`) é única dentro de uma run; `index` preserva
    a ordem de expansão, usada pelo Artifact Store e pelo relatório.
    """
    job_id: str
    stage: str
    index: int
    binding: MatrixBinding = ()
    display_name: Optional[str] = None

    @property
    def matrix(self) -> Dict[str, Any]:
        return dict(self.binding)


@dataclass(frozen=True)
class StepOutcome:
    """
    Resultado imutável da execução de um Step.

    Campos:
        - step_id: identificador do Step dentro do Job
        - uses: referência da action executada
        - succeeded: desfecho do Step
        - exit_status: status devolvido pela action (0 = sucesso)
        - outputs: valores nomeados produzidos pelo Step
        - log: saída textual registrada pela action (diagnóstico)
        - error: payload de erro serializado, quando houver falha
        - continue_on_error: Step declarado como best-effort
        - started_at / finished_at: timestamps ISO 8601 em UTC
    """
    step_id: str
    uses: str
    succeeded: bool
    exit_status: int = 0
    outputs: Dict[str, Any] = field(default_factory=dict)
    log: str = ""
    error: Optional[Dict[str, Any]] = None
    continue_on_error: bool = False
    started_at: Optional[str] = None
    finished_at: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "step_id": self.step_id,
            "uses": self.uses,
            "succeeded": self.succeeded,
            "exit_status": self.exit_status,
            "outputs": dict(self.outputs),
            "log": self.log,
            "error": self.error,
            "continue_on_error": self.continue_on_error,
            "started_at": self.started_at,
            "finished_at": self.finished_at,
        }


@dataclass(frozen=True)
class JobResult:
    """Resultado imutável de um Job: estado terminal e Steps executados."""
    job: Job
    state: JobState
    steps: Tuple[StepOutcome, ...] = ()
    error: Optional[Dict[str, Any]] = None

    @property
    def first_failed_step(self) -> Optional[StepOutcome]:
        for outcome in self.steps:
            if not outcome.succeeded and not outcome.continue_on_error:
                return outcome
        return None

    def to_dict(self) -> Dict[str, Any]:
        failing = self.first_failed_step
        return {
            "job_id": self.job.job_id,
            "stage": self.job.stage,
            "index": self.job.index,
            "matrix": self.job.matrix,
            "display_name": self.job.display_name,
            "state": self.state.value,
            "steps": [s.to_dict() for s in self.steps],
            "error": self.error,
            "first_failed_step": failing.to_dict() if failing is not None else None,
        }


@dataclass(frozen=True)
class StageResult:
    """Resultado agregado de um Stage e dos seus Jobs em ordem de expansão."""
    name: str
    outcome: StageOutcome
    policy: FailurePolicy
    jobs: Tuple[JobResult, ...] = ()
    reason: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "outcome": self.outcome.value,
            "policy": self.policy.value,
            "reason": self.reason,
            "jobs": [j.to_dict() for j in self.jobs],
        }
