"""
Contexto de execução de uma run do pipeline.

Este módulo define o `RunContext`, o valor de dono único que representa
uma execução do pipeline: evento disparador, identificador da run,
configuração efetiva e o ledger de resultados (Job → estado).

O RunContext é criado na admissão do evento e encerrado (persistido /
reportado) quando todos os Stages atingem estado resolvido.

Responsabilidades do módulo:
    - Manter identidade e metadados da execução
    - Manter o ledger de estados de Job com API de mutação explícita
    - Manter o resultado agregado de cada Stage
    - Cachear o resultado dos gates (avaliados uma única vez)
    - Registrar eventos de log estruturados e warnings por Job

Concorrência:
    - Jobs concorrentes mutam o ledger; toda mutação passa por
      `transition_job`, que aplica UMA transição atômica sob lock
    - Cada Job entra no máximo uma vez em cada estado
    - Leituras devolvem cópias, nunca o estado interno

Limites explícitos:
    - Não executa Steps
    - Não planeja nem coordena execução
    - Não persiste dados automaticamente
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Dict, List, Optional

from atlas_ci.core.config.settings import LOG_LEVELS
from atlas_ci.core.exceptions import IllegalTransitionError

from .types import JOB_TRANSITIONS, Event, JobState, StageOutcome

if TYPE_CHECKING:  # pragma: no cover
    from .definition import PipelineDefinition


@dataclass
class RunContext:
    """
    Contexto de execução de uma run do pipeline.

    Campos canônicos:
    - run_id: identificador único da execução
    - created_at: timestamp UTC de criação do contexto
    - event: evento que disparou a run
    - definition: definição de pipeline em execução
    - config: configuração efetiva do engine
    - meta: metadados livres (ex.: origem, runner)
    - events: log estruturado de eventos
    - warnings: warnings por job_id
    """

    run_id: str
    created_at: datetime
    event: Event
    definition: Optional["PipelineDefinition"] = None
    config: Dict[str, Any] = field(default_factory=dict)
    meta: Dict[str, Any] = field(default_factory=dict)

    events: List[Dict[str, Any]] = field(default_factory=list, init=False)
    warnings: Dict[str, List[str]] = field(default_factory=dict, init=False)

    _ledger: Dict[str, JobState] = field(default_factory=dict, init=False, repr=False)
    _stage_outcomes: Dict[str, StageOutcome] = field(default_factory=dict, init=False, repr=False)
    _gates: Dict[str, bool] = field(default_factory=dict, init=False, repr=False)
    _lock: threading.Lock = field(default_factory=threading.Lock, init=False, repr=False)

    # -----------------------------
    # Outcome ledger (Jobs)
    # -----------------------------
    def register_job(self, job_id: str) -> None:
        with self._lock:
            if job_id in self._ledger:
                raise IllegalTransitionError(
                    f"Job já registrado nesta run: {job_id}",
                    details={"job_id": job_id},
                )
            self._ledger[job_id] = JobState.PENDING

    def transition_job(self, job_id: str, target: JobState) -> JobState:
        """
        Aplica uma transição atômica no ledger.

        Raises:
            IllegalTransitionError: Job desconhecido ou transição fora da
                máquina de estados (inclui reentrada em estado terminal).
        """
        with self._lock:
            current = self._ledger.get(job_id)
            if current is None:
                raise IllegalTransitionError(
                    f"Job desconhecido: {job_id}", details={"job_id": job_id}
                )
            if target not in JOB_TRANSITIONS[current]:
                raise IllegalTransitionError(
                    f"Transição inválida para {job_id}: {current.value} → {target.value}",
                    details={"job_id": job_id, "from": current.value, "to": target.value},
                )
            self._ledger[job_id] = target
            return target

    def cancel_if_pending(self, job_id: str) -> bool:
        """Transiciona PENDING → CANCELLED; devolve False se o Job já saiu de PENDING."""
        with self._lock:
            if self._ledger.get(job_id) is not JobState.PENDING:
                return False
            self._ledger[job_id] = JobState.CANCELLED
            return True

    def job_state(self, job_id: str) -> JobState:
        with self._lock:
            return self._ledger[job_id]

    def ledger(self) -> Dict[str, JobState]:
        with self._lock:
            return dict(self._ledger)

    # -----------------------------
    # Stage outcomes
    # -----------------------------
    def set_stage_outcome(self, stage: str, outcome: StageOutcome) -> None:
        with self._lock:
            current = self._stage_outcomes.get(stage, StageOutcome.PENDING)
            if current.is_resolved:
                raise IllegalTransitionError(
                    f"Stage '{stage}' já resolvido como {current.value}",
                    details={"stage": stage, "from": current.value, "to": outcome.value},
                )
            self._stage_outcomes[stage] = outcome

    def stage_outcome(self, stage: str) -> StageOutcome:
        with self._lock:
            return self._stage_outcomes.get(stage, StageOutcome.PENDING)

    def stage_outcomes(self) -> Dict[str, StageOutcome]:
        with self._lock:
            return dict(self._stage_outcomes)

    # -----------------------------
    # Gate cache
    # -----------------------------
    def gate_result(self, stage: str) -> Optional[bool]:
        with self._lock:
            return self._gates.get(stage)

    def record_gate(self, stage: str, result: bool) -> bool:
        # a primeira avaliação vence; reconsultas devolvem o valor cacheado
        with self._lock:
            return self._gates.setdefault(stage, bool(result))

    # -----------------------------
    # Logging & warnings
    # -----------------------------
    def _min_level(self) -> int:
        engine_cfg = (self.config or {}).get("engine") or {}
        return LOG_LEVELS.get(str(engine_cfg.get("log_level") or "INFO").upper(), 20)

    def log(self, *, level: str, message: str, job_id: Optional[str] = None, **extra: Any) -> None:
        if LOG_LEVELS.get(level.upper(), 20) < self._min_level():
            return
        event = {
            "run_id": self.run_id,
            "job_id": job_id,
            "level": level.lower(),
            "message": message,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }
        event.update(extra)
        with self._lock:
            self.events.append(event)

    def add_warning(self, *, job_id: str, message: str) -> None:
        with self._lock:
            self.warnings.setdefault(job_id, []).append(message)
