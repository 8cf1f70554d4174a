"""
Job Scheduler — coordenação do DAG de Stages e do fan-out de Jobs.

O Scheduler é dono do grafo de dependências entre Stages e da barreira
fan-out/fan-in entre eles. Um único thread coordenador decide:

    - quando um Stage está pronto (todos os `needs` resolvidos)
    - se o Stage é cancelado em cascata, pulado pelo gate, vazio ou lançado
    - quando a barreira do Stage é cruzada (todos os Jobs terminais)

Os Jobs executam em paralelo num `ThreadPoolExecutor` limitado por
`max_concurrency` (ilimitado por default: um worker por Job da run).

Política de falha por Stage:
    - fail-fast: o primeiro Job FAILED dispara o sinal de cancelamento do
      Stage; Jobs ainda PENDING terminam CANCELLED sem entrar em RUNNING,
      Jobs RUNNING observam o sinal entre Steps; artefatos de Jobs que já
      tiveram sucesso permanecem disponíveis
    - fail-open: irmãos executam até o fim; agregado FAILED se algum falhou

Propagação entre Stages:
    - predecessor FAILED (fail-fast) ou CANCELLED ⇒ Stage CANCELLED, sem
      lançar Jobs (eles permanecem PENDING no ledger)
    - predecessor SKIPPED ou FAILED (fail-open) ⇒ Stage ainda é considerado
    - gate falso ⇒ SKIPPED; conjunto vazio de Jobs ⇒ SUCCEEDED

Invariantes:
    - Nenhum Stage é lançado antes de todos os seus predecessores resolverem
    - Nenhum par de Jobs da mesma run compartilha identidade
    - Todo Stage é selado no Artifact Store ao resolver
"""

from __future__ import annotations

import threading
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Set, Tuple

from atlas_ci.core.artifacts.store import ArtifactStore
from atlas_ci.core.pipeline.context import RunContext
from atlas_ci.core.pipeline.definition import PipelineDefinition, Stage
from atlas_ci.core.pipeline.types import (
    FailurePolicy,
    Job,
    JobResult,
    JobState,
    StageOutcome,
    StageResult,
)
from atlas_ci.core.traceability import manifest as trace
from atlas_ci.core.traceability.manifest import AtlasManifest

from .executor import StepExecutor
from .gate import evaluate_gate
from .interpolation import render
from .matrix import expand_matrix, job_id_for
from .planner import plan_stages, transitive_predecessors
from .run_report import RunReport, aggregate_run_status


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class _StageRun:
    stage: Stage
    jobs: List[Job]
    cancel_event: threading.Event = field(default_factory=threading.Event)
    results: Dict[str, JobResult] = field(default_factory=dict)
    launched: bool = False
    outcome: StageOutcome = StageOutcome.PENDING
    reason: Optional[str] = None


class SchedulerStalledError(RuntimeError):
    """Nenhum Stage pôde avançar e não há Jobs em execução."""


class Scheduler:
    """Executa uma definição de pipeline para um RunContext."""

    def __init__(
        self,
        definition: PipelineDefinition,
        ctx: RunContext,
        executor: StepExecutor,
        store: ArtifactStore,
        max_concurrency: Optional[int] = None,
        *,
        manifest: Optional[AtlasManifest] = None,
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        self.definition = definition
        self.ctx = ctx
        self.executor = executor
        self.store = store
        self.max_concurrency = max_concurrency
        self.manifest = manifest
        self.clock = clock
        self._trace_lock = threading.Lock()
        self._preds = transitive_predecessors(definition)

    # ------------------------------------------------------------------
    # Rastreabilidade
    # ------------------------------------------------------------------
    def _trace(self, fn: Callable[..., None], **kwargs: Any) -> None:
        if self.manifest is None:
            return
        with self._trace_lock:
            fn(self.manifest, ts=self.clock(), **kwargs)

    def _on_job_started(self, job: Job) -> None:
        self._trace(trace.job_started, job_id=job.job_id, stage=job.stage, matrix=job.matrix)

    # ------------------------------------------------------------------
    # Materialização
    # ------------------------------------------------------------------
    def materialize_jobs(self) -> Dict[str, List[Job]]:
        """
        Expande a matrix de cada Stage e registra os Jobs como PENDING.

        Identidades colidentes (ex.: `37` e `"37"`) recebem sufixo `#n`.
        """
        used: Set[str] = set()
        jobs: Dict[str, List[Job]] = {}
        for stage in self.definition.stages:
            bindings = expand_matrix(stage.matrix) if stage.matrix is not None else [()]
            stage_jobs: List[Job] = []
            for index, binding in enumerate(bindings):
                base = job_id_for(stage.name, binding)
                job_id = base
                n = 2
                while job_id in used:
                    job_id = f"{base} #{n}"
                    n += 1
                used.add(job_id)

                display_name = None
                if stage.display_name:
                    display_name = str(render(stage.display_name, {"matrix": dict(binding)}))

                job = Job(job_id=job_id, stage=stage.name, index=index, binding=binding, display_name=display_name)
                self.ctx.register_job(job_id)
                stage_jobs.append(job)
            jobs[stage.name] = stage_jobs
        return jobs

    # ------------------------------------------------------------------
    # Resolução de Stages
    # ------------------------------------------------------------------
    def _resolve(self, run: _StageRun, outcome: StageOutcome, reason: Optional[str] = None) -> None:
        run.outcome = outcome
        run.reason = reason
        self.ctx.set_stage_outcome(run.stage.name, outcome)
        self.store.seal_stage(self.ctx.run_id, run.stage.name, [j.job_id for j in run.jobs])
        self.ctx.log(level="info", message=f"stage {outcome.value}", stage=run.stage.name, reason=reason)
        self._trace(trace.stage_resolved, stage=run.stage.name, outcome=outcome.value, reason=reason)

    def _blocking_predecessor(self, stage: Stage) -> Optional[Tuple[str, StageOutcome]]:
        for dep in stage.needs:
            outcome = self.ctx.stage_outcome(dep)
            if outcome is StageOutcome.CANCELLED:
                return dep, outcome
            if outcome is StageOutcome.FAILED and self.definition.stage(dep).policy is FailurePolicy.FAIL_FAST:
                return dep, outcome
        return None

    def _run_job(self, run: _StageRun, job: Job) -> JobResult:
        result = self.executor.run_job(
            job,
            run.stage,
            ctx=self.ctx,
            store=self.store,
            cancel_event=run.cancel_event,
            upstream=self._preds[run.stage.name],
            on_started=self._on_job_started,
        )
        if result.state is JobState.FAILED and run.stage.policy is FailurePolicy.FAIL_FAST:
            run.cancel_event.set()
        return result

    def _advance(
        self,
        order: List[str],
        runs: Dict[str, _StageRun],
        pool: ThreadPoolExecutor,
        in_flight: Dict[Future, Tuple[_StageRun, Job]],
    ) -> bool:
        """Decide todo Stage pronto, em ordem topológica. Devolve True se algo mudou."""
        progressed = False
        for name in order:
            run = runs[name]
            if run.launched or run.outcome.is_resolved:
                continue
            if not all(self.ctx.stage_outcome(dep).is_resolved for dep in run.stage.needs):
                continue

            progressed = True
            blocking = self._blocking_predecessor(run.stage)
            if blocking is not None:
                dep, outcome = blocking
                self._resolve(run, StageOutcome.CANCELLED, f"predecessor '{dep}' {outcome.value}")
                continue

            if not evaluate_gate(run.stage, self.ctx):
                self._resolve(run, StageOutcome.SKIPPED, "condition evaluated false")
                continue

            if not run.jobs:
                self._resolve(run, StageOutcome.SUCCEEDED, "empty job set")
                continue

            run.launched = True
            self._trace(trace.stage_started, stage=name, jobs=[j.job_id for j in run.jobs])
            self.ctx.log(level="info", message="stage started", stage=name, jobs=len(run.jobs))
            for job in run.jobs:
                in_flight[pool.submit(self._run_job, run, job)] = (run, job)
        return progressed

    def _finish_stage(self, run: _StageRun) -> None:
        states = [r.state for r in run.results.values()]
        failed = states.count(JobState.FAILED)
        if failed:
            self._resolve(run, StageOutcome.FAILED, f"{failed} job(s) failed")
        elif JobState.CANCELLED in states:
            self._resolve(run, StageOutcome.CANCELLED, "jobs cancelled")
        else:
            self._resolve(run, StageOutcome.SUCCEEDED)

    # ------------------------------------------------------------------
    # Execução
    # ------------------------------------------------------------------
    def run(self) -> RunReport:
        """
        Executa a definição até todos os Stages resolverem.

        Returns:
            RunReport: status final, Stages e Jobs em ordem declarada.

        Raises:
            DefinitionError: definição estruturalmente inválida.
        """
        order = [s.name for s in plan_stages(self.definition)]
        jobs = self.materialize_jobs()
        runs = {s.name: _StageRun(stage=s, jobs=jobs[s.name]) for s in self.definition.stages}

        total = sum(len(v) for v in jobs.values())
        workers = self.max_concurrency or max(total, 1)
        started_at = self.clock()
        self.ctx.log(level="info", message="run started", pipeline=self.definition.name, jobs=total)

        in_flight: Dict[Future, Tuple[_StageRun, Job]] = {}
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="atlas-ci-job") as pool:
            while any(not runs[name].outcome.is_resolved for name in order):
                progressed = self._advance(order, runs, pool, in_flight)
                if not in_flight:
                    if not progressed:
                        raise SchedulerStalledError(f"Scheduler sem progresso na run {self.ctx.run_id}")
                    continue

                done, _ = wait(list(in_flight), return_when=FIRST_COMPLETED)
                for future in done:
                    run, job = in_flight.pop(future)
                    result = future.result()
                    run.results[job.job_id] = result
                    self._trace(trace.job_finished, job_id=job.job_id, result=result.to_dict())
                    if len(run.results) == len(run.jobs):
                        self._finish_stage(run)

        stage_results = []
        for stage in self.definition.stages:
            run = runs[stage.name]
            job_results = tuple(
                run.results.get(j.job_id) or JobResult(job=j, state=self.ctx.job_state(j.job_id))
                for j in run.jobs
            )
            stage_results.append(
                StageResult(
                    name=stage.name,
                    outcome=run.outcome,
                    policy=stage.policy,
                    jobs=job_results,
                    reason=run.reason,
                )
            )

        artifacts = tuple(
            artifact
            for stage in self.definition.stages
            for artifact in self.store.fetch(self.ctx.run_id, stage.name)
        )
        status = aggregate_run_status(r.outcome for r in stage_results)
        finished_at = self.clock()
        self.ctx.log(level="info", message="run finished", status=status.value)

        return RunReport(
            run_id=self.ctx.run_id,
            pipeline=self.definition.name,
            event=self.ctx.event,
            status=status,
            stages=tuple(stage_results),
            artifacts=artifacts,
            started_at=started_at.isoformat(),
            finished_at=finished_at.isoformat(),
            warnings={k: list(v) for k, v in self.ctx.warnings.items()},
        )
