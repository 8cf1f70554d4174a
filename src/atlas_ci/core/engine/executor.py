"""
Step Executor — execução sequencial dos Steps de um Job.

Dado um Job e o Stage ao qual pertence, o executor:
    - transiciona o Job no ledger (PENDING → RUNNING → terminal)
    - executa os Steps estritamente em ordem
    - interpola parâmetros (`${{ matrix.* }}`, `${{ steps.*.outputs.* }}`, ...)
    - delega cada Step à action referenciada
    - captura outcome, outputs, log e erro de TODO Step executado

Política de falha:
    - Um Step que falha aborta os Steps restantes e o Job termina FAILED
    - Steps `continue_on_error` são registrados como falhos sem abortar
    - Exceções de actions nunca escapam: viram payload de erro estruturado,
      inclusive um `ActionResult` com outputs/arquivos malformados

Cancelamento:
    - O sinal de cancelamento é observado antes de cada Step e antes da
      transição terminal; um Step já iniciado não é interrompido
    - Uma action longa pode interromper-se com
      `ActionRequest.raise_if_cancelled()`; a `CancellationError` resultante
      é convertida no payload `JOB_CANCELLED`
    - Job cancelado termina CANCELLED, distinto de FAILED

Limites explícitos:
    - Não decide política fail-fast/fail-open (ver `scheduler`)
    - Não faz retry
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, FrozenSet, List, Mapping, Optional

from atlas_ci.core.artifacts.store import ArtifactStore
from atlas_ci.core.errors import (
    AtlasErrorPayload,
    engine_execution_error,
    job_cancelled,
    step_failure,
)
from atlas_ci.core.exceptions import AtlasException, CancellationError
from atlas_ci.core.pipeline.action import ActionRegistry, ActionRequest, ActionResult, JobWorkspace
from atlas_ci.core.pipeline.context import RunContext
from atlas_ci.core.pipeline.definition import Stage, StepTemplate
from atlas_ci.core.pipeline.types import Job, JobResult, JobState, StepOutcome

from .interpolation import build_scope, render


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class StepExecutor:
    """Executor de Jobs: um pipeline sequencial de Steps por Job."""

    actions: ActionRegistry
    clock: Callable[[], datetime] = field(default=_utc_now)

    def _exception_to_error(self, exc: Exception, *, step_id: str, job_id: str) -> AtlasErrorPayload:
        """Converte exceções de actions em AtlasErrorPayload (sem stack trace)."""
        if isinstance(exc, AtlasException):
            payload = exc.to_payload()
            details = dict(payload.details)
            details.setdefault("step", step_id)
            details.setdefault("job", job_id)
            return AtlasErrorPayload(
                type=payload.type,
                message=payload.message,
                details=details,
                hint=payload.hint,
            )
        return engine_execution_error(
            step=step_id,
            exc_type=exc.__class__.__name__,
            exc_message=str(exc),
        )

    def _run_step(
        self,
        template: StepTemplate,
        *,
        job: Job,
        stage: Stage,
        ctx: RunContext,
        store: ArtifactStore,
        workspace: JobWorkspace,
        upstream: FrozenSet[str],
        cancel_event: threading.Event,
    ) -> StepOutcome:
        started = self.clock()
        scope = build_scope(
            matrix=job.matrix,
            step_outputs=workspace.step_outputs,
            event=ctx.event.to_dict(),
            run_id=ctx.run_id,
            job_id=job.job_id,
            stage=stage.name,
        )
        params: Dict[str, Any] = render(dict(template.with_), scope)

        request = ActionRequest(
            step_id=template.id,
            uses=template.uses,
            params=params,
            job=job,
            stage=stage,
            workspace=workspace,
            ctx=ctx,
            store=store,
            upstream=upstream,
            cancel_event=cancel_event,
        )

        ctx.log(level="debug", message="step started", job_id=job.job_id, step_id=template.id, uses=template.uses)

        try:
            action = self.actions.get(template.uses)
            result = action(request)
            if not isinstance(result, ActionResult):
                raise TypeError(f"Action '{template.uses}' must return ActionResult")
            if not isinstance(result.outputs, Mapping) or not isinstance(result.files, Mapping):
                raise TypeError(f"Action '{template.uses}' returned non-mapping outputs/files")
            outputs = dict(result.outputs)
            workspace.add_files(result.files)
        except CancellationError:
            raise
        except Exception as exc:
            error = self._exception_to_error(exc, step_id=template.id, job_id=job.job_id)
            exit_status = 1
            if isinstance(exc, AtlasException):
                exit_status = int(exc.details.get("exit_status", 1) or 1)
            return StepOutcome(
                step_id=template.id,
                uses=template.uses,
                succeeded=False,
                exit_status=exit_status,
                log=str(exc),
                error=error.to_dict(),
                continue_on_error=template.continue_on_error,
                started_at=started.isoformat(),
                finished_at=self.clock().isoformat(),
            )

        error: Optional[Dict[str, Any]] = None
        if not result.succeeded:
            error = step_failure(
                step=template.id,
                job=job.job_id,
                exit_status=result.exit_status,
            ).to_dict()

        return StepOutcome(
            step_id=template.id,
            uses=template.uses,
            succeeded=result.succeeded,
            exit_status=result.exit_status,
            outputs=outputs,
            log=result.log,
            error=error,
            continue_on_error=template.continue_on_error,
            started_at=started.isoformat(),
            finished_at=self.clock().isoformat(),
        )

    def _cancel(self, job: Job, ctx: RunContext, outcomes: List[StepOutcome], remaining: List[str]) -> JobResult:
        ctx.transition_job(job.job_id, JobState.CANCELLED)
        ctx.log(level="info", message="job cancelled", job_id=job.job_id, skipped_steps=remaining)
        return JobResult(
            job=job,
            state=JobState.CANCELLED,
            steps=tuple(outcomes),
            error=job_cancelled(job=job.job_id, stage=job.stage, skipped_steps=remaining).to_dict(),
        )

    def run_job(
        self,
        job: Job,
        stage: Stage,
        *,
        ctx: RunContext,
        store: ArtifactStore,
        cancel_event: Optional[threading.Event] = None,
        upstream: FrozenSet[str] = frozenset(),
        on_started: Optional[Callable[[Job], None]] = None,
    ) -> JobResult:
        """
        Executa um Job até um estado terminal.

        O Job deve estar registrado como PENDING no ledger do RunContext.
        O sinal de cancelamento, observado pelo executor ou levantado pela
        própria action via `CancellationError`, termina o Job CANCELLED.

        Returns:
            JobResult: estado terminal + outcomes de todos os Steps executados.
        """
        if cancel_event is None:
            cancel_event = threading.Event()
        step_ids = [t.id for t in stage.steps]

        if cancel_event.is_set() and ctx.cancel_if_pending(job.job_id):
            ctx.log(level="info", message="job cancelled before start", job_id=job.job_id)
            return JobResult(
                job=job,
                state=JobState.CANCELLED,
                error=job_cancelled(job=job.job_id, stage=job.stage, skipped_steps=step_ids).to_dict(),
            )

        ctx.transition_job(job.job_id, JobState.RUNNING)
        if on_started is not None:
            on_started(job)
        ctx.log(level="info", message="job started", job_id=job.job_id, matrix=job.matrix)

        workspace = JobWorkspace()
        outcomes: List[StepOutcome] = []
        index = 0

        try:
            for index, template in enumerate(stage.steps):
                if cancel_event.is_set():
                    raise CancellationError("Sinal fail-fast observado entre Steps", details={"job": job.job_id})

                outcome = self._run_step(
                    template,
                    job=job,
                    stage=stage,
                    ctx=ctx,
                    store=store,
                    workspace=workspace,
                    upstream=upstream,
                    cancel_event=cancel_event,
                )
                outcomes.append(outcome)
                workspace.step_outputs[template.id] = dict(outcome.outputs)

                if outcome.succeeded:
                    continue

                if template.continue_on_error:
                    ctx.add_warning(job_id=job.job_id, message=f"step '{template.id}' failed (continue-on-error)")
                    continue

                ctx.transition_job(job.job_id, JobState.FAILED)
                ctx.log(level="error", message="job failed", job_id=job.job_id, step_id=template.id)
                return JobResult(job=job, state=JobState.FAILED, steps=tuple(outcomes), error=outcome.error)

            index = len(step_ids)
            if cancel_event.is_set():
                raise CancellationError(
                    "Sinal fail-fast observado antes da transição terminal",
                    details={"job": job.job_id},
                )
        except CancellationError:
            return self._cancel(job, ctx, outcomes, step_ids[index:])

        ctx.transition_job(job.job_id, JobState.SUCCEEDED)
        ctx.log(level="info", message="job succeeded", job_id=job.job_id)
        return JobResult(job=job, state=JobState.SUCCEEDED, steps=tuple(outcomes))
