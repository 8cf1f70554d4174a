"""
RunReport — resultado agregado de uma run.

Enumera todo Stage e todo Job com seu estado terminal e, para falhas,
o primeiro Step que falhou (com a saída registrada).

Status final da run:
    - FAILED    se algum Stage terminou FAILED
    - CANCELLED se nenhum falhou mas algum foi CANCELLED
    - SUCCEEDED caso contrário (SKIPPED não conta como falha)
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Tuple

import pandas as pd

from atlas_ci.core.artifacts.store import Artifact
from atlas_ci.core.pipeline.types import (
    Event,
    JobResult,
    JobState,
    RunStatus,
    StageOutcome,
    StageResult,
)


FRAME_COLUMNS = [
    "run_id",
    "pipeline",
    "stage",
    "stage_outcome",
    "job_id",
    "index",
    "display_name",
    "state",
    "steps_run",
    "failed_step",
    "exit_status",
]


def aggregate_run_status(outcomes: Iterable[StageOutcome]) -> RunStatus:
    resolved = list(outcomes)
    if StageOutcome.FAILED in resolved:
        return RunStatus.FAILED
    if StageOutcome.CANCELLED in resolved:
        return RunStatus.CANCELLED
    return RunStatus.SUCCEEDED


@dataclass(frozen=True)
class RunReport:
    run_id: str
    pipeline: str
    event: Event
    status: RunStatus
    stages: Tuple[StageResult, ...] = ()
    artifacts: Tuple[Artifact, ...] = ()
    started_at: Optional[str] = None
    finished_at: Optional[str] = None
    warnings: Dict[str, List[str]] = field(default_factory=dict)
    meta: Dict[str, Any] = field(default_factory=dict)

    @property
    def succeeded(self) -> bool:
        return self.status is RunStatus.SUCCEEDED

    @property
    def jobs(self) -> Tuple[JobResult, ...]:
        return tuple(job for stage in self.stages for job in stage.jobs)

    def stage(self, name: str) -> StageResult:
        for s in self.stages:
            if s.name == name:
                return s
        raise KeyError(name)

    def job(self, job_id: str) -> JobResult:
        for j in self.jobs:
            if j.job.job_id == job_id:
                return j
        raise KeyError(job_id)

    def failures(self) -> List[JobResult]:
        return [j for j in self.jobs if j.state is JobState.FAILED]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "run_id": self.run_id,
            "pipeline": self.pipeline,
            "event": self.event.to_dict(),
            "status": self.status.value,
            "started_at": self.started_at,
            "finished_at": self.finished_at,
            "stages": [s.to_dict() for s in self.stages],
            "artifacts": [a.to_dict() for a in self.artifacts],
            "warnings": {k: list(v) for k, v in self.warnings.items()},
            "meta": dict(self.meta),
        }

    def to_frame(self) -> pd.DataFrame:
        """Uma linha por Job; eixos de matrix viram colunas `matrix.<eixo>`."""
        rows: List[Dict[str, Any]] = []
        matrix_columns: List[str] = []
        for stage in self.stages:
            for result in stage.jobs:
                failing = result.first_failed_step
                row: Dict[str, Any] = {
                    "run_id": self.run_id,
                    "pipeline": self.pipeline,
                    "stage": stage.name,
                    "stage_outcome": stage.outcome.value,
                    "job_id": result.job.job_id,
                    "index": result.job.index,
                    "display_name": result.job.display_name,
                    "state": result.state.value,
                    "steps_run": len(result.steps),
                    "failed_step": failing.step_id if failing is not None else None,
                    "exit_status": failing.exit_status if failing is not None else None,
                }
                for axis, value in result.job.binding:
                    column = f"matrix.{axis}"
                    if column not in matrix_columns:
                        matrix_columns.append(column)
                    row[column] = value
                rows.append(row)
        return pd.DataFrame(rows, columns=FRAME_COLUMNS + matrix_columns)
