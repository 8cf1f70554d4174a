# src/atlas_ci/core/traceability/manifest.py
"""
Manifest v1 — rastreabilidade forense de runs do Atlas CI.

O Manifest consolida, de forma determinística e auditável:
    - metadados da run (run_id, pipeline, evento, started_at, versão)
    - hashes semânticos de entradas (config e definição de pipeline)
    - estado incremental de Stages e Jobs
    - Event Log ordenado de eventos explícitos

Eventos canônicos (v1):
    run_started, stage_started, stage_finished, stage_skipped,
    stage_cancelled, job_started, job_finished, run_finished

Princípios fundamentais:
    - Nenhum evento é emitido implicitamente
    - Toda mutação ocorre por chamadas explícitas da API
    - A ordem do Event Log reflete a ordem de chamada
    - O Manifest é serializável e reconstruível (round-trip)

Decisões arquiteturais:
    - UTC é o timezone canônico para todos os timestamps
    - O formato de persistência é JSON determinístico
    - A API aceita o Manifest como objeto ou como dict serializado

Limites explícitos:
    - Não executa pipeline
    - Não decide políticas de execução (fail-fast, skip)
    - Não é thread-safe: o chamador serializa as mutações
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union


def _ensure_tzaware_utc(dt: datetime) -> datetime:
    """Timestamps timezone-naive são assumidos como UTC; os demais são convertidos."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def _iso(dt: datetime) -> str:
    return _ensure_tzaware_utc(dt).isoformat()


def _ms_between(start: datetime, end: datetime) -> int:
    s = _ensure_tzaware_utc(start)
    e = _ensure_tzaware_utc(end)
    return max(0, int((e - s).total_seconds() * 1000))


@dataclass
class AtlasManifest:
    """
    Manifest v1 — registro forense de uma run de pipeline.

    Campos principais:
        - run: metadados da execução
        - inputs: hashes semânticos de configuração e definição
        - stages: estado incremental por nome de Stage
        - jobs: estado incremental por job_id
        - events: Event Log ordenado

    Invariantes:
        - `stages` e `jobs` são dicionários indexados por identidade
        - `events` é sempre uma lista ordenada
        - A estrutura completa é serializável em JSON
    """

    run: Dict[str, Any]
    inputs: Dict[str, Any]
    stages: Dict[str, Dict[str, Any]] = field(default_factory=dict)
    jobs: Dict[str, Dict[str, Any]] = field(default_factory=dict)
    events: List[Dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        """Cópia serializável e independente do estado interno."""
        return {
            "run": dict(self.run),
            "inputs": dict(self.inputs),
            "stages": {k: dict(v) for k, v in self.stages.items()},
            "jobs": {k: dict(v) for k, v in self.jobs.items()},
            "events": [dict(e) for e in self.events],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AtlasManifest":
        """Reconstrução permissiva: campos ausentes iniciam vazios."""
        return cls(
            run=dict(data.get("run", {})),
            inputs=dict(data.get("inputs", {})),
            stages={k: dict(v) for k, v in (data.get("stages", {}) or {}).items()},
            jobs={k: dict(v) for k, v in (data.get("jobs", {}) or {}).items()},
            events=[dict(e) for e in (data.get("events", []) or [])],
        )


def create_manifest(
    *,
    run_id: str,
    started_at: datetime,
    atlas_version: str,
    pipeline: str,
    event: Dict[str, Any],
    config_hash: str,
    definition_hash: str,
) -> AtlasManifest:
    """
    Cria o Manifest inicial de uma run.

    ⚠️ Importante: esta função **não emite eventos implicitamente**;
    `run_started` é registrado pelo chamador via `add_event`.

    Args:
        run_id (str): Identificador único da run.
        started_at (datetime): Timestamp de início.
        atlas_version (str): Versão do Atlas CI.
        pipeline (str): Nome da definição em execução.
        event (Dict[str, Any]): Evento disparador serializado.
        config_hash (str): Hash semântico da configuração efetiva.
        definition_hash (str): Hash semântico da definição de pipeline.

    Returns:
        AtlasManifest: Manifest com stages, jobs e events vazios.
    """
    started_at = _ensure_tzaware_utc(started_at)

    return AtlasManifest(
        run={
            "run_id": run_id,
            "pipeline": pipeline,
            "event": dict(event),
            "started_at": _iso(started_at),
            "atlas_version": atlas_version,
        },
        inputs={
            "config_hash": config_hash,
            "definition_hash": definition_hash,
        },
    )


def _get_manifest(manifest: Union[AtlasManifest, Dict[str, Any]]) -> Tuple[AtlasManifest, bool]:
    if isinstance(manifest, AtlasManifest):
        return manifest, False
    return AtlasManifest.from_dict(manifest), True


def _sync(manifest: Union[AtlasManifest, Dict[str, Any]], m: AtlasManifest, is_dict: bool) -> None:
    if is_dict:
        manifest.clear()
        manifest.update(m.to_dict())


def add_event(
    manifest: Union[AtlasManifest, Dict[str, Any]],
    *,
    event_type: str,
    ts: datetime,
    stage: Optional[str] = None,
    job_id: Optional[str] = None,
    payload: Optional[Dict[str, Any]] = None,
) -> None:
    """
    Adiciona um evento explícito ao Event Log.

    Cada chamada adiciona exatamente um evento; eventos não são
    reordenados nem deduplicados.
    """
    ts = _ensure_tzaware_utc(ts)
    m, is_dict = _get_manifest(manifest)

    ev: Dict[str, Any] = {"event_type": event_type, "timestamp": _iso(ts)}
    if stage is not None:
        ev["stage"] = stage
    if job_id is not None:
        ev["job_id"] = job_id
    if payload is not None:
        ev["payload"] = payload

    m.events.append(ev)
    _sync(manifest, m, is_dict)


def stage_started(
    manifest: Union[AtlasManifest, Dict[str, Any]],
    *,
    stage: str,
    ts: datetime,
    jobs: List[str],
) -> None:
    """Marca o Stage como `running` e registra `stage_started`."""
    ts = _ensure_tzaware_utc(ts)
    m, is_dict = _get_manifest(manifest)

    m.stages.setdefault(stage, {})
    m.stages[stage].update(
        {
            "stage": stage,
            "status": "running",
            "started_at": _iso(ts),
            "jobs": list(jobs),
        }
    )

    add_event(m, event_type="stage_started", ts=ts, stage=stage, payload={"jobs": len(jobs)})
    _sync(manifest, m, is_dict)


def stage_resolved(
    manifest: Union[AtlasManifest, Dict[str, Any]],
    *,
    stage: str,
    outcome: str,
    ts: datetime,
    reason: Optional[str] = None,
) -> None:
    """
    Registra o resultado agregado de um Stage.

    O tipo do evento depende do outcome:
        - skipped   → `stage_skipped`
        - cancelled → `stage_cancelled`
        - demais    → `stage_finished`
    """
    ts = _ensure_tzaware_utc(ts)
    m, is_dict = _get_manifest(manifest)

    s = m.stages.setdefault(stage, {"stage": stage})
    started_iso = s.get("started_at")
    started_dt = datetime.fromisoformat(started_iso) if started_iso else ts
    s.update(
        {
            "status": outcome,
            "finished_at": _iso(ts),
            "duration_ms": _ms_between(started_dt, ts),
            "reason": reason,
        }
    )

    event_type = {
        "skipped": "stage_skipped",
        "cancelled": "stage_cancelled",
    }.get(outcome, "stage_finished")
    payload: Dict[str, Any] = {"outcome": outcome}
    if reason is not None:
        payload["reason"] = reason

    add_event(m, event_type=event_type, ts=ts, stage=stage, payload=payload)
    _sync(manifest, m, is_dict)


def job_started(
    manifest: Union[AtlasManifest, Dict[str, Any]],
    *,
    job_id: str,
    stage: str,
    ts: datetime,
    matrix: Optional[Dict[str, Any]] = None,
) -> None:
    """Marca o Job como `running` e registra `job_started`."""
    ts = _ensure_tzaware_utc(ts)
    m, is_dict = _get_manifest(manifest)

    m.jobs.setdefault(job_id, {})
    m.jobs[job_id].update(
        {
            "job_id": job_id,
            "stage": stage,
            "matrix": dict(matrix or {}),
            "status": "running",
            "started_at": _iso(ts),
        }
    )

    add_event(m, event_type="job_started", ts=ts, stage=stage, job_id=job_id)
    _sync(manifest, m, is_dict)


def job_finished(
    manifest: Union[AtlasManifest, Dict[str, Any]],
    *,
    job_id: str,
    ts: datetime,
    result: Dict[str, Any],
) -> None:
    """
    Registra o estado terminal de um Job.

    Args:
        result (Dict[str, Any]): `JobResult.to_dict()` (state, stage,
            steps, error).
    """
    ts = _ensure_tzaware_utc(ts)
    m, is_dict = _get_manifest(manifest)

    j = m.jobs.setdefault(job_id, {"job_id": job_id, "stage": result.get("stage")})
    started_iso = j.get("started_at")
    started_dt = datetime.fromisoformat(started_iso) if started_iso else ts

    status = result.get("state", "succeeded")
    j.update(
        {
            "status": status,
            "finished_at": _iso(ts),
            "duration_ms": _ms_between(started_dt, ts),
            "steps": [s.get("step_id") for s in result.get("steps", []) or []],
            "error": result.get("error"),
        }
    )

    add_event(
        m,
        event_type="job_finished",
        ts=ts,
        stage=j.get("stage"),
        job_id=job_id,
        payload={"status": status, "duration_ms": j.get("duration_ms", 0)},
    )
    _sync(manifest, m, is_dict)


def run_finished(
    manifest: Union[AtlasManifest, Dict[str, Any]],
    *,
    status: str,
    ts: datetime,
) -> None:
    """Fecha a run: status final em `run` + evento `run_finished`."""
    ts = _ensure_tzaware_utc(ts)
    m, is_dict = _get_manifest(manifest)

    m.run["status"] = status
    m.run["finished_at"] = _iso(ts)
    add_event(m, event_type="run_finished", ts=ts, payload={"status": status})
    _sync(manifest, m, is_dict)


def save_manifest(manifest: Union[AtlasManifest, Dict[str, Any]], path: Path) -> None:
    """
    Persiste o Manifest em JSON determinístico (`sort_keys=True`).

    Diretórios intermediários são criados automaticamente.

    Raises:
        OSError: falha ao criar diretórios ou escrever o arquivo.
        TypeError: conteúdo não serializável em JSON.
    """
    data = manifest.to_dict() if isinstance(manifest, AtlasManifest) else manifest
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data, ensure_ascii=False, indent=2, sort_keys=True), encoding="utf-8")


def load_manifest(path: Path) -> AtlasManifest:
    """
    Restaura um Manifest persistido.

    Raises:
        OSError: falha de leitura.
        json.JSONDecodeError: JSON inválido.
    """
    data = json.loads(path.read_text(encoding="utf-8"))
    return AtlasManifest.from_dict(data)
