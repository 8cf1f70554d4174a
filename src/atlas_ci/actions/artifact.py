"""
Actions de artefato: `artifact.upload` e `artifact.download`.

`artifact.upload`
    with:
        name: nome lógico do artefato (default: `artifact`)
        path: glob sobre os arquivos do workspace do Job (default: `**`)
        if_no_files_found: `warn` | `error` | `ignore` (default: `warn`)

`artifact.download`
    with:
        stages: stage ou lista de stages produtores (default: `needs` do Stage)
        name: nome exato ou glob dos artefatos (default: `*`)
        path: prefixo no workspace onde os arquivos são mesclados (default: raiz)

Os arquivos são gravados relativos ao menor ancestral comum dos caminhos
casados (`wheelhouse/a.whl` → `a.whl`).

O download só é permitido a partir de predecessores transitivos: fora
deles a barreira não é garantida e o fetch falha com NotReadyError.
Arquivos de Jobs diferentes com o mesmo caminho relativo são mesclados
em ordem de expansão (o último Job prevalece).
"""

from __future__ import annotations

import posixpath
from typing import Any, Dict, List, Mapping

from atlas_ci.core.exceptions import NotReadyError, StepFailure
from atlas_ci.core.pipeline.action import ActionRequest, ActionResult

NO_FILES_POLICIES = ("warn", "error", "ignore")


def _as_list(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        return [str(v) for v in value]
    return [str(value)]


def _relative_to_common_root(files: Mapping[str, bytes]) -> Dict[str, bytes]:
    # caminhos relativos ao menor ancestral comum dos arquivos casados
    parents = [posixpath.dirname(p) for p in files]
    root = posixpath.commonpath(parents) if all(parents) else ""
    if not root:
        return dict(files)
    return {posixpath.relpath(p, root): data for p, data in files.items()}


def upload_artifact(request: ActionRequest) -> ActionResult:
    name = str(request.param("name", "artifact") or "artifact")
    pattern = str(request.param("path", "**") or "**")
    policy = str(request.param("if_no_files_found", "warn"))
    if policy not in NO_FILES_POLICIES:
        raise StepFailure(
            f"if_no_files_found inválido: {policy!r}",
            details={"step": request.step_id, "allowed": list(NO_FILES_POLICIES)},
        )

    files = request.workspace.select(pattern)
    if not files:
        message = f"No files found with the provided path: {pattern}. No artifacts will be uploaded."
        if policy == "error":
            raise StepFailure(message, details={"step": request.step_id, "path": pattern})
        if policy == "warn":
            request.ctx.add_warning(job_id=request.job.job_id, message=message)
        return ActionResult(outputs={"name": name, "files": 0}, log=message)

    artifact = request.store.publish(
        request.ctx.run_id,
        request.stage.name,
        request.job.job_id,
        name,
        _relative_to_common_root(files),
    )
    request.ctx.log(
        level="debug",
        message="artifact published",
        job_id=request.job.job_id,
        artifact=name,
        files=len(files),
    )
    return ActionResult(
        outputs={"name": name, "files": len(files), "locator": artifact.locator},
        log=f"uploaded {len(files)} file(s) as '{name}'",
    )


def download_artifact(request: ActionRequest) -> ActionResult:
    stages = _as_list(request.param("stages")) or list(request.stage.needs)
    pattern = str(request.param("name", "*") or "*")
    prefix = str(request.param("path", "") or "")

    downloaded = 0
    names: List[str] = []
    for stage in stages:
        if stage not in request.upstream:
            raise NotReadyError(
                f"Stage '{stage}' não é predecessor de '{request.stage.name}'",
                details={"stage": stage, "requested_by": request.job.job_id},
                hint="Declare o stage produtor em `needs` para buscar após a barreira.",
            )
        for artifact in request.store.fetch(request.ctx.run_id, stage, pattern):
            files = request.store.read(artifact)
            request.workspace.add_files(files, prefix=prefix)
            downloaded += len(files)
            names.append(artifact.name)

    return ActionResult(
        outputs={"files": downloaded, "artifacts": len(names)},
        log=f"downloaded {downloaded} file(s) from {len(names)} artifact(s)",
    )
