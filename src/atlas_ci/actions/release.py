"""
Action `release.upload` e colaborador de publicação.

A action coleta os arquivos do workspace sob `path` (default `dist`) e
os entrega, junto do identificador de release derivado do ref
disparador (`refs/tags/v1.2.3` → `v1.2.3`), a um `ReleasePublisher`.
"""

from __future__ import annotations

import threading
from typing import Dict, List, Mapping, Optional, Protocol, Tuple, runtime_checkable

from atlas_ci.core.engine.refs import release_id_from_ref
from atlas_ci.core.exceptions import StepFailure
from atlas_ci.core.pipeline.action import ActionRequest, ActionResult


@runtime_checkable
class ReleasePublisher(Protocol):
    """Colaborador externo que anexa arquivos a uma release."""

    def publish(self, release_id: str, files: Mapping[str, bytes]) -> None:
        ...


class InMemoryReleasePublisher:
    """Publisher em memória: registra as releases publicadas (runs locais e testes)."""

    def __init__(self) -> None:
        self.releases: List[Tuple[str, Dict[str, bytes]]] = []
        self._lock = threading.Lock()

    def publish(self, release_id: str, files: Mapping[str, bytes]) -> None:
        with self._lock:
            self.releases.append((release_id, dict(files)))

    def assets(self, release_id: str) -> List[str]:
        with self._lock:
            return sorted(
                path for rid, files in self.releases if rid == release_id for path in files
            )


class ReleaseUploadAction:
    def __init__(self, publisher: Optional[ReleasePublisher] = None) -> None:
        self.publisher = publisher

    def __call__(self, request: ActionRequest) -> ActionResult:
        if self.publisher is None:
            raise StepFailure(
                "Nenhum ReleasePublisher configurado",
                details={"step": request.step_id},
                hint="Registre as actions com ActionRegistry.with_builtins(publisher=...).",
            )

        release_id = release_id_from_ref(request.ctx.event.ref)
        if not release_id:
            raise StepFailure(
                "Evento sem ref: não há identificador de release",
                details={"step": request.step_id, "event": request.ctx.event.to_dict()},
            )

        pattern = str(request.param("path", "dist") or "dist")
        files = request.workspace.select(pattern)
        if not files:
            raise StepFailure(
                f"Nenhum arquivo para publicar em '{pattern}'",
                details={"step": request.step_id, "path": pattern, "release": release_id},
            )

        self.publisher.publish(release_id, files)
        request.ctx.log(
            level="info",
            message="release assets uploaded",
            job_id=request.job.job_id,
            release=release_id,
            assets=len(files),
        )
        return ActionResult(
            outputs={"release_id": release_id, "assets": len(files)},
            log="Uploading " + " ".join(f"-a {p}" for p in files),
        )
