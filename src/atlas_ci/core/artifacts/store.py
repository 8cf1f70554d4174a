"""
Artifact Store — área de retenção endereçada por chave lógica.

Jobs publicam artefatos sob a chave composta
`(run_id, stage, job_id, name)`; Stages dependentes buscam o conjunto
agregado de um Stage produtor depois que sua barreira foi cruzada.

O store acompanha apenas chaves lógicas e prontidão. Bytes são entregues
a um colaborador de transporte (`ArtifactTransport`), que devolve um
localizador opaco.

Contrato:
    - publish(...)    → escrita única; chave repetida ⇒ DuplicateArtifactError
    - seal_stage(...) → marca a barreira do Stage e fixa a ordem de expansão
    - fetch(...)      → artefatos do Stage em ordem de expansão dos Jobs;
                        antes da barreira ⇒ NotReadyError (nunca visão parcial)

Concorrência:
    - Escritas são únicas por chave; a inserção usa `dict.setdefault`,
      atômico sob o GIL, sem lock explícito
    - Após `seal_stage`, `fetch` é idempotente

Limites explícitos:
    - Não conhece Jobs além de seus identificadores
    - Não decide quando um Stage é terminal (o Scheduler decide)
"""

from __future__ import annotations

import fnmatch
import hashlib
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Protocol, Sequence, Tuple, runtime_checkable

from atlas_ci.core.exceptions import DuplicateArtifactError, NotReadyError


ArtifactKey = Tuple[str, str, str, str]


@runtime_checkable
class ArtifactTransport(Protocol):
    """Colaborador externo de transporte físico de artefatos."""

    def put(self, key: ArtifactKey, payload: Mapping[str, bytes]) -> str:
        ...

    def get(self, locator: str) -> Dict[str, bytes]:
        ...


class InMemoryTransport:
    """Transporte em memória (default para testes e runs locais)."""

    def __init__(self) -> None:
        self._blobs: Dict[str, Dict[str, bytes]] = {}

    def put(self, key: ArtifactKey, payload: Mapping[str, bytes]) -> str:
        locator = "mem://" + "/".join(key)
        self._blobs[locator] = dict(payload)
        return locator

    def get(self, locator: str) -> Dict[str, bytes]:
        return dict(self._blobs[locator])


_UNSAFE = re.compile(r"[^A-Za-z0-9._-]+")


def _segment(value: str) -> str:
    cleaned = _UNSAFE.sub("_", value).strip("._") or "_"
    digest = hashlib.sha256(value.encode("utf-8")).hexdigest()[:8]
    return f"{cleaned}-{digest}"


class LocalDirTransport:
    """
    Transporte em diretório local.

    Layout: `<root>/<run>/<stage>/<job>/<name>/<arquivos...>`; cada segmento
    é saneado e sufixado por hash curto, de modo que chaves distintas nunca
    colidem no disco.
    """

    def __init__(self, root: Path) -> None:
        self.root = Path(root)

    def put(self, key: ArtifactKey, payload: Mapping[str, bytes]) -> str:
        target = self.root.joinpath(*(_segment(part) for part in key))
        target.mkdir(parents=True, exist_ok=False)
        for rel, data in payload.items():
            path = target / rel
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(data)
        return str(target)

    def get(self, locator: str) -> Dict[str, bytes]:
        base = Path(locator)
        return {
            p.relative_to(base).as_posix(): p.read_bytes()
            for p in sorted(base.rglob("*"))
            if p.is_file()
        }


@dataclass(frozen=True)
class Artifact:
    """Artefato publicado: chave lógica + localizador no transporte."""

    run_id: str
    stage: str
    job_id: str
    name: str
    locator: str
    files: Tuple[str, ...] = ()

    @property
    def key(self) -> ArtifactKey:
        return (self.run_id, self.stage, self.job_id, self.name)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "run_id": self.run_id,
            "stage": self.stage,
            "job_id": self.job_id,
            "name": self.name,
            "locator": self.locator,
            "files": list(self.files),
        }


@dataclass
class ArtifactStore:
    """Store lógico de artefatos de todas as runs de um engine."""

    transport: ArtifactTransport = field(default_factory=InMemoryTransport)

    _entries: Dict[ArtifactKey, Artifact] = field(default_factory=dict, init=False, repr=False)
    _sealed: Dict[Tuple[str, str], Tuple[str, ...]] = field(default_factory=dict, init=False, repr=False)

    def publish(
        self,
        run_id: str,
        stage: str,
        job_id: str,
        name: str,
        payload: Mapping[str, bytes],
    ) -> Artifact:
        key: ArtifactKey = (run_id, stage, job_id, name)
        if key in self._entries:
            raise DuplicateArtifactError(
                f"Artefato já publicado: {name} ({job_id})",
                details={"run_id": run_id, "stage": stage, "job_id": job_id, "name": name},
            )
        if (run_id, stage) in self._sealed:
            raise DuplicateArtifactError(
                f"Stage '{stage}' já cruzou a barreira; publicação recusada",
                details={"run_id": run_id, "stage": stage, "job_id": job_id, "name": name},
            )

        locator = self.transport.put(key, payload)
        artifact = Artifact(
            run_id=run_id,
            stage=stage,
            job_id=job_id,
            name=name,
            locator=locator,
            files=tuple(sorted(payload)),
        )
        if self._entries.setdefault(key, artifact) is not artifact:
            raise DuplicateArtifactError(
                f"Artefato já publicado: {name} ({job_id})",
                details={"run_id": run_id, "stage": stage, "job_id": job_id, "name": name},
            )
        return artifact

    def seal_stage(self, run_id: str, stage: str, job_ids: Sequence[str]) -> None:
        """Cruza a barreira do Stage, fixando a ordem de expansão dos Jobs."""
        self._sealed.setdefault((run_id, stage), tuple(job_ids))

    def is_ready(self, run_id: str, stage: str) -> bool:
        return (run_id, stage) in self._sealed

    def fetch(self, run_id: str, stage: str, name: str = "*") -> List[Artifact]:
        """
        Artefatos do Stage cujo nome casa com `name` (nome exato ou glob).

        Raises:
            NotReadyError: o Stage ainda não cruzou a barreira.
        """
        order = self._sealed.get((run_id, stage))
        if order is None:
            raise NotReadyError(
                f"Artefatos do stage '{stage}' ainda não estão prontos",
                details={"run_id": run_id, "stage": stage, "name": name},
                hint="Declare o stage produtor em `needs` para buscar após a barreira.",
            )

        position = {job_id: i for i, job_id in enumerate(order)}
        found = [
            a
            for (r, s, _, n), a in list(self._entries.items())
            if r == run_id and s == stage and a.job_id in position and fnmatch.fnmatchcase(n, name)
        ]
        return sorted(found, key=lambda a: (position[a.job_id], a.name))

    def read(self, artifact: Artifact) -> Dict[str, bytes]:
        return self.transport.get(artifact.locator)
