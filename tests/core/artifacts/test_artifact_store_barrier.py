# tests/core/artifacts/test_artifact_store_barrier.py
"""
Testes do Artifact Store.

Este módulo valida o contrato de publicação e leitura agregada de
artefatos entre Stages.

Os testes asseguram que:
- fetch antes da barreira do Stage falha com NotReadyError
- após a barreira, fetch devolve artefatos em ordem de expansão dos Jobs
- fetch após a barreira é idempotente
- a mesma chave não pode ser escrita duas vezes
- publicação após a barreira é recusada
- o transporte em diretório local preserva bytes e caminhos relativos

Invariantes:
    - Nunca existe visão parcial de um Stage
    - O store é append-only por chave

Limites explícitos:
    - Não valida concorrência entre Jobs (ver testes do scheduler)
"""

import pytest

from atlas_ci.core.artifacts import ArtifactStore, ArtifactTransport, InMemoryTransport, LocalDirTransport
from atlas_ci.core.errors import ARTIFACT_NOT_READY
from atlas_ci.core.exceptions import DuplicateArtifactError, NotReadyError

JOBS = ["build (python=37)", "build (python=38)", "build (python=39)"]


def _publish_all(store, order):
    for job_id in order:
        store.publish("r1", "build", job_id, "wheels", {f"{job_id}.whl": job_id.encode()})


def test_fetch_before_barrier_is_not_ready():
    store = ArtifactStore()
    _publish_all(store, JOBS)

    with pytest.raises(NotReadyError) as info:
        store.fetch("r1", "build")

    assert info.value.to_payload().type == ARTIFACT_NOT_READY
    assert info.value.details["stage"] == "build"


def test_fetch_follows_expansion_order_not_completion_order():
    store = ArtifactStore()
    _publish_all(store, list(reversed(JOBS)))
    store.seal_stage("r1", "build", JOBS)

    assert [a.job_id for a in store.fetch("r1", "build")] == JOBS


def test_fetch_after_barrier_is_idempotent():
    store = ArtifactStore()
    _publish_all(store, JOBS)
    store.seal_stage("r1", "build", JOBS)

    first = store.fetch("r1", "build", "wheels")
    second = store.fetch("r1", "build", "wheels")

    assert first == second
    assert [store.read(a) for a in first] == [store.read(a) for a in second]


def test_fetch_filters_by_name_glob():
    store = ArtifactStore()
    store.publish("r1", "build", "j", "wheels-linux", {"a": b"1"})
    store.publish("r1", "build", "j", "sdist", {"b": b"2"})
    store.seal_stage("r1", "build", ["j"])

    assert [a.name for a in store.fetch("r1", "build", "wheels-*")] == ["wheels-linux"]
    assert [a.name for a in store.fetch("r1", "build")] == ["sdist", "wheels-linux"]


def test_duplicate_key_is_rejected():
    store = ArtifactStore()
    store.publish("r1", "build", "j", "wheels", {"a": b"1"})

    with pytest.raises(DuplicateArtifactError):
        store.publish("r1", "build", "j", "wheels", {"a": b"2"})


def test_publish_after_barrier_is_rejected():
    store = ArtifactStore()
    store.seal_stage("r1", "build", ["j"])

    with pytest.raises(DuplicateArtifactError):
        store.publish("r1", "build", "j", "late", {"a": b"1"})


def test_runs_are_isolated():
    store = ArtifactStore()
    store.publish("r1", "build", "j", "wheels", {"a": b"1"})
    store.seal_stage("r1", "build", ["j"])

    with pytest.raises(NotReadyError):
        store.fetch("r2", "build")


def test_transports_satisfy_protocol(tmp_path):
    assert isinstance(InMemoryTransport(), ArtifactTransport)
    assert isinstance(LocalDirTransport(tmp_path), ArtifactTransport)


def test_local_dir_transport_round_trip(tmp_path):
    store = ArtifactStore(LocalDirTransport(tmp_path))
    payload = {"ConfigSpace-0.4.18-cp37.whl": b"\x00wheel", "nested/info.txt": b"meta"}

    artifact = store.publish("r1", "build_wheels", "build_wheels (python=37)", "artifact", payload)
    store.seal_stage("r1", "build_wheels", ["build_wheels (python=37)"])

    assert artifact.files == ("ConfigSpace-0.4.18-cp37.whl", "nested/info.txt")
    (fetched,) = store.fetch("r1", "build_wheels")
    assert store.read(fetched) == payload
    assert str(tmp_path) in fetched.locator
