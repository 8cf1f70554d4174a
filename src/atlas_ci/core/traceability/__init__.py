# src/atlas_ci/core/traceability/__init__.py
"""
Pacote de rastreabilidade (traceability) do Atlas CI — Manifest v1.

API pública exposta:
    - AtlasManifest     → estrutura canônica do Manifest
    - create_manifest   → criação explícita do Manifest
    - add_event         → registro explícito de eventos no Event Log
    - stage_started     → marca início de um Stage
    - stage_resolved    → registra o resultado agregado de um Stage
    - job_started       → marca início de execução de um Job
    - job_finished      → registra o estado terminal de um Job
    - run_finished      → fecha a run com o status final
    - save_manifest     → persistência do Manifest em JSON
    - load_manifest     → restauração determinística do Manifest

Nenhum evento é emitido implicitamente; a ordem do Event Log reflete a
ordem de chamada.
"""

from .manifest import (
    AtlasManifest,
    create_manifest,
    add_event,
    stage_started,
    stage_resolved,
    job_started,
    job_finished,
    run_finished,
    save_manifest,
    load_manifest,
)

__all__ = [
    "AtlasManifest",
    "create_manifest",
    "add_event",
    "stage_started",
    "stage_resolved",
    "job_started",
    "job_finished",
    "run_finished",
    "save_manifest",
    "load_manifest",
]
