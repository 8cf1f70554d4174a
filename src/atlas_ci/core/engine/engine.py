# src/atlas_ci/core/engine/engine.py
"""
Engine do Atlas CI — fachada evento → runs → relatórios.

O Engine combina os componentes do core:

    Event ─▶ TriggerEvaluator.admit ─▶ (por definição admitida)
           planner (validação) ─▶ RunContext ─▶ Scheduler.run ─▶ RunReport
           └─▶ Manifest (+ report.md) persistidos quando configurado

Decisões arquiteturais:
    - Cada definição admitida gera uma run independente (RunContext próprio)
    - Definições inválidas são rejeitadas antes de qualquer run iniciar
    - Configuração efetiva = defaults do engine + overrides (deep-merge)
    - `artifacts.root` seleciona `LocalDirTransport`; ausente ⇒ memória

Limites explícitos:
    - Não recebe webhooks (o evento já chega descrito)
    - Não faz retry de runs
"""

from __future__ import annotations

import uuid
from dataclasses import replace
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Optional

from atlas_ci import __version__
from atlas_ci.core.artifacts.store import ArtifactStore, InMemoryTransport, LocalDirTransport
from atlas_ci.core.config.hashing import compute_config_hash, compute_definition_hash
from atlas_ci.core.config.merge import deep_merge
from atlas_ci.core.config.settings import DEFAULT_CONFIG, resolve_engine_settings
from atlas_ci.core.pipeline.action import ActionRegistry
from atlas_ci.core.pipeline.context import RunContext
from atlas_ci.core.pipeline.definition import PipelineDefinition
from atlas_ci.core.pipeline.types import Event
from atlas_ci.core.traceability.manifest import (
    AtlasManifest,
    add_event,
    create_manifest,
    run_finished,
    save_manifest,
)
from atlas_ci.report.report_md import generate_run_report_md

from .executor import StepExecutor
from .planner import plan_stages
from .run_report import RunReport
from .scheduler import Scheduler
from .trigger import TriggerEvaluator


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class Engine:
    """Engine canônico do Atlas CI (trigger + planner + scheduler)."""

    def __init__(
        self,
        definitions: Iterable[PipelineDefinition],
        *,
        actions: Optional[ActionRegistry] = None,
        config: Optional[Dict[str, Any]] = None,
        store: Optional[ArtifactStore] = None,
        clock: Callable[[], datetime] = _utc_now,
        manifest_dir: Optional[Path] = None,
    ) -> None:
        self.definitions: List[PipelineDefinition] = list(definitions)
        self.actions = actions if actions is not None else ActionRegistry.with_builtins()
        self.settings = resolve_engine_settings(config)
        self.config: Dict[str, Any] = deep_merge(DEFAULT_CONFIG, config or {})
        self.clock = clock

        if store is None:
            if self.settings.artifacts_root is not None:
                store = ArtifactStore(LocalDirTransport(self.settings.artifacts_root))
            else:
                store = ArtifactStore(InMemoryTransport())
        self.store = store

        self.manifest_dir = Path(manifest_dir) if manifest_dir is not None else self.settings.manifest_dir
        self.manifests: Dict[str, AtlasManifest] = {}

    def validate(self) -> None:
        """
        Valida todas as definições registradas.

        Raises:
            DefinitionError: primeira definição estruturalmente inválida.
        """
        for definition in self.definitions:
            plan_stages(definition, actions=self.actions)

    def dispatch(self, event: Event) -> List[RunReport]:
        """
        Admite o evento e executa uma run por definição admitida.

        Nenhuma definição casando ⇒ lista vazia.
        """
        admitted = TriggerEvaluator(self.definitions).admit(event)
        for definition in admitted:
            plan_stages(definition, actions=self.actions)
        return [self.run(definition, event) for definition in admitted]

    def run(self, definition: PipelineDefinition, event: Event) -> RunReport:
        """Executa uma definição diretamente (sem avaliar triggers)."""
        plan_stages(definition, actions=self.actions)

        run_id = uuid.uuid4().hex
        created_at = self.clock()
        ctx = RunContext(
            run_id=run_id,
            created_at=created_at,
            event=event,
            definition=definition,
            config=self.config,
            meta={"pipeline": definition.name},
        )

        config_hash = compute_config_hash(self.config)
        definition_hash = compute_definition_hash(definition)
        manifest = create_manifest(
            run_id=run_id,
            started_at=created_at,
            atlas_version=__version__,
            pipeline=definition.name,
            event=event.to_dict(),
            config_hash=config_hash,
            definition_hash=definition_hash,
        )
        add_event(manifest, event_type="run_started", ts=created_at, payload={"pipeline": definition.name})

        scheduler = Scheduler(
            definition,
            ctx,
            StepExecutor(self.actions, clock=self.clock),
            self.store,
            self.settings.max_concurrency,
            manifest=manifest,
            clock=self.clock,
        )
        report = scheduler.run()
        report = replace(
            report,
            meta={
                "atlas_version": __version__,
                "config_hash": config_hash,
                "definition_hash": definition_hash,
                "events_logged": len(ctx.events),
            },
        )

        run_finished(manifest, status=report.status.value, ts=self.clock())
        self.manifests[run_id] = manifest

        if self.manifest_dir is not None:
            self._persist(report, manifest)
        return report

    def _persist(self, report: RunReport, manifest: AtlasManifest) -> None:
        target = self.manifest_dir / report.run_id
        save_manifest(manifest, target / "manifest.json")
        (target / "report.md").write_text(generate_run_report_md(report), encoding="utf-8")
