# src/atlas_ci/core/pipeline/__init__.py
"""
# Pipeline Core — Atlas CI

Este pacote define o **modelo declarativo** e os **contratos** que o
engine interpreta.

## Componentes

- **types**
  - `Event`, `EventKind`: evento disparador
  - `JobState`, `StageOutcome`, `RunStatus`, `FailurePolicy`
  - `Job`, `StepOutcome`, `JobResult`, `StageResult`

- **definition**
  - `PipelineDefinition`, `Stage`, `StepTemplate`, `TriggerRule`

- **context**
  - `RunContext`: ledger de estados, outcomes de Stages, gates e log

- **action**
  - `ActionRequest`, `ActionResult`, `ActionRegistry`, `JobWorkspace`

- **loader**
  - `load_pipeline`, `definition_from_dict`

## Limites Explícitos

- Não planeja nem executa (ver `core.engine`)
"""
