"""
Contrato de actions e registro de referências.

Uma action é o colaborador externo invocado por um Step: o core a trata
como chamada opaca que recebe um `ActionRequest` e devolve um
`ActionResult` (status de saída, mapa de outputs e arquivos emitidos).

Componentes:
    - JobWorkspace   → ambiente privado de um Job (arquivos + outputs de Steps)
    - ActionRequest  → tudo o que a action pode ler da execução corrente
    - ActionResult   → resultado opaco devolvido ao Step Executor
    - Action         → protocolo (qualquer callable compatível)
    - ActionRegistry → resolução de referências (`uses`) em actions

Decisões arquiteturais:
    - Actions não conhecem o Scheduler nem outros Jobs
    - A única via de troca entre Jobs é o Artifact Store
    - Retry, se desejado, é responsabilidade da própria action

Limites explícitos:
    - Não executa Steps (ver `engine.executor`)
    - Não define actions concretas (ver `atlas_ci.actions`)
"""

from __future__ import annotations

import fnmatch
import threading
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Callable, Dict, FrozenSet, List, Mapping, Optional, Protocol, runtime_checkable

from atlas_ci.core.exceptions import CancellationError

from .types import Job

if TYPE_CHECKING:  # pragma: no cover
    from atlas_ci.core.artifacts.store import ArtifactStore

    from .context import RunContext
    from .definition import Stage


@dataclass
class JobWorkspace:
    """
    Ambiente de trabalho privado de um Job.

    - files: arquivos emitidos pelos Steps (caminho relativo → bytes)
    - step_outputs: outputs nomeados por step_id, visíveis apenas aos
      Steps seguintes do mesmo Job
    """

    files: Dict[str, bytes] = field(default_factory=dict)
    step_outputs: Dict[str, Dict[str, Any]] = field(default_factory=dict)

    def add_files(self, files: Mapping[str, bytes], *, prefix: str = "") -> None:
        base = prefix.strip("/")
        for path, payload in files.items():
            rel = f"{base}/{path}" if base else path
            self.files[rel] = payload

    def select(self, pattern: str) -> Dict[str, bytes]:
        """Arquivos cujo caminho casa com o glob (ordem lexicográfica)."""
        if pattern in ("", "**", "*"):
            return {p: self.files[p] for p in sorted(self.files)}
        base = pattern.rstrip("/")
        return {
            p: self.files[p]
            for p in sorted(self.files)
            if fnmatch.fnmatchcase(p, pattern) or p.startswith(base + "/")
        }


@dataclass(frozen=True)
class ActionRequest:
    """Entrada de uma action: parâmetros já interpolados + contexto do Job."""

    step_id: str
    uses: str
    params: Mapping[str, Any]
    job: Job
    stage: "Stage"
    workspace: JobWorkspace
    ctx: "RunContext"
    store: "ArtifactStore"
    upstream: FrozenSet[str] = frozenset()
    cancel_event: Optional[threading.Event] = None

    @property
    def cancelled(self) -> bool:
        """Sinal fail-fast do Stage; actions longas podem observá-lo cooperativamente."""
        return self.cancel_event is not None and self.cancel_event.is_set()

    def raise_if_cancelled(self) -> None:
        """Interrompe a action levantando `CancellationError` se o sinal já foi emitido."""
        if self.cancelled:
            raise CancellationError(
                "Job cancelado durante a execução do Step",
                details={"step": self.step_id, "job": self.job.job_id, "stage": self.stage.name},
            )

    def param(self, name: str, default: Any = None) -> Any:
        return self.params.get(name, default)


@dataclass(frozen=True)
class ActionResult:
    """Resultado opaco de uma action."""

    exit_status: int = 0
    outputs: Dict[str, Any] = field(default_factory=dict)
    files: Dict[str, bytes] = field(default_factory=dict)
    log: str = ""

    @property
    def succeeded(self) -> bool:
        return self.exit_status == 0


@runtime_checkable
class Action(Protocol):
    def __call__(self, request: ActionRequest) -> ActionResult:
        ...


class DuplicateActionError(ValueError):
    """Duas actions registradas sob a mesma referência."""


def normalize_reference(uses: str) -> str:
    """Remove o sufixo de versão: `artifact.upload@v2` → `artifact.upload`."""
    return uses.split("@", 1)[0].strip()


@dataclass
class ActionRegistry:
    """
    Registro de actions por referência.

    A versão (`@vN`) é ignorada na resolução: o core não gerencia
    múltiplas versões de uma mesma action.
    """

    _actions: Dict[str, Callable[[ActionRequest], ActionResult]] = field(
        default_factory=dict, init=False, repr=False
    )
    _order: List[str] = field(default_factory=list, init=False, repr=False)

    def add(self, reference: str, action: Callable[[ActionRequest], ActionResult]) -> None:
        key = normalize_reference(reference)
        if not key:
            raise ValueError("action reference must be a non-empty string")
        if key in self._actions:
            raise DuplicateActionError(f"Duplicate action reference: {key}")
        if not callable(action):
            raise TypeError(f"Action '{key}' must be callable")
        self._actions[key] = action
        self._order.append(key)

    def has(self, uses: str) -> bool:
        return normalize_reference(uses) in self._actions

    def get(self, uses: str) -> Callable[[ActionRequest], ActionResult]:
        return self._actions[normalize_reference(uses)]

    def list(self) -> List[str]:
        return list(self._order)

    @classmethod
    def with_builtins(cls, *, publisher: Optional[Any] = None) -> "ActionRegistry":
        """Registro já contendo as actions embutidas (artifact.*, release.upload)."""
        from atlas_ci.actions import register_builtin_actions

        registry = cls()
        register_builtin_actions(registry, publisher=publisher)
        return registry
