# src/atlas_ci/core/config/settings.py
"""
Resolução das chaves de configuração reconhecidas pelo engine.

Chaves (v1):

    engine:
      max_concurrency: null   # int > 0; null = ilimitado
      log_level: INFO         # nível mínimo registrado por RunContext.log
      manifest_dir: null      # diretório para manifest.json + report.md por run
    artifacts:
      root: null              # raiz do LocalDirTransport; null = memória

Chaves desconhecidas são preservadas na configuração (e no hash), mas
ignoradas pelo engine.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

from .errors import InvalidEngineSettingError
from .merge import deep_merge


LOG_LEVELS: Dict[str, int] = {
    "DEBUG": 10,
    "INFO": 20,
    "WARNING": 30,
    "ERROR": 40,
}

DEFAULT_CONFIG: Dict[str, Any] = {
    "engine": {
        "max_concurrency": None,
        "log_level": "INFO",
        "manifest_dir": None,
    },
    "artifacts": {
        "root": None,
    },
}


@dataclass(frozen=True)
class EngineSettings:
    """Visão tipada e validada da configuração efetiva do engine."""

    max_concurrency: Optional[int] = None
    log_level: str = "INFO"
    manifest_dir: Optional[Path] = None
    artifacts_root: Optional[Path] = None


def _optional_path(value: Any, key: str) -> Optional[Path]:
    if value is None:
        return None
    if not isinstance(value, str) or not value.strip():
        raise InvalidEngineSettingError(f"{key} deve ser um caminho não vazio ou null")
    return Path(value).expanduser()


def resolve_engine_settings(config: Optional[Dict[str, Any]]) -> EngineSettings:
    """
    Completa a configuração com os defaults do engine e valida as chaves.

    Raises:
        InvalidEngineSettingError: valor fora do domínio de uma chave reconhecida.
        ConfigTypeConflictError: seção com tipo incompatível (ex.: `engine: "x"`).
    """
    effective = deep_merge(DEFAULT_CONFIG, config or {})
    engine_cfg = effective.get("engine") or {}
    artifacts_cfg = effective.get("artifacts") or {}

    max_concurrency = engine_cfg.get("max_concurrency")
    if max_concurrency is not None:
        if isinstance(max_concurrency, bool) or not isinstance(max_concurrency, int) or max_concurrency <= 0:
            raise InvalidEngineSettingError(
                f"engine.max_concurrency deve ser inteiro positivo ou null, recebido: {max_concurrency!r}"
            )

    log_level = str(engine_cfg.get("log_level") or "INFO").upper()
    if log_level not in LOG_LEVELS:
        raise InvalidEngineSettingError(
            f"engine.log_level inválido: {log_level!r} (esperado: {', '.join(LOG_LEVELS)})"
        )

    return EngineSettings(
        max_concurrency=max_concurrency,
        log_level=log_level,
        manifest_dir=_optional_path(engine_cfg.get("manifest_dir"), "engine.manifest_dir"),
        artifacts_root=_optional_path(artifacts_cfg.get("root"), "artifacts.root"),
    )
