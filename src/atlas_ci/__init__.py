# src/atlas_ci/__init__.py
"""
Atlas CI — engine de orquestração de pipelines de CI declarativos.

Este pacote raiz define o namespace público do Atlas CI: um engine que
interpreta definições de pipeline (stages, matrix, gates e actions),
expande a matrix em Jobs paralelos, executa Stages em ordem de
dependência, agrega artefatos entre Jobs independentes e reporta o
sucesso/falha agregado de todo o grafo fan-out/fan-in.

Arquitetura em alto nível:
    - core.config       → carregamento, merge, validação e hashing de configuração
    - core.pipeline     → modelo declarativo, tipos, contexto de run e actions
    - core.engine       → trigger, matrix, planner, scheduler, executor, gate
    - core.artifacts    → Artifact Store (barreira por Stage)
    - core.traceability → Manifest e Event Log para auditoria
    - actions           → actions embutidas (artifact.*, release.upload)
    - report            → relatório Markdown da run

Limites explícitos:
    - Não provisiona runners nem executa comandos de shell
    - Não implementa clientes de webhook ou de repositório
"""

__version__ = "0.1.0"

__all__ = ["__version__"]
