"""
Artifact Store do Atlas CI.

Único recurso compartilhado entre Jobs concorrentes de uma run:
publicação por chave única e leitura agregada após a barreira do Stage.
"""

from .store import (
    Artifact,
    ArtifactStore,
    ArtifactTransport,
    InMemoryTransport,
    LocalDirTransport,
)

__all__ = [
    "Artifact",
    "ArtifactStore",
    "ArtifactTransport",
    "InMemoryTransport",
    "LocalDirTransport",
]
