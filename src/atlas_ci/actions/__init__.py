"""
Actions embutidas do Atlas CI.

    - artifact.upload   → publica arquivos do workspace no Artifact Store
    - artifact.download → mescla artefatos de stages predecessores no workspace
    - release.upload    → entrega arquivos coletados a um ReleasePublisher
"""

from __future__ import annotations

from typing import Optional

from atlas_ci.core.pipeline.action import ActionRegistry

from .artifact import download_artifact, upload_artifact
from .release import InMemoryReleasePublisher, ReleasePublisher, ReleaseUploadAction


def register_builtin_actions(registry: ActionRegistry, *, publisher: Optional[ReleasePublisher] = None) -> None:
    registry.add("artifact.upload", upload_artifact)
    registry.add("artifact.download", download_artifact)
    registry.add("release.upload", ReleaseUploadAction(publisher))


__all__ = [
    "InMemoryReleasePublisher",
    "ReleasePublisher",
    "ReleaseUploadAction",
    "download_artifact",
    "register_builtin_actions",
    "upload_artifact",
]
