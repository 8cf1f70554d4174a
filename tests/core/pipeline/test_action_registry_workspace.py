# tests/core/pipeline/test_action_registry_workspace.py
"""
Testes do contrato de actions: registro de referências e workspace de Job.
"""

import pytest

from atlas_ci.core.pipeline.action import (
    Action,
    ActionRegistry,
    ActionResult,
    DuplicateActionError,
    JobWorkspace,
    normalize_reference,
)


def _noop(request):
    return ActionResult()


def test_reference_version_is_ignored():
    registry = ActionRegistry()
    registry.add("artifact.upload@v2", _noop)

    assert normalize_reference("artifact.upload@v2") == "artifact.upload"
    assert registry.has("artifact.upload")
    assert registry.has("artifact.upload@v3")
    assert registry.get("artifact.upload@v1") is _noop


def test_duplicate_reference_is_rejected():
    registry = ActionRegistry()
    registry.add("wheel.build", _noop)

    with pytest.raises(DuplicateActionError):
        registry.add("wheel.build@v2", _noop)


def test_invalid_registrations_are_rejected():
    registry = ActionRegistry()

    with pytest.raises(ValueError):
        registry.add("", _noop)
    with pytest.raises(TypeError):
        registry.add("x", "not callable")


def test_builtins_are_registered_in_order():
    registry = ActionRegistry.with_builtins()

    assert registry.list() == ["artifact.upload", "artifact.download", "release.upload"]
    assert isinstance(registry.get("artifact.upload"), Action)


def test_action_result_success_is_exit_status_zero():
    assert ActionResult().succeeded
    assert not ActionResult(exit_status=2).succeeded


def test_workspace_select_by_glob_and_directory():
    ws = JobWorkspace()
    ws.add_files({"wheelhouse/a.whl": b"a", "wheelhouse/b.whl": b"b", "dist/c.tar.gz": b"c"})

    assert list(ws.select("wheelhouse/*.whl")) == ["wheelhouse/a.whl", "wheelhouse/b.whl"]
    assert list(ws.select("dist")) == ["dist/c.tar.gz"]
    assert list(ws.select("**")) == ["dist/c.tar.gz", "wheelhouse/a.whl", "wheelhouse/b.whl"]
    assert ws.select("docs/*") == {}


def test_workspace_add_files_with_prefix_overwrites_in_order():
    ws = JobWorkspace()
    ws.add_files({"a.whl": b"first"}, prefix="dist/")
    ws.add_files({"a.whl": b"second"}, prefix="dist")

    assert ws.files == {"dist/a.whl": b"second"}
