# tests/core/engine/test_interpolation_render.py
"""Testes de interpolação `${{ ... }}` nos parâmetros de Steps."""

from atlas_ci.core.engine.interpolation import build_scope, referenced_namespaces, render


def _scope(**overrides):
    scope = build_scope(
        matrix={"python": 37, "platform_id": "manylinux_x86_64"},
        step_outputs={"build": {"wheel": "ConfigSpace-0.4.18-cp37.whl"}},
        event={"kind": "tag-create", "ref": "refs/tags/v0.4.18"},
        run_id="run-1",
        job_id="build_wheels (python=37)",
        stage="build_wheels",
    )
    scope.update(overrides)
    return scope


def test_whole_expression_keeps_raw_value():
    assert render("${{ matrix.python }}", _scope()) == 37


def test_embedded_expressions_are_stringified():
    rendered = render("cp${{ matrix.python }}-${{matrix.platform_id}}", _scope())

    assert rendered == "cp37-manylinux_x86_64"


def test_step_outputs_and_event_namespaces():
    params = {
        "asset": "${{ steps.build.outputs.wheel }}",
        "tag": "${{ event.ref }}",
        "labels": ["${{ run.id }}", "${{ stage.name }}"],
    }

    assert render(params, _scope()) == {
        "asset": "ConfigSpace-0.4.18-cp37.whl",
        "tag": "refs/tags/v0.4.18",
        "labels": ["run-1", "build_wheels"],
    }


def test_missing_field_resolves_to_empty_string():
    assert render("${{ steps.upload.outputs.url }}", _scope()) == ""
    assert render("x-${{ matrix.os }}-y", _scope()) == "x--y"


def test_non_string_values_pass_through():
    assert render({"retries": 3, "flag": True}, _scope()) == {"retries": 3, "flag": True}


def test_referenced_namespaces_walks_nested_values():
    value = {"a": "${{ matrix.python }}", "b": ["${{ secrets.TOKEN }}", {"c": "${{ job.id }}"}]}

    assert referenced_namespaces(value) == {"matrix", "secrets", "job"}
