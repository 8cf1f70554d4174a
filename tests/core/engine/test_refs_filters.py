# tests/core/engine/test_refs_filters.py
"""
Testes do casamento de refs git contra padrões de filtro.

Cobre a sintaxe de filtros de branch/tag usada pelas regras `on` e pelo
predicado `RefMatches`: `*`, `**`, `+`, classes `[..]` e negação `!`.
"""

import pytest

from atlas_ci.core.engine.refs import (
    match_ref_filters,
    qualify_ref,
    ref_matches,
    release_id_from_ref,
    short_ref,
)


@pytest.mark.parametrize(
    "pattern, ref, expected",
    [
        ("master", "refs/heads/master", True),
        ("master", "master", True),
        ("master", "refs/heads/main", False),
        ("v*", "refs/tags/v1.2.3", True),
        ("v*", "refs/tags/release-1", False),
        ("refs/tags/v*", "refs/tags/v0.4.18", True),
        ("refs/tags/v*", "refs/heads/v0.4.18", False),
        ("[0-9]+.[0-9]+.X", "refs/heads/0.4.X", True),
        ("[0-9]+.[0-9]+.X", "refs/heads/10.12.X", True),
        ("[0-9]+.[0-9]+.X", "refs/heads/a.4.X", False),
        ("feature/*", "refs/heads/feature/x", True),
        ("feature/*", "refs/heads/feature/x/y", False),
        ("feature/**", "refs/heads/feature/x/y", True),
    ],
)
def test_ref_matches(pattern, ref, expected):
    assert ref_matches(pattern, ref) is expected


def test_short_ref_strips_known_prefixes():
    assert short_ref("refs/heads/master") == "master"
    assert short_ref("refs/tags/v1.0") == "v1.0"
    assert short_ref("master") == "master"


def test_last_matching_filter_wins():
    """
    Filtros são avaliados em ordem; o último que casar decide.

    `!v*-rc*` depois de `v*` exclui release candidates; um `v1.0-rc1`
    positivo depois da negação volta a incluir apenas aquela tag.
    """
    filters = ["v*", "!v*-rc*"]
    assert match_ref_filters(filters, "refs/tags/v1.0") is True
    assert match_ref_filters(filters, "refs/tags/v1.0-rc1") is False
    assert match_ref_filters(filters + ["v1.0-rc1"], "refs/tags/v1.0-rc1") is True


def test_no_matching_filter_rejects():
    assert match_ref_filters(["master"], "refs/heads/develop") is False
    assert match_ref_filters([], "refs/heads/master") is False


def test_release_id_is_last_ref_segment():
    assert release_id_from_ref("refs/tags/v1.2.3") == "v1.2.3"
    assert release_id_from_ref("v0.4.18") == "v0.4.18"
    assert release_id_from_ref("") == ""


@pytest.mark.parametrize(
    "ref, kind, expected",
    [
        ("v1.2.3", "tag-create", "refs/tags/v1.2.3"),
        ("master", "push", "refs/heads/master"),
        ("feature/x", "pull-request", "refs/heads/feature/x"),
        ("refs/tags/v1.2.3", "tag-create", "refs/tags/v1.2.3"),
        ("master", "manual", "master"),
        ("", "push", ""),
    ],
)
def test_qualify_ref_by_event_kind(ref, kind, expected):
    assert qualify_ref(ref, kind) == expected


def test_full_ref_pattern_matches_qualified_short_tag():
    assert ref_matches("refs/tags/v*", qualify_ref("v1.2.3", "tag-create")) is True
    assert ref_matches("refs/tags/v*", qualify_ref("v1.2.3", "push")) is False
