# tests/core/config/test_engine_config_merge.py
"""
Testes da política de deep-merge da configuração do engine.

Os testes asseguram que:
- escalares são sobrescritos e dicionários mesclados recursivamente
- listas são sobrescritas integralmente
- `None` aceita e é aceito por qualquer tipo
- conflitos de tipo (inclusive bool vs int) são rejeitados
- os inputs nunca são mutados
"""

import copy

import pytest

from atlas_ci.core.config.errors import ConfigTypeConflictError
from atlas_ci.core.config.merge import deep_merge


def test_nested_dicts_are_merged_and_inputs_untouched():
    base = {"engine": {"max_concurrency": 4, "log_level": "INFO"}, "artifacts": {"root": None}}
    override = {"engine": {"log_level": "DEBUG"}}
    base_copy, override_copy = copy.deepcopy(base), copy.deepcopy(override)

    merged = deep_merge(base, override)

    assert merged == {"engine": {"max_concurrency": 4, "log_level": "DEBUG"}, "artifacts": {"root": None}}
    assert base == base_copy
    assert override == override_copy


def test_lists_are_replaced():
    assert deep_merge({"labels": ["a", "b"]}, {"labels": ["c"]}) == {"labels": ["c"]}


def test_none_is_compatible_with_any_type():
    assert deep_merge({"engine": {"max_concurrency": None}}, {"engine": {"max_concurrency": 8}}) == {
        "engine": {"max_concurrency": 8}
    }
    assert deep_merge({"root": "/tmp/a"}, {"root": None}) == {"root": None}


def test_new_keys_are_added():
    assert deep_merge({"a": 1}, {"b": {"c": 2}}) == {"a": 1, "b": {"c": 2}}


@pytest.mark.parametrize(
    "base, override",
    [
        ({"engine": {"max_concurrency": 4}}, {"engine": "serial"}),
        ({"engine": {"max_concurrency": 4}}, {"engine": {"max_concurrency": "4"}}),
        ({"flag": True}, {"flag": 1}),
    ],
)
def test_type_conflicts_are_rejected(base, override):
    with pytest.raises(ConfigTypeConflictError):
        deep_merge(base, override)


def test_non_dict_root_is_rejected():
    with pytest.raises(ConfigTypeConflictError):
        deep_merge({"a": 1}, ["a"])
