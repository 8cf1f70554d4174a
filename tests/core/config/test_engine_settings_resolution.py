# tests/core/config/test_engine_settings_resolution.py
"""Testes da resolução tipada das chaves reconhecidas pelo engine."""

from pathlib import Path

import pytest

from atlas_ci.core.config import EngineSettings, InvalidEngineSettingError, resolve_engine_settings
from atlas_ci.core.config.errors import ConfigTypeConflictError


def test_defaults_when_config_is_empty():
    assert resolve_engine_settings(None) == EngineSettings()
    assert resolve_engine_settings({}) == EngineSettings()


def test_recognized_keys_are_resolved(tmp_path):
    settings = resolve_engine_settings(
        {
            "engine": {"max_concurrency": 3, "log_level": "debug", "manifest_dir": str(tmp_path / "runs")},
            "artifacts": {"root": str(tmp_path / "store")},
        }
    )

    assert settings.max_concurrency == 3
    assert settings.log_level == "DEBUG"
    assert settings.manifest_dir == Path(tmp_path / "runs")
    assert settings.artifacts_root == Path(tmp_path / "store")


def test_unknown_keys_are_ignored():
    assert resolve_engine_settings({"engine": {"runner": "local"}, "extra": 1}) == EngineSettings()


@pytest.mark.parametrize(
    "config",
    [
        {"engine": {"max_concurrency": 0}},
        {"engine": {"max_concurrency": -2}},
        {"engine": {"max_concurrency": True}},
        {"engine": {"log_level": "TRACE"}},
        {"engine": {"manifest_dir": ""}},
        {"artifacts": {"root": "   "}},
    ],
)
def test_invalid_values_are_rejected(config):
    with pytest.raises(InvalidEngineSettingError):
        resolve_engine_settings(config)


def test_section_type_conflict_is_rejected():
    with pytest.raises(ConfigTypeConflictError):
        resolve_engine_settings({"engine": "serial"})
