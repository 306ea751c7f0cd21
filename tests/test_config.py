"""Tests for engine configuration and settings."""

import json

import pytest
from pydantic import ValidationError as PydanticValidationError

from fitness_insights.config import (
    EngineConfig,
    EngineSettings,
    FatigueConfig,
    get_settings,
)


def test_defaults():
    config = EngineConfig()
    assert config.fatigue.tau_days == 3.0
    assert config.fatigue.recovery_horizon_hours == 48.0
    assert config.rest.fatigue_high == 0.7
    assert config.rest.recovery_low == 0.3
    assert config.insights.max_visible is None
    assert config.refresh.timeout_seconds == 5.0


def test_from_file_merges_with_defaults(fixtures_dir):
    config = EngineConfig.from_file(fixtures_dir / "engine_config.json")

    assert config.fatigue.tau_days == 2.5
    assert config.fatigue.recovery_horizon_hours == 36
    assert config.fatigue.acute_window_days == 7
    assert config.rest.fatigue_high == 0.75
    assert config.insights.max_visible == 5
    assert config.suggestions.weights.affinity == 0.35


def test_from_file_rejects_bad_values(tmp_path):
    path = tmp_path / "config.json"
    path.write_text(json.dumps({"fatigue": {"tau_days": -1}}))
    with pytest.raises(PydanticValidationError):
        EngineConfig.from_file(path)


def test_baseline_window_must_exceed_acute_window():
    with pytest.raises(PydanticValidationError):
        FatigueConfig(acute_window_days=14, baseline_window_days=14)


def test_settings_from_environment(monkeypatch, fixtures_dir):
    monkeypatch.setenv("FITNESS_INSIGHTS_CONFIG_PATH", str(fixtures_dir / "engine_config.json"))
    monkeypatch.setenv("FITNESS_INSIGHTS_LOG_LEVEL", "DEBUG")

    settings = EngineSettings()

    assert settings.log_level == "DEBUG"
    assert settings.load_config().rest.fatigue_high == 0.75


def test_settings_default_to_builtin_config(monkeypatch):
    monkeypatch.delenv("FITNESS_INSIGHTS_CONFIG_PATH", raising=False)
    settings = EngineSettings(_env_file=None)
    assert settings.load_config() == EngineConfig()


def test_get_settings_is_cached():
    assert get_settings() is get_settings()
