from __future__ import annotations

import pytest

from manuscript_engine.adapters.engine_settings import (
    float_env,
    int_env,
    load_analyzer_settings,
    load_suggester_weights,
)
from manuscript_engine.core.consistency_analyzer import AnalyzerSettings
from manuscript_engine.core.order_suggester import SuggesterWeights

_ENV_NAMES = (
    "MANUSCRIPT_ENGINE_TENSION_DROP_THRESHOLD",
    "MANUSCRIPT_ENGINE_LOW_TENSION_CEILING",
    "MANUSCRIPT_ENGINE_SUGGEST_TENSION_WEIGHT",
    "MANUSCRIPT_ENGINE_SUGGEST_STABILITY_WEIGHT",
    "MANUSCRIPT_ENGINE_SUGGEST_DROP_WEIGHT",
)


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in _ENV_NAMES:
        monkeypatch.delenv(name, raising=False)


def test_defaults_without_environment() -> None:
    assert load_analyzer_settings() == AnalyzerSettings()
    assert load_suggester_weights() == SuggesterWeights()


def test_environment_overrides(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("MANUSCRIPT_ENGINE_TENSION_DROP_THRESHOLD", "3")
    monkeypatch.setenv("MANUSCRIPT_ENGINE_LOW_TENSION_CEILING", "4")
    monkeypatch.setenv("MANUSCRIPT_ENGINE_SUGGEST_TENSION_WEIGHT", "2.5")
    monkeypatch.setenv("MANUSCRIPT_ENGINE_SUGGEST_STABILITY_WEIGHT", "0.25")
    monkeypatch.setenv("MANUSCRIPT_ENGINE_SUGGEST_DROP_WEIGHT", "1")
    settings = load_analyzer_settings()
    weights = load_suggester_weights()
    assert (settings.tension_drop_threshold, settings.low_tension_ceiling) == (3, 4)
    assert weights == SuggesterWeights(
        tension_fit=2.5, stability=0.25, drop=1.0, drop_threshold=3
    )


def test_unparsable_values_fall_back_to_defaults(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("MANUSCRIPT_ENGINE_TENSION_DROP_THRESHOLD", "steep")
    monkeypatch.setenv("MANUSCRIPT_ENGINE_SUGGEST_TENSION_WEIGHT", "nan")
    monkeypatch.setenv("MANUSCRIPT_ENGINE_SUGGEST_DROP_WEIGHT", "heavy")
    assert load_analyzer_settings().tension_drop_threshold == 4
    weights = load_suggester_weights()
    assert weights.tension_fit == 1.0
    assert weights.drop == 0.5


def test_values_are_clamped(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("MANUSCRIPT_ENGINE_TENSION_DROP_THRESHOLD", "42")
    monkeypatch.setenv("MANUSCRIPT_ENGINE_LOW_TENSION_CEILING", "-3")
    monkeypatch.setenv("MANUSCRIPT_ENGINE_SUGGEST_STABILITY_WEIGHT", "-1")
    settings = load_analyzer_settings()
    assert settings.tension_drop_threshold == 9
    assert settings.low_tension_ceiling == 1
    assert load_suggester_weights().stability == 0.0


def test_int_env_clamps_and_falls_back(monkeypatch: pytest.MonkeyPatch) -> None:
    name = "MANUSCRIPT_ENGINE_TENSION_DROP_THRESHOLD"
    assert int_env(name, 4, minimum=1, maximum=9) == 4
    monkeypatch.setenv(name, " 42 ")
    assert int_env(name, 4, minimum=1, maximum=9) == 9
    monkeypatch.setenv(name, "-3")
    assert int_env(name, 4, minimum=1, maximum=9) == 1
    monkeypatch.setenv(name, "four")
    assert int_env(name, 4, minimum=1, maximum=9) == 4


def test_float_env_ignores_nan(monkeypatch: pytest.MonkeyPatch) -> None:
    name = "MANUSCRIPT_ENGINE_SUGGEST_DROP_WEIGHT"
    monkeypatch.setenv(name, "nan")
    assert float_env(name, 0.5, minimum=0.0, maximum=10.0) == 0.5
    monkeypatch.setenv(name, "2.5")
    assert float_env(name, 0.5, minimum=0.0, maximum=10.0) == 2.5
