"""Environment-driven tuning for the analyzer and the order suggester."""

from __future__ import annotations

import math
import os

from manuscript_engine.core.consistency_analyzer import AnalyzerSettings
from manuscript_engine.core.order_suggester import SuggesterWeights


def int_env(name: str, default: int, *, minimum: int, maximum: int) -> int:
    """Integer from the environment, clamped to bounds; blank or invalid values use the default."""
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError:
        return default
    return max(minimum, min(maximum, value))


def float_env(name: str, default: float, *, minimum: float, maximum: float) -> float:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        value = float(raw)
    except ValueError:
        return default
    if math.isnan(value):
        return default
    return max(minimum, min(maximum, value))


def load_analyzer_settings() -> AnalyzerSettings:
    """Read pacing thresholds from the environment."""
    defaults = AnalyzerSettings()
    return AnalyzerSettings(
        tension_drop_threshold=int_env(
            "MANUSCRIPT_ENGINE_TENSION_DROP_THRESHOLD",
            defaults.tension_drop_threshold,
            minimum=1,
            maximum=9,
        ),
        low_tension_ceiling=int_env(
            "MANUSCRIPT_ENGINE_LOW_TENSION_CEILING",
            defaults.low_tension_ceiling,
            minimum=1,
            maximum=10,
        ),
    )


def load_suggester_weights() -> SuggesterWeights:
    """Read greedy cost weights from the environment."""
    defaults = SuggesterWeights()
    settings = load_analyzer_settings()
    return SuggesterWeights(
        tension_fit=float_env(
            "MANUSCRIPT_ENGINE_SUGGEST_TENSION_WEIGHT",
            defaults.tension_fit,
            minimum=0.0,
            maximum=10.0,
        ),
        stability=float_env(
            "MANUSCRIPT_ENGINE_SUGGEST_STABILITY_WEIGHT",
            defaults.stability,
            minimum=0.0,
            maximum=10.0,
        ),
        drop=float_env(
            "MANUSCRIPT_ENGINE_SUGGEST_DROP_WEIGHT",
            defaults.drop,
            minimum=0.0,
            maximum=10.0,
        ),
        drop_threshold=settings.tension_drop_threshold,
    )
