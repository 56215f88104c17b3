"""Public Python-first interface for the manuscript engine."""

from manuscript_engine.api.contracts import (
    AnalysisResult,
    SuggestionResult,
    load_manuscript_json,
    load_version_history_json,
    save_analysis_json,
    save_manuscript_json,
    save_suggestion_json,
    save_version_history_json,
)
from manuscript_engine.api.python_interface import ManuscriptEngine

__all__ = [
    "AnalysisResult",
    "ManuscriptEngine",
    "SuggestionResult",
    "load_manuscript_json",
    "load_version_history_json",
    "save_analysis_json",
    "save_manuscript_json",
    "save_suggestion_json",
    "save_version_history_json",
]
