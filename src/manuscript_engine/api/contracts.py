"""JSON contracts for manuscripts, version history, and engine results."""

from __future__ import annotations

from pathlib import Path

from manuscript_engine.application.version_manager import VersionHistory
from manuscript_engine.core.order_quality import OrderQuality
from manuscript_engine.core.order_suggester import SuggestedOrder
from manuscript_engine.domain.models import ConsistencyReport, Manuscript, SchemaModel


class AnalysisResult(SchemaModel):
    """Diagnostics and quality score for one chapter order."""

    report: ConsistencyReport
    quality: OrderQuality


class SuggestionResult(SchemaModel):
    """A suggested order together with its quality and the manuscript's own."""

    suggestion: SuggestedOrder
    quality: OrderQuality
    baseline_score: int


def _write_json(path: Path, payload: SchemaModel) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(payload.model_dump_json(indent=2, by_alias=True) + "\n", encoding="utf-8")


def save_manuscript_json(path: Path, manuscript: Manuscript) -> None:
    """Persist a manuscript as readable camelCase JSON."""
    _write_json(path, manuscript)


def load_manuscript_json(path: Path) -> Manuscript:
    """Load and validate manuscript JSON from disk."""
    return Manuscript.model_validate_json(path.read_text(encoding="utf-8"))


def save_version_history_json(path: Path, history: VersionHistory) -> None:
    _write_json(path, history)


def load_version_history_json(path: Path) -> VersionHistory:
    return VersionHistory.model_validate_json(path.read_text(encoding="utf-8"))


def save_analysis_json(path: Path, result: AnalysisResult) -> None:
    _write_json(path, result)


def save_suggestion_json(path: Path, result: SuggestionResult) -> None:
    _write_json(path, result)
