"""Python-first facade bundling the manuscript engine components."""

from __future__ import annotations

from collections.abc import Sequence
from pathlib import Path
from typing import Any

from manuscript_engine.adapters.engine_settings import (
    load_analyzer_settings,
    load_suggester_weights,
)
from manuscript_engine.api.contracts import (
    AnalysisResult,
    SuggestionResult,
    load_manuscript_json,
)
from manuscript_engine.application.version_manager import VersionHistory, VersionManager
from manuscript_engine.core.consistency_analyzer import (
    AnalyzerSettings,
    ConsistencyAnalyzer,
    build_consistency_report,
)
from manuscript_engine.core.dependency_model import DependencyModel
from manuscript_engine.core.order_quality import OrderQuality, OrderQualityScorer
from manuscript_engine.core.order_suggester import (
    OrderSuggester,
    SuggestedOrder,
    SuggesterWeights,
)
from manuscript_engine.domain.models import ConsistencyCheck, ConsistencyReport, Manuscript


class ManuscriptEngine:
    """One manuscript wired to its analyzer, scorer, and suggester."""

    def __init__(
        self,
        manuscript: Manuscript,
        *,
        settings: AnalyzerSettings | None = None,
        weights: SuggesterWeights | None = None,
    ) -> None:
        """Validate the manuscript and build the engine components."""
        self._manuscript = manuscript
        self._model = DependencyModel(manuscript)
        self._analyzer = ConsistencyAnalyzer(self._model, settings)
        self._scorer = OrderQualityScorer(self._analyzer)
        self._suggester = OrderSuggester(self._model, self._scorer, weights)

    @classmethod
    def from_environment(cls, manuscript: Manuscript) -> ManuscriptEngine:
        """Build an engine tuned by `MANUSCRIPT_ENGINE_*` environment variables."""
        return cls(
            manuscript,
            settings=load_analyzer_settings(),
            weights=load_suggester_weights(),
        )

    @classmethod
    def from_json(cls, path: Path) -> ManuscriptEngine:
        """Load manuscript JSON and build an environment-tuned engine."""
        return cls.from_environment(load_manuscript_json(path))

    @property
    def manuscript(self) -> Manuscript:
        return self._manuscript

    @property
    def model(self) -> DependencyModel:
        return self._model

    def analyze(self, order: Sequence[str] | None = None) -> list[ConsistencyCheck]:
        """Diagnose `order`, defaulting to the manuscript's own order."""
        return self._analyzer.analyze(self._resolve(order))

    def score(self, order: Sequence[str] | None = None) -> OrderQuality:
        return self._scorer.score(self._resolve(order))

    def suggest(self) -> SuggestedOrder:
        return self._suggester.suggest()

    def report(self, order: Sequence[str] | None = None) -> ConsistencyReport:
        chapter_order = self._resolve(order)
        return build_consistency_report(
            self._analyzer.analyze(chapter_order), chapter_order=chapter_order
        )

    def analysis(self, order: Sequence[str] | None = None) -> AnalysisResult:
        """Bundle the report and the quality score for one order."""
        chapter_order = self._resolve(order)
        return AnalysisResult(
            report=self.report(chapter_order), quality=self.score(chapter_order)
        )

    def suggestion(self) -> SuggestionResult:
        suggested = self.suggest()
        return SuggestionResult(
            suggestion=suggested,
            quality=self.score(suggested.order),
            baseline_score=self.score().score,
        )

    def version_manager(
        self, history: VersionHistory | None = None, **kwargs: Any
    ) -> VersionManager:
        """Create a version manager sharing this engine's analyzer settings."""
        kwargs.setdefault("settings", self._analyzer.settings)
        if history is not None:
            return VersionManager.from_history(self._manuscript, history, **kwargs)
        return VersionManager(self._manuscript, **kwargs)

    def _resolve(self, order: Sequence[str] | None) -> tuple[str, ...]:
        if order is None:
            return self._manuscript.chapter_order
        return tuple(order)
