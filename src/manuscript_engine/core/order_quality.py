"""Deterministic quality score for a chapter order."""

from __future__ import annotations

from collections import Counter
from collections.abc import Sequence
from typing import Final

from pydantic import Field

from manuscript_engine.core.consistency_analyzer import ConsistencyAnalyzer
from manuscript_engine.core.tension_curve import (
    has_late_climax_and_resolution,
    rises_through_midpoint,
)
from manuscript_engine.domain.models import (
    CheckRule,
    CheckType,
    ConsistencyCheck,
    SchemaModel,
    Severity,
)

PERFECT_SCORE: Final = 100
SEVERITY_PENALTY: Final[dict[Severity, float]] = {
    Severity.ERROR: 15.0,
    Severity.WARNING: 7.0,
    Severity.INFO: 2.0,
}
# Each further finding of the same check type costs this fraction of the previous one.
REPEAT_DECAY: Final = 0.6
MAX_IMPROVEMENTS: Final = 5


class OrderQuality(SchemaModel):
    """Aggregated quality view of one chapter order."""

    score: int = Field(ge=0, le=PERFECT_SCORE)
    issues: tuple[ConsistencyCheck, ...] = ()
    strengths: tuple[str, ...] = ()
    improvements: tuple[str, ...] = ()

    @property
    def issue_count(self) -> int:
        return len(self.issues)


def penalty_for(checks: Sequence[ConsistencyCheck]) -> float:
    """Total penalty with diminishing weight for repeated findings of one type."""
    seen: Counter[CheckType] = Counter()
    penalty = 0.0
    for check in sorted(checks, key=lambda item: item.severity.rank):
        penalty += SEVERITY_PENALTY[check.severity] * (REPEAT_DECAY ** seen[check.type])
        seen[check.type] += 1
    return penalty


class OrderQualityScorer:
    """Turns analyzer findings and tension shape into a 0..100 score."""

    def __init__(self, analyzer: ConsistencyAnalyzer) -> None:
        self._analyzer = analyzer

    @property
    def analyzer(self) -> ConsistencyAnalyzer:
        return self._analyzer

    def score(self, order: Sequence[str]) -> OrderQuality:
        checks = self._analyzer.analyze(order)
        chapter_order = tuple(order)
        if not chapter_order:
            return OrderQuality(score=PERFECT_SCORE)
        score = max(0, min(PERFECT_SCORE, round(PERFECT_SCORE - penalty_for(checks))))
        return OrderQuality(
            score=score,
            issues=tuple(checks),
            strengths=tuple(self._strengths(chapter_order, checks)),
            improvements=tuple(_ranked_improvements(checks)),
        )

    def _strengths(
        self, chapter_order: tuple[str, ...], checks: Sequence[ConsistencyCheck]
    ) -> list[str]:
        strengths: list[str] = []
        rules = {check.rule for check in checks}
        if not any(check.severity == Severity.ERROR for check in checks):
            strengths.append("No critical story flow issues detected")
        if CheckRule.FORWARD_REFERENCE not in rules:
            strengths.append("No forward references")
        if not rules & {CheckRule.DEPENDENCY, CheckRule.POV}:
            strengths.append("Every character and concept is introduced before it is needed")
        history = [
            self._analyzer.model.chapter(chapter_id).metadata.tension_level
            for chapter_id in chapter_order
        ]
        if rises_through_midpoint(history):
            strengths.append("Tension rises monotonically through the midpoint")
        if has_late_climax_and_resolution(history):
            strengths.append("Climax lands in the final act and is followed by a resolution beat")
        return strengths


def _ranked_improvements(checks: Sequence[ConsistencyCheck]) -> list[str]:
    ranked = sorted(
        enumerate(checks),
        key=lambda pair: (pair[1].severity.rank, not pair[1].auto_fixable, pair[0]),
    )
    improvements: list[str] = []
    for _, check in ranked:
        text = check.suggestion or check.message
        if text in improvements:
            continue
        improvements.append(text)
        if len(improvements) == MAX_IMPROVEMENTS:
            break
    return improvements
