"""Structural comparison of two manuscript versions."""

from __future__ import annotations

from typing import Final, Literal

from pydantic import Field

from manuscript_engine.core.consistency_analyzer import ConsistencyAnalyzer
from manuscript_engine.domain.models import (
    ConsistencyCheck,
    ManuscriptVersion,
    SchemaModel,
    Severity,
)

RiskLevel = Literal["low", "medium", "high"]

MOVE_IMPACT: Final = 10
MEDIUM_RISK_FLOOR: Final = 20
HIGH_RISK_FLOOR: Final = 50


class ChapterMove(SchemaModel):
    """One chapter whose position differs between two versions."""

    chapter_id: str
    chapter_title: str = ""
    from_position: int = Field(ge=1)
    to_position: int = Field(ge=1)
    position_change: int
    tension_impact: int


class ReorderingAnalysis(SchemaModel):
    """Narrative impact of moving from one order to another."""

    consistency_issues: tuple[ConsistencyCheck, ...] = ()
    resolved_issues: tuple[ConsistencyCheck, ...] = ()
    flow_impact: int = Field(ge=0, le=100)
    recommended_adjustments: tuple[str, ...] = ()
    risk_level: RiskLevel = "low"


class VersionComparison(SchemaModel):
    base_version_id: str
    compare_version_id: str
    chapter_moves: tuple[ChapterMove, ...] = ()
    reordering_analysis: ReorderingAnalysis


def _neighbor_jolt(order: tuple[str, ...], index: int, tensions: dict[str, int]) -> int:
    """Sum of absolute tension steps into and out of one position."""
    value = tensions[order[index]]
    jolt = 0
    if index > 0:
        jolt += abs(value - tensions[order[index - 1]])
    if index < len(order) - 1:
        jolt += abs(tensions[order[index + 1]] - value)
    return jolt


def risk_for(flow_impact: int) -> RiskLevel:
    if flow_impact > HIGH_RISK_FLOOR:
        return "high"
    if flow_impact > MEDIUM_RISK_FLOOR:
        return "medium"
    return "low"


def compare_versions(
    analyzer: ConsistencyAnalyzer,
    base: ManuscriptVersion,
    compare: ManuscriptVersion,
) -> VersionComparison:
    """Diff chapter positions and the consistency impact of `compare` against `base`."""
    model = analyzer.model
    base_order = model.validate_order(base.chapter_order)
    compare_order = model.validate_order(compare.chapter_order)
    tensions = {
        chapter_id: model.chapter(chapter_id).metadata.tension_level
        for chapter_id in model.chapter_ids
    }
    base_positions = {chapter_id: index for index, chapter_id in enumerate(base_order)}

    moves: list[ChapterMove] = []
    for index, chapter_id in enumerate(compare_order):
        old_index = base_positions.get(chapter_id)
        if old_index is None or old_index == index:
            continue
        moves.append(
            ChapterMove(
                chapter_id=chapter_id,
                chapter_title=model.chapter(chapter_id).title,
                from_position=old_index + 1,
                to_position=index + 1,
                position_change=index - old_index,
                tension_impact=_neighbor_jolt(compare_order, index, tensions)
                - _neighbor_jolt(base_order, old_index, tensions),
            )
        )

    base_checks = analyzer.analyze(base_order)
    compare_checks = analyzer.analyze(compare_order)
    base_ids = {check.id for check in base_checks}
    compare_ids = {check.id for check in compare_checks}
    introduced = tuple(check for check in compare_checks if check.id not in base_ids)
    resolved = tuple(check for check in base_checks if check.id not in compare_ids)
    adjustments: list[str] = []
    for check in sorted(introduced, key=lambda item: item.severity.rank):
        if check.severity == Severity.INFO:
            continue
        text = check.suggestion or check.message
        if text not in adjustments:
            adjustments.append(text)

    flow_impact = min(100, len(moves) * MOVE_IMPACT)
    return VersionComparison(
        base_version_id=base.id,
        compare_version_id=compare.id,
        chapter_moves=tuple(moves),
        reordering_analysis=ReorderingAnalysis(
            consistency_issues=introduced,
            resolved_issues=resolved,
            flow_impact=flow_impact,
            recommended_adjustments=tuple(adjustments),
            risk_level=risk_for(flow_impact),
        ),
    )
