from __future__ import annotations

import pytest

from manuscript_engine.core.consistency_analyzer import ConsistencyAnalyzer
from manuscript_engine.core.dependency_model import DependencyModel
from manuscript_engine.core.version_diff import VersionComparison, compare_versions, risk_for
from manuscript_engine.domain.errors import DataIntegrityError
from manuscript_engine.domain.models import (
    Chapter,
    ChapterDependencies,
    ChapterMetadata,
    ChapterReference,
    Manuscript,
    ManuscriptVersion,
)


def _analyzer() -> ConsistencyAnalyzer:
    chapters = (
        Chapter(id="a", dependencies=ChapterDependencies(introduces=("the map",))),
        Chapter(
            id="b",
            metadata=ChapterMetadata(tension_level=8),
            dependencies=ChapterDependencies(required_knowledge=("the map",)),
        ),
        Chapter(id="c", metadata=ChapterMetadata(tension_level=2)),
    )
    return ConsistencyAnalyzer(DependencyModel(Manuscript(chapters=chapters)))


def _compare(base_order: str, compare_order: str) -> VersionComparison:
    base = ManuscriptVersion(id="base", name="Base", chapter_order=tuple(base_order))
    compare = ManuscriptVersion(id="draft", name="Draft", chapter_order=tuple(compare_order))
    return compare_versions(_analyzer(), base, compare)


def test_identical_versions_have_no_moves() -> None:
    comparison = _compare("abc", "abc")
    assert comparison.base_version_id == "base"
    assert comparison.compare_version_id == "draft"
    assert comparison.chapter_moves == ()
    assert comparison.reordering_analysis.flow_impact == 0
    assert comparison.reordering_analysis.risk_level == "low"


def test_moves_carry_positions_and_tension_impact() -> None:
    comparison = _compare("abc", "bac")
    moves = {move.chapter_id: move for move in comparison.chapter_moves}
    assert set(moves) == {"a", "b"}
    assert (moves["b"].from_position, moves["b"].to_position) == (2, 1)
    assert moves["b"].position_change == -1
    # b: |8-5| + |2-8| = 9 before, |5-8| = 3 after.
    assert moves["b"].tension_impact == 3 - 9
    analysis = comparison.reordering_analysis
    assert analysis.flow_impact == 20
    assert [check.id for check in analysis.consistency_issues] == ["knowledge-b-the-map"]
    assert [check.id for check in analysis.resolved_issues] == ["tension-drop-c"]
    assert analysis.recommended_adjustments == ("Move chapter a before chapter b.",)


def test_reverse_comparison_reports_resolved_issues() -> None:
    analysis = _compare("bac", "abc").reordering_analysis
    assert [check.id for check in analysis.consistency_issues] == ["tension-drop-c"]
    assert [check.id for check in analysis.resolved_issues] == ["knowledge-b-the-map"]
    assert analysis.recommended_adjustments == ()


def test_informational_findings_do_not_become_adjustments() -> None:
    analysis = _compare("acb", "abc").reordering_analysis
    assert [check.id for check in analysis.consistency_issues] == ["tension-drop-c"]
    assert analysis.recommended_adjustments == ()


@pytest.mark.parametrize(
    ("flow_impact", "expected"),
    [(0, "low"), (20, "low"), (30, "medium"), (50, "medium"), (60, "high"), (100, "high")],
)
def test_risk_level_thresholds(flow_impact: int, expected: str) -> None:
    assert risk_for(flow_impact) == expected


def test_malformed_version_order_is_rejected() -> None:
    with pytest.raises(DataIntegrityError):
        _compare("abc", "ab")


def test_repeated_references_are_each_reported_as_introduced() -> None:
    callbacks = (
        ChapterReference(target_chapter_id="d", description="the duel"),
        ChapterReference(target_chapter_id="d", description="the scar"),
    )
    chapters = (
        Chapter(id="c", dependencies=ChapterDependencies(references=callbacks)),
        Chapter(id="d"),
    )
    analyzer = ConsistencyAnalyzer(DependencyModel(Manuscript(chapters=chapters)))
    base = ManuscriptVersion(id="base", name="Base", chapter_order=("d", "c"))
    draft = ManuscriptVersion(id="draft", name="Draft", chapter_order=("c", "d"))
    analysis = compare_versions(analyzer, base, draft).reordering_analysis
    assert [check.id for check in analysis.consistency_issues] == [
        "plot-ref-c-d",
        "plot-ref-c-d-2",
    ]
    assert analysis.recommended_adjustments == ("Move chapter d before chapter c.",)
