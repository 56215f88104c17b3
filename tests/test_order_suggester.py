from __future__ import annotations

import warnings
from collections.abc import Sequence

import pytest

from manuscript_engine.core.consistency_analyzer import ConsistencyAnalyzer
from manuscript_engine.core.dependency_model import DependencyModel
from manuscript_engine.core.order_quality import OrderQuality, OrderQualityScorer
from manuscript_engine.core.order_suggester import OrderSuggester, SuggesterWeights
from manuscript_engine.domain.errors import UnsatisfiableOrderingWarning
from manuscript_engine.domain.models import (
    Chapter,
    ChapterDependencies,
    ChapterMetadata,
    ChapterReference,
    Character,
    Manuscript,
    ReferenceStrength,
)


def _chapter(
    chapter_id: str,
    *,
    introduces: tuple[str, ...] = (),
    requires: tuple[str, ...] = (),
    references: tuple[ChapterReference, ...] = (),
    pov: str = "",
    tension: int = 5,
) -> Chapter:
    return Chapter(
        id=chapter_id,
        metadata=ChapterMetadata(pov=pov, tension_level=tension),
        dependencies=ChapterDependencies(
            introduces=introduces, required_knowledge=requires, references=references
        ),
    )


def _model(*chapters: Chapter) -> DependencyModel:
    return DependencyModel(Manuscript(chapters=chapters))


def _assert_permutation(model: DependencyModel, order: tuple[str, ...]) -> None:
    assert len(order) == len(model)
    assert sorted(order) == sorted(model.chapter_ids)


def test_empty_manuscript_suggests_empty_order() -> None:
    result = OrderSuggester(_model()).suggest()
    assert result.order == ()
    assert result.reasoning == ("No chapters to order.",)


def test_suggestion_places_introductions_first() -> None:
    model = _model(
        _chapter("ch2", requires=("Sarah",), pov="Marcus", introduces=("Marcus",)),
        _chapter("ch1", introduces=("Sarah",)),
        _chapter("ch3", requires=("Sarah", "Marcus")),
    )
    result = OrderSuggester(model).suggest()
    assert result.order == ("ch1", "ch2", "ch3")
    assert any("introduces 'Sarah'" in line for line in result.reasoning)
    assert result.reasoning[-1] == "Suggested order scores 100/100 (manuscript order: 85/100)."


def test_suggestion_honors_explicit_references() -> None:
    model = _model(
        _chapter("callback", references=(ChapterReference(target_chapter_id="origin"),)),
        _chapter("origin"),
    )
    result = OrderSuggester(model).suggest()
    assert result.order == ("origin", "callback")


def test_already_consistent_order_is_kept() -> None:
    model = _model(
        _chapter("a", introduces=("the map",)),
        _chapter("b", requires=("the map",)),
        _chapter("c"),
    )
    result = OrderSuggester(model).suggest()
    assert result.order == ("a", "b", "c")
    assert "The manuscript order already fits every constraint." in result.reasoning


def test_unprovided_requirement_is_explained_not_enforced() -> None:
    model = _model(_chapter("a", requires=("the prophecy",)), _chapter("b"))
    result = OrderSuggester(model).suggest()
    _assert_permutation(model, result.order)
    assert any("which no chapter introduces" in line for line in result.reasoning)


def test_cycle_is_broken_with_warning_and_reasoning() -> None:
    model = _model(
        _chapter("a", introduces=("X",), requires=("Y",)),
        _chapter("b", introduces=("Y",), requires=("X",)),
    )
    with pytest.warns(UnsatisfiableOrderingWarning, match="Dependency cycle"):
        result = OrderSuggester(model).suggest()
    _assert_permutation(model, result.order)
    assert any(line.startswith("Dependency cycle a -> b -> a") for line in result.reasoning)


def test_cycle_relaxes_the_weakest_edge() -> None:
    model = _model(
        _chapter(
            "a",
            references=(
                ChapterReference(target_chapter_id="b", strength=ReferenceStrength.STRONG),
            ),
        ),
        _chapter(
            "b",
            references=(ChapterReference(target_chapter_id="a", strength=ReferenceStrength.WEAK),),
        ),
    )
    with pytest.warns(UnsatisfiableOrderingWarning):
        result = OrderSuggester(model).suggest()
    assert result.order == ("b", "a")


def test_permutation_invariant_holds_for_mixed_graphs() -> None:
    model = _model(
        _chapter("p1", introduces=("A",), requires=("C",), tension=2),
        _chapter("p2", introduces=("B",), requires=("A",), tension=9),
        _chapter("p3", introduces=("C",), requires=("B",), tension=4),
        _chapter("p4", requires=("A", "missing"), tension=7),
        _chapter(
            "p5",
            references=(ChapterReference(target_chapter_id="p4"),),
            tension=10,
        ),
        _chapter("p6", tension=1),
    )
    with warnings.catch_warnings():
        warnings.simplefilter("ignore", UnsatisfiableOrderingWarning)
        result = OrderSuggester(model).suggest()
    _assert_permutation(model, result.order)
    assert result.order.index("p4") < result.order.index("p5")


def test_suggestion_is_deterministic() -> None:
    model = _model(
        _chapter("a", tension=9),
        _chapter("b", tension=2),
        _chapter("c", tension=6),
        _chapter("d", tension=4),
    )
    suggester = OrderSuggester(model)
    assert suggester.suggest() == suggester.suggest()


def test_tension_weight_reshapes_unconstrained_chapters() -> None:
    model = _model(
        _chapter("climax", tension=10),
        _chapter("opening", tension=3),
        _chapter("rising", tension=6),
    )
    scorer = OrderQualityScorer(ConsistencyAnalyzer(model))
    stable = OrderSuggester(model, scorer, SuggesterWeights(tension_fit=0.0)).suggest()
    shaped = OrderSuggester(
        model, scorer, SuggesterWeights(tension_fit=5.0, stability=0.1, drop=0.0)
    ).suggest()
    assert stable.order == ("climax", "opening", "rising")
    assert shaped.order[0] == "opening"
    _assert_permutation(model, shaped.order)


class _PrefersManuscriptOrder:
    def __init__(self, manuscript_order: tuple[str, ...]) -> None:
        self._manuscript_order = manuscript_order

    def score(self, order: Sequence[str]) -> OrderQuality:
        return OrderQuality(score=100 if tuple(order) == self._manuscript_order else 50)


def _vault_heist() -> DependencyModel:
    manuscript = Manuscript(
        chapters=(
            _chapter("intro", tension=9),
            _chapter("hook", pov="Alice", tension=3),
            _chapter("reader", requires=("the vault code",), tension=5),
            _chapter("provider", introduces=("the vault code",), tension=6),
        ),
        characters=(Character(id="alice", name="Alice", first_appearance="intro"),),
    )
    return DependencyModel(manuscript)


def test_suggestion_keeps_introductions_ahead_of_readers_despite_pacing() -> None:
    model = _vault_heist()
    result = OrderSuggester(model).suggest()
    assert result.order == ("intro", "hook", "provider", "reader")
    assert result.order.index("provider") < result.order.index("reader")


def test_suggestion_keeps_registry_narrators_after_their_first_appearance() -> None:
    model = _vault_heist()
    result = OrderSuggester(model).suggest()
    assert result.order.index("intro") < result.order.index("hook")
    checks = ConsistencyAnalyzer(model).analyze(result.order)
    assert not [check for check in checks if check.id.startswith("pov-")]


def test_higher_scoring_manuscript_order_is_not_kept_when_it_breaks_a_dependency() -> None:
    model = _model(
        _chapter("reader", requires=("the map",)),
        _chapter("provider", introduces=("the map",)),
    )
    scorer = _PrefersManuscriptOrder(model.chapter_ids)
    result = OrderSuggester(model, scorer).suggest()  # type: ignore[arg-type]
    assert result.order == ("provider", "reader")
    assert any("breaks 1 dependency constraint(s)" in line for line in result.reasoning)


def test_higher_scoring_manuscript_order_is_kept_when_it_honors_every_dependency() -> None:
    model = _model(_chapter("climax", tension=10), _chapter("opening", tension=3))
    scorer = _PrefersManuscriptOrder(model.chapter_ids)
    weights = SuggesterWeights(tension_fit=5.0, stability=0.1, drop=0.0)
    result = OrderSuggester(model, scorer, weights).suggest()  # type: ignore[arg-type]
    assert result.order == ("climax", "opening")
    assert result.reasoning[-1].startswith("Kept the manuscript order")
