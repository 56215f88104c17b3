from __future__ import annotations

import pytest
from pydantic import ValidationError

from manuscript_engine.domain.models import (
    Chapter,
    ChapterDependencies,
    ChapterMetadata,
    ConsistencyCheck,
    Manuscript,
    ReferenceStrength,
    Severity,
    concept_key,
)


def test_dependencies_dedupe_concepts_case_insensitively() -> None:
    dependencies = ChapterDependencies(
        introduces=("Sarah", " sarah ", "The  Vault", "the vault", ""),
        required_knowledge=("Marcus", "MARCUS"),
    )
    assert dependencies.introduces == ("Sarah", "The Vault")
    assert dependencies.required_knowledge == ("Marcus",)


def test_tension_level_is_bounded() -> None:
    with pytest.raises(ValidationError):
        ChapterMetadata(tension_level=0)
    with pytest.raises(ValidationError):
        ChapterMetadata(tension_level=11)
    assert ChapterMetadata().tension_level == 5


def test_manuscript_accepts_camel_case_payload() -> None:
    manuscript = Manuscript.model_validate(
        {
            "id": "novel",
            "title": "Night Shift",
            "chapters": [
                {
                    "id": "ch1",
                    "title": "Arrival",
                    "metadata": {"pov": "Sarah", "tensionLevel": 4},
                    "dependencies": {
                        "introduces": ["Sarah"],
                        "requiredKnowledge": [],
                        "references": [{"targetChapterId": "ch1", "strength": "weak"}],
                    },
                }
            ],
        }
    )
    chapter = manuscript.chapters[0]
    assert chapter.metadata.tension_level == 4
    assert chapter.dependencies.references[0].strength is ReferenceStrength.WEAK
    assert manuscript.chapter_order == ("ch1",)


def test_unknown_fields_are_rejected() -> None:
    with pytest.raises(ValidationError):
        Chapter.model_validate({"id": "ch1", "wordcount": 12})


def test_models_are_frozen() -> None:
    chapter = Chapter(id="ch1")
    with pytest.raises(ValidationError):
        chapter.title = "Changed"  # type: ignore[misc]


def test_chapter_display_name_and_word_count() -> None:
    assert Chapter(id="ch1", title="Arrival").display_name == "'Arrival' (ch1)"
    assert Chapter(id="ch2").display_name == "ch2"
    assert Chapter(id="ch3", content="one two  three\nfour").word_count == 4


def test_severity_rank_orders_most_severe_first() -> None:
    ranked = sorted([Severity.INFO, Severity.ERROR, Severity.WARNING], key=lambda item: item.rank)
    assert ranked == [Severity.ERROR, Severity.WARNING, Severity.INFO]


def test_reference_strength_weight_is_ordinal() -> None:
    assert ReferenceStrength.WEAK.weight < ReferenceStrength.MEDIUM.weight
    assert ReferenceStrength.MEDIUM.weight < ReferenceStrength.STRONG.weight


def test_consistency_check_serializes_with_camel_case_aliases() -> None:
    check = ConsistencyCheck(
        id="plot-ref-ch1-ch2",
        type="plot",
        severity="warning",
        message="Forward reference.",
        chapter_ids=("ch1", "ch2"),
        auto_fixable=True,
    )
    payload = check.model_dump(mode="json", by_alias=True)
    assert payload["chapterIds"] == ["ch1", "ch2"]
    assert payload["autoFixable"] is True
    assert payload["type"] == "plot"


def test_concept_key_normalizes_whitespace_and_case() -> None:
    assert concept_key("  Quantum   Drive ") == "quantum drive"
