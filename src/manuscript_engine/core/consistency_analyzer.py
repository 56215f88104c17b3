"""Order-aware consistency diagnostics for a candidate chapter sequence."""

from __future__ import annotations

import logging
import re
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime
from typing import Final

from manuscript_engine.core.dependency_model import DependencyModel
from manuscript_engine.domain.models import (
    Chapter,
    CheckRule,
    CheckType,
    ConsistencyCheck,
    ConsistencyReport,
    ReportSummary,
    Severity,
    concept_key,
    utc_now,
)

logger = logging.getLogger(__name__)

DEFAULT_DE_ESCALATION_MARKERS: Final[tuple[str, ...]] = (
    "aftermath",
    "calm",
    "denouement",
    "epilogue",
    "recovery",
    "regroup",
    "reprieve",
    "resolution",
    "resolved",
    "resolves",
    "respite",
    "quiet",
)
_BACKWARD_TIME_CUES: Final = re.compile(
    r"\b(before|earlier|flashback|prior|previously|years ago)\b", flags=re.IGNORECASE
)
_SLUG: Final = re.compile(r"[^a-z0-9]+")


@dataclass(frozen=True)
class AnalyzerSettings:
    """Tunable pacing thresholds."""

    tension_drop_threshold: int = 4
    low_tension_ceiling: int = 3
    de_escalation_markers: tuple[str, ...] = DEFAULT_DE_ESCALATION_MARKERS


def _slug(value: str) -> str:
    return _SLUG.sub("-", value.casefold()).strip("-") or "item"


class _Walk:
    """Accumulated reader state while traversing an order left to right."""

    def __init__(self) -> None:
        self.known_concepts: set[str] = set()
        self.introduced_characters: set[str] = set()
        self.read_chapters: set[str] = set()
        self.tension_history: list[int] = []


class ConsistencyAnalyzer:
    """Walks a chapter order and reports narrative consistency findings."""

    def __init__(
        self, model: DependencyModel, settings: AnalyzerSettings | None = None
    ) -> None:
        self._model = model
        self._settings = settings or AnalyzerSettings()

    @property
    def model(self) -> DependencyModel:
        return self._model

    @property
    def settings(self) -> AnalyzerSettings:
        return self._settings

    def analyze(self, order: Sequence[str]) -> list[ConsistencyCheck]:
        """Return diagnostics in chapter-position order, most severe first within a chapter."""
        chapter_order = self._model.validate_order(order)
        if not chapter_order:
            return []
        positions = {chapter_id: index for index, chapter_id in enumerate(chapter_order)}
        walk = _Walk()
        checks: list[ConsistencyCheck] = []
        previous: Chapter | None = None
        for index, chapter_id in enumerate(chapter_order):
            chapter = self._model.chapter(chapter_id)
            found: list[ConsistencyCheck] = []
            found.extend(self._dependency_checks(chapter, index, positions, walk))
            found.extend(self._pov_checks(chapter, index, positions, walk))
            found.extend(self._forward_reference_checks(chapter, index, positions))
            if previous is not None:
                found.extend(self._pacing_checks(previous, chapter, index))
                found.extend(self._timeline_checks(chapter, index))
            found.extend(self._location_checks(chapter, index, walk))
            checks.extend(sorted(found, key=lambda check: check.severity.rank))

            walk.known_concepts.update(
                concept_key(concept) for concept in chapter.dependencies.introduces
            )
            if chapter.metadata.pov:
                walk.introduced_characters.add(concept_key(chapter.metadata.pov))
            walk.read_chapters.add(chapter.id)
            walk.tension_history.append(chapter.metadata.tension_level)
            previous = chapter
        checks = _with_unique_ids(checks)
        logger.debug(
            "analysis.complete chapters=%s checks=%s", len(chapter_order), len(checks)
        )
        return checks

    def _dependency_checks(
        self,
        chapter: Chapter,
        index: int,
        positions: dict[str, int],
        walk: _Walk,
    ) -> list[ConsistencyCheck]:
        checks: list[ConsistencyCheck] = []
        introduced_here = {concept_key(concept) for concept in chapter.dependencies.introduces}
        pov_key = concept_key(chapter.metadata.pov) if chapter.metadata.pov else ""
        for required in chapter.dependencies.required_knowledge:
            key = concept_key(required)
            if key in walk.known_concepts or key in introduced_here:
                continue
            if key == pov_key:
                kind = CheckType.CHARACTER
            else:
                kind = self._model.concept_kind(required)
            severity = Severity.ERROR if kind == CheckType.CHARACTER else Severity.WARNING
            later_providers = sorted(
                (
                    provider
                    for provider in self._model.providers(required)
                    if positions[provider] > index
                ),
                key=positions.__getitem__,
            )
            if key == pov_key:
                message = (
                    f"Chapter {index + 1} {chapter.display_name} is narrated by {required}, "
                    "who has not been introduced yet."
                )
            else:
                message = (
                    f"Chapter {index + 1} {chapter.display_name} requires knowledge of "
                    f"'{required}', which hasn't been introduced yet."
                )
            if later_providers:
                provider = self._model.chapter(later_providers[0])
                checks.append(
                    ConsistencyCheck(
                        id=f"knowledge-{chapter.id}-{_slug(required)}",
                        rule=CheckRule.DEPENDENCY,
                        type=kind,
                        severity=severity,
                        message=message,
                        chapter_ids=(chapter.id, provider.id),
                        auto_fixable=True,
                        suggestion=(
                            f"Move chapter {provider.display_name} before chapter "
                            f"{chapter.display_name}."
                        ),
                    )
                )
            else:
                checks.append(
                    ConsistencyCheck(
                        id=f"knowledge-{chapter.id}-{_slug(required)}",
                        rule=CheckRule.DEPENDENCY,
                        type=kind,
                        severity=severity,
                        message=f"{message} No chapter introduces it.",
                        chapter_ids=(chapter.id,),
                        auto_fixable=False,
                        suggestion=(
                            f"Introduce '{required}' in an earlier chapter or remove it from "
                            f"{chapter.display_name}'s required knowledge."
                        ),
                    )
                )
        return checks

    def _pov_checks(
        self,
        chapter: Chapter,
        index: int,
        positions: dict[str, int],
        walk: _Walk,
    ) -> list[ConsistencyCheck]:
        pov = chapter.metadata.pov
        if not pov:
            return []
        pov_key = concept_key(pov)
        required_keys = {concept_key(item) for item in chapter.dependencies.required_knowledge}
        if pov_key in required_keys or pov_key in walk.introduced_characters:
            return []
        first_appearance = self._model.first_appearance_of_character(pov)
        if first_appearance is None or first_appearance == chapter.id:
            return []
        if first_appearance in walk.read_chapters:
            return []
        introducer = self._model.chapter(first_appearance)
        return [
            ConsistencyCheck(
                id=f"pov-{chapter.id}-{_slug(pov)}",
                rule=CheckRule.POV,
                type=CheckType.CHARACTER,
                severity=Severity.ERROR,
                message=(
                    f"Chapter {index + 1} {chapter.display_name} uses {pov} as POV character "
                    f"before their introduction in {introducer.display_name}."
                ),
                chapter_ids=(chapter.id, introducer.id),
                auto_fixable=positions[introducer.id] > index,
                suggestion=(
                    f"Move chapter {introducer.display_name} before chapter "
                    f"{chapter.display_name}."
                ),
            )
        ]

    def _forward_reference_checks(
        self, chapter: Chapter, index: int, positions: dict[str, int]
    ) -> list[ConsistencyCheck]:
        checks: list[ConsistencyCheck] = []
        for reference in chapter.dependencies.references:
            target_position = positions[reference.target_chapter_id]
            if target_position <= index:
                continue
            target = self._model.chapter(reference.target_chapter_id)
            detail = f": {reference.description}" if reference.description else ""
            checks.append(
                ConsistencyCheck(
                    id=f"plot-ref-{chapter.id}-{target.id}",
                    rule=CheckRule.FORWARD_REFERENCE,
                    type=CheckType.PLOT,
                    severity=Severity.WARNING,
                    message=(
                        f"Chapter {index + 1} {chapter.display_name} references events from "
                        f"chapter {target_position + 1} {target.display_name}, which comes "
                        f"later{detail}."
                    ),
                    chapter_ids=(chapter.id, target.id),
                    auto_fixable=True,
                    suggestion=(
                        f"Move chapter {target.display_name} before chapter "
                        f"{chapter.display_name}."
                    ),
                )
            )
        return checks

    def _pacing_checks(
        self, previous: Chapter, chapter: Chapter, index: int
    ) -> list[ConsistencyCheck]:
        checks: list[ConsistencyCheck] = []
        before = previous.metadata.tension_level
        after = chapter.metadata.tension_level
        if before - after > self._settings.tension_drop_threshold and not self._de_escalates(
            chapter
        ):
            checks.append(
                ConsistencyCheck(
                    id=f"tension-drop-{chapter.id}",
                    rule=CheckRule.TENSION_DROP,
                    type=CheckType.PACING,
                    severity=Severity.INFO,
                    message=(
                        f"Large tension drop from chapter {index} to {index + 1} "
                        f"({before} -> {after})."
                    ),
                    chapter_ids=(previous.id, chapter.id),
                    auto_fixable=False,
                    suggestion=(
                        "Smooth the tension transition or mark the drop as a deliberate "
                        "resolution beat."
                    ),
                )
            )
        ceiling = self._settings.low_tension_ceiling
        if before < ceiling and after < ceiling:
            checks.append(
                ConsistencyCheck(
                    id=f"low-tension-{chapter.id}",
                    rule=CheckRule.LOW_TENSION,
                    type=CheckType.PACING,
                    severity=Severity.INFO,
                    message=f"Chapters {index} and {index + 1} both have low tension levels.",
                    chapter_ids=(previous.id, chapter.id),
                    auto_fixable=False,
                    suggestion="Add conflict to one of these chapters to keep the reader engaged.",
                )
            )
        return checks

    def _timeline_checks(self, chapter: Chapter, index: int) -> list[ConsistencyCheck]:
        timeframe = chapter.metadata.timeframe
        if not timeframe or not _BACKWARD_TIME_CUES.search(timeframe):
            return []
        return [
            ConsistencyCheck(
                id=f"timeline-{chapter.id}",
                rule=CheckRule.TIMELINE,
                type=CheckType.TIMELINE,
                severity=Severity.INFO,
                message=(
                    f"Chapter {index + 1} {chapter.display_name} appears to go backward in "
                    f"time ({timeframe})."
                ),
                chapter_ids=(chapter.id,),
                auto_fixable=False,
                suggestion="Verify the flashback is intentional and signaled to readers.",
            )
        ]

    def _location_checks(
        self, chapter: Chapter, index: int, walk: _Walk
    ) -> list[ConsistencyCheck]:
        checks: list[ConsistencyCheck] = []
        for location in chapter.metadata.locations:
            first_appearance = self._model.first_appearance_of_location(location)
            if first_appearance is None or first_appearance == chapter.id:
                continue
            if first_appearance in walk.read_chapters:
                continue
            checks.append(
                ConsistencyCheck(
                    id=f"location-{chapter.id}-{_slug(location)}",
                    rule=CheckRule.LOCATION,
                    type=CheckType.LOCATION,
                    severity=Severity.INFO,
                    message=(
                        f"Chapter {index + 1} {chapter.display_name} uses location "
                        f"'{location}' before its first mention."
                    ),
                    chapter_ids=(chapter.id, first_appearance),
                    auto_fixable=False,
                    suggestion="Describe the location here or move it after its first mention.",
                )
            )
        return checks

    def _de_escalates(self, chapter: Chapter) -> bool:
        markers = [marker.casefold() for marker in self._settings.de_escalation_markers]
        for event in chapter.metadata.major_events:
            lowered = event.casefold()
            if any(marker in lowered for marker in markers):
                return True
        return False


def build_consistency_report(
    checks: Sequence[ConsistencyCheck],
    *,
    chapter_order: Sequence[str],
    generated_at: datetime | None = None,
) -> ConsistencyReport:
    """Wrap analyzer output with a timestamp and severity counts."""
    summary = ReportSummary(
        total=len(checks),
        errors=sum(1 for check in checks if check.severity == Severity.ERROR),
        warnings=sum(1 for check in checks if check.severity == Severity.WARNING),
        info=sum(1 for check in checks if check.severity == Severity.INFO),
    )
    return ConsistencyReport(
        generated_at=generated_at or utc_now(),
        chapter_order=tuple(chapter_order),
        checks=tuple(checks),
        summary=summary,
    )


def _with_unique_ids(checks: list[ConsistencyCheck]) -> list[ConsistencyCheck]:
    """Suffix repeated ids with -2, -3, ... in walk order."""
    seen: set[str] = set()
    unique: list[ConsistencyCheck] = []
    for check in checks:
        check_id = check.id
        repeat = 1
        while check_id in seen:
            repeat += 1
            check_id = f"{check.id}-{repeat}"
        seen.add(check_id)
        unique.append(check if check_id == check.id else check.model_copy(update={"id": check_id}))
    return unique
