"""Constraint-aware chapter ordering with a three-act tension objective."""

from __future__ import annotations

import logging
import warnings
from dataclasses import dataclass

from manuscript_engine.core.consistency_analyzer import ConsistencyAnalyzer
from manuscript_engine.core.dependency_model import DependencyModel, EdgeKind
from manuscript_engine.core.order_quality import OrderQualityScorer
from manuscript_engine.core.tension_curve import MAX_TENSION, MIN_TENSION, target_tension
from manuscript_engine.domain.errors import UnsatisfiableOrderingWarning
from manuscript_engine.domain.models import (
    ReferenceStrength,
    SchemaModel,
    concept_key,
)

logger = logging.getLogger(__name__)

_KIND_RANK: dict[EdgeKind, int] = {"reference": 0, "knowledge": 1}


@dataclass(frozen=True)
class SuggesterWeights:
    """Weights of the greedy cost; lower cost wins."""

    tension_fit: float = 1.0
    stability: float = 1.0
    drop: float = 0.5
    drop_threshold: int = 4


class SuggestedOrder(SchemaModel):
    """A complete chapter permutation and the reasons behind it."""

    order: tuple[str, ...]
    reasoning: tuple[str, ...]


@dataclass(frozen=True)
class _Constraint:
    chapter_id: str
    kind: EdgeKind
    label: str
    sources: tuple[str, ...]
    strength: ReferenceStrength


class OrderSuggester:
    """Proposes an order honoring precedence edges while shaping tension."""

    def __init__(
        self,
        model: DependencyModel,
        scorer: OrderQualityScorer | None = None,
        weights: SuggesterWeights | None = None,
    ) -> None:
        self._model = model
        self._scorer = scorer or OrderQualityScorer(ConsistencyAnalyzer(model))
        self._weights = weights or SuggesterWeights()

    @property
    def weights(self) -> SuggesterWeights:
        return self._weights

    def suggest(self) -> SuggestedOrder:
        total = len(self._model)
        if total == 0:
            return SuggestedOrder(order=(), reasoning=("No chapters to order.",))

        constraints = self._constraints()
        knowledge_count = sum(1 for item in constraints if item.kind == "knowledge")
        reasoning: list[str] = [
            f"Scheduled {total} chapters honoring {knowledge_count} knowledge "
            f"dependencies and {len(constraints) - knowledge_count} cross-references."
        ]
        for requirement in self._model.unprovided_requirements():
            chapter = self._model.chapter(requirement.chapter_id)
            reasoning.append(
                f"{chapter.display_name} requires '{requirement.concept}', which no chapter "
                "introduces; it does not constrain the order."
            )

        active = list(constraints)
        relaxed_constraints: list[_Constraint] = []
        remaining = list(self._model.chapter_ids)
        scheduled: list[str] = []
        placed: set[str] = set()
        reasons: dict[str, str] = {}
        cycles_broken = 0
        while remaining:
            active = [item for item in active if not placed.intersection(item.sources)]
            blocking: dict[str, _Constraint] = {}
            for item in active:
                blocking.setdefault(item.chapter_id, item)
            ready = [chapter_id for chapter_id in remaining if chapter_id not in blocking]
            for chapter_id, item in blocking.items():
                reasons.setdefault(chapter_id, self._blocked_reason(item))
            if not ready:
                relaxed, cycle = self._break_cycle(remaining, active)
                active.remove(relaxed)
                relaxed_constraints.append(relaxed)
                cycles_broken += 1
                note = self._cycle_note(relaxed, cycle)
                reasoning.append(note)
                warnings.warn(note, UnsatisfiableOrderingWarning, stacklevel=2)
                continue

            step = len(scheduled)
            previous_tension = (
                self._model.chapter(scheduled[-1]).metadata.tension_level if scheduled else None
            )
            choice = min(
                ready,
                key=lambda chapter_id: (
                    round(self._cost(chapter_id, step, total, previous_tension), 9),
                    self._model.original_position(chapter_id),
                ),
            )
            if choice != ready[0]:
                tension = self._model.chapter(choice).metadata.tension_level
                reasons[choice] = (
                    f"its tension {tension} fits the target "
                    f"{target_tension(step, total):.1f} at that point of the arc"
                )
            scheduled.append(choice)
            placed.add(choice)
            remaining.remove(choice)

        candidate = tuple(scheduled)
        original = self._model.chapter_ids
        candidate_quality = self._scorer.score(candidate)
        original_quality = self._scorer.score(original)
        binding = [
            item
            for item in constraints
            if not any(item is relaxed for relaxed in relaxed_constraints)
        ]
        broken = _violations(original, binding)
        if candidate_quality.score < original_quality.score and not broken:
            reasoning.append(
                f"Kept the manuscript order: it scores {original_quality.score}/100 while the "
                f"rearranged candidate scores {candidate_quality.score}/100."
            )
            order = original
        else:
            order = candidate
            if candidate_quality.score < original_quality.score:
                reasoning.append(
                    f"The manuscript order scores {original_quality.score}/100 but breaks "
                    f"{len(broken)} dependency constraint(s); kept the rearranged order."
                )
            reasoning.extend(self._move_notes(order, reasons))
            if order == original:
                reasoning.append("The manuscript order already fits every constraint.")
            reasoning.append(
                f"Suggested order scores {candidate_quality.score}/100 "
                f"(manuscript order: {original_quality.score}/100)."
            )
        logger.info(
            "suggest.complete chapters=%s cycles_broken=%s kept_original=%s",
            total,
            cycles_broken,
            order == original,
        )
        return SuggestedOrder(order=order, reasoning=tuple(reasoning))

    def _constraints(self) -> list[_Constraint]:
        constraints: list[_Constraint] = []
        for requirement in self._model.knowledge_requirements():
            if not requirement.provided:
                continue
            chapter = self._model.chapter(requirement.chapter_id)
            introduced_here = {
                concept_key(concept) for concept in chapter.dependencies.introduces
            }
            if concept_key(requirement.concept) in introduced_here:
                continue
            strength = max(
                (
                    self._model.knowledge_strength(chapter, requirement.concept, provider)
                    for provider in requirement.provider_ids
                ),
                key=lambda item: item.weight,
            )
            constraints.append(
                _Constraint(
                    chapter_id=chapter.id,
                    kind="knowledge",
                    label=requirement.concept,
                    sources=requirement.provider_ids,
                    strength=strength,
                )
            )
        for chapter in self._model.manuscript.chapters:
            for reference in chapter.dependencies.references:
                if reference.target_chapter_id == chapter.id:
                    continue
                constraints.append(
                    _Constraint(
                        chapter_id=chapter.id,
                        kind="reference",
                        label=reference.description or reference.reference_type.value,
                        sources=(reference.target_chapter_id,),
                        strength=reference.strength,
                    )
                )
        constraints.extend(self._pov_constraints())
        return constraints

    def _pov_constraints(self) -> list[_Constraint]:
        """Registry narrators must first appear, or narrate, before their chapters."""
        narrators: dict[str, list[str]] = {}
        for chapter in self._model.manuscript.chapters:
            if chapter.metadata.pov:
                narrators.setdefault(concept_key(chapter.metadata.pov), []).append(chapter.id)
        constraints: list[_Constraint] = []
        for chapter in self._model.manuscript.chapters:
            pov = chapter.metadata.pov
            if not pov:
                continue
            required = {concept_key(item) for item in chapter.dependencies.required_knowledge}
            if concept_key(pov) in required:
                continue
            first_appearance = self._model.first_appearance_of_character(pov)
            if first_appearance is None or first_appearance == chapter.id:
                continue
            others = [
                chapter_id
                for chapter_id in narrators[concept_key(pov)]
                if chapter_id not in (chapter.id, first_appearance)
            ]
            constraints.append(
                _Constraint(
                    chapter_id=chapter.id,
                    kind="knowledge",
                    label=pov,
                    sources=(first_appearance, *others),
                    strength=ReferenceStrength.STRONG,
                )
            )
        return constraints

    def _cost(
        self, chapter_id: str, step: int, total: int, previous_tension: int | None
    ) -> float:
        weights = self._weights
        tension = self._model.chapter(chapter_id).metadata.tension_level
        span = MAX_TENSION - MIN_TENSION
        fit = abs(tension - target_tension(step, total)) / span
        displacement = abs(self._model.original_position(chapter_id) - step) / max(1, total - 1)
        drop = 0.0
        if previous_tension is not None:
            drop = max(0, previous_tension - tension - weights.drop_threshold) / span
        return (
            weights.tension_fit * fit + weights.stability * displacement + weights.drop * drop
        )

    def _break_cycle(
        self, remaining: list[str], active: list[_Constraint]
    ) -> tuple[_Constraint, list[str]]:
        """Follow blockers from the earliest remaining chapter and relax the weakest cycle edge."""
        by_chapter: dict[str, list[_Constraint]] = {}
        for item in active:
            by_chapter.setdefault(item.chapter_id, []).append(item)
        path: list[str] = []
        used: list[_Constraint] = []
        visited: dict[str, int] = {}
        node = remaining[0]
        while node not in visited:
            visited[node] = len(path)
            path.append(node)
            item = min(
                by_chapter[node],
                key=lambda candidate: (
                    candidate.strength.weight,
                    _KIND_RANK[candidate.kind],
                    candidate.label,
                ),
            )
            used.append(item)
            node = min(item.sources, key=self._model.original_position)
        start = visited[node]
        cycle = path[start:]
        relaxed = min(
            used[start:],
            key=lambda item: (
                item.strength.weight,
                _KIND_RANK[item.kind],
                self._model.original_position(item.chapter_id),
            ),
        )
        return relaxed, cycle

    def _cycle_note(self, relaxed: _Constraint, cycle: list[str]) -> str:
        chapter = self._model.chapter(relaxed.chapter_id)
        loop = " -> ".join([*cycle, cycle[0]])
        if relaxed.kind == "knowledge":
            edge = f"its need for '{relaxed.label}'"
        else:
            target = self._model.chapter(relaxed.sources[0])
            edge = f"its reference to {target.display_name} ({relaxed.label})"
        return (
            f"Dependency cycle {loop} cannot be satisfied; relaxed the "
            f"{relaxed.strength.value} constraint of {chapter.display_name}: {edge}."
        )

    def _blocked_reason(self, item: _Constraint) -> str:
        source = self._model.chapter(min(item.sources, key=self._model.original_position))
        if item.kind == "knowledge":
            return f"it must follow {source.display_name}, which introduces '{item.label}'"
        return f"it references events from {source.display_name}"

    def _move_notes(self, order: tuple[str, ...], reasons: dict[str, str]) -> list[str]:
        notes: list[str] = []
        for position, chapter_id in enumerate(order):
            original = self._model.original_position(chapter_id)
            if original == position:
                continue
            chapter = self._model.chapter(chapter_id)
            reason = reasons.get(chapter_id, "the chapters around it moved")
            notes.append(
                f"Moved {chapter.display_name} from position {original + 1} to "
                f"{position + 1}: {reason}."
            )
        return notes


def _violations(order: tuple[str, ...], constraints: list[_Constraint]) -> list[_Constraint]:
    """Constraints whose chapter comes before every one of its sources."""
    positions = {chapter_id: index for index, chapter_id in enumerate(order)}
    return [
        item
        for item in constraints
        if not any(positions[source] < positions[item.chapter_id] for source in item.sources)
    ]
