"""Read-only dependency graph over a manuscript's chapters."""

from __future__ import annotations

import re
from collections import Counter
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Final, Literal

from manuscript_engine.domain.errors import DataIntegrityError
from manuscript_engine.domain.models import (
    Chapter,
    CheckType,
    Manuscript,
    ReferenceStrength,
    concept_key,
)

EdgeKind = Literal["knowledge", "reference"]

# Capitalized words such as "Sarah" or "Marcus Chen"; used only when the
# registries and POV metadata say nothing about a concept.
_PERSON_NAME: Final = re.compile(r"^[A-Z][a-z'\-]+(?: [A-Z][a-z'\-]+){0,2}$")


@dataclass(frozen=True)
class KnowledgeRequirement:
    """One `required_knowledge` entry and the chapters that introduce it."""

    chapter_id: str
    concept: str
    provider_ids: tuple[str, ...]

    @property
    def provided(self) -> bool:
        return bool(self.provider_ids)


@dataclass(frozen=True)
class DependencyEdge:
    """Directed precedence: `source_id` should be read before `target_id`."""

    source_id: str
    target_id: str
    kind: EdgeKind
    label: str
    strength: ReferenceStrength


class DependencyModel:
    """Chapter lookup and dependency edges for one manuscript snapshot."""

    def __init__(self, manuscript: Manuscript) -> None:
        self._manuscript = manuscript
        self._chapters: dict[str, Chapter] = {}
        self._positions: dict[str, int] = {}
        for index, chapter in enumerate(manuscript.chapters):
            if chapter.id in self._chapters:
                raise DataIntegrityError(f"Duplicate chapter id '{chapter.id}'.")
            self._chapters[chapter.id] = chapter
            self._positions[chapter.id] = index
        self._validate_edges()
        self._providers = self._index_providers()
        self._character_keys = self._index_characters()
        self._tech_keys = {
            concept_key(element)
            for chapter in manuscript.chapters
            for element in chapter.metadata.tech_elements
        }

    @property
    def manuscript(self) -> Manuscript:
        return self._manuscript

    @property
    def chapter_ids(self) -> tuple[str, ...]:
        return self._manuscript.chapter_order

    def __len__(self) -> int:
        return len(self._chapters)

    def __contains__(self, chapter_id: object) -> bool:
        return chapter_id in self._chapters

    def chapter(self, chapter_id: str) -> Chapter:
        try:
            return self._chapters[chapter_id]
        except KeyError:
            raise DataIntegrityError(f"Unknown chapter id '{chapter_id}'.") from None

    def original_position(self, chapter_id: str) -> int:
        """Zero-based position of a chapter in manuscript order."""
        self.chapter(chapter_id)
        return self._positions[chapter_id]

    def providers(self, concept: str) -> tuple[str, ...]:
        """Chapters, in manuscript order, that introduce a concept."""
        return self._providers.get(concept_key(concept), ())

    def knowledge_requirements(self) -> list[KnowledgeRequirement]:
        requirements: list[KnowledgeRequirement] = []
        for chapter in self._manuscript.chapters:
            for concept in chapter.dependencies.required_knowledge:
                providers = tuple(
                    provider for provider in self.providers(concept) if provider != chapter.id
                )
                requirements.append(
                    KnowledgeRequirement(
                        chapter_id=chapter.id, concept=concept, provider_ids=providers
                    )
                )
        return requirements

    def unprovided_requirements(self) -> list[KnowledgeRequirement]:
        introduced_by_self = {
            (chapter.id, concept_key(concept))
            for chapter in self._manuscript.chapters
            for concept in chapter.dependencies.introduces
        }
        return [
            requirement
            for requirement in self.knowledge_requirements()
            if not requirement.provided
            and (requirement.chapter_id, concept_key(requirement.concept)) not in introduced_by_self
        ]

    def dependency_edges(self) -> list[DependencyEdge]:
        """All precedence edges from knowledge requirements and explicit references."""
        edges: list[DependencyEdge] = []
        for requirement in self.knowledge_requirements():
            chapter = self._chapters[requirement.chapter_id]
            for provider_id in requirement.provider_ids:
                edges.append(
                    DependencyEdge(
                        source_id=provider_id,
                        target_id=chapter.id,
                        kind="knowledge",
                        label=requirement.concept,
                        strength=self.knowledge_strength(chapter, requirement.concept, provider_id),
                    )
                )
        for chapter in self._manuscript.chapters:
            for reference in chapter.dependencies.references:
                if reference.target_chapter_id == chapter.id:
                    continue
                edges.append(
                    DependencyEdge(
                        source_id=reference.target_chapter_id,
                        target_id=chapter.id,
                        kind="reference",
                        label=reference.description or reference.reference_type.value,
                        strength=reference.strength,
                    )
                )
        return edges

    def knowledge_strength(
        self, chapter: Chapter, concept: str, provider_id: str
    ) -> ReferenceStrength:
        """Strength of a knowledge edge: POV identity is strong, explicit references raise it."""
        if chapter.metadata.pov and concept_key(concept) == concept_key(chapter.metadata.pov):
            return ReferenceStrength.STRONG
        strength = ReferenceStrength.MEDIUM
        for reference in chapter.dependencies.references:
            if (
                reference.target_chapter_id == provider_id
                and reference.strength.weight > strength.weight
            ):
                strength = reference.strength
        return strength

    def has_cycle(self) -> bool:
        graph: dict[str, set[str]] = {chapter_id: set() for chapter_id in self._chapters}
        for edge in self.dependency_edges():
            graph[edge.target_id].add(edge.source_id)
        temporary: set[str] = set()
        permanent: set[str] = set()

        def visit(node: str) -> bool:
            if node in permanent:
                return False
            if node in temporary:
                return True
            temporary.add(node)
            for dependency in sorted(graph[node]):
                if visit(dependency):
                    return True
            temporary.remove(node)
            permanent.add(node)
            return False

        return any(visit(node) for node in self.chapter_ids if node not in permanent)

    def validate_order(self, order: Sequence[str]) -> tuple[str, ...]:
        """Return the order as a tuple, rejecting anything but a full permutation."""
        candidate = tuple(order)
        if not candidate:
            return candidate
        unknown = [chapter_id for chapter_id in candidate if chapter_id not in self._chapters]
        if unknown:
            raise DataIntegrityError(f"Chapter order references unknown chapter ids: {unknown}.")
        duplicates = sorted(
            chapter_id for chapter_id, count in Counter(candidate).items() if count > 1
        )
        if duplicates:
            raise DataIntegrityError(f"Chapter order repeats chapter ids: {duplicates}.")
        missing = [chapter_id for chapter_id in self.chapter_ids if chapter_id not in candidate]
        if missing:
            raise DataIntegrityError(f"Chapter order omits chapter ids: {missing}.")
        return candidate

    def is_character(self, name: str) -> bool:
        return concept_key(name) in self._character_keys

    def concept_kind(self, concept: str) -> CheckType:
        """Classify a concept as a character identity, a tech concept, or plot knowledge."""
        key = concept_key(concept)
        if key in self._character_keys:
            return CheckType.CHARACTER
        if key in self._tech_keys:
            return CheckType.TECH
        if _PERSON_NAME.match(" ".join(concept.split())):
            return CheckType.CHARACTER
        return CheckType.PLOT

    def first_appearance_of_character(self, name: str) -> str | None:
        key = concept_key(name)
        for character in self._manuscript.characters:
            if key in (concept_key(character.name), concept_key(character.id)):
                return character.first_appearance
        return None

    def first_appearance_of_location(self, name: str) -> str | None:
        key = concept_key(name)
        for location in self._manuscript.locations:
            if key in (concept_key(location.name), concept_key(location.id)):
                return location.first_appearance
        return None

    def _validate_edges(self) -> None:
        for chapter in self._manuscript.chapters:
            for reference in chapter.dependencies.references:
                if reference.target_chapter_id not in self._chapters:
                    raise DataIntegrityError(
                        f"Chapter '{chapter.id}' references unknown chapter "
                        f"'{reference.target_chapter_id}'."
                    )
        for character in self._manuscript.characters:
            if character.first_appearance not in self._chapters:
                raise DataIntegrityError(
                    f"Character '{character.id}' first appears in unknown chapter "
                    f"'{character.first_appearance}'."
                )
        for location in self._manuscript.locations:
            if location.first_appearance not in self._chapters:
                raise DataIntegrityError(
                    f"Location '{location.id}' first appears in unknown chapter "
                    f"'{location.first_appearance}'."
                )

    def _index_providers(self) -> dict[str, tuple[str, ...]]:
        providers: dict[str, list[str]] = {}
        for chapter in self._manuscript.chapters:
            for concept in chapter.dependencies.introduces:
                providers.setdefault(concept_key(concept), []).append(chapter.id)
        return {key: tuple(chapter_ids) for key, chapter_ids in providers.items()}

    def _index_characters(self) -> set[str]:
        keys: set[str] = set()
        for character in self._manuscript.characters:
            keys.add(concept_key(character.name))
            keys.add(concept_key(character.id))
        for chapter in self._manuscript.chapters:
            if chapter.metadata.pov:
                keys.add(concept_key(chapter.metadata.pov))
        return keys
