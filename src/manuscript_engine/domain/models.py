"""Canonical manuscript data model shared by every engine layer."""

from __future__ import annotations

from collections.abc import Iterable
from datetime import UTC, datetime
from enum import StrEnum
from typing import Final, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

BASE_VERSION_ID: Final = "original"


def utc_now() -> datetime:
    """Return the current UTC timestamp."""
    return datetime.now(UTC)


def concept_key(value: str) -> str:
    """Normalize a concept or character name for set-like comparisons."""
    return " ".join(value.split()).casefold()


def _dedupe_concepts(values: Iterable[str]) -> tuple[str, ...]:
    deduped: list[str] = []
    seen: set[str] = set()
    for value in values:
        cleaned = " ".join(value.split())
        if not cleaned:
            continue
        key = cleaned.casefold()
        if key in seen:
            continue
        seen.add(key)
        deduped.append(cleaned)
    return tuple(deduped)


class SchemaModel(BaseModel):
    """Strict, immutable model configuration for manuscript records."""

    model_config = ConfigDict(
        extra="forbid",
        frozen=True,
        str_strip_whitespace=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )


class CheckType(StrEnum):
    CHARACTER = "character"
    PLOT = "plot"
    TECH = "tech"
    PACING = "pacing"
    TIMELINE = "timeline"
    LOCATION = "location"


class CheckRule(StrEnum):
    """The analyzer rule that produced a finding."""

    DEPENDENCY = "dependency"
    POV = "pov"
    FORWARD_REFERENCE = "forward_reference"
    TENSION_DROP = "tension_drop"
    LOW_TENSION = "low_tension"
    TIMELINE = "timeline"
    LOCATION = "location"


class Severity(StrEnum):
    ERROR = "error"
    WARNING = "warning"
    INFO = "info"

    @property
    def rank(self) -> int:
        """Sort rank, most severe first."""
        return _SEVERITY_RANK[self]


_SEVERITY_RANK: Final[dict[Severity, int]] = {
    Severity.ERROR: 0,
    Severity.WARNING: 1,
    Severity.INFO: 2,
}


class ReferenceType(StrEnum):
    PLOT = "plot"
    TECH = "tech"
    CHARACTER = "character"
    LOCATION = "location"
    TIMELINE = "timeline"


class ReferenceStrength(StrEnum):
    WEAK = "weak"
    MEDIUM = "medium"
    STRONG = "strong"

    @property
    def weight(self) -> int:
        """Ordinal weight, weakest first."""
        return _STRENGTH_WEIGHT[self]


_STRENGTH_WEIGHT: Final[dict[ReferenceStrength, int]] = {
    ReferenceStrength.WEAK: 1,
    ReferenceStrength.MEDIUM: 2,
    ReferenceStrength.STRONG: 3,
}


class ChangeType(StrEnum):
    REORDER = "reorder"
    MODIFY = "modify"
    ADD = "add"
    REMOVE = "remove"


class ReorderState(StrEnum):
    IDLE = "idle"
    PREVIEWING = "previewing"


class ChapterReference(SchemaModel):
    """Directed callback from one chapter to another."""

    target_chapter_id: str = Field(min_length=1, max_length=140)
    reference_type: ReferenceType = ReferenceType.PLOT
    strength: ReferenceStrength = ReferenceStrength.MEDIUM
    description: str = ""


class ChapterDependencies(SchemaModel):
    """Knowledge a chapter introduces, assumes, and points back to."""

    introduces: tuple[str, ...] = ()
    required_knowledge: tuple[str, ...] = ()
    references: tuple[ChapterReference, ...] = ()
    continuity_rules: tuple[str, ...] = ()

    @field_validator("introduces", "required_knowledge")
    @classmethod
    def _set_like(cls, values: tuple[str, ...]) -> tuple[str, ...]:
        return _dedupe_concepts(values)


class ChapterMetadata(SchemaModel):
    """Author-assigned narrative metadata."""

    pov: str = ""
    locations: tuple[str, ...] = ()
    timeframe: str = ""
    tension_level: int = Field(default=5, ge=1, le=10)
    major_events: tuple[str, ...] = ()
    tech_elements: tuple[str, ...] = ()
    character_arcs: tuple[str, ...] = ()


class Chapter(SchemaModel):
    """One chapter; its id is stable across reorderings and versions."""

    id: str = Field(min_length=1, max_length=140)
    title: str = ""
    content: str = ""
    metadata: ChapterMetadata = Field(default_factory=ChapterMetadata)
    dependencies: ChapterDependencies = Field(default_factory=ChapterDependencies)

    @property
    def word_count(self) -> int:
        return len(self.content.split())

    @property
    def display_name(self) -> str:
        return f"'{self.title}' ({self.id})" if self.title else self.id


class Character(SchemaModel):
    """Registry entry used for cross-reference lookups."""

    id: str = Field(min_length=1, max_length=140)
    name: str = Field(min_length=1, max_length=200)
    role: Literal["protagonist", "antagonist", "supporting", "minor"] = "supporting"
    first_appearance: str = Field(min_length=1, max_length=140)
    description: str = ""


class Location(SchemaModel):
    """Registry entry used for cross-reference lookups."""

    id: str = Field(min_length=1, max_length=140)
    name: str = Field(min_length=1, max_length=200)
    kind: Literal["city", "building", "virtual", "vehicle", "other"] = "other"
    first_appearance: str = Field(min_length=1, max_length=140)
    significance: Literal["major", "minor"] = "minor"
    description: str = ""


class Manuscript(SchemaModel):
    """Immutable snapshot of a manuscript's chapters and registries."""

    id: str = Field(default="manuscript", min_length=1)
    title: str = ""
    author: str = ""
    chapters: tuple[Chapter, ...] = ()
    characters: tuple[Character, ...] = ()
    locations: tuple[Location, ...] = ()

    @property
    def chapter_order(self) -> tuple[str, ...]:
        return tuple(chapter.id for chapter in self.chapters)


class VersionChange(SchemaModel):
    """Append-only structural edit log entry."""

    type: ChangeType = ChangeType.REORDER
    chapter_id: str = Field(min_length=1)
    old_position: int | None = Field(default=None, ge=1)
    new_position: int | None = Field(default=None, ge=1)
    description: str = ""
    timestamp: datetime = Field(default_factory=utc_now)


class ManuscriptVersion(SchemaModel):
    """Named snapshot of a chapter ordering plus its change history."""

    id: str = Field(min_length=1)
    name: str = Field(min_length=1, max_length=200)
    description: str = ""
    chapter_order: tuple[str, ...] = ()
    created: datetime = Field(default_factory=utc_now)
    is_base_version: bool = False
    parent_version_id: str | None = None
    changes: tuple[VersionChange, ...] = ()


class ConsistencyCheck(SchemaModel):
    """One diagnostic produced by analyzing a chapter order."""

    id: str = Field(min_length=1)
    type: CheckType
    severity: Severity
    message: str = Field(min_length=1)
    chapter_ids: tuple[str, ...] = ()
    auto_fixable: bool = False
    suggestion: str | None = None
    rule: CheckRule | None = None


class ReportSummary(SchemaModel):
    """Finding counts by severity."""

    total: int = Field(ge=0)
    errors: int = Field(ge=0)
    warnings: int = Field(ge=0)
    info: int = Field(ge=0)


class ConsistencyReport(SchemaModel):
    """Timestamped analysis result for one chapter order."""

    generated_at: datetime
    chapter_order: tuple[str, ...]
    checks: tuple[ConsistencyCheck, ...]
    summary: ReportSummary
