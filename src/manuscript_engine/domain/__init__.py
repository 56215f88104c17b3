"""Domain models, errors, and ports for the manuscript engine."""

from manuscript_engine.domain.errors import (
    BaseVersionProtectedError,
    DataIntegrityError,
    ManuscriptEngineError,
    ReorderStateError,
    UnsatisfiableOrderingWarning,
    VersionNotFound,
)
from manuscript_engine.domain.models import (
    Chapter,
    ChapterDependencies,
    ChapterMetadata,
    ChapterReference,
    Character,
    CheckRule,
    CheckType,
    ConsistencyCheck,
    ConsistencyReport,
    Location,
    Manuscript,
    ManuscriptVersion,
    ReferenceStrength,
    ReferenceType,
    Severity,
    VersionChange,
)
from manuscript_engine.domain.ports import OrderAnalyzer, VersionStore

__all__ = [
    "BaseVersionProtectedError",
    "Chapter",
    "ChapterDependencies",
    "ChapterMetadata",
    "ChapterReference",
    "Character",
    "CheckRule",
    "CheckType",
    "ConsistencyCheck",
    "ConsistencyReport",
    "DataIntegrityError",
    "Location",
    "Manuscript",
    "ManuscriptEngineError",
    "ManuscriptVersion",
    "OrderAnalyzer",
    "ReferenceStrength",
    "ReferenceType",
    "ReorderStateError",
    "Severity",
    "UnsatisfiableOrderingWarning",
    "VersionChange",
    "VersionNotFound",
    "VersionStore",
]
