"""Error taxonomy for the manuscript engine."""

from __future__ import annotations


class ManuscriptEngineError(Exception):
    """Base class for engine failures."""


class DataIntegrityError(ManuscriptEngineError, ValueError):
    """Manuscript or chapter order input the engine cannot safely reason about."""


class VersionNotFound(ManuscriptEngineError, LookupError):
    """A version id that does not exist in the manuscript's history."""

    def __init__(self, version_id: str) -> None:
        super().__init__(f"Version '{version_id}' not found.")
        self.version_id = version_id


class ReorderStateError(ManuscriptEngineError, RuntimeError):
    """An operation that is not valid in the version manager's current state."""


class BaseVersionProtectedError(ManuscriptEngineError, RuntimeError):
    """Attempt to remove the base version or the current working version."""


class UnsatisfiableOrderingWarning(UserWarning):
    """Dependency cycle that had to be broken to produce a suggested order."""
