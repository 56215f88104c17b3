"""Version history and the preview/apply reordering protocol for one manuscript."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Iterable, Sequence
from datetime import datetime
from uuid import uuid4

from manuscript_engine.core.consistency_analyzer import (
    AnalyzerSettings,
    ConsistencyAnalyzer,
    build_consistency_report,
)
from manuscript_engine.core.dependency_model import DependencyModel
from manuscript_engine.core.version_diff import VersionComparison, compare_versions
from manuscript_engine.domain.errors import (
    BaseVersionProtectedError,
    DataIntegrityError,
    ReorderStateError,
    VersionNotFound,
)
from manuscript_engine.domain.models import (
    BASE_VERSION_ID,
    Chapter,
    ChangeType,
    ConsistencyCheck,
    ConsistencyReport,
    Manuscript,
    ManuscriptVersion,
    ReorderState,
    SchemaModel,
    VersionChange,
    utc_now,
)
from manuscript_engine.domain.ports import OrderAnalyzer, VersionStore

logger = logging.getLogger(__name__)


class ReorderPreview(SchemaModel):
    """Diagnostics for a candidate order that has not been committed."""

    request_id: int
    chapter_order: tuple[str, ...]
    checks: tuple[ConsistencyCheck, ...] = ()
    available: bool = True
    stale: bool = False


class VersionHistory(SchemaModel):
    """Serializable snapshot of every version and the current pointer."""

    manuscript_id: str
    current_version_id: str
    versions: tuple[ManuscriptVersion, ...]


class ExportableVersion(SchemaModel):
    """Chapters arranged in a version's order, ready for an export formatter."""

    version: ManuscriptVersion
    chapters: tuple[Chapter, ...]


def _new_version_id() -> str:
    return f"version_{uuid4().hex[:12]}"


class VersionManager:
    """Owns the current version pointer and the idle/previewing state machine.

    Operations are coroutines so hosts can interleave them with their own
    persistence writes; the engine work inside each one runs synchronously.
    Only the most recent preview request may become the pending preview.
    """

    def __init__(
        self,
        manuscript: Manuscript,
        *,
        versions: Iterable[ManuscriptVersion] | None = None,
        current_version_id: str | None = None,
        analyzer: OrderAnalyzer | None = None,
        settings: AnalyzerSettings | None = None,
        store: VersionStore | None = None,
        clock: Callable[[], datetime] = utc_now,
        id_factory: Callable[[], str] = _new_version_id,
    ) -> None:
        self._manuscript = manuscript
        self._model = DependencyModel(manuscript)
        self._consistency = ConsistencyAnalyzer(self._model, settings)
        self._analyzer: OrderAnalyzer = analyzer or self._consistency
        self._store = store
        self._clock = clock
        self._id_factory = id_factory

        if versions is None:
            base = ManuscriptVersion(
                id=BASE_VERSION_ID,
                name="Original",
                description="Chapter order as authored.",
                chapter_order=manuscript.chapter_order,
                created=clock(),
                is_base_version=True,
            )
            self._versions: dict[str, ManuscriptVersion] = {base.id: base}
        else:
            self._versions = {version.id: version for version in versions}
        base_ids = [version.id for version in self._versions.values() if version.is_base_version]
        if len(base_ids) != 1:
            raise DataIntegrityError(
                f"A manuscript needs exactly one base version, found {len(base_ids)}."
            )
        self._base_id = base_ids[0]
        self._current_id = current_version_id or self._base_id
        if self._current_id not in self._versions:
            raise VersionNotFound(self._current_id)

        self._state = ReorderState.IDLE
        self._preview: ReorderPreview | None = None
        self._request_seq = 0

    @classmethod
    def from_history(
        cls, manuscript: Manuscript, history: VersionHistory, **kwargs: object
    ) -> VersionManager:
        """Rebuild a manager from an exported history."""
        if history.manuscript_id != manuscript.id:
            raise DataIntegrityError(
                f"History belongs to manuscript '{history.manuscript_id}', "
                f"not '{manuscript.id}'."
            )
        return cls(
            manuscript,
            versions=history.versions,
            current_version_id=history.current_version_id,
            **kwargs,  # type: ignore[arg-type]
        )

    @property
    def state(self) -> ReorderState:
        return self._state

    @property
    def current_version(self) -> ManuscriptVersion:
        return self._versions[self._current_id]

    @property
    def base_version(self) -> ManuscriptVersion:
        return self._versions[self._base_id]

    @property
    def versions(self) -> tuple[ManuscriptVersion, ...]:
        return tuple(self._versions.values())

    @property
    def pending_preview(self) -> ReorderPreview | None:
        return self._preview

    @property
    def latest_request_id(self) -> int:
        return self._request_seq

    def get_version(self, version_id: str) -> ManuscriptVersion:
        try:
            return self._versions[version_id]
        except KeyError:
            raise VersionNotFound(version_id) from None

    async def create_version(self, name: str, description: str = "") -> ManuscriptVersion:
        """Clone the current order into a new version and make it current."""
        self._require_idle("create a version")
        current = self.current_version
        version = ManuscriptVersion(
            id=self._id_factory(),
            name=name,
            description=description,
            chapter_order=current.chapter_order,
            created=self._clock(),
            parent_version_id=current.id,
        )
        self._add_current(version)
        logger.info("version.created id=%s parent=%s", version.id, current.id)
        await self._persist(version)
        return version

    async def switch_version(self, version_id: str) -> ManuscriptVersion:
        self._require_idle("switch versions")
        version = self.get_version(version_id)
        self._current_id = version.id
        logger.info("version.switched id=%s", version.id)
        return version

    async def preview_reordering(self, candidate_order: Sequence[str]) -> ReorderPreview:
        """Analyze a candidate order without touching any version.

        Each request gets a sequence number; a result whose number is no
        longer the latest comes back flagged ``stale`` and is discarded.
        Analyzer failures degrade to an unavailable preview.
        """
        self._request_seq += 1
        request_id = self._request_seq
        order = tuple(candidate_order)
        await asyncio.sleep(0)

        available = True
        checks: tuple[ConsistencyCheck, ...] = ()
        try:
            checks = tuple(self._analyzer.analyze(order))
        except Exception:
            available = False
            logger.warning(
                "preview.unavailable request=%s chapters=%s", request_id, len(order), exc_info=True
            )

        if request_id != self._request_seq:
            logger.debug("preview.stale request=%s latest=%s", request_id, self._request_seq)
            return ReorderPreview(
                request_id=request_id,
                chapter_order=order,
                checks=checks,
                available=available,
                stale=True,
            )
        preview = ReorderPreview(
            request_id=request_id,
            chapter_order=order,
            checks=checks,
            available=available,
        )
        self._preview = preview
        self._state = ReorderState.PREVIEWING
        return preview

    async def apply_reordering(self) -> ManuscriptVersion:
        """Commit the pending preview into the current version."""
        if self._state != ReorderState.PREVIEWING or self._preview is None:
            raise ReorderStateError("There is no reordering preview to apply.")
        order = self._model.validate_order(self._preview.chapter_order)
        if not order and len(self._model):
            raise DataIntegrityError("Chapter order omits every chapter.")

        current = self.current_version
        old_positions = {chapter_id: index for index, chapter_id in enumerate(current.chapter_order)}
        timestamp = self._clock()
        changes: list[VersionChange] = []
        for new_index, chapter_id in enumerate(order):
            old_index = old_positions.get(chapter_id)
            if old_index == new_index:
                continue
            old_position = None if old_index is None else old_index + 1
            changes.append(
                VersionChange(
                    type=ChangeType.REORDER,
                    chapter_id=chapter_id,
                    old_position=old_position,
                    new_position=new_index + 1,
                    description=(
                        f"Moved {self._model.chapter(chapter_id).display_name} from position "
                        f"{old_position} to {new_index + 1}."
                    ),
                    timestamp=timestamp,
                )
            )
        updated = current.model_copy(
            update={"chapter_order": order, "changes": (*current.changes, *changes)}
        )
        self._versions[updated.id] = updated
        self._reset_preview()
        logger.info("reorder.applied version=%s moved=%s", updated.id, len(changes))
        await self._persist(updated)
        return updated

    async def cancel_reordering(self) -> None:
        """Discard the pending preview and ignore any preview still in flight."""
        self._reset_preview()
        logger.debug("reorder.cancelled version=%s", self._current_id)

    async def rollback_to_version(self, version_id: str) -> ManuscriptVersion:
        """Create a new current version that restores an earlier version's order."""
        self._require_idle("roll back")
        target = self.get_version(version_id)
        current = self.current_version
        version = ManuscriptVersion(
            id=self._id_factory(),
            name=f"Rollback to {target.name}",
            description=f"Restores the chapter order of version '{target.id}'.",
            chapter_order=target.chapter_order,
            created=self._clock(),
            parent_version_id=current.id,
        )
        self._add_current(version)
        logger.info("version.rollback id=%s target=%s", version.id, target.id)
        await self._persist(version)
        return version

    async def delete_version(self, version_id: str) -> None:
        self._require_idle("delete a version")
        version = self.get_version(version_id)
        if version.is_base_version:
            raise BaseVersionProtectedError("The base version can never be deleted.")
        if version.id == self._current_id:
            raise BaseVersionProtectedError(
                "The current version cannot be deleted; switch to another version first."
            )
        del self._versions[version.id]
        logger.info("version.deleted id=%s", version.id)
        if self._store is not None:
            await self._store.delete_version(version.id)

    def compare_versions(self, base_version_id: str, compare_version_id: str) -> VersionComparison:
        return compare_versions(
            self._consistency,
            self.get_version(base_version_id),
            self.get_version(compare_version_id),
        )

    def export_version(self, version_id: str) -> ExportableVersion:
        version = self.get_version(version_id)
        order = self._model.validate_order(version.chapter_order)
        return ExportableVersion(
            version=version,
            chapters=tuple(self._model.chapter(chapter_id) for chapter_id in order),
        )

    def run_consistency_check(self) -> ConsistencyReport:
        """Analyze the committed order of the current version."""
        order = self.current_version.chapter_order
        checks = self._analyzer.analyze(order)
        return build_consistency_report(checks, chapter_order=order, generated_at=self._clock())

    def export_history(self) -> VersionHistory:
        return VersionHistory(
            manuscript_id=self._manuscript.id,
            current_version_id=self._current_id,
            versions=self.versions,
        )

    def _require_idle(self, action: str) -> None:
        if self._state != ReorderState.IDLE:
            raise ReorderStateError(
                f"Cannot {action} while a reordering preview is pending; apply or cancel it first."
            )

    def _add_current(self, version: ManuscriptVersion) -> None:
        if version.id in self._versions:
            raise DataIntegrityError(f"Version id '{version.id}' already exists.")
        self._versions[version.id] = version
        self._current_id = version.id

    def _reset_preview(self) -> None:
        self._preview = None
        self._state = ReorderState.IDLE
        self._request_seq += 1

    async def _persist(self, version: ManuscriptVersion) -> None:
        if self._store is not None:
            await self._store.save_version(version)
