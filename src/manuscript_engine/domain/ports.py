"""Ports for analysis and version persistence."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Protocol

from manuscript_engine.domain.models import ConsistencyCheck, ManuscriptVersion


class OrderAnalyzer(Protocol):
    """Produces consistency diagnostics for a candidate chapter order."""

    def analyze(self, order: Sequence[str]) -> list[ConsistencyCheck]:
        ...


class VersionStore(Protocol):
    """Persists version records owned by the host application."""

    async def save_version(self, version: ManuscriptVersion) -> None:
        ...

    async def delete_version(self, version_id: str) -> None:
        ...
