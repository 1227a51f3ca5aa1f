"""Ports the domain services depend on."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from collections.abc import Sequence
    from pathlib import Path

    from .model import CatalogDependency, CatalogEntry, ScanRecord, UpdatesReport
    from .results import ApiError, NoCompatibleVersion, NotFound


type GuidLookup = CatalogEntry | NotFound | NoCompatibleVersion | ApiError
type SearchLookup = list[CatalogEntry] | ApiError
type UpdatesLookup = UpdatesReport | NotFound | ApiError
type DependenciesLookup = list[CatalogDependency] | NotFound | ApiError


class CatalogPort(Protocol):
    """Read-only view of the remote catalog used by matching, enrichment and dependencies."""

    async def get_by_guid(self, guid: str, platform_version: str) -> GuidLookup: ...

    async def search(self, query: str, platform_version: str) -> SearchLookup: ...

    async def get_updates(
        self,
        items: Sequence[tuple[int, str]],
        platform_version: str,
    ) -> UpdatesLookup: ...

    async def get_dependencies(self, items: Sequence[tuple[str, str]]) -> DependenciesLookup: ...


class ComponentScanner(Protocol):
    """Extract identity metadata from one on-disk component without executing it."""

    def scan(self, path: Path, *, is_server: bool) -> ScanRecord | None: ...
