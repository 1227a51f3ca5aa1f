"""Reusable fakes and builders for catalog-facing tests."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from modcheck.domain.model import (
    CatalogDependency,
    CatalogEntry,
    CatalogOwner,
    CatalogVersion,
    Package,
    ScanRecord,
    UpdatesReport,
)
from modcheck.domain.results import NotFound

if TYPE_CHECKING:
    from collections.abc import Sequence

    from modcheck.domain.ports import (
        DependenciesLookup,
        GuidLookup,
        SearchLookup,
        UpdatesLookup,
    )


def make_record(
    name: str,
    *,
    guid: str = "",
    author: str = "Author",
    version: str = "1.0.0",
    server: bool = True,
    path: str | None = None,
    alternate_guids: tuple[str, ...] = (),
) -> ScanRecord:
    side = "server" if server else "client"
    return ScanRecord(
        guid=guid,
        file_path=path or f"/install/{side}/{name}.dll",
        is_server_component=server,
        local_name=name,
        local_author=author,
        local_version=version,
        alternate_guids=alternate_guids,
    )


def make_package(
    name: str,
    *,
    guid: str = "",
    author: str = "Author",
    version: str = "1.0.0",
    server: bool = True,
    scan_index: int = 0,
    alternate_guids: tuple[str, ...] = (),
) -> Package:
    record = make_record(
        name,
        guid=guid,
        author=author,
        version=version,
        server=server,
        alternate_guids=alternate_guids,
    )
    return Package.from_record(record, scan_index=scan_index)


def make_entry(
    catalog_id: int,
    name: str,
    *,
    slug: str = "",
    owner: str | None = None,
    versions: Sequence[CatalogVersion] = (),
) -> CatalogEntry:
    return CatalogEntry(
        id=catalog_id,
        name=name,
        slug=slug,
        owner=CatalogOwner(name=owner) if owner else None,
        detail_url=f"https://forge.test/mod/{catalog_id}",
        versions=tuple(versions),
    )


def make_dependency(
    catalog_id: int,
    guid: str,
    *,
    name: str | None = None,
    slug: str | None = None,
    version: str | None = "1.0.0",
    conflict: bool = False,
    children: Sequence[CatalogDependency] = (),
) -> CatalogDependency:
    return CatalogDependency(
        id=catalog_id,
        guid=guid,
        name=name or guid,
        slug=slug if slug is not None else guid.replace(".", "-"),
        latest_version=version,
        conflict=conflict,
        dependencies=tuple(children),
    )


def matched(package: Package, entry: CatalogEntry) -> Package:
    """Attach ``entry`` to ``package`` as a verified exact-GUID match."""

    from modcheck.domain.model import MatchMethod, PackageStatus

    package.apply_catalog_match(
        entry,
        confidence=100,
        method=MatchMethod.EXACT_GUID,
        status=PackageStatus.VERIFIED,
    )
    return package


@dataclass
class FakeCatalog:
    """In-memory catalog port; unknown lookups answer ``NotFound`` or no results."""

    by_guid: dict[str, GuidLookup] = field(default_factory=dict[str, "GuidLookup"])
    search_results: dict[str, SearchLookup] = field(default_factory=dict[str, "SearchLookup"])
    updates: UpdatesLookup = field(default_factory=UpdatesReport)
    dependencies: dict[str, DependenciesLookup] = field(
        default_factory=dict[str, "DependenciesLookup"]
    )
    guid_calls: list[str] = field(default_factory=list[str])
    search_calls: list[str] = field(default_factory=list[str])
    update_calls: list[list[tuple[int, str]]] = field(default_factory=list[list[tuple[int, str]]])
    dependency_calls: list[list[tuple[str, str]]] = field(
        default_factory=list[list[tuple[str, str]]]
    )

    async def get_by_guid(self, guid: str, platform_version: str) -> GuidLookup:
        del platform_version
        self.guid_calls.append(guid)
        return self.by_guid.get(guid, NotFound())

    async def search(self, query: str, platform_version: str) -> SearchLookup:
        del platform_version
        self.search_calls.append(query)
        return self.search_results.get(query, [])

    async def get_updates(
        self,
        items: Sequence[tuple[int, str]],
        platform_version: str,
    ) -> UpdatesLookup:
        del platform_version
        self.update_calls.append(list(items))
        return self.updates

    async def get_dependencies(self, items: Sequence[tuple[str, str]]) -> DependenciesLookup:
        self.dependency_calls.append(list(items))
        identifier = items[0][0]
        return self.dependencies.get(identifier, NotFound())


@dataclass
class FakeClock:
    """Monotonic clock whose ``sleep`` advances time instantly and records the delay."""

    now: float = 0.0
    sleeps: list[float] = field(default_factory=list[float])

    def __call__(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds
