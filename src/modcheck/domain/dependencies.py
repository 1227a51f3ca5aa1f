"""Build per-package dependency trees from the catalog's declared edges.

One dependency query is made per distinct catalog id. Trees are built depth
first with a ``visited`` set per root, seeded with the root's GUID; an edge to
a GUID already visited under that root is pruned, which bounds recursion on
cyclic declarations.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Collection, Sequence
from dataclasses import dataclass, field
from logging import getLogger
from typing import TYPE_CHECKING, Final

from .model import CatalogDependency, Package

if TYPE_CHECKING:
    from .ports import CatalogPort

log = getLogger(__name__)

FORGE_DOWNLOAD_URL: Final[str] = "https://forge.sp-tarkov.com/mod/download"
CONFLICT_DESCRIPTION: Final[str] = "Version constraint conflict detected"
UNKNOWN_VERSION: Final[str] = "unknown"

type FetchProgressCallback = Callable[[int, int], None]


@dataclass(slots=True, frozen=True)
class DependencyNode:
    package: Package
    dependency: CatalogDependency | None = None
    is_installed: bool = True
    children: tuple[DependencyNode, ...] = ()


@dataclass(slots=True, frozen=True)
class DependencyConflict:
    name: str
    guid: str
    description: str
    dependency: CatalogDependency


@dataclass(slots=True, kw_only=True)
class MissingDependency:
    name: str
    guid: str
    catalog_id: int
    slug: str
    recommended_version: str
    download_link: str | None = None
    required_by: list[str] = field(default_factory=list[str])


@dataclass(slots=True, kw_only=True)
class DependencyAnalysisResult:
    roots: list[DependencyNode] = field(default_factory=list[DependencyNode])
    conflicts: list[DependencyConflict] = field(default_factory=list[DependencyConflict])
    missing: list[MissingDependency] = field(default_factory=list[MissingDependency])

    @property
    def has_issues(self) -> bool:
        return bool(self.conflicts or self.missing)


def download_url(catalog_id: int, slug: str | None, version: str | None) -> str | None:
    """Deterministic catalog download link, or ``None`` when any part is absent."""

    if catalog_id <= 0 or not slug or not slug.strip() or not version or not version.strip():
        return None
    return f"{FORGE_DOWNLOAD_URL}/{catalog_id}/{slug}/{version}"


@dataclass(slots=True)
class _TreeBuilder:
    """Shared lookups and de-duplicated issue collectors for one analysis run."""

    by_guid: dict[str, Package]
    by_id: dict[int, Package]
    installed_guids: set[str]
    missing: dict[str, MissingDependency] = field(default_factory=dict[str, MissingDependency])
    conflicts: dict[str, DependencyConflict] = field(
        default_factory=dict[str, DependencyConflict]
    )

    def build(
        self,
        dependency: CatalogDependency,
        visited: set[str],
        root: Package,
    ) -> DependencyNode | None:
        key = dependency.guid.casefold()
        if key in visited:
            return None
        visited.add(key)

        if dependency.conflict and key not in self.conflicts:
            self.conflicts[key] = DependencyConflict(
                name=dependency.name,
                guid=dependency.guid,
                description=CONFLICT_DESCRIPTION,
                dependency=dependency,
            )

        installed = self.by_guid.get(key) or self.by_id.get(dependency.id)
        is_installed = installed is not None or key in self.installed_guids

        if not is_installed:
            self._record_missing(dependency, root)

        children = tuple(
            node
            for nested in dependency.dependencies
            if (node := self.build(nested, visited, root)) is not None
        )
        return DependencyNode(
            package=installed or _placeholder(dependency),
            dependency=dependency,
            is_installed=is_installed,
            children=children,
        )

    def _record_missing(self, dependency: CatalogDependency, root: Package) -> None:
        key = dependency.guid.casefold()
        entry = self.missing.get(key)
        if entry is None:
            entry = MissingDependency(
                name=dependency.name,
                guid=dependency.guid,
                catalog_id=dependency.id,
                slug=dependency.slug,
                recommended_version=dependency.latest_version or UNKNOWN_VERSION,
                download_link=download_url(dependency.id, dependency.slug, dependency.latest_version),
            )
            self.missing[key] = entry
        if root.display_name not in entry.required_by:
            entry.required_by.append(root.display_name)


def _placeholder(dependency: CatalogDependency) -> Package:
    return Package(
        guid=dependency.guid,
        file_path="",
        is_server_component=True,
        local_name=dependency.name,
        local_author="",
        local_version=dependency.latest_version or UNKNOWN_VERSION,
    )


async def fetch_dependency_edges(
    packages: Sequence[Package],
    catalog: CatalogPort,
    *,
    progress: FetchProgressCallback | None = None,
) -> dict[int, list[CatalogDependency]]:
    """Fetch declared edges once per distinct catalog id; failures yield no edges."""

    first_by_id: dict[int, Package] = {}
    for package in packages:
        if package.is_matched and package.catalog_id is not None:
            first_by_id.setdefault(package.catalog_id, package)

    total = len(first_by_id)
    fetched = 0

    async def fetch(catalog_id: int, package: Package) -> tuple[int, list[CatalogDependency]]:
        nonlocal fetched
        result = await catalog.get_dependencies([(str(catalog_id), package.local_version)])
        edges = result if isinstance(result, list) else []
        if not isinstance(result, list):
            log.debug("No dependency data for %s: %s", package.display_name, result)
        fetched += 1
        if progress is not None:
            progress(fetched, total)
        return catalog_id, edges

    pairs = await asyncio.gather(
        *(fetch(catalog_id, package) for catalog_id, package in first_by_id.items())
    )
    return dict(pairs)


async def analyze_dependencies(
    packages: Sequence[Package],
    catalog: CatalogPort,
    installed_guids: Collection[str],
    *,
    progress: FetchProgressCallback | None = None,
) -> DependencyAnalysisResult:
    result = DependencyAnalysisResult()
    matched = [package for package in packages if package.is_matched]
    if not matched:
        log.debug("No matched mods to analyze for dependencies")
        result.roots.extend(DependencyNode(package=package) for package in packages)
        return result

    log.debug("Analyzing dependencies for %s matched mods", len(matched))
    edges_by_id = await fetch_dependency_edges(matched, catalog, progress=progress)

    by_guid: dict[str, Package] = {}
    for package in packages:
        if package.guid.strip():
            by_guid.setdefault(package.guid.casefold(), package)
    by_id: dict[int, Package] = {}
    for package in matched:
        if package.catalog_id is not None:
            by_id.setdefault(package.catalog_id, package)

    builder = _TreeBuilder(
        by_guid=by_guid,
        by_id=by_id,
        installed_guids={guid.casefold() for guid in installed_guids},
    )

    for package in packages:
        edges = edges_by_id.get(package.catalog_id, []) if package.catalog_id is not None else []
        visited = {package.guid.casefold()}
        children = tuple(
            node for edge in edges if (node := builder.build(edge, visited, package)) is not None
        )
        result.roots.append(DependencyNode(package=package, children=children))

    result.conflicts.extend(builder.conflicts.values())
    result.missing.extend(builder.missing.values())
    log.debug(
        "Dependency analysis complete: conflicts=%s, missing=%s",
        len(result.conflicts),
        len(result.missing),
    )
    return result
