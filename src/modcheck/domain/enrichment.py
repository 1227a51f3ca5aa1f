"""Annotate matched packages with latest-version and update-status data."""

from __future__ import annotations

from collections import defaultdict
from logging import getLogger
from typing import TYPE_CHECKING

from .model import UpdatesReport, UpdateStatus
from .versioning import parse_version, version_sort_key

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable, Sequence

    from .model import Package
    from .ports import CatalogPort

log = getLogger(__name__)


def _group_by_catalog_id(packages: Iterable[Package]) -> dict[int, list[Package]]:
    grouped: defaultdict[int, list[Package]] = defaultdict(list)
    for package in packages:
        if package.is_matched and package.catalog_id is not None:
            grouped[package.catalog_id].append(package)
    return dict(grouped)


def apply_updates(packages: Sequence[Package], report: UpdatesReport) -> int:
    """Apply a batch update report; every package sharing a catalog id is updated.

    Matched packages the report leaves out are marked as having no catalog
    versions, or as newer than the newest catalog release. Returns the number of
    packages touched.
    """

    grouped = _group_by_catalog_id(packages)
    touched = 0

    def each[T](updates: Iterable[T], catalog_id: Callable[[T], int], apply: Callable[[Package, T], None]) -> None:
        nonlocal touched
        for update in updates:
            for package in grouped.get(catalog_id(update), ()):
                apply(package, update)
                touched += 1

    each(report.safe_to_update, lambda u: u.catalog_id, lambda p, u: p.apply_safe_update(u))
    each(report.blocked, lambda u: u.catalog_id, lambda p, u: p.apply_blocked_update(u))
    each(report.up_to_date, lambda u: u.catalog_id, lambda p, u: p.apply_up_to_date(u))
    each(report.incompatible, lambda u: u.catalog_id, lambda p, u: p.apply_incompatible_update(u))
    for group in grouped.values():
        for package in group:
            if package.update_status is UpdateStatus.UNKNOWN and _classify_unreported(package):
                touched += 1
    return touched


def _classify_unreported(package: Package) -> bool:
    """Derive a status for a matched package the update report did not mention."""

    if not package.versions:
        package.mark_no_versions_found()
        return True
    newest = max(package.versions, key=lambda version: version_sort_key(version.version))
    installed = parse_version(package.local_version)
    latest = parse_version(newest.version)
    if installed is not None and latest is not None and installed > latest:
        package.mark_newer_installed(newest.version)
        return True
    return False


async def enrich_with_updates(
    packages: Sequence[Package],
    catalog: CatalogPort,
    platform_version: str,
) -> int:
    """Make one batch update call for all matched packages and apply the result."""

    grouped = _group_by_catalog_id(packages)
    if not grouped:
        log.debug("No matched mods to enrich")
        return 0

    items = [(catalog_id, group[0].local_version) for catalog_id, group in grouped.items()]
    log.debug("Enriching %s unique mods", len(items))
    result = await catalog.get_updates(items, platform_version)
    if not isinstance(result, UpdatesReport):
        log.warning("Update lookup failed, skipping enrichment: %s", result)
        return 0
    return apply_updates(packages, result)
