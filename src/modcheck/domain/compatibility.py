"""Platform-version compatibility checks for installed mods and the platform itself."""

from __future__ import annotations

from logging import getLogger
from typing import TYPE_CHECKING

from .versioning import (
    InvalidConstraintError,
    parse_version,
    safe_satisfies,
    satisfies,
    version_sort_key,
)

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

    from .model import CatalogVersion, Package, PlatformVersion

log = getLogger(__name__)


def highest_compatible_version(
    versions: Iterable[CatalogVersion],
    platform_version: str,
) -> CatalogVersion | None:
    compatible = [
        version
        for version in versions
        if safe_satisfies(version.spt_version_constraint, platform_version)
    ]
    if not compatible:
        return None
    return max(compatible, key=lambda version: version_sort_key(version.version))


def check_platform_compatibility(packages: Sequence[Package], platform_version: str) -> list[Package]:
    """Flag matched packages whose installed release does not support ``platform_version``.

    Only the catalog release equal to the installed version is inspected. A
    malformed constraint becomes a load warning rather than a failure. Returns
    the packages flagged as incompatible.
    """

    flagged: list[Package] = []
    for package in packages:
        if not package.is_matched or not package.versions:
            continue
        installed = next(
            (
                version
                for version in package.versions
                if version.version.casefold() == package.local_version.casefold()
            ),
            None,
        )
        if installed is None or not installed.spt_version_constraint.strip():
            continue

        constraint = installed.spt_version_constraint
        try:
            if satisfies(constraint, platform_version):
                continue
        except InvalidConstraintError:
            log.debug("Invalid constraint %r for %s", constraint, package.display_name)
            package.load_warnings.append(f"Invalid SPT version constraint from Forge: {constraint}")
            continue

        suggestion = highest_compatible_version(package.versions, platform_version)
        package.mark_platform_incompatible(
            f"Version {package.local_version} requires SPT {constraint}",
            compatible_version=suggestion.version if suggestion else None,
            download_link=suggestion.link if suggestion else None,
        )
        flagged.append(package)
    return flagged


def newer_platform_versions(
    available: Iterable[PlatformVersion],
    current: str,
) -> list[PlatformVersion]:
    """Catalog platform versions newer than ``current``, newest first."""

    current_version = parse_version(current)
    if current_version is None:
        return []
    newer = [
        candidate
        for candidate in available
        if (parsed := parse_version(candidate.version)) is not None and parsed > current_version
    ]
    return sorted(newer, key=lambda candidate: version_sort_key(candidate.version), reverse=True)
