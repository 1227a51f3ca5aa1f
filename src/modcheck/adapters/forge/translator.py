"""Translate Forge payloads into catalog domain values."""

from __future__ import annotations

from typing import TYPE_CHECKING

from modcheck.domain.model import (
    BlockedUpdate,
    BlockingMod,
    CatalogDependency,
    CatalogEntry,
    CatalogOwner,
    CatalogVersion,
    IncompatibleUpdate,
    PlatformVersion,
    SafeUpdate,
    UpdatesReport,
    UpToDate,
)

if TYPE_CHECKING:
    from .schema import (
        ForgeDependency,
        ForgeMod,
        ForgeModVersion,
        ForgeSptVersion,
        ForgeUpdatesData,
    )


def to_catalog_version(payload: ForgeModVersion) -> CatalogVersion:
    return CatalogVersion(
        version=payload.version,
        id=payload.id,
        link=payload.link,
        spt_version_constraint=payload.spt_version_constraint,
        downloads=payload.downloads,
        published_at=payload.published_at,
    )


def to_catalog_entry(payload: ForgeMod) -> CatalogEntry:
    owner = (
        CatalogOwner(
            name=payload.owner.name,
            id=payload.owner.id,
            profile_photo_url=payload.owner.profile_photo_url,
        )
        if payload.owner is not None
        else None
    )
    return CatalogEntry(
        id=payload.id,
        name=payload.name,
        slug=payload.slug,
        owner=owner,
        detail_url=payload.detail_url,
        source_code_url=payload.source_code_url,
        teaser=payload.teaser,
        thumbnail=payload.thumbnail,
        downloads=payload.downloads,
        versions=tuple(to_catalog_version(version) for version in payload.versions or ()),
    )


def to_platform_version(payload: ForgeSptVersion) -> PlatformVersion:
    return PlatformVersion(
        version=payload.version,
        id=payload.id,
        link=payload.link,
        mod_count=payload.mod_count,
    )


def to_updates_report(payload: ForgeUpdatesData) -> UpdatesReport:
    return UpdatesReport(
        safe_to_update=tuple(
            SafeUpdate(
                catalog_id=item.mod_id,
                recommended_version=item.recommended_version.version
                if item.recommended_version
                else None,
                download_link=item.recommended_version.link if item.recommended_version else None,
            )
            for item in payload.safe_to_update
        ),
        blocked=tuple(
            BlockedUpdate(
                catalog_id=item.mod_id,
                latest_version=item.latest_version.version if item.latest_version else None,
                blocking_mods=tuple(
                    BlockingMod(name=mod.name, catalog_id=mod.mod_id, constraint=mod.constraint)
                    for mod in item.blocking_mods
                ),
            )
            for item in payload.blocked
        ),
        up_to_date=tuple(
            UpToDate(catalog_id=item.mod_id, version=item.version) for item in payload.up_to_date
        ),
        incompatible=tuple(
            IncompatibleUpdate(catalog_id=item.mod_id, reason=item.reason)
            for item in payload.incompatible
        ),
    )


def to_catalog_dependency(payload: ForgeDependency) -> CatalogDependency:
    latest = payload.latest_compatible_version
    return CatalogDependency(
        id=payload.id,
        guid=payload.guid,
        name=payload.name,
        slug=payload.slug,
        latest_version=latest.version if latest else None,
        latest_version_link=latest.link if latest else None,
        conflict=payload.conflict,
        dependencies=tuple(to_catalog_dependency(nested) for nested in payload.dependencies),
    )
