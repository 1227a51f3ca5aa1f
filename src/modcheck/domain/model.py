"""Domain model: scanned components, unified packages and catalog projections."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum

from .normalize import normalize_name


class MatchMethod(StrEnum):
    NONE = "none"
    EXACT_GUID = "exact_guid"
    EXACT_NAME = "exact_name"
    FUZZY_NAME = "fuzzy_name"
    MANUAL = "manual"


class PackageStatus(StrEnum):
    UNKNOWN = "unknown"
    VERIFIED = "verified"
    NO_MATCH = "no_match"
    INCOMPATIBLE = "incompatible"
    INVALID_VERSION = "invalid_version"
    NEEDS_CONFIRMATION = "needs_confirmation"


class UpdateStatus(StrEnum):
    UNKNOWN = "unknown"
    UP_TO_DATE = "up_to_date"
    UPDATE_AVAILABLE = "update_available"
    NEWER_INSTALLED = "newer_installed"
    NO_VERSIONS_FOUND = "no_versions_found"
    UPDATE_BLOCKED = "update_blocked"
    INCOMPATIBLE = "incompatible"


type IdentityKey = tuple[str, ...]


def identity_key_for(guid: str, name: str, author: str) -> IdentityKey:
    """Normalized GUID when there is one, else the normalized name and author."""

    if guid.strip():
        return ("guid", guid.strip().lower())
    return ("name", normalize_name(name), normalize_name(author))


@dataclass(slots=True, frozen=True)
class ScanRecord:
    """Identity metadata extracted from one on-disk component."""

    guid: str
    file_path: str
    is_server_component: bool
    local_name: str
    local_author: str
    local_version: str
    alternate_guids: tuple[str, ...] = ()
    load_warnings: tuple[str, ...] = ()

    @property
    def identity_key(self) -> IdentityKey:
        return identity_key_for(self.guid, self.local_name, self.local_author)


@dataclass(slots=True, frozen=True)
class CatalogOwner:
    name: str
    id: int | None = None
    profile_photo_url: str | None = None


@dataclass(slots=True, frozen=True)
class CatalogVersion:
    version: str
    id: int | None = None
    link: str | None = None
    spt_version_constraint: str = ""
    downloads: int = 0
    published_at: str | None = None


@dataclass(slots=True, frozen=True)
class CatalogEntry:
    id: int
    name: str
    slug: str = ""
    owner: CatalogOwner | None = None
    detail_url: str | None = None
    source_code_url: str | None = None
    teaser: str | None = None
    thumbnail: str | None = None
    downloads: int = 0
    versions: tuple[CatalogVersion, ...] = ()


@dataclass(slots=True, frozen=True)
class CatalogDependency:
    """One declared dependency edge, with the dependency's own edges nested."""

    id: int
    guid: str
    name: str
    slug: str = ""
    latest_version: str | None = None
    latest_version_link: str | None = None
    conflict: bool = False
    dependencies: tuple[CatalogDependency, ...] = ()


@dataclass(slots=True, frozen=True)
class PlatformVersion:
    version: str
    id: int | None = None
    link: str | None = None
    mod_count: int = 0


@dataclass(slots=True, frozen=True)
class BlockingMod:
    name: str
    catalog_id: int | None = None
    constraint: str | None = None


@dataclass(slots=True, frozen=True)
class SafeUpdate:
    catalog_id: int
    recommended_version: str | None = None
    download_link: str | None = None


@dataclass(slots=True, frozen=True)
class BlockedUpdate:
    catalog_id: int
    latest_version: str | None = None
    blocking_mods: tuple[BlockingMod, ...] = ()


@dataclass(slots=True, frozen=True)
class UpToDate:
    catalog_id: int
    version: str | None = None


@dataclass(slots=True, frozen=True)
class IncompatibleUpdate:
    catalog_id: int
    reason: str | None = None


@dataclass(slots=True, frozen=True)
class UpdatesReport:
    """Batch update lookup, split into the catalog's four categories."""

    safe_to_update: tuple[SafeUpdate, ...] = ()
    blocked: tuple[BlockedUpdate, ...] = ()
    up_to_date: tuple[UpToDate, ...] = ()
    incompatible: tuple[IncompatibleUpdate, ...] = ()


@dataclass(slots=True, kw_only=True)
class Package:
    """One logical mod, built from one or two scan records and annotated in place."""

    guid: str
    file_path: str
    is_server_component: bool
    local_name: str
    local_author: str
    local_version: str
    alternate_guids: list[str] = field(default_factory=list[str])
    load_warnings: list[str] = field(default_factory=list[str])
    paired_component_path: str | None = None
    scan_index: int = 0

    catalog_id: int | None = None
    catalog_name: str | None = None
    catalog_author: str | None = None
    slug: str | None = None
    url: str | None = None
    source_url: str | None = None
    versions: tuple[CatalogVersion, ...] = ()

    match_confidence: int = 0
    match_method: MatchMethod = MatchMethod.NONE
    status: PackageStatus = PackageStatus.UNKNOWN
    is_confirmed: bool = False

    update_status: UpdateStatus = UpdateStatus.UNKNOWN
    latest_version: str | None = None
    download_link: str | None = None
    blocking_mods: tuple[BlockingMod, ...] = ()
    incompatibility_reason: str | None = None
    is_platform_incompatible: bool = False
    compatible_version: str | None = None
    compatible_version_link: str | None = None

    @classmethod
    def from_record(cls, record: ScanRecord, *, scan_index: int = 0) -> Package:
        return cls(
            guid=record.guid,
            file_path=record.file_path,
            is_server_component=record.is_server_component,
            local_name=record.local_name,
            local_author=record.local_author,
            local_version=record.local_version,
            alternate_guids=list(record.alternate_guids),
            load_warnings=list(record.load_warnings),
            scan_index=scan_index,
        )

    @property
    def identity_key(self) -> IdentityKey:
        return identity_key_for(self.guid, self.local_name, self.local_author)

    @property
    def display_name(self) -> str:
        return self.catalog_name or self.local_name

    @property
    def display_author(self) -> str:
        return self.catalog_author or self.local_author

    @property
    def is_matched(self) -> bool:
        return self.status is PackageStatus.VERIFIED and self.catalog_id is not None

    def apply_catalog_match(
        self,
        entry: CatalogEntry,
        *,
        confidence: int,
        method: MatchMethod,
        status: PackageStatus,
    ) -> None:
        self.catalog_id = entry.id
        self.catalog_name = entry.name
        self.catalog_author = entry.owner.name if entry.owner else None
        self.slug = entry.slug or None
        self.url = entry.detail_url
        self.source_url = entry.source_code_url
        self.versions = entry.versions

        self.match_confidence = max(0, min(100, confidence))
        self.match_method = method
        self.status = status
        self.is_confirmed = self.match_confidence >= 100

    def confirm_match(self) -> None:
        self.status = PackageStatus.VERIFIED
        self.match_method = MatchMethod.MANUAL
        self.is_confirmed = True

    def clear_catalog_match(self) -> None:
        self.catalog_id = None
        self.catalog_name = None
        self.catalog_author = None
        self.slug = None
        self.url = None
        self.source_url = None
        self.versions = ()

        self.match_confidence = 0
        self.match_method = MatchMethod.NONE
        self.status = PackageStatus.NO_MATCH
        self.is_confirmed = False

        self.update_status = UpdateStatus.UNKNOWN
        self.latest_version = None
        self.download_link = None
        self.blocking_mods = ()
        self.incompatibility_reason = None
        self.is_platform_incompatible = False
        self.compatible_version = None
        self.compatible_version_link = None

    def apply_safe_update(self, update: SafeUpdate) -> None:
        self.latest_version = update.recommended_version
        self.download_link = update.download_link
        self.update_status = UpdateStatus.UPDATE_AVAILABLE

    def apply_blocked_update(self, update: BlockedUpdate) -> None:
        self.latest_version = update.latest_version
        self.blocking_mods = update.blocking_mods
        self.update_status = UpdateStatus.UPDATE_BLOCKED

    def apply_up_to_date(self, update: UpToDate) -> None:
        self.latest_version = update.version
        self.update_status = UpdateStatus.UP_TO_DATE

    def apply_incompatible_update(self, update: IncompatibleUpdate) -> None:
        self.incompatibility_reason = update.reason
        self.update_status = UpdateStatus.INCOMPATIBLE

    def mark_newer_installed(self, latest_version: str) -> None:
        self.latest_version = latest_version
        self.update_status = UpdateStatus.NEWER_INSTALLED

    def mark_no_versions_found(self) -> None:
        self.update_status = UpdateStatus.NO_VERSIONS_FOUND

    def mark_platform_incompatible(
        self,
        reason: str,
        *,
        compatible_version: str | None = None,
        download_link: str | None = None,
    ) -> None:
        self.is_platform_incompatible = True
        self.incompatibility_reason = reason
        self.compatible_version = compatible_version
        self.compatible_version_link = download_link


@dataclass(slots=True, kw_only=True)
class ReconciliationPair:
    """Diagnostic record of one merged server/client pair."""

    server_record: ScanRecord
    client_record: ScanRecord
    selected_package: Package
    notes: list[str] = field(default_factory=list[str])
