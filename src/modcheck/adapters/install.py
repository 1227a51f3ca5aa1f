"""Locate mod components inside an SPT installation.

Server mods live one per directory under ``SPT/user/mods`` (or the legacy
``user/mods``). Client plugins are the ``*.dll`` files under
``BepInEx/plugins``, excluding the platform's own ``spt`` folder. Loose
plugin files are scanned one by one; every plugin subdirectory is collapsed
into a single record whose other plugin GUIDs become alternates.

Reading identity metadata out of a file is delegated to a
:class:`~modcheck.domain.ports.ComponentScanner`.
"""

from __future__ import annotations

import json
from collections import defaultdict
from dataclasses import dataclass, field, replace
from logging import getLogger
from pathlib import Path
from typing import TYPE_CHECKING, Final

from modcheck.domain.model import IdentityKey, ScanRecord
from modcheck.domain.versioning import parse_version

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

    from modcheck.domain.ports import ComponentScanner

log = getLogger(__name__)

CORE_CONFIG_PATH: Final[tuple[str, ...]] = ("SPT_Data", "Server", "configs", "core.json")
SERVER_MOD_DIRS: Final[tuple[tuple[str, ...], ...]] = (("SPT", "user", "mods"), ("user", "mods"))
CLIENT_PLUGIN_DIR: Final[tuple[str, ...]] = ("BepInEx", "plugins")
PLATFORM_PLUGIN_FOLDER: Final[str] = "spt"
MANIFEST_FILENAME: Final[str] = "package.json"
MAX_PLUGIN_SIZE_BYTES: Final[int] = 100 * 1024 * 1024

_PLUGIN_NAME_SUFFIXES: Final[tuple[str, ...]] = ("Client", "Plugin", "Mod", "BepInEx")


@dataclass(slots=True, kw_only=True)
class DiscoveredComponents:
    server: list[ScanRecord] = field(default_factory=list[ScanRecord])
    client: list[ScanRecord] = field(default_factory=list[ScanRecord])


def read_platform_version(root: Path) -> str | None:
    """Return ``sptVersion`` from the server core config, or ``None`` if unreadable."""

    path = root.joinpath(*CORE_CONFIG_PATH)
    if not path.is_file():
        log.debug("Core config not found: %s", path)
        return None
    try:
        payload = json.loads(path.read_text(encoding="utf-8-sig"))
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as exc:
        log.warning("Could not read %s: %s", path, exc)
        return None
    if not isinstance(payload, dict):
        return None
    version = payload.get("sptVersion")
    if not isinstance(version, str):
        return None
    return version.strip() or None


def metadata_warnings(
    name: str,
    author: str,
    version: str,
    guid: str | None,
) -> list[str]:
    """Human-readable problems with scanned metadata; ``guid=None`` skips the GUID check."""

    warnings: list[str] = []
    if not name.strip():
        warnings.append("Missing mod name")
    if not author.strip():
        warnings.append("Missing author")
    if not version.strip():
        warnings.append("Missing version")
    elif parse_version(version) is None:
        warnings.append(f"Invalid version format: {version}")
    if guid is not None and not guid.strip():
        warnings.append("Missing GUID")
    return warnings


class ManifestScanner:
    """Reads legacy server mods that describe themselves with a ``package.json``."""

    def scan(self, path: Path, *, is_server: bool) -> ScanRecord | None:
        manifest = path / MANIFEST_FILENAME if path.is_dir() else path
        if not is_server or manifest.name != MANIFEST_FILENAME or not manifest.is_file():
            return None
        try:
            payload = json.loads(manifest.read_text(encoding="utf-8-sig"))
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as exc:
            log.warning("Could not read manifest %s: %s", manifest, exc)
            return None
        if not isinstance(payload, dict):
            return None

        name = _string(payload.get("name"))
        author = _string(payload.get("author"))
        version = _string(payload.get("version"))
        if not name:
            return None
        return ScanRecord(
            guid="",
            file_path=str(manifest),
            is_server_component=True,
            local_name=name,
            local_author=author,
            local_version=version,
            load_warnings=tuple(metadata_warnings(name, author, version, None)),
        )


class ChainedScanner:
    """Asks each scanner in turn; the first record wins."""

    def __init__(self, *scanners: ComponentScanner) -> None:
        self._scanners = scanners

    def scan(self, path: Path, *, is_server: bool) -> ScanRecord | None:
        for scanner in self._scanners:
            record = scanner.scan(path, is_server=is_server)
            if record is not None:
                return record
        return None


def _string(value: object) -> str:
    return value.strip() if isinstance(value, str) else ""


def _safe_scan(scanner: ComponentScanner, path: Path, *, is_server: bool) -> ScanRecord | None:
    try:
        return scanner.scan(path, is_server=is_server)
    except (OSError, ValueError) as exc:
        log.warning("Could not read %s: %s", path.name, exc)
        return None


def discover_server_components(root: Path, scanner: ComponentScanner) -> list[ScanRecord]:
    records: list[ScanRecord] = []
    for parts in SERVER_MOD_DIRS:
        mods_dir = root.joinpath(*parts)
        if not mods_dir.is_dir():
            continue
        for mod_dir in sorted(p for p in mods_dir.iterdir() if p.is_dir()):
            candidates = [mod_dir, *sorted(mod_dir.glob("*.dll"))]
            for candidate in candidates:
                record = _safe_scan(scanner, candidate, is_server=True)
                if record is not None:
                    records.append(record)
                    break
        log.info("Found %s server mods in %s", len(records), mods_dir)
        break
    return records


def _plugin_files(plugins_dir: Path) -> list[Path]:
    files: list[Path] = []
    for path in sorted(plugins_dir.rglob("*.dll")):
        relative = path.relative_to(plugins_dir)
        if len(relative.parts) > 1 and relative.parts[0].casefold() == PLATFORM_PLUGIN_FOLDER:
            continue
        if path.stat().st_size > MAX_PLUGIN_SIZE_BYTES:
            log.debug("Skipping oversized plugin %s", path)
            continue
        files.append(path)
    return files


def _normalize_plugin_name(name: str) -> str:
    dash = name.find("-")
    if 0 < dash < len(name) - 1:
        name = name[dash + 1 :]
    for suffix in _PLUGIN_NAME_SUFFIXES:
        if name.casefold().endswith(suffix.casefold()):
            name = name[: -len(suffix)]
            break
    return name.strip()


def select_primary_plugin(records: Sequence[ScanRecord], directory_name: str) -> ScanRecord:
    """Pick the record that represents a plugin directory.

    Preference: a file named after the directory (shortest name first), then
    a file or plugin mentioning "core", then the simplest GUID.
    """

    normalized_dir = _normalize_plugin_name(directory_name).casefold()

    def stem(record: ScanRecord) -> str:
        return Path(record.file_path).stem

    named_after_dir = [
        record
        for record in records
        if stem(record).casefold() == directory_name.casefold()
        or (normalized_dir and normalized_dir in stem(record).casefold())
        or _normalize_plugin_name(stem(record)).casefold() == normalized_dir
    ]
    if named_after_dir:
        return min(named_after_dir, key=lambda record: len(stem(record)))

    for record in records:
        if "core" in stem(record).casefold() or "core" in record.local_name.casefold():
            return record

    return min(
        records,
        key=lambda record: (
            len(record.guid.split(".")),
            len(record.guid),
            record.local_name.casefold(),
        ),
    )


def _consolidate(directory: Path, records: Sequence[ScanRecord]) -> ScanRecord:
    primary = select_primary_plugin(records, directory.name)
    alternates: list[str] = list(primary.alternate_guids)
    seen = {guid.casefold() for guid in (primary.guid, *alternates)}
    for record in records:
        if record.guid and record.guid.casefold() not in seen:
            seen.add(record.guid.casefold())
            alternates.append(record.guid)
    return replace(primary, alternate_guids=tuple(alternates))


def _dedupe_by_identity(records: Iterable[ScanRecord]) -> list[ScanRecord]:
    seen: set[IdentityKey] = set()
    unique: list[ScanRecord] = []
    for record in records:
        key = record.identity_key
        if key not in seen:
            seen.add(key)
            unique.append(record)
    return unique


def discover_client_components(root: Path, scanner: ComponentScanner) -> list[ScanRecord]:
    plugins_dir = root.joinpath(*CLIENT_PLUGIN_DIR)
    if not plugins_dir.is_dir():
        log.warning("BepInEx plugins directory not found: %s", plugins_dir)
        return []

    loose: list[ScanRecord] = []
    grouped: defaultdict[Path, list[ScanRecord]] = defaultdict(list)
    for path in _plugin_files(plugins_dir):
        record = _safe_scan(scanner, path, is_server=False)
        if record is None:
            continue
        relative = path.relative_to(plugins_dir)
        if len(relative.parts) == 1:
            loose.append(record)
        else:
            grouped[plugins_dir / relative.parts[0]].append(record)

    records = _dedupe_by_identity(loose)
    records.extend(_consolidate(directory, group) for directory, group in sorted(grouped.items()))
    log.info("Found %s client mods", len(records))
    return records


def discover_components(root: Path, scanner: ComponentScanner) -> DiscoveredComponents:
    return DiscoveredComponents(
        server=discover_server_components(root, scanner),
        client=discover_client_components(root, scanner),
    )
