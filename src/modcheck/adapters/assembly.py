"""Read mod identity out of .NET assemblies without loading or running them.

Client plugins declare themselves with ``[BepInPlugin(guid, name, version)]``;
the attribute's constructor arguments are decoded from its metadata blob. Server
mods ship a subclass of ``AbstractModMetadata`` whose properties are string
literals, either returned straight from a getter or stored into the backing
field by the constructor. Both are recovered from metadata tables and method
bodies read through :mod:`dnfile`.
"""

from __future__ import annotations

import struct
from collections.abc import Callable
from dataclasses import dataclass, field
from logging import getLogger
from typing import TYPE_CHECKING, Any, Final

import dnfile
import pefile

from modcheck.domain.model import ScanRecord

from .install import metadata_warnings

if TYPE_CHECKING:
    from pathlib import Path

log = getLogger(__name__)

PLUGIN_ATTRIBUTE_NAMES: Final[frozenset[str]] = frozenset({"BepInPlugin", "BepInPluginAttribute"})
SERVER_METADATA_BASE: Final[str] = "AbstractModMetadata"
UNKNOWN_AUTHOR: Final[str] = "Unknown"
_GUID_PREFIXES: Final[frozenset[str]] = frozenset({"com", "org", "spt", "aki"})

_ATTRIBUTE_PROLOG: Final[bytes] = b"\x01\x00"
_NULL_STRING: Final[int] = 0xFF

_OP_LDSTR: Final[int] = 0x72
_OP_NEWOBJ: Final[int] = 0x73
_OP_STFLD: Final[int] = 0x7D
_OP_RET: Final[int] = 0x2A
_USER_STRING_TABLE: Final[int] = 0x70
_FIELD_TABLE: Final[int] = 0x04
_TOKEN_SIZE: Final[int] = 4


@dataclass(slots=True, frozen=True)
class PluginAttribute:
    guid: str
    name: str
    version: str


@dataclass(slots=True, kw_only=True)
class AssemblyMetadata:
    plugins: list[PluginAttribute] = field(default_factory=list[PluginAttribute])
    server_properties: dict[str, str] = field(default_factory=dict[str, str])
    assembly_version: str | None = None


type AssemblyReader = Callable[[Path], AssemblyMetadata | None]


def _read_compressed_length(blob: bytes, offset: int) -> tuple[int, int]:
    first = blob[offset]
    if first & 0x80 == 0:
        return first, offset + 1
    if first & 0xC0 == 0x80:
        return ((first & 0x3F) << 8) | blob[offset + 1], offset + 2
    value = (
        ((first & 0x1F) << 24)
        | (blob[offset + 1] << 16)
        | (blob[offset + 2] << 8)
        | blob[offset + 3]
    )
    return value, offset + 4


def _read_ser_string(blob: bytes, offset: int) -> tuple[str | None, int]:
    if blob[offset] == _NULL_STRING:
        return None, offset + 1
    length, offset = _read_compressed_length(blob, offset)
    end = offset + length
    if end > len(blob):
        raise ValueError("string argument runs past the end of the blob")
    return blob[offset:end].decode("utf-8"), end


def parse_plugin_attribute(blob: bytes) -> PluginAttribute | None:
    """Decode the ``(guid, name, version)`` arguments of a ``BepInPlugin`` blob.

    Returns ``None`` for malformed blobs and when any argument is blank.
    """

    if not blob.startswith(_ATTRIBUTE_PROLOG):
        return None
    offset = len(_ATTRIBUTE_PROLOG)
    values: list[str] = []
    try:
        for _ in range(3):
            value, offset = _read_ser_string(blob, offset)
            values.append(value or "")
    except (IndexError, ValueError):
        return None
    guid, name, version = values
    if not guid.strip() or not name.strip() or not version.strip():
        return None
    return PluginAttribute(guid=guid, name=name, version=version)


def _token_at(code: bytes, offset: int) -> int | None:
    end = offset + _TOKEN_SIZE
    if end > len(code):
        return None
    return int.from_bytes(code[offset:end], "little")


def _string_load(code: bytes, offset: int) -> tuple[int, int] | None:
    """``(string_token, next_offset)`` for an ``ldstr`` optionally wrapped by ``newobj``."""

    if code[offset] != _OP_LDSTR:
        return None
    token = _token_at(code, offset + 1)
    if token is None or token >> 24 != _USER_STRING_TABLE:
        return None
    offset += 1 + _TOKEN_SIZE
    if offset < len(code) and code[offset] == _OP_NEWOBJ:
        offset += 1 + _TOKEN_SIZE
    return token, offset


def first_returned_string(code: bytes) -> int | None:
    """Token of the literal a getter such as ``=> "1.0.0"`` returns, if that is all it does."""

    if not code:
        return None
    loaded = _string_load(code, 0)
    if loaded is None:
        return None
    token, offset = loaded
    if offset < len(code) and code[offset] == _OP_RET:
        return token
    return None


def string_field_stores(code: bytes) -> list[tuple[int, int]]:
    """``(string_token, field_token)`` for every ``ldstr [newobj] stfld`` sequence."""

    stores: list[tuple[int, int]] = []
    for offset in range(len(code)):
        loaded = _string_load(code, offset)
        if loaded is None:
            continue
        token, after = loaded
        if after >= len(code) or code[after] != _OP_STFLD:
            continue
        field_token = _token_at(code, after + 1)
        if field_token is not None and field_token >> 24 == _FIELD_TABLE:
            stores.append((token, field_token))
    return stores


def backing_field_property(field_name: str) -> str | None:
    """``<Version>k__BackingField`` -> ``Version``."""

    if field_name.startswith("<") and ">" in field_name:
        return field_name[1 : field_name.index(">")]
    return None


def _method_body(pe: dnfile.dnPE, rva: int) -> bytes:
    if not rva:
        return b""
    header = pe.get_data(rva, 12)
    if not header:
        return b""
    if header[0] & 0x3 == 0x2:
        return pe.get_data(rva + 1, header[0] >> 2)
    if header[0] & 0x3 == 0x3 and len(header) >= 12:
        (flags_and_size,) = struct.unpack_from("<H", header, 0)
        (code_size,) = struct.unpack_from("<I", header, 4)
        return pe.get_data(rva + (flags_and_size >> 12) * 4, code_size)
    return b""


def _heap_text(item: object) -> str:
    value = getattr(item, "value", item)
    return value if isinstance(value, str) else ""


def _heap_bytes(item: object) -> bytes:
    value = getattr(item, "value", item)
    return bytes(value) if isinstance(value, bytes | bytearray) else b""


def _rows(tables: dnfile.stream.MetaDataTables, name: str) -> list[Any]:
    table = getattr(tables, name, None)
    return list(table.rows) if table is not None else []


def _type_name(row: object) -> str:
    return _heap_text(getattr(row, "TypeName", None))


def _plugin_attributes(tables: dnfile.stream.MetaDataTables) -> list[PluginAttribute]:
    plugins: list[PluginAttribute] = []
    for row in _rows(tables, "CustomAttribute"):
        constructor = getattr(row.Type, "row", None)
        owner = getattr(getattr(constructor, "Class", None), "row", None)
        if _type_name(owner) not in PLUGIN_ATTRIBUTE_NAMES:
            continue
        plugin = parse_plugin_attribute(_heap_bytes(row.Value))
        if plugin is not None:
            plugins.append(plugin)
    return plugins


def _server_properties(pe: dnfile.dnPE, tables: dnfile.stream.MetaDataTables) -> dict[str, str]:
    user_strings = pe.net.user_strings if pe.net is not None else None
    fields = _rows(tables, "Field")

    def literal(token: int) -> str:
        if user_strings is None:
            return ""
        return _heap_text(user_strings.get(token & 0xFFFFFF))

    def field_name(token: int) -> str:
        index = (token & 0xFFFFFF) - 1
        if 0 <= index < len(fields):
            return _heap_text(fields[index].Name)
        return ""

    properties: dict[str, str] = {}
    for typedef in _rows(tables, "TypeDef"):
        base = getattr(typedef.Extends, "row", None)
        if _type_name(base) != SERVER_METADATA_BASE:
            continue
        for index in typedef.MethodList:
            method = index.row
            if method is None:
                continue
            name = _heap_text(method.Name)
            code = _method_body(pe, method.Rva)
            if name.startswith("get_"):
                token = first_returned_string(code)
                if token is not None:
                    properties.setdefault(name.removeprefix("get_"), literal(token))
            elif name == ".ctor":
                for string_token, field_token in string_field_stores(code):
                    prop = backing_field_property(field_name(field_token))
                    if prop:
                        properties.setdefault(prop, literal(string_token))
        if properties:
            break
    return properties


def _assembly_version(tables: dnfile.stream.MetaDataTables) -> str | None:
    rows = _rows(tables, "Assembly")
    if not rows:
        return None
    row = rows[0]
    return f"{row.MajorVersion}.{row.MinorVersion}.{row.BuildNumber}"


def read_assembly_metadata(path: Path) -> AssemblyMetadata | None:
    """Parse ``path`` as a .NET assembly; ``None`` when it is not one."""

    try:
        pe = dnfile.dnPE(str(path))
    except pefile.PEFormatError as exc:
        log.debug("%s is not a PE file: %s", path.name, exc)
        return None
    try:
        if pe.net is None or pe.net.mdtables is None:
            log.debug("%s has no .NET metadata", path.name)
            return None
        tables = pe.net.mdtables
        return AssemblyMetadata(
            plugins=_plugin_attributes(tables),
            server_properties=_server_properties(pe, tables),
            assembly_version=_assembly_version(tables),
        )
    except pefile.PEFormatError as exc:
        log.warning("Could not read metadata from %s: %s", path.name, exc)
        return None
    finally:
        pe.close()


def parse_author_and_name(plugin_name: str, guid: str) -> tuple[str, str]:
    """Split ``"Author - Mod"`` or ``"Mod by Author"``, else guess the author from the GUID."""

    if " - " in plugin_name:
        author, name = plugin_name.split(" - ", 1)
        return author.strip(), name.strip()

    by_index = plugin_name.casefold().find(" by ")
    if by_index >= 0:
        return plugin_name[by_index + 4 :].strip(), plugin_name[:by_index].strip()

    parts = guid.split(".")
    if len(parts) < 2:
        return UNKNOWN_AUTHOR, plugin_name
    candidate = parts[-2] if len(parts) >= 3 else parts[0]
    if candidate.casefold() in _GUID_PREFIXES:
        return UNKNOWN_AUTHOR, plugin_name
    return candidate, plugin_name


def client_record(metadata: AssemblyMetadata, path: Path) -> ScanRecord | None:
    if not metadata.plugins:
        return None
    plugin = metadata.plugins[0]
    author, name = parse_author_and_name(plugin.name, plugin.guid)
    return ScanRecord(
        guid=plugin.guid,
        file_path=str(path),
        is_server_component=False,
        local_name=name,
        local_author=author,
        local_version=plugin.version,
        load_warnings=tuple(metadata_warnings(name, author, plugin.version, plugin.guid)),
    )


def server_record(metadata: AssemblyMetadata, path: Path) -> ScanRecord | None:
    properties = metadata.server_properties
    guid = properties.get("ModGuid", "")
    name = properties.get("Name", "")
    if not guid and not name:
        return None
    author = properties.get("Author", "")
    version = properties.get("Version") or metadata.assembly_version or ""
    return ScanRecord(
        guid=guid,
        file_path=str(path),
        is_server_component=True,
        local_name=name,
        local_author=author,
        local_version=version,
        load_warnings=tuple(metadata_warnings(name, author, version, guid)),
    )


class AssemblyScanner:
    """Scans ``*.dll`` components; anything else is left to other scanners."""

    def __init__(self, reader: AssemblyReader = read_assembly_metadata) -> None:
        self._reader = reader

    def scan(self, path: Path, *, is_server: bool) -> ScanRecord | None:
        if path.suffix.casefold() != ".dll" or not path.is_file():
            return None
        metadata = self._reader(path)
        if metadata is None:
            return None
        if is_server:
            return server_record(metadata, path)
        return client_record(metadata, path)
