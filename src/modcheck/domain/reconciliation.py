"""Merge server-side and client-side scan records into unified packages.

Pairing is greedy and order-dependent: each client record takes the first
unconsumed server record that satisfies :func:`records_match`. This is not a
globally optimal assignment.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from logging import getLogger
from typing import TYPE_CHECKING

from .model import Package, ReconciliationPair
from .normalize import is_exact_match, name_from_guid
from .versioning import parse_version

if TYPE_CHECKING:
    from collections.abc import Sequence

    from .model import ScanRecord

log = getLogger(__name__)


@dataclass(slots=True, kw_only=True)
class ReconciliationResult:
    packages: list[Package] = field(default_factory=list[Package])
    pairs: list[ReconciliationPair] = field(default_factory=list[ReconciliationPair])
    unmatched_server: list[ScanRecord] = field(default_factory=list["ScanRecord"])
    unmatched_client: list[ScanRecord] = field(default_factory=list["ScanRecord"])


def records_match(server: ScanRecord, client: ScanRecord) -> bool:
    if (
        server.guid.strip()
        and client.guid.strip()
        and server.guid.casefold() == client.guid.casefold()
    ):
        return True

    if is_exact_match(server.local_name, client.local_name, strip_suffix=True):
        return True

    server_guid_name = name_from_guid(server.guid)
    client_guid_name = name_from_guid(client.guid)
    if not server_guid_name or not client_guid_name:
        return False

    return (
        is_exact_match(server_guid_name, client_guid_name, strip_suffix=True)
        or is_exact_match(server_guid_name, client.local_name, strip_suffix=True)
        or is_exact_match(server.local_name, client_guid_name, strip_suffix=True)
    )


def select_preferred(server: ScanRecord, client: ScanRecord) -> tuple[ScanRecord, list[str]]:
    """Pick the record that represents the pair and collect diagnostic notes.

    The higher parseable version wins; ties and unparsable versions fall back
    to the server record, which carries the platform-version metadata.
    """

    notes: list[str] = []
    if server.guid.casefold() != client.guid.casefold():
        notes.append(f"GUID mismatch: server '{server.guid}' vs client '{client.guid}'")

    server_version = parse_version(server.local_version)
    client_version = parse_version(client.local_version)

    if server_version is None:
        notes.append(f"Server mod has invalid version: '{server.local_version}'")
    if client_version is None:
        notes.append(f"Client mod has invalid version: '{client.local_version}'")

    if server_version is not None and client_version is not None:
        if server_version != client_version:
            notes.append(
                f"Version mismatch: server '{server.local_version}' "
                f"vs client '{client.local_version}'"
            )
        if client_version > server_version:
            return client, notes
        return server, notes

    if client_version is not None:
        return client, notes
    return server, notes


def reconcile(
    server_records: Sequence[ScanRecord],
    client_records: Sequence[ScanRecord],
) -> ReconciliationResult:
    log.debug(
        "Reconciling %s server records with %s client records",
        len(server_records),
        len(client_records),
    )
    consumed_server: set[int] = set()
    consumed_client: set[int] = set()
    selections: list[tuple[ScanRecord, ScanRecord, ScanRecord, list[str]]] = []

    for client_index, client in enumerate(client_records):
        for server_index, server in enumerate(server_records):
            if server_index in consumed_server or not records_match(server, client):
                continue
            selected, notes = select_preferred(server, client)
            selections.append((server, client, selected, notes))
            consumed_server.add(server_index)
            consumed_client.add(client_index)
            break

    result = ReconciliationResult(
        unmatched_server=[
            record for index, record in enumerate(server_records) if index not in consumed_server
        ],
        unmatched_client=[
            record for index, record in enumerate(client_records) if index not in consumed_client
        ],
    )

    for server, client, selected, notes in selections:
        package = Package.from_record(selected, scan_index=len(result.packages))
        other = client if selected is server else server
        package.paired_component_path = other.file_path
        result.packages.append(package)
        result.pairs.append(
            ReconciliationPair(
                server_record=server,
                client_record=client,
                selected_package=package,
                notes=notes,
            )
        )

    for record in (*result.unmatched_server, *result.unmatched_client):
        result.packages.append(Package.from_record(record, scan_index=len(result.packages)))

    log.debug(
        "Reconciliation complete: pairs=%s, unmatched server=%s, unmatched client=%s",
        len(result.pairs),
        len(result.unmatched_server),
        len(result.unmatched_client),
    )
    return result
