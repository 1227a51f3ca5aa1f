from __future__ import annotations

from modcheck.domain.reconciliation import (
    ReconciliationResult,
    reconcile,
    records_match,
    select_preferred,
)
from tests.helpers.catalog import make_record


def test_shared_guid_merges_server_and_client_case_insensitively() -> None:
    server = make_record("Foo", guid="com.acme.foo")
    client = make_record("foo-client", guid="COM.ACME.FOO", server=False)

    result = reconcile([server], [client])

    assert len(result.packages) == 1
    assert len(result.pairs) == 1
    assert result.unmatched_server == []
    assert result.unmatched_client == []
    package = result.packages[0]
    assert package.guid == "com.acme.foo"
    assert package.is_server_component
    assert package.paired_component_path == client.file_path
    assert result.pairs[0].notes == []


def test_names_match_after_stripping_component_suffix() -> None:
    server = make_record("MyModServer")
    client = make_record("MyModClient", server=False)

    assert records_match(server, client)


def test_guid_tail_matches_across_namespaces() -> None:
    server = make_record("Something", guid="com.alice.coolmod")
    client = make_record("Other", guid="org.bob.CoolMod", server=False)

    assert records_match(server, client)
    _, notes = select_preferred(server, client)
    assert notes == ["GUID mismatch: server 'com.alice.coolmod' vs client 'org.bob.CoolMod'"]


def test_unrelated_records_do_not_match() -> None:
    server = make_record("Alpha", guid="com.a.alpha")
    client = make_record("Beta", guid="com.b.beta", server=False)

    assert not records_match(server, client)


def test_higher_client_version_is_selected() -> None:
    server = make_record("Foo", guid="com.acme.foo", version="1.0.0")
    client = make_record("Foo", guid="com.acme.foo", version="1.2.0", server=False)

    result = reconcile([server], [client])

    package = result.packages[0]
    assert package.local_version == "1.2.0"
    assert not package.is_server_component
    assert package.paired_component_path == server.file_path
    assert result.pairs[0].notes == ["Version mismatch: server '1.0.0' vs client '1.2.0'"]


def test_invalid_versions_are_noted_per_side() -> None:
    server = make_record("Foo", guid="com.acme.foo", version="abc")
    client = make_record("Foo", guid="com.acme.foo", version="1.0.0", server=False)

    selected, notes = select_preferred(server, client)
    assert selected is client
    assert notes == ["Server mod has invalid version: 'abc'"]

    broken_client = make_record("Foo", guid="com.acme.foo", version="???", server=False)
    selected, notes = select_preferred(server, broken_client)
    assert selected is server
    assert notes == [
        "Server mod has invalid version: 'abc'",
        "Client mod has invalid version: '???'",
    ]


def test_pairing_is_greedy_in_scan_order() -> None:
    first = make_record("Foo", guid="com.acme.foo", path="/install/server/first")
    second = make_record("Foo", guid="com.acme.foo", path="/install/server/second")
    client = make_record("Foo", guid="com.acme.foo", server=False)

    result = reconcile([first, second], [client])

    assert result.pairs[0].server_record is first
    assert result.unmatched_server == [second]


def test_every_record_ends_up_in_exactly_one_package() -> None:
    servers = [
        make_record("Foo", guid="com.acme.foo"),
        make_record("ServerOnly", guid="com.acme.serveronly"),
    ]
    clients = [
        make_record("ClientOnly", guid="com.acme.clientonly", server=False),
        make_record("Foo", guid="com.acme.foo", server=False),
    ]

    result = reconcile(servers, clients)

    assert len(result.packages) == len(result.pairs) + len(result.unmatched_server) + len(
        result.unmatched_client
    )
    assert [package.local_name for package in result.packages] == [
        "Foo",
        "ServerOnly",
        "ClientOnly",
    ]
    assert [package.scan_index for package in result.packages] == [0, 1, 2]


def test_assembly_style_version_counts_as_invalid() -> None:
    server = make_record("Foo", guid="com.acme.foo", version="1.2.3.4")
    client = make_record("Foo", guid="com.acme.foo", version="1.2.3", server=False)

    selected, notes = select_preferred(server, client)

    assert selected is client
    assert notes == ["Server mod has invalid version: '1.2.3.4'"]


def test_prerelease_versions_order_by_semver_precedence() -> None:
    server = make_record("Foo", guid="com.acme.foo", version="2.0.0-hotfix")
    client = make_record("Foo", guid="com.acme.foo", version="1.0.0", server=False)

    selected, notes = select_preferred(server, client)

    assert selected is server
    assert notes == ["Version mismatch: server '2.0.0-hotfix' vs client '1.0.0'"]


def test_build_metadata_does_not_decide_the_pair() -> None:
    server = make_record("Foo", guid="com.acme.foo", version="1.0.0+a")
    client = make_record("Foo", guid="com.acme.foo", version="1.0.0+b", server=False)

    selected, notes = select_preferred(server, client)

    assert selected is server
    assert notes == []


def test_pairing_does_not_depend_on_input_order() -> None:
    servers = [
        make_record("Foo", guid="com.acme.foo"),
        make_record("BarServer", version="2.0.0"),
    ]
    clients = [
        make_record("BarClient", version="2.1.0", server=False),
        make_record("Foo", guid="com.acme.foo", server=False),
    ]

    forward = reconcile(servers, clients)
    backward = reconcile(list(reversed(servers)), list(reversed(clients)))

    def pairings(result: ReconciliationResult) -> set[tuple[str, str]]:
        return {
            (pair.server_record.file_path, pair.client_record.file_path) for pair in result.pairs
        }

    assert pairings(forward) == pairings(backward)
    assert len(forward.packages) == len(backward.packages) == 2
    assert forward.unmatched_server == backward.unmatched_server == []
    assert forward.unmatched_client == backward.unmatched_client == []
    assert {package.local_version for package in backward.packages} == {"1.0.0", "2.1.0"}
