"""Tests for the etcd request shapes."""

from __future__ import annotations

import base64

import pytest

from etcdui import operations
from etcdui.connections import EtcdRequestError, HttpConnector
from etcdui.models import ConnectionProfile, Endpoint, Item


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture
async def connection(gateway, anyio_backend):  # type: ignore[no-untyped-def]
    connector = HttpConnector(transport=gateway.transport())
    profile = ConnectionProfile(name="Local", endpoints=(Endpoint("localhost", 2379),))
    conn = await connector.connect(profile)
    gateway.requests.clear()
    yield conn
    await conn.close()


def _decoded(payload: dict[str, object], field: str) -> bytes:
    return base64.b64decode(payload[field])  # type: ignore[arg-type]


def test_prefix_range_end_increments_last_byte() -> None:
    assert operations.prefix_range_end(b"/app/") == b"/app0"
    assert operations.prefix_range_end(b"a\xff") == b"b"
    assert operations.prefix_range_end(b"\xff\xff") == b"\x00"


def test_inclusive_range_end_appends_nul() -> None:
    assert operations.inclusive_range_end(b"b") == b"b\x00"


@pytest.mark.anyio
async def test_put_then_list_by_prefix_round_trips(connection, gateway) -> None:  # type: ignore[no-untyped-def]
    await operations.put(connection, "/app/name", "etcdui")

    items = await operations.list_by_prefix(connection, "/app/name")

    assert [(item.key, item.value) for item in items] == [("/app/name", "etcdui")]
    assert items[0].version == 1
    assert items[0].create_revision == items[0].mod_revision == gateway.revision


@pytest.mark.anyio
async def test_list_by_prefix_scopes_to_prefix(connection, gateway) -> None:  # type: ignore[no-untyped-def]
    for key in ("/app/a", "/app/b", "/apps", "/other"):
        gateway.put_raw(key.encode(), b"v")

    items = await operations.list_by_prefix(connection, "/app/")

    assert sorted(item.key for item in items) == ["/app/a", "/app/b"]
    _, method, payload = gateway.requests[-1]
    assert method == "kv/range"
    assert _decoded(payload, "key") == b"/app/"
    assert _decoded(payload, "range_end") == b"/app0"


@pytest.mark.anyio
async def test_empty_prefix_lists_every_key(connection, gateway) -> None:  # type: ignore[no-untyped-def]
    for key in ("/a", "b", "zz"):
        gateway.put_raw(key.encode(), b"v")

    items = await operations.list_by_prefix(connection, "")

    assert sorted(item.key for item in items) == ["/a", "b", "zz"]


@pytest.mark.anyio
async def test_non_utf8_entries_are_dropped(connection, gateway) -> None:  # type: ignore[no-untyped-def]
    gateway.put_raw(b"/bin/good", b"text")
    gateway.put_raw(b"/bin/bad-value", b"\xff\xfe")
    gateway.put_raw(b"/bin/\xc3\x28", b"text")

    items = await operations.list_by_prefix(connection, "/bin/")
    keys = await operations.list_keys_only(connection, "/bin/")

    assert [item.key for item in items] == ["/bin/good"]
    assert keys == ["/bin/bad-value", "/bin/good"]


@pytest.mark.anyio
async def test_list_keys_only_is_sorted_and_serializable(connection, gateway) -> None:  # type: ignore[no-untyped-def]
    for key in ("/k/c", "/k/a", "/k/b"):
        gateway.put_raw(key.encode(), b"v")

    keys = await operations.list_keys_only(connection, "/k/")

    assert keys == ["/k/a", "/k/b", "/k/c"]
    _, _, payload = gateway.requests[-1]
    assert payload["keys_only"] is True
    assert payload["serializable"] is True
    assert payload["sort_order"] == "ASCEND"
    assert payload["sort_target"] == "KEY"


@pytest.mark.anyio
async def test_get_range_includes_end_key(connection, gateway) -> None:  # type: ignore[no-untyped-def]
    for key in ("ba", "b", "am", "a", "0"):
        gateway.put_raw(key.encode(), b"v")

    items = await operations.get_range(connection, "a", "b")

    assert [item.key for item in items] == ["a", "am", "b"]
    _, _, payload = gateway.requests[-1]
    assert _decoded(payload, "range_end") == b"b\x00"


@pytest.mark.anyio
async def test_delete_is_unconditional(connection, gateway) -> None:  # type: ignore[no-untyped-def]
    gateway.put_raw(b"/gone", b"v")

    await operations.delete(connection, "/gone")
    await operations.delete(connection, "/never-existed")

    assert await operations.list_by_prefix(connection, "/gone") == []


@pytest.mark.anyio
async def test_get_at_revision_reads_history(connection, gateway) -> None:  # type: ignore[no-untyped-def]
    before = gateway.revision
    first = gateway.put_raw(b"/cfg", b"v1")
    gateway.put_raw(b"/cfg", b"v2")

    old = await operations.get_at_revision(connection, "/cfg", first)
    missing = await operations.get_at_revision(connection, "/cfg", before)

    assert old == Item(key="/cfg", value="v1", version=1, create_revision=first, mod_revision=first)
    assert missing is None
    _, _, payload = gateway.requests[-1]
    assert payload["revision"] == before


@pytest.mark.anyio
async def test_remote_errors_pass_through(connection, gateway) -> None:  # type: ignore[no-untyped-def]
    with pytest.raises(EtcdRequestError) as excinfo:
        await operations.get_at_revision(connection, "/cfg", gateway.revision + 100)

    assert excinfo.value.code == 11


@pytest.mark.anyio
async def test_cluster_metadata(connection, gateway) -> None:  # type: ignore[no-untyped-def]
    members = await operations.list_cluster_members(connection)
    status = await operations.get_cluster_status(connection)

    assert len(members) == 1
    assert members[0].name == "default"
    assert members[0].id == 10276657743932975437
    assert members[0].client_urls == ("http://localhost:2379",)
    assert members[0].is_learner is False
    assert status.version == "3.5.17"
    assert status.db_size == 20480
    assert status.leader == members[0].id
    assert status.member_id == members[0].id
    assert status.revision == gateway.revision
    assert status.errors == ()
