"""Request shapes run against an open etcd connection.

Every function here issues exactly one request and has no retry logic; the
session manager decides when a call is worth repeating.
"""

from __future__ import annotations

import logging
from typing import Any, Iterable, Mapping

from .connections import Connection, decode_bytes, encode_bytes
from .models import ClusterStatus, Item, Member

LOG = logging.getLogger(__name__)

_ASCENDING_BY_KEY = {"sort_order": "ASCEND", "sort_target": "KEY"}


def prefix_range_end(prefix: bytes) -> bytes:
    """Smallest key greater than every key starting with `prefix`."""

    trimmed = prefix.rstrip(b"\xff")
    if not trimmed:
        return b"\x00"
    return trimmed[:-1] + bytes((trimmed[-1] + 1,))


def inclusive_range_end(end: bytes) -> bytes:
    """Exclusive bound that still admits `end` itself."""

    return end + b"\x00"


async def list_by_prefix(conn: Connection, prefix: str) -> list[Item]:
    key, range_end = _prefix_bounds(prefix)
    response = await _range(conn, key, range_end)
    return _decode_items(response.get("kvs", ()))


async def list_keys_only(conn: Connection, prefix: str) -> list[str]:
    key, range_end = _prefix_bounds(prefix)
    response = await _range(
        conn,
        key,
        range_end,
        keys_only=True,
        serializable=True,
        **_ASCENDING_BY_KEY,
    )
    keys: list[str] = []
    skipped = 0
    for kv in response.get("kvs", ()):
        try:
            keys.append(decode_bytes(kv.get("key")).decode("utf-8"))
        except UnicodeDecodeError:
            skipped += 1
    _log_skipped(skipped)
    return keys


async def get_range(conn: Connection, start: str, end: str) -> list[Item]:
    response = await _range(
        conn,
        start.encode("utf-8"),
        inclusive_range_end(end.encode("utf-8")),
        **_ASCENDING_BY_KEY,
    )
    return _decode_items(response.get("kvs", ()))


async def put(conn: Connection, key: str, value: str) -> None:
    await conn.call(
        "kv/put",
        {"key": encode_bytes(key.encode("utf-8")), "value": encode_bytes(value.encode("utf-8"))},
    )


async def delete(conn: Connection, key: str) -> None:
    await conn.call("kv/deleterange", {"key": encode_bytes(key.encode("utf-8"))})


async def get_at_revision(conn: Connection, key: str, revision: int) -> Item | None:
    response = await _range(conn, key.encode("utf-8"), revision=revision)
    items = _decode_items(response.get("kvs", ()))
    return items[0] if items else None


async def list_cluster_members(conn: Connection) -> list[Member]:
    response = await conn.call("cluster/member/list", {})
    return [
        Member(
            id=_as_int(member.get("ID")),
            name=str(member.get("name", "")),
            peer_urls=tuple(member.get("peerURLs") or ()),
            client_urls=tuple(member.get("clientURLs") or ()),
            is_learner=bool(member.get("isLearner", False)),
        )
        for member in response.get("members", ())
    ]


async def get_cluster_status(conn: Connection) -> ClusterStatus:
    response = await conn.call("maintenance/status", {})
    header = response.get("header") or {}
    return ClusterStatus(
        version=str(response.get("version", "")),
        db_size=_as_int(response.get("dbSize")),
        leader=_as_int(response.get("leader")),
        member_id=_as_int(header.get("member_id")),
        raft_index=_as_int(response.get("raftIndex")),
        raft_term=_as_int(response.get("raftTerm")),
        revision=_as_int(header.get("revision")),
        errors=tuple(str(error) for error in response.get("errors") or ()),
    )


async def _range(
    conn: Connection,
    key: bytes,
    range_end: bytes | None = None,
    **options: Any,
) -> dict[str, Any]:
    payload: dict[str, Any] = {"key": encode_bytes(key)}
    if range_end is not None:
        payload["range_end"] = encode_bytes(range_end)
    payload.update(options)
    return await conn.call("kv/range", payload)


def _prefix_bounds(prefix: str) -> tuple[bytes, bytes]:
    raw = prefix.encode("utf-8")
    if not raw:
        # etcd reads key "\0" with range_end "\0" as "every key".
        return b"\x00", b"\x00"
    return raw, prefix_range_end(raw)


def _decode_items(kvs: Iterable[Mapping[str, Any]]) -> list[Item]:
    items: list[Item] = []
    skipped = 0
    for kv in kvs:
        try:
            key = decode_bytes(kv.get("key")).decode("utf-8")
            value = decode_bytes(kv.get("value")).decode("utf-8")
        except UnicodeDecodeError:
            skipped += 1
            continue
        items.append(
            Item(
                key=key,
                value=value,
                version=_as_int(kv.get("version")),
                create_revision=_as_int(kv.get("create_revision")),
                mod_revision=_as_int(kv.get("mod_revision")),
                lease=_as_int(kv.get("lease")),
            )
        )
    _log_skipped(skipped)
    return items


def _log_skipped(skipped: int) -> None:
    if skipped:
        LOG.debug("Dropped %d entries that are not valid UTF-8", skipped)


def _as_int(value: object) -> int:
    # The gateway renders 64-bit integers as strings and omits zero values.
    if value is None or value == "":
        return 0
    return int(value)  # type: ignore[arg-type]


__all__ = [
    "delete",
    "get_at_revision",
    "get_cluster_status",
    "get_range",
    "inclusive_range_end",
    "list_by_prefix",
    "list_cluster_members",
    "list_keys_only",
    "prefix_range_end",
    "put",
]
