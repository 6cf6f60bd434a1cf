"""Shared fixtures: an in-memory stand-in for the etcd v3 JSON gateway."""

from __future__ import annotations

import base64
import itertools
import json
from typing import Any

import httpx
import pytest


def _b64(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


def _unb64(text: str | None) -> bytes:
    return base64.b64decode(text) if text else b""


class FakeEtcdGateway:
    """Tiny etcd model served through `httpx.MockTransport`."""

    def __init__(self, *, users: dict[str, str] | None = None, version: str = "3.5.17") -> None:
        self.users = dict(users or {})
        self.version = version
        self.revision = 1
        self.requests: list[tuple[str, str, dict[str, Any]]] = []
        self.unreachable: set[str] = set()
        self.tokens: set[str] = set()
        self._token_ids = itertools.count(1)
        self._history: dict[bytes, list[tuple[int, dict[str, Any] | None]]] = {}

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle)

    def methods(self) -> list[str]:
        return [method for _, method, _ in self.requests]

    def revoke_tokens(self) -> None:
        self.tokens.clear()

    def put_raw(self, key: bytes, value: bytes) -> int:
        self.revision += 1
        current = self._current(key)
        kv = {
            "key": key,
            "value": value,
            "create_revision": current["create_revision"] if current else self.revision,
            "mod_revision": self.revision,
            "version": current["version"] + 1 if current else 1,
        }
        self._history.setdefault(key, []).append((self.revision, kv))
        return self.revision

    def handle(self, request: httpx.Request) -> httpx.Response:
        address = f"{request.url.host}:{request.url.port}"
        if address in self.unreachable:
            raise httpx.ConnectError("connection refused", request=request)
        method = request.url.path.removeprefix("/v3/")
        payload = json.loads(request.content or b"{}")
        self.requests.append((address, method, payload))
        if method == "auth/authenticate":
            return self._authenticate(payload)
        if self.users and method != "maintenance/status":
            token = request.headers.get("Authorization")
            if not token:
                return self._error(400, 3, "etcdserver: user name is empty")
            if token not in self.tokens:
                return self._error(401, 16, "etcdserver: invalid auth token")
        handler = {
            "kv/range": self._range,
            "kv/put": self._put,
            "kv/deleterange": self._delete,
            "cluster/member/list": self._members,
            "maintenance/status": self._status,
        }.get(method)
        if handler is None:
            return httpx.Response(404, text="Not Found")
        return handler(payload)

    def _authenticate(self, payload: dict[str, Any]) -> httpx.Response:
        name = payload.get("name")
        if not self.users or self.users.get(name) != payload.get("password"):
            return self._error(
                400, 3, "etcdserver: authentication failed, invalid user ID or password"
            )
        token = f"token.{next(self._token_ids)}"
        self.tokens.add(token)
        return self._ok({"token": token})

    def _range(self, payload: dict[str, Any]) -> httpx.Response:
        key = _unb64(payload.get("key"))
        range_end = _unb64(payload.get("range_end")) if "range_end" in payload else None
        revision = int(payload.get("revision", 0))
        if revision and revision > self.revision:
            return self._error(400, 11, "etcdserver: mvcc: required revision is a future revision")
        kvs = []
        for candidate in self._history:
            if range_end is None:
                selected = candidate == key
            elif range_end == b"\x00":
                selected = candidate >= key
            else:
                selected = key <= candidate < range_end
            if not selected:
                continue
            kv = self._current(candidate, revision or self.revision)
            if kv is not None:
                kvs.append(kv)
        if payload.get("sort_order") == "ASCEND":
            kvs.sort(key=lambda entry: entry["key"])
        body: dict[str, Any] = {"header": self._header(), "count": str(len(kvs))}
        if kvs:
            body["kvs"] = [self._render(kv, keys_only=bool(payload.get("keys_only"))) for kv in kvs]
        return self._ok(body)

    def _put(self, payload: dict[str, Any]) -> httpx.Response:
        self.put_raw(_unb64(payload.get("key")), _unb64(payload.get("value")))
        return self._ok({"header": self._header()})

    def _delete(self, payload: dict[str, Any]) -> httpx.Response:
        key = _unb64(payload.get("key"))
        deleted = 0
        if self._current(key) is not None:
            self.revision += 1
            self._history[key].append((self.revision, None))
            deleted = 1
        body: dict[str, Any] = {"header": self._header()}
        if deleted:
            body["deleted"] = str(deleted)
        return self._ok(body)

    def _members(self, payload: dict[str, Any]) -> httpx.Response:
        return self._ok(
            {
                "header": self._header(),
                "members": [
                    {
                        "ID": "10276657743932975437",
                        "name": "default",
                        "peerURLs": ["http://localhost:2380"],
                        "clientURLs": ["http://localhost:2379"],
                    }
                ],
            }
        )

    def _status(self, payload: dict[str, Any]) -> httpx.Response:
        return self._ok(
            {
                "header": self._header(),
                "version": self.version,
                "dbSize": "20480",
                "leader": "10276657743932975437",
                "raftIndex": "12",
                "raftTerm": "2",
            }
        )

    def _current(self, key: bytes, revision: int | None = None) -> dict[str, Any] | None:
        limit = revision or self.revision
        latest: dict[str, Any] | None = None
        for mod_revision, kv in self._history.get(key, ()):
            if mod_revision > limit:
                break
            latest = kv
        return latest

    def _header(self) -> dict[str, str]:
        return {
            "cluster_id": "14841639068965178418",
            "member_id": "10276657743932975437",
            "revision": str(self.revision),
            "raft_term": "2",
        }

    @staticmethod
    def _render(kv: dict[str, Any], *, keys_only: bool) -> dict[str, str]:
        rendered = {
            "key": _b64(kv["key"]),
            "create_revision": str(kv["create_revision"]),
            "mod_revision": str(kv["mod_revision"]),
            "version": str(kv["version"]),
        }
        if not keys_only:
            rendered["value"] = _b64(kv["value"])
        return rendered

    @staticmethod
    def _ok(body: dict[str, Any]) -> httpx.Response:
        return httpx.Response(200, json=body)

    @staticmethod
    def _error(status: int, code: int, message: str) -> httpx.Response:
        return httpx.Response(status, json={"error": message, "code": code, "message": message})


@pytest.fixture
def gateway() -> FakeEtcdGateway:
    return FakeEtcdGateway()


@pytest.fixture
def secured_gateway() -> FakeEtcdGateway:
    return FakeEtcdGateway(users={"root": "s3cret"})
