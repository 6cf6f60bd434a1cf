"""Connections to etcd through its v3 JSON gateway."""

from __future__ import annotations

import base64
import logging
from typing import Any, Mapping, Protocol, Sequence, runtime_checkable

import httpx

from .models import ConnectionProfile

LOG = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 5.0

# gRPC status code carried in gateway error bodies.
UNAUTHENTICATED = 16
UNKNOWN = 2
STALE_TOKEN_MESSAGE = "invalid auth token"


class EtcdError(RuntimeError):
    """Base class for failures talking to etcd."""


class ConnectError(EtcdError):
    """Raised when a connection to a profile cannot be established."""


class EtcdTransportError(EtcdError):
    """Raised when no endpoint could be reached or the response is unusable."""


class EtcdRequestError(EtcdError):
    """Error reported by etcd itself for a single request."""

    def __init__(self, code: int, message: str, *, status_code: int | None = None) -> None:
        super().__init__(f"{message} (code {code})")
        self.code = code
        self.message = message
        self.status_code = status_code


@runtime_checkable
class Connection(Protocol):
    """Open connection the operation layer runs requests against."""

    async def call(self, method: str, payload: Mapping[str, Any]) -> dict[str, Any]:
        """Issue one gateway request and return its decoded body."""

    async def close(self) -> None:
        """Release the underlying transport."""


@runtime_checkable
class Connector(Protocol):
    """Protocol implemented by connectors."""

    async def connect(self, profile: ConnectionProfile) -> Connection:
        """Open a new connection for the profile."""


def is_stale_auth_failure(error: BaseException) -> bool:
    """True only for etcd rejecting an expired or revoked auth token."""

    return (
        isinstance(error, EtcdRequestError)
        and error.code == UNAUTHENTICATED
        and STALE_TOKEN_MESSAGE in error.message
    )


class EtcdConnection:
    """HTTP connection bound to one profile's endpoints.

    Requests go to the last endpoint that answered; an endpoint that cannot be
    reached at the TCP level is skipped in favour of the next one in profile
    order.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        endpoints: Sequence[str],
        *,
        scheme: str = "http",
        name: str = "",
    ) -> None:
        self._client = client
        self._endpoints = tuple(endpoints)
        self._scheme = scheme
        self._name = name
        self._active = 0
        self._token: str | None = None

    @property
    def endpoint(self) -> str:
        return self._endpoints[self._active]

    @property
    def authenticated(self) -> bool:
        return self._token is not None

    async def authenticate(self, username: str, password: str) -> None:
        body = await self.call("auth/authenticate", {"name": username, "password": password})
        token = body.get("token")
        if not isinstance(token, str) or not token:
            raise EtcdTransportError("Authentication response did not include a token.")
        self._token = token

    async def call(self, method: str, payload: Mapping[str, Any]) -> dict[str, Any]:
        headers = {"Authorization": self._token} if self._token else {}
        response = await self._post(method, payload, headers)
        return self._decode(method, response)

    async def close(self) -> None:
        await self._client.aclose()

    async def _post(
        self,
        method: str,
        payload: Mapping[str, Any],
        headers: Mapping[str, str],
    ) -> httpx.Response:
        last_error: Exception | None = None
        count = len(self._endpoints)
        for offset in range(count):
            index = (self._active + offset) % count
            url = f"{self._scheme}://{self._endpoints[index]}/v3/{method}"
            try:
                response = await self._client.post(url, json=dict(payload), headers=headers)
            except (httpx.ConnectError, httpx.ConnectTimeout) as exc:
                LOG.debug("Endpoint %s unreachable: %s", self._endpoints[index], exc)
                last_error = exc
                continue
            except httpx.HTTPError as exc:
                raise EtcdTransportError(f"Request to {self._endpoints[index]} failed: {exc}") from exc
            self._active = index
            return response
        raise EtcdTransportError(
            f"No endpoint of '{self._name}' is reachable: {last_error}"
        ) from last_error

    @staticmethod
    def _decode(method: str, response: httpx.Response) -> dict[str, Any]:
        try:
            body = response.json()
        except ValueError:
            body = None
        if response.is_success:
            if not isinstance(body, dict):
                raise EtcdTransportError(f"Unexpected response to {method}: {response.text[:200]}")
            return body
        if isinstance(body, dict):
            code = _status_code(body.get("code"))
            message = body.get("message") or body.get("error") or response.reason_phrase
        else:
            code = UNKNOWN
            message = response.text.strip() or response.reason_phrase
        raise EtcdRequestError(code, str(message), status_code=response.status_code)


class HttpConnector:
    """Connector that opens `EtcdConnection`s via httpx."""

    def __init__(
        self,
        *,
        scheme: str = "http",
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._scheme = scheme
        self._transport = transport

    async def connect(self, profile: ConnectionProfile) -> EtcdConnection:
        if not profile.endpoints:
            raise ConnectError(f"Profile '{profile.name}' has no endpoints configured.")
        client = httpx.AsyncClient(timeout=self._timeout_for(profile), transport=self._transport)
        connection = EtcdConnection(
            client,
            [endpoint.address for endpoint in profile.endpoints],
            scheme=self._scheme,
            name=profile.name,
        )
        try:
            try:
                if profile.credential is not None:
                    username, password = profile.credential
                    await connection.authenticate(username, password)
                else:
                    await connection.call("maintenance/status", {})
            except EtcdError as exc:
                raise ConnectError(f"Failed to connect to etcd: {exc}") from exc
        except BaseException:
            await connection.close()
            raise
        LOG.info("Connected to profile '%s' via %s", profile.name, connection.endpoint)
        return connection

    @staticmethod
    def _timeout_for(profile: ConnectionProfile) -> httpx.Timeout:
        timeout = profile.timeout if profile.timeout is not None else DEFAULT_TIMEOUT
        connect = profile.connect_timeout if profile.connect_timeout is not None else timeout
        return httpx.Timeout(timeout, connect=connect)


def _status_code(value: Any) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return UNKNOWN


def encode_bytes(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


def decode_bytes(text: str | None) -> bytes:
    if not text:
        return b""
    return base64.b64decode(text)


__all__ = [
    "Connection",
    "ConnectError",
    "Connector",
    "EtcdConnection",
    "EtcdError",
    "EtcdRequestError",
    "EtcdTransportError",
    "HttpConnector",
    "STALE_TOKEN_MESSAGE",
    "UNAUTHENTICATED",
    "decode_bytes",
    "encode_bytes",
    "is_stale_auth_failure",
]
