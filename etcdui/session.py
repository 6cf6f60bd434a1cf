"""Session manager owning the single live etcd connection."""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import TypeVar

from . import operations
from .config import AppConfig, ProfileConfig
from .connections import (
    Connection,
    ConnectError,
    Connector,
    HttpConnector,
    is_stale_auth_failure,
)
from .models import ConnectionProfile
from .retry import call_with_reconnect

LOG = logging.getLogger(__name__)

T = TypeVar("T")

SessionListener = Callable[["SessionState"], None]


class SessionError(RuntimeError):
    """Raised when the session cannot serve a request."""


class NoActiveProfileError(SessionError):
    """No profile is selected, or the selected name does not exist."""

    def __init__(self, message: str = "Could not find current profile") -> None:
        super().__init__(message)


class ConnectFailedError(SessionError):
    """The connector could not open a connection for the active profile."""

    def __init__(self, cause: ConnectError) -> None:
        super().__init__(str(cause))
        self.cause = cause


class ProfileLockedError(SessionError):
    """The active profile forbids mutating operations."""


@dataclass(frozen=True, slots=True)
class SessionState:
    """Current session snapshot."""

    profile_name: str | None
    connected: bool
    endpoint: str | None
    changed_at: datetime
    status: str = "Disconnected"


class SessionManager:
    """Lazily connects to the active profile and recovers from stale tokens.

    The manager does no locking of its own; callers must serialize access to
    a single instance (see `etcdui.commands.EtcdCommands`).
    """

    def __init__(self, config: AppConfig, *, connector: Connector | None = None) -> None:
        self._config = config
        self._connector = connector or HttpConnector()
        self._connection: Connection | None = None
        self._listeners: set[SessionListener] = set()
        self._state = self._snapshot("Disconnected")

    @property
    def config(self) -> AppConfig:
        return self._config

    @property
    def profiles(self) -> tuple[ProfileConfig, ...]:
        """Profiles available in the current config."""

        return tuple(self._config.profiles)

    @property
    def active_profile_name(self) -> str | None:
        """Name of the active profile, if it resolves."""

        profile = self._config.current_profile()
        return profile.name if profile else None

    @property
    def connected(self) -> bool:
        return self._connection is not None

    @property
    def state(self) -> SessionState:
        return self._state

    def current_profile(self) -> ConnectionProfile | None:
        profile = self._config.current_profile()
        return profile.to_profile() if profile else None

    async def ensure_connection(self) -> Connection:
        """Return the live connection, opening one if needed."""

        if self._connection is not None:
            return self._connection
        profile = self.current_profile()
        if profile is None:
            raise NoActiveProfileError()
        try:
            self._connection = await self._connector.connect(profile)
        except ConnectError as exc:
            self._update_state("Connection failed")
            raise ConnectFailedError(exc) from exc
        self._update_state("Connected")
        return self._connection

    async def invalidate(self) -> None:
        """Drop the live connection; the next request opens a fresh one."""

        if await self._drop_connection():
            self._update_state("Disconnected")

    async def reconnect(self) -> bool:
        """Reset and reopen the connection; False when no profile is active."""

        await self.invalidate()
        if self._config.current_profile() is None:
            return False
        await self.ensure_connection()
        return True

    async def run(self, operation: Callable[[Connection], Awaitable[T]]) -> T:
        """Execute an operation, reconnecting once if the auth token went stale."""

        return await call_with_reconnect(
            self.ensure_connection,
            self.invalidate,
            operation,
            should_reconnect=is_stale_auth_failure,
        )

    def ensure_unlocked(self) -> None:
        """Reject writes against a locked profile without touching the network."""

        profile = self._config.current_profile()
        if profile is None:
            raise NoActiveProfileError("No current profile set")
        if profile.locked:
            raise ProfileLockedError(f"Profile '{profile.name}' is locked")

    async def update_config(self, config: AppConfig) -> bool:
        """Swap in a new config; returns True when the connection was reset."""

        previous = self._config.active_profile
        self._config = config
        if previous == config.active_profile:
            return False
        LOG.info("Active profile changed from %r to %r", previous, config.active_profile)
        await self._drop_connection()
        self._update_state("Disconnected")
        return True

    async def test_connection(self, profile: ConnectionProfile) -> str:
        """Connect with an arbitrary profile and return the server version."""

        connection = await self._connector.connect(profile)
        try:
            status = await operations.get_cluster_status(connection)
        finally:
            await connection.close()
        return status.version

    async def close(self) -> None:
        await self.invalidate()

    def subscribe(self, listener: SessionListener) -> Callable[[], None]:
        """Subscribe to session updates; returns an unsubscribe handle."""

        self._listeners.add(listener)
        listener(self._state)

        def _unsubscribe() -> None:
            self._listeners.discard(listener)

        return _unsubscribe

    async def _drop_connection(self) -> bool:
        connection, self._connection = self._connection, None
        if connection is None:
            return False
        await connection.close()
        return True

    def _snapshot(self, status: str) -> SessionState:
        endpoint = getattr(self._connection, "endpoint", None)
        return SessionState(
            profile_name=self.active_profile_name,
            connected=self._connection is not None,
            endpoint=endpoint if isinstance(endpoint, str) else None,
            changed_at=datetime.now(tz=timezone.utc),
            status=status,
        )

    def _update_state(self, status: str) -> None:
        self._state = self._snapshot(status)
        for listener in tuple(self._listeners):
            listener(self._state)


__all__ = [
    "ConnectFailedError",
    "NoActiveProfileError",
    "ProfileLockedError",
    "SessionError",
    "SessionManager",
    "SessionState",
]
