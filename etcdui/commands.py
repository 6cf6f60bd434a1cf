"""Command boundary between the UI and the session manager.

Every command holds one lock for its whole duration, so store operations are
fully serialized. Results are plain JSON-serializable values; failures are
flattened into a single `CommandError` message.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import asdict
from functools import partial
from typing import Any, Callable, Mapping

from pydantic import ValidationError

from . import operations
from .config import AppConfig, ProfileConfig, config_file_exists, config_file_path, save_config
from .connections import EtcdError
from .session import SessionError, SessionManager


class CommandError(RuntimeError):
    """Human-readable failure returned to the UI."""


class EtcdCommands:
    """Remote-invocable commands sharing one session."""

    def __init__(
        self,
        session: SessionManager,
        *,
        persist: Callable[[AppConfig], None] | None = None,
    ) -> None:
        self._session = session
        self._persist = persist or save_config
        self._lock = asyncio.Lock()

    @property
    def session(self) -> SessionManager:
        return self._session

    async def initialize(self) -> str:
        """Reset and reopen the connection; empty string when no profile is set."""

        async with self._exclusive() as session:
            has_profile = await session.reconnect()
        return "Connected successfully" if has_profile else ""

    async def list_keys(self, prefix: str) -> list[dict[str, Any]]:
        async with self._exclusive() as session:
            items = await session.run(partial(operations.list_by_prefix, prefix=prefix))
        return [asdict(item) for item in items]

    async def list_key_names(self, prefix: str) -> list[str]:
        async with self._exclusive() as session:
            return await session.run(partial(operations.list_keys_only, prefix=prefix))

    async def get_range(self, start: str, end: str) -> list[dict[str, Any]]:
        async with self._exclusive() as session:
            items = await session.run(partial(operations.get_range, start=start, end=end))
        return [asdict(item) for item in items]

    async def get_at_revision(self, key: str, revision: int) -> dict[str, Any] | None:
        async with self._exclusive() as session:
            item = await session.run(
                partial(operations.get_at_revision, key=key, revision=revision)
            )
        return asdict(item) if item is not None else None

    async def put_key(self, key: str, value: str) -> None:
        async with self._exclusive() as session:
            session.ensure_unlocked()
            await session.run(partial(operations.put, key=key, value=value))

    async def delete_key(self, key: str) -> None:
        async with self._exclusive() as session:
            session.ensure_unlocked()
            await session.run(partial(operations.delete, key=key))

    async def cluster_members(self) -> list[dict[str, Any]]:
        async with self._exclusive() as session:
            members = await session.run(operations.list_cluster_members)
        return [asdict(member) for member in members]

    async def cluster_status(self) -> dict[str, Any]:
        async with self._exclusive() as session:
            status = await session.run(operations.get_cluster_status)
        return asdict(status)

    async def get_config(self) -> dict[str, Any]:
        async with self._exclusive() as session:
            return session.config.model_dump()

    async def update_config(self, config: AppConfig | Mapping[str, Any]) -> None:
        """Persist the config, then reset the connection if the active profile changed."""

        parsed = _parse(AppConfig, config)
        async with self._exclusive() as session:
            try:
                self._persist(parsed)
            except OSError as exc:
                raise CommandError(f"Failed to write config: {exc}") from exc
            await session.update_config(parsed)

    async def test_connection(self, profile: ProfileConfig | Mapping[str, Any]) -> str:
        """Return the server version reachable with `profile`; session state is untouched."""

        parsed = _parse(ProfileConfig, profile)
        try:
            return await self._session.test_connection(parsed.to_profile())
        except EtcdError as exc:
            raise CommandError(str(exc)) from exc

    async def config_file_exists(self) -> bool:
        return config_file_exists()

    async def config_file_path(self) -> str:
        return config_file_path()

    async def close(self) -> None:
        async with self._lock:
            await self._session.close()

    @asynccontextmanager
    async def _exclusive(self) -> AsyncIterator[SessionManager]:
        async with self._lock:
            try:
                yield self._session
            except (EtcdError, SessionError) as exc:
                raise CommandError(str(exc)) from exc


def _parse(model: Any, value: Any) -> Any:
    if isinstance(value, model):
        return value
    try:
        return model.model_validate(value)
    except ValidationError as exc:
        raise CommandError(f"Invalid {model.__name__}: {exc}") from exc


__all__ = ["CommandError", "EtcdCommands"]
