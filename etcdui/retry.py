"""Reconnect-and-redo wrapper applied to every store operation."""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from typing import TypeVar

LOG = logging.getLogger(__name__)

C = TypeVar("C")
T = TypeVar("T")


async def call_with_reconnect(
    acquire: Callable[[], Awaitable[C]],
    invalidate: Callable[[], Awaitable[None]],
    operation: Callable[[C], Awaitable[T]],
    *,
    should_reconnect: Callable[[BaseException], bool],
) -> T:
    """Run `operation` on an acquired connection, rebuilding it at most once.

    Acquisition failures propagate untouched. When the operation fails with an
    error accepted by `should_reconnect`, the connection is invalidated, a new
    one acquired and the operation issued a second time; whatever that second
    attempt raises reaches the caller.
    """

    connection = await acquire()
    try:
        return await operation(connection)
    except Exception as exc:
        if not should_reconnect(exc):
            raise
        LOG.warning("Connection rejected by server (%s); reconnecting once.", exc)
    await invalidate()
    connection = await acquire()
    return await operation(connection)


__all__ = ["call_with_reconnect"]
