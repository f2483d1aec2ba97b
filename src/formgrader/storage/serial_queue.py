"""Per-path FIFO serialization of async read-modify-write operations."""

from __future__ import annotations

import asyncio
import logging
import os
from collections.abc import Awaitable, Callable
from typing import TypeVar

_LOGGER = logging.getLogger(__name__)

T = TypeVar("T")


class PathSerializer:
    """Run operations sharing one path strictly one at a time, in call order.

    Each path maps to the tail future of its chain. The mapping is only
    touched between suspension points, so the single event loop is its
    only guard. Entries are dropped once a chain drains.
    """

    def __init__(self) -> None:
        self._tails: dict[str, asyncio.Future[None]] = {}

    async def run(
        self, path: str | os.PathLike[str], operation: Callable[[], Awaitable[T]]
    ) -> T:
        """Execute `operation` once every earlier operation for `path` finished.

        The operation's own result or exception is returned to this caller
        only; a failure never blocks later operations for the same path.

        Args:
            path: Logical document path used as the serialization key.
            operation: Zero-argument coroutine factory to execute.

        Returns:
            Operation return value.
        """
        key = os.fspath(path)
        loop = asyncio.get_running_loop()
        previous = self._tails.get(key)
        slot: asyncio.Future[None] = loop.create_future()
        self._tails[key] = slot
        try:
            if previous is not None:
                _LOGGER.debug("Waiting for pending operation on %s", key)
                await asyncio.shield(previous)
            return await operation()
        finally:
            self._release(key, previous, slot)

    def _release(
        self,
        key: str,
        previous: asyncio.Future[None] | None,
        slot: asyncio.Future[None],
    ) -> None:
        if previous is not None and not previous.done():
            # Cancelled while queued: pass the slot on only after the predecessor.
            previous.add_done_callback(lambda _: self._release(key, None, slot))
            return
        if not slot.done():
            slot.set_result(None)
        if self._tails.get(key) is slot:
            del self._tails[key]

    def pending_keys(self) -> frozenset[str]:
        """Return paths that currently have a running or queued operation."""
        return frozenset(self._tails)

    def clear(self) -> None:
        """Forget all chains (test-only helper)."""
        self._tails.clear()


_DEFAULT_SERIALIZER = PathSerializer()


def default_serializer() -> PathSerializer:
    """Return the process-wide serializer shared by repositories.

    Returns:
        Process-wide serializer instance.
    """
    return _DEFAULT_SERIALIZER


async def with_serialized(
    path: str | os.PathLike[str], operation: Callable[[], Awaitable[T]]
) -> T:
    """Run `operation` in the process-wide queue for `path`.

    Args:
        path: Logical document path.
        operation: Zero-argument coroutine factory.

    Returns:
        Operation return value.
    """
    return await _DEFAULT_SERIALIZER.run(path, operation)


def reset_serial_queue() -> None:
    """Reset the process-wide serializer (test-only helper)."""
    _DEFAULT_SERIALIZER.clear()
