"""Single-consumer channel carrying watcher output to the processor."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator
from typing import Generic, TypeVar

LOGGER = logging.getLogger(__name__)

T = TypeVar("T")

_CLOSED = object()


class ChannelClosed(Exception):
    """Raised by :meth:`EventChannel.receive` once the channel is drained and closed."""


class EventChannel(Generic[T]):
    """Unbounded FIFO of watcher items.

    Items are published from the event loop without blocking and received in
    publication order. Closing lets the consumer drain what is already queued
    and then ends iteration.
    """

    def __init__(self) -> None:
        self._queue: asyncio.Queue[object] = asyncio.Queue()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def publish(self, item: T) -> bool:
        """Queue ``item``; returns ``False`` if the channel is already closed."""
        if self._closed:
            LOGGER.debug("Dropping %r published after close", item)
            return False
        self._queue.put_nowait(item)
        return True

    async def receive(self) -> T:
        item = await self._queue.get()
        if item is _CLOSED:
            # leave the marker for any later receive() call
            self._queue.put_nowait(_CLOSED)
            raise ChannelClosed
        return item  # type: ignore[return-value]

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._queue.put_nowait(_CLOSED)

    def __aiter__(self) -> AsyncIterator[T]:
        return self._iterate()

    async def _iterate(self) -> AsyncIterator[T]:
        while True:
            try:
                yield await self.receive()
            except ChannelClosed:
                return


__all__ = ["ChannelClosed", "EventChannel"]
