"""In-process message passing between the daemon's tasks."""

from __future__ import annotations

import asyncio
from typing import Generic, TypeVar

T = TypeVar("T")


class ChannelClosed(Exception):
    """The other end of a channel or reply slot has gone away."""


class Channel(Generic[T]):
    """Unbounded multi-producer, single-consumer queue that can be closed.

    Once the consumer closes the channel, ``send`` raises ``ChannelClosed``
    and anything still buffered is returned by ``close`` for the consumer to
    dispose of.
    """

    def __init__(self) -> None:
        self._queue: asyncio.Queue[T] = asyncio.Queue()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def send(self, item: T) -> None:
        if self._closed:
            raise ChannelClosed("receiver has gone away")
        self._queue.put_nowait(item)

    async def recv(self) -> T:
        return await self._queue.get()

    def close(self) -> list[T]:
        self._closed = True
        pending = []
        while not self._queue.empty():
            pending.append(self._queue.get_nowait())
        return pending


def reply_slot() -> asyncio.Future:
    """A write-once, read-once slot for a single response."""
    return asyncio.get_running_loop().create_future()


def fulfil(slot: asyncio.Future, value: object) -> bool:
    """Resolve ``slot``. Returns False if the reader already went away."""
    if slot.done():
        return False
    slot.set_result(value)
    return True


def drop(slot: asyncio.Future) -> None:
    """Signal the reader that no response will come.

    Awaiting the slot afterwards raises ``ChannelClosed``.
    """
    if not slot.done():
        slot.set_exception(ChannelClosed("responder dropped"))
