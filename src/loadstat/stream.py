from __future__ import annotations

import asyncio
from typing import AsyncIterator, Generic, TypeVar

T = TypeVar("T")

_CLOSED = object()


class StreamClosed(Exception):
    """Raised by ``receive`` once the stream has been closed and drained."""


class StreamClosedError(RuntimeError):
    """Raised on ``send`` or ``close`` against an already closed stream."""


class BoundedStream(Generic[T]):
    def __init__(self, capacity: int) -> None:
        if capacity < 0:
            msg = f"capacity must be >= 0, got {capacity}"
            raise ValueError(msg)
        # asyncio.Queue treats 0 as unbounded
        self._queue: asyncio.Queue[object] = asyncio.Queue(maxsize=max(1, capacity))
        self._closed = False
        self._drained = False

    @property
    def closed(self) -> bool:
        return self._closed

    async def send(self, item: T) -> None:
        if self._closed:
            raise StreamClosedError("send on closed stream")
        await self._queue.put(item)

    async def close(self) -> None:
        if self._closed:
            raise StreamClosedError("stream already closed")
        self._closed = True
        await self._queue.put(_CLOSED)

    async def receive(self) -> T:
        if self._drained:
            raise StreamClosed
        item = await self._queue.get()
        if item is _CLOSED:
            self._drained = True
            raise StreamClosed
        return item  # type: ignore[return-value]

    def __aiter__(self) -> AsyncIterator[T]:
        return self._iterate()

    async def _iterate(self) -> AsyncIterator[T]:
        while True:
            try:
                yield await self.receive()
            except StreamClosed:
                return
